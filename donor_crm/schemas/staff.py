"""Staff Schemas — organization members; at most one primary per organization."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from donor_crm.core.domain_types import SortDirection, StaffOrderBy


class StaffCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    is_real_person: bool = True
    signature: str | None = None
    writing_instructions: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v


class StaffUpdate(BaseModel):
    first_name: str | None = Field(None, min_length=1, max_length=255)
    last_name: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = Field(None, min_length=3, max_length=255)
    is_real_person: bool | None = None
    signature: str | None = None
    writing_instructions: str | None = None


class StaffResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: str
    first_name: str
    last_name: str
    email: str
    is_real_person: bool
    is_primary: bool
    signature: str | None
    writing_instructions: str | None
    created_at: datetime
    updated_at: datetime


class StaffListParams(BaseModel):
    search_term: str | None = None
    is_real_person: bool | None = None
    limit: int = Field(10, ge=1, le=100)
    offset: int = Field(0, ge=0)
    order_by: StaffOrderBy = StaffOrderBy.CREATED_AT
    order_direction: SortDirection = SortDirection.DESC
