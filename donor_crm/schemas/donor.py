"""Donor Schemas — request/response models for donor CRUD and listing.

Invariants:
    - email validated loosely (contains "@"), lowercased and stripped
    - state stored upper-cased, at most 2 chars
    - DonorUpdate only carries fields the caller set (model_dump(exclude_unset=True))
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from donor_crm.core.domain_types import DonorOrderBy, SortDirection


def _clean_email(v: str | None) -> str | None:
    if v is None:
        return v
    v = v.strip().lower()
    if "@" not in v:
        raise ValueError("email must contain '@'")
    return v


def _clean_state(v: str | None) -> str | None:
    return v.strip().upper() if v else v


class _DonorFields(BaseModel):
    external_id: str | None = Field(None, max_length=255)
    his_title: str | None = Field(None, max_length=50)
    his_first_name: str | None = Field(None, max_length=255)
    his_initial: str | None = Field(None, max_length=10)
    his_last_name: str | None = Field(None, max_length=255)
    her_title: str | None = Field(None, max_length=50)
    her_first_name: str | None = Field(None, max_length=255)
    her_initial: str | None = Field(None, max_length=10)
    her_last_name: str | None = Field(None, max_length=255)
    display_name: str | None = Field(None, max_length=500)
    is_couple: bool = False
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    state: str | None = Field(None, max_length=2)
    gender: str | None = Field(None, max_length=10)
    assigned_to_staff_id: int | None = None
    current_stage_name: str | None = Field(None, max_length=255)
    high_potential_donor: bool = False


class DonorCreate(_DonorFields):
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return _clean_email(v)

    @field_validator("state")
    @classmethod
    def normalize_state(cls, v: str | None) -> str | None:
        return _clean_state(v)


class DonorUpdate(BaseModel):
    first_name: str | None = Field(None, min_length=1, max_length=255)
    last_name: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = Field(None, min_length=3, max_length=255)
    external_id: str | None = Field(None, max_length=255)
    his_title: str | None = Field(None, max_length=50)
    his_first_name: str | None = Field(None, max_length=255)
    his_initial: str | None = Field(None, max_length=10)
    his_last_name: str | None = Field(None, max_length=255)
    her_title: str | None = Field(None, max_length=50)
    her_first_name: str | None = Field(None, max_length=255)
    her_initial: str | None = Field(None, max_length=10)
    her_last_name: str | None = Field(None, max_length=255)
    display_name: str | None = Field(None, max_length=500)
    is_couple: bool | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    state: str | None = Field(None, max_length=2)
    gender: str | None = Field(None, max_length=10)
    current_stage_name: str | None = Field(None, max_length=255)
    classification_reasoning: str | None = None
    predicted_actions: list[str] | None = None
    high_potential_donor: bool | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return _clean_email(v)

    @field_validator("state")
    @classmethod
    def normalize_state(cls, v: str | None) -> str | None:
        return _clean_state(v)


class DonorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: str
    external_id: str | None
    first_name: str
    last_name: str
    his_title: str | None
    his_first_name: str | None
    his_initial: str | None
    his_last_name: str | None
    her_title: str | None
    her_first_name: str | None
    her_initial: str | None
    her_last_name: str | None
    display_name: str | None
    is_couple: bool
    email: str
    phone: str | None
    address: str | None
    state: str | None
    gender: str | None
    notes: list[dict]
    assigned_to_staff_id: int | None
    current_stage_name: str | None
    classification_reasoning: str | None
    predicted_actions: list | None
    high_potential_donor: bool
    created_at: datetime
    updated_at: datetime


class DonorListParams(BaseModel):
    """Filters for listing donors. Explicit None on gender / assigned staff means IS NULL."""
    search_term: str | None = None
    state: str | None = None
    gender: str | None = None
    assigned_to_staff_id: int | None = None
    only_researched: bool = False
    limit: int | None = Field(None, ge=1, le=1000)
    offset: int = Field(0, ge=0)
    order_by: DonorOrderBy = DonorOrderBy.CREATED_AT
    order_direction: SortDirection = SortDirection.DESC


class DonorNoteCreate(BaseModel):
    content: str = Field(min_length=1, max_length=10_000)
    staff_id: int

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("content cannot be empty or whitespace")
        return v


class AssignStaff(BaseModel):
    staff_id: int | None = None
