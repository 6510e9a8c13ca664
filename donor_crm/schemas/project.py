"""Project Schemas — goal is integer cents; tags a list of short strings."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from donor_crm.core.domain_types import ProjectOrderBy, SortDirection


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    active: bool = True
    goal: int | None = Field(None, ge=0)
    tags: list[str] = Field(default_factory=list)
    external_id: str | None = Field(None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty or whitespace")
        return v


class ProjectUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    active: bool | None = None
    goal: int | None = Field(None, ge=0)
    tags: list[str] | None = None


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: str
    external_id: str | None
    name: str
    description: str | None
    active: bool
    goal: int | None
    tags: list[str]
    created_at: datetime
    updated_at: datetime


class ProjectListParams(BaseModel):
    active: bool | None = None
    search_term: str | None = None
    limit: int = Field(10, ge=1, le=100)
    offset: int = Field(0, ge=0)
    order_by: ProjectOrderBy = ProjectOrderBy.CREATED_AT
    order_direction: SortDirection = SortDirection.DESC
