"""Query Schemas — the structured filter DSL, raw SQL and templated query payloads.

Invariants:
    - StructuredQuery.limit clamped to 1-1000, default 100; sort_direction default desc
    - FlexibleQuery.limit clamped to 1-1000, default 50
    - Out-of-range limits are clamped, never rejected
    - QueryFilter accepts camelCase keys from the LLM tools (sortBy, queryType) via aliases
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from donor_crm.core.domain_types import (
    FilterOperation, FlexibleQueryType, QueryType, SortDirection,
)

MAX_QUERY_LIMIT = 1000


def clamp_limit(value: int) -> int:
    return max(1, min(value, MAX_QUERY_LIMIT))


class QueryFilter(BaseModel):
    """One predicate: field <operation> value(s)."""
    field: str = Field(min_length=1, max_length=100)
    operation: FilterOperation
    value: Any = None
    values: list[Any] | None = None


class StructuredQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query_type: QueryType = Field(alias="queryType")
    filters: list[QueryFilter] = Field(default_factory=list)
    sort_by: str | None = Field(None, alias="sortBy")
    sort_direction: SortDirection = Field(SortDirection.DESC, alias="sortDirection")
    limit: int = 100

    @field_validator("limit")
    @classmethod
    def clamp(cls, v: int) -> int:
        return clamp_limit(v)


class RawSQLRequest(BaseModel):
    query: str = Field(min_length=1, max_length=20_000)

    @field_validator("query")
    @classmethod
    def strip_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("query cannot be empty or whitespace")
        return v


class FlexibleQuery(BaseModel):
    """Templated donor query (joins the filter DSL cannot express)."""
    model_config = ConfigDict(populate_by_name=True)

    query_type: FlexibleQueryType = Field(alias="queryType")
    donor_id: int | None = Field(None, alias="donorId")
    donor_name: str | None = Field(None, alias="donorName", max_length=255)
    project_id: int | None = Field(None, alias="projectId")
    project_name: str | None = Field(None, alias="projectName", max_length=255)
    start_date: datetime | None = Field(None, alias="startDate")
    end_date: datetime | None = Field(None, alias="endDate")
    min_amount: int | None = Field(None, alias="minAmount", ge=0)
    max_amount: int | None = Field(None, alias="maxAmount", ge=0)
    search_term: str | None = Field(None, alias="searchTerm", max_length=255)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)
    state: str | None = Field(None, max_length=50)
    is_couple: bool | None = Field(None, alias="isCouple")
    high_potential: bool | None = Field(None, alias="highPotential")
    assigned_staff: str | None = Field(None, alias="assignedStaff", max_length=255)
    limit: int = 50

    @field_validator("limit")
    @classmethod
    def clamp(cls, v: int) -> int:
        return clamp_limit(v)
