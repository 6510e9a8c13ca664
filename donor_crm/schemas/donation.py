"""Donation Schemas — gift amounts are integer cents, currency a 3-letter code."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from donor_crm.core.domain_types import DonationOrderBy, SortDirection


def _upper_currency(v: str | None) -> str | None:
    return v.strip().upper() if v else v


class DonationCreate(BaseModel):
    donor_id: int
    project_id: int
    amount: int = Field(gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    date: datetime | None = None
    external_id: str | None = Field(None, max_length=255)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _upper_currency(v)


class DonationUpdate(BaseModel):
    donor_id: int | None = None
    project_id: int | None = None
    amount: int | None = Field(None, gt=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    date: datetime | None = None

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str | None) -> str | None:
        return _upper_currency(v)


class DonationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    donor_id: int
    project_id: int
    external_id: str | None
    date: datetime
    amount: int
    currency: str
    created_at: datetime
    updated_at: datetime


class DonationListParams(BaseModel):
    donor_id: int | None = None
    project_id: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int = Field(10, ge=1, le=100)
    offset: int = Field(0, ge=0)
    order_by: DonationOrderBy = DonationOrderBy.DATE
    order_direction: SortDirection = SortDirection.DESC


class DonorStatsRequest(BaseModel):
    donor_ids: list[int] = Field(min_length=1, max_length=1000)
