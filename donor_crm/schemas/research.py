"""Research Schemas — donor web research requests and stored versions."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PersonResearchRequest(BaseModel):
    research_topic: str | None = Field(None, max_length=500)


class PersonResearchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    donor_id: int
    research_topic: str
    research_data: dict
    is_live: bool
    version: int
    created_at: datetime


class ResearchRunResponse(BaseModel):
    research: dict
    record: PersonResearchResponse | None = None


class WebsiteSummaryResponse(BaseModel):
    organization_id: str
    website_summary: str | None
    updated: bool
