"""Organization Schemas — profile, writing instructions and donor journey graph."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class JourneyNode(BaseModel):
    id: str
    label: str
    properties: dict = Field(default_factory=dict)


class JourneyEdge(BaseModel):
    id: str | None = None
    source: str
    target: str
    label: str = ""


class DonorJourney(BaseModel):
    nodes: list[JourneyNode] = Field(default_factory=list)
    edges: list[JourneyEdge] = Field(default_factory=list)


class OrganizationCreate(BaseModel):
    id: str = Field(min_length=1, max_length=255)
    name: str = Field(min_length=1)
    website_url: str | None = None
    description: str | None = None
    writing_instructions: str | None = None


class OrganizationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1)
    website_url: str | None = None
    description: str | None = None
    writing_instructions: str | None = None
    donor_journey: DonorJourney | None = None
    memory: list[str] | None = None


class OrganizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    website_url: str | None
    website_summary: str | None
    description: str | None
    writing_instructions: str | None
    donor_journey: dict
    memory: list
    created_at: datetime
    updated_at: datetime
