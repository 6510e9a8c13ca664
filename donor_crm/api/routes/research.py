"""Research Routes — donor web research runs and stored versions.

Invariants:
    - A run that found sources is committed as the new live version
    - Search/crawl/LLM failures still answer 200 with an empty research payload
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.api.dependencies import get_person_research_service
from donor_crm.core.errors import ResourceNotFoundError
from donor_crm.infrastructure.database import get_db
from donor_crm.schemas.research import (
    PersonResearchRequest, PersonResearchResponse, ResearchRunResponse,
)
from donor_crm.services.person_research import PersonResearchService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/research", tags=["research"])


@router.post("/donors/{donor_id}", response_model=ResearchRunResponse)
async def run_research(
    donor_id: int,
    body: PersonResearchRequest,
    db: AsyncSession = Depends(get_db),
    service: PersonResearchService = Depends(get_person_research_service),
):
    outcome = await service.research_donor(donor_id, body.research_topic)
    record = outcome["record"]
    if record is not None:
        await db.commit()
        await db.refresh(record)
    return ResearchRunResponse(
        research=outcome["research"],
        record=PersonResearchResponse.model_validate(record) if record else None,
    )


@router.get("/donors/{donor_id}", response_model=PersonResearchResponse)
async def get_research(
    donor_id: int,
    version: int | None = Query(None, ge=1),
    service: PersonResearchService = Depends(get_person_research_service),
):
    record = await service.get_research(donor_id, version)
    if record is None:
        label = f"{donor_id} v{version}" if version else f"{donor_id} (live)"
        raise ResourceNotFoundError("Person research", label)
    return record


@router.get("/donors/{donor_id}/versions", response_model=list[PersonResearchResponse])
async def list_versions(
    donor_id: int,
    service: PersonResearchService = Depends(get_person_research_service),
):
    return await service.list_versions(donor_id)
