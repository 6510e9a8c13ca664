"""Organization Routes — tenant profile, writing instructions, donor journey.

Invariants:
    - POST creates by explicit id (no header needed); every other route uses X-Organization-Id
    - Website summary refresh crawls the stored website_url and commits the new summary
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.api.dependencies import get_organization_id, get_website_summary_service
from donor_crm.data.organizations import (
    create_organization, get_organization_or_404, update_organization,
)
from donor_crm.infrastructure.database import get_db
from donor_crm.schemas.organization import (
    OrganizationCreate, OrganizationResponse, OrganizationUpdate,
)
from donor_crm.schemas.research import WebsiteSummaryResponse
from donor_crm.services.website_summary import WebsiteSummaryService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/organizations", tags=["organizations"])


@router.post(
    "", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED,
)
async def create(body: OrganizationCreate, db: AsyncSession = Depends(get_db)):
    organization = await create_organization(db, body)
    await db.commit()
    await db.refresh(organization)
    return organization


@router.get("/current", response_model=OrganizationResponse)
async def get_current(
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_organization_or_404(db, organization_id)


@router.patch("/current", response_model=OrganizationResponse)
async def update_current(
    body: OrganizationUpdate,
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
):
    organization = await update_organization(db, organization_id, body)
    await db.commit()
    await db.refresh(organization)
    return organization


@router.post("/current/website-summary", response_model=WebsiteSummaryResponse)
async def refresh_website_summary(
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
    service: WebsiteSummaryService = Depends(get_website_summary_service),
):
    summary = await service.summarize(organization_id)
    if summary is not None:
        await db.commit()
        return WebsiteSummaryResponse(
            organization_id=organization_id, website_summary=summary, updated=True,
        )
    organization = await get_organization_or_404(db, organization_id)
    return WebsiteSummaryResponse(
        organization_id=organization_id,
        website_summary=organization.website_summary,
        updated=False,
    )
