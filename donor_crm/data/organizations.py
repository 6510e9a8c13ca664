"""Organization Data Access — profile, writing instructions and donor journey."""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.errors import ConflictError, ResourceNotFoundError
from donor_crm.models.organization import Organization
from donor_crm.schemas.organization import OrganizationCreate, OrganizationUpdate

logger = logging.getLogger(__name__)


async def get_organization(db: AsyncSession, organization_id: str) -> Organization | None:
    return await db.get(Organization, organization_id)


async def get_organization_or_404(db: AsyncSession, organization_id: str) -> Organization:
    organization = await db.get(Organization, organization_id)
    if organization is None:
        raise ResourceNotFoundError("Organization", organization_id)
    return organization


async def create_organization(db: AsyncSession, data: OrganizationCreate) -> Organization:
    if await db.get(Organization, data.id) is not None:
        raise ConflictError(f"Organization '{data.id}' already exists.")
    organization = Organization(**data.model_dump())
    db.add(organization)
    await db.flush()
    logger.info("Organization created", extra={"organization_id": organization.id})
    return organization


async def update_organization(
    db: AsyncSession, organization_id: str, data: OrganizationUpdate,
) -> Organization:
    organization = await get_organization_or_404(db, organization_id)
    changes = data.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(organization, key, value)
    organization.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return organization
