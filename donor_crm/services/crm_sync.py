"""CRM Sync — pushes local donor, project and donation writes to the organization's CRM.

Invariants:
    - Uses the organization's newest active integration; no integration → no-op (None)
    - Stored external ids carry the "<provider>_" prefix; providers receive the raw id
    - Donations sync only when their donor already has an external id
    - Never raises: provider failures are logged and return None (the local write stands)

Design Decisions:
    - Hook called by the data layer after flush, so new rows already have ids
    - Capability check (supports) before every upload: providers implement a subset
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.crm_mapping import add_provider_prefix, parse_address, strip_provider_prefix
from donor_crm.core.errors import ExternalServiceError
from donor_crm.infrastructure.crm_providers import (
    UPLOAD_DONATIONS, UPLOAD_DONORS, UPLOAD_PROJECTS,
    CrmAddress, CrmDonation, CrmDonor, CrmProject, CrmProviderRegistry,
)
from donor_crm.models.donation import Donation
from donor_crm.models.donor import Donor
from donor_crm.models.organization import OrganizationIntegration
from donor_crm.models.project import Project

logger = logging.getLogger(__name__)


class CrmSyncService:
    """Per-request CRM hook bound to a session and the provider registry."""

    def __init__(self, db: AsyncSession, registry: CrmProviderRegistry):
        self.db = db
        self.registry = registry

    async def _integration(self, organization_id: str) -> OrganizationIntegration | None:
        result = await self.db.execute(
            select(OrganizationIntegration)
            .where(
                OrganizationIntegration.organization_id == organization_id,
                OrganizationIntegration.is_active.is_(True),
            )
            .order_by(OrganizationIntegration.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _provider_for(self, organization_id: str, capability: str):
        integration = await self._integration(organization_id)
        if integration is None:
            return None, None
        provider = self.registry.get(integration.provider)
        if not provider.supports(capability):
            logger.info(
                f"CRM provider {provider.name} does not support {capability}",
                extra={"organization_id": organization_id, "provider": provider.name},
            )
            return None, None
        return provider, integration

    def _log_failure(self, organization_id: str, kind: str, entity_id: int, error: Exception):
        logger.warning(
            f"CRM sync of {kind} {entity_id} failed: {error}",
            extra={"organization_id": organization_id, "error_code": "CRM_SYNC_FAILED"},
        )

    async def sync_donor(self, organization_id: str, donor: Donor) -> str | None:
        try:
            provider, integration = await self._provider_for(organization_id, UPLOAD_DONORS)
            if provider is None:
                return None
            address = parse_address(donor.address)
            payload = CrmDonor(
                external_id=strip_provider_prefix(provider.name, donor.external_id),
                first_name=donor.first_name,
                last_name=donor.last_name,
                email=donor.email,
                display_name=donor.display_name,
                phone=donor.phone,
                address=CrmAddress(**address) if address else None,
                is_couple=donor.is_couple,
            )
            [raw_id] = await provider.upload_donors(
                integration.access_token, [payload], integration.provider_metadata,
            )
        except (ExternalServiceError, KeyError, ValueError) as e:
            self._log_failure(organization_id, "donor", donor.id, e)
            return None
        donor.external_id = add_provider_prefix(provider.name, raw_id)
        await self.db.flush()
        return donor.external_id

    async def sync_project(self, organization_id: str, project: Project) -> str | None:
        try:
            provider, integration = await self._provider_for(organization_id, UPLOAD_PROJECTS)
            if provider is None:
                return None
            payload = CrmProject(
                external_id=strip_provider_prefix(provider.name, project.external_id),
                name=project.name,
                active=project.active,
                description=project.description,
                goal=project.goal,
                tags=list(project.tags or []),
            )
            [raw_id] = await provider.upload_projects(
                integration.access_token, [payload], integration.provider_metadata,
            )
        except (ExternalServiceError, KeyError, ValueError) as e:
            self._log_failure(organization_id, "project", project.id, e)
            return None
        project.external_id = add_provider_prefix(provider.name, raw_id)
        await self.db.flush()
        return project.external_id

    async def sync_donation(
        self, organization_id: str, donation: Donation, donor: Donor, project: Project,
    ) -> str | None:
        if not donor.external_id:
            logger.info(
                f"Skipping CRM sync of donation {donation.id}: donor has no external id",
                extra={"organization_id": organization_id, "donor_id": donor.id},
            )
            return None
        try:
            provider, integration = await self._provider_for(organization_id, UPLOAD_DONATIONS)
            if provider is None:
                return None
            payload = CrmDonation(
                external_id=strip_provider_prefix(provider.name, donation.external_id),
                donor_external_id=strip_provider_prefix(provider.name, donor.external_id),
                amount=donation.amount,
                currency=donation.currency,
                date=donation.date,
                project_external_id=(
                    strip_provider_prefix(provider.name, project.external_id) or None
                ),
            )
            [raw_id] = await provider.upload_donations(
                integration.access_token, [payload], integration.provider_metadata,
            )
        except (ExternalServiceError, KeyError, ValueError) as e:
            self._log_failure(organization_id, "donation", donation.id, e)
            return None
        donation.external_id = add_provider_prefix(provider.name, raw_id)
        await self.db.flush()
        logger.info(
            f"Donation {donation.id} synced to {provider.name}",
            extra={"organization_id": organization_id, "provider": provider.name},
        )
        return donation.external_id
