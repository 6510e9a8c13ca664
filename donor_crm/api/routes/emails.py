"""Email Routes — one personalized email draft per request.

Invariants:
    - The donor must belong to the caller's organization
    - Writing staff: explicit staff_id, else the donor's assigned staff, else the primary staff
    - Nothing is persisted; the draft is returned to the caller
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.api.dependencies import (
    get_donation_repository, get_donor_repository, get_email_generator,
    get_organization_id, get_staff_repository,
)
from donor_crm.data.donations import DonationRepository
from donor_crm.data.donors import DonorRepository
from donor_crm.data.organizations import get_organization_or_404
from donor_crm.data.staff import StaffRepository
from donor_crm.infrastructure.database import get_db
from donor_crm.schemas.email import EmailGenerationRequest, EmailGenerationResponse
from donor_crm.services.email_generation import EmailGenerator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/emails", tags=["emails"])


@router.post("/generate", response_model=EmailGenerationResponse)
async def generate_email(
    body: EmailGenerationRequest,
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
    donors: DonorRepository = Depends(get_donor_repository),
    donations: DonationRepository = Depends(get_donation_repository),
    staff_repo: StaffRepository = Depends(get_staff_repository),
    generator: EmailGenerator = Depends(get_email_generator),
):
    organization = await get_organization_or_404(db, organization_id)
    donor = await donors.get_or_404(body.donor_id)

    if body.staff_id is not None:
        staff = await staff_repo.get_or_404(body.staff_id)
    elif donor.assigned_to_staff_id is not None:
        staff = await staff_repo.get(donor.assigned_to_staff_id)
    else:
        staff = await staff_repo.get_primary()

    history = await donations.list_for_donor(donor.id)
    email = await generator.generate_email(
        donor, history, body.instruction, organization=organization, staff=staff,
    )
    return EmailGenerationResponse(
        donor_id=donor.id,
        subject=email.subject,
        reasoning=email.reasoning,
        email_content=email.email_content,
        response=email.response,
        tokens_used=email.tokens_used,
    )
