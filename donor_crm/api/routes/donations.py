"""Donation Routes — CRUD, paginated listing, per-donor statistics.

Invariants:
    - Donations are scoped through their donor's organization
    - Create/update run the CRM hook before the single commit
    - Stats responses key donors by id; amounts are integer cents
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.api.dependencies import get_donation_repository
from donor_crm.core.domain_types import DonationOrderBy, SortDirection
from donor_crm.data.donations import DonationRepository
from donor_crm.infrastructure.database import get_db
from donor_crm.schemas.donation import (
    DonationCreate, DonationListParams, DonationResponse, DonationUpdate, DonorStatsRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/donations", tags=["donations"])


@router.get("")
async def list_donations(
    donor_id: int | None = Query(None),
    project_id: int | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    order_by: DonationOrderBy = Query(DonationOrderBy.DATE),
    order_direction: SortDirection = Query(SortDirection.DESC),
    repo: DonationRepository = Depends(get_donation_repository),
):
    params = DonationListParams(
        donor_id=donor_id,
        project_id=project_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_direction=order_direction,
    )
    items, total = await repo.list_donations(params)
    return {
        "donations": [
            DonationResponse.model_validate(d).model_dump(mode="json") for d in items
        ],
        "total_count": total,
    }


@router.post("", response_model=DonationResponse, status_code=status.HTTP_201_CREATED)
async def create_donation(
    body: DonationCreate,
    repo: DonationRepository = Depends(get_donation_repository),
    db: AsyncSession = Depends(get_db),
):
    donation = await repo.create(body)
    await db.commit()
    await db.refresh(donation)
    return donation


@router.post("/stats")
async def multiple_donor_stats(
    body: DonorStatsRequest, repo: DonationRepository = Depends(get_donation_repository),
):
    stats = await repo.get_multiple_donor_stats(body.donor_ids)
    return {"stats": {str(donor_id): value for donor_id, value in stats.items()}}


@router.get("/stats/{donor_id}")
async def donor_stats(
    donor_id: int, repo: DonationRepository = Depends(get_donation_repository),
):
    return await repo.get_donor_stats(donor_id)


@router.get("/{donation_id}", response_model=DonationResponse)
async def get_donation(
    donation_id: int, repo: DonationRepository = Depends(get_donation_repository),
):
    return await repo.get_or_404(donation_id)


@router.patch("/{donation_id}", response_model=DonationResponse)
async def update_donation(
    donation_id: int,
    body: DonationUpdate,
    repo: DonationRepository = Depends(get_donation_repository),
    db: AsyncSession = Depends(get_db),
):
    donation = await repo.update(donation_id, body)
    await db.commit()
    await db.refresh(donation)
    return donation


@router.delete("/{donation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_donation(
    donation_id: int,
    repo: DonationRepository = Depends(get_donation_repository),
    db: AsyncSession = Depends(get_db),
):
    await repo.delete(donation_id)
    await db.commit()
