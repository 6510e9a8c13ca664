"""Donor Routes — CRUD, search, notes, staff assignment, journey stage.

Invariants:
    - Every route is scoped by X-Organization-Id through DonorRepository
    - Writes commit once after the repository (and its CRM hook) has flushed
    - POST /search takes DonorListParams as JSON so null means "IS NULL"
      (unassigned donors, unknown gender); GET / only narrows by given values
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.api.dependencies import get_donor_repository
from donor_crm.core.domain_types import DonorOrderBy, SortDirection
from donor_crm.data.donors import DonorRepository
from donor_crm.infrastructure.database import get_db
from donor_crm.schemas.donor import (
    AssignStaff, DonorCreate, DonorListParams, DonorNoteCreate, DonorResponse, DonorUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/donors", tags=["donors"])


def _page(items, total: int) -> dict:
    return {
        "donors": [DonorResponse.model_validate(d).model_dump(mode="json") for d in items],
        "total_count": total,
    }


@router.get("")
async def list_donors(
    search_term: str | None = Query(None, max_length=255),
    state: str | None = Query(None, max_length=2),
    gender: str | None = Query(None),
    assigned_to_staff_id: int | None = Query(None),
    only_researched: bool = Query(False),
    limit: int | None = Query(None, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    order_by: DonorOrderBy = Query(DonorOrderBy.CREATED_AT),
    order_direction: SortDirection = Query(SortDirection.DESC),
    repo: DonorRepository = Depends(get_donor_repository),
):
    given = {
        key: value for key, value in {
            "search_term": search_term,
            "state": state,
            "gender": gender,
            "assigned_to_staff_id": assigned_to_staff_id,
        }.items() if value is not None
    }
    params = DonorListParams(
        **given,
        only_researched=only_researched,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_direction=order_direction,
    )
    items, total = await repo.list_donors(params)
    return _page(items, total)


@router.post("/search")
async def search_donors(
    body: DonorListParams, repo: DonorRepository = Depends(get_donor_repository),
):
    items, total = await repo.list_donors(body)
    return _page(items, total)


@router.post("", response_model=DonorResponse, status_code=status.HTTP_201_CREATED)
async def create_donor(
    body: DonorCreate,
    repo: DonorRepository = Depends(get_donor_repository),
    db: AsyncSession = Depends(get_db),
):
    donor = await repo.create(body)
    await db.commit()
    await db.refresh(donor)
    return donor


@router.get("/{donor_id}", response_model=DonorResponse)
async def get_donor(donor_id: int, repo: DonorRepository = Depends(get_donor_repository)):
    return await repo.get_or_404(donor_id)


@router.patch("/{donor_id}", response_model=DonorResponse)
async def update_donor(
    donor_id: int,
    body: DonorUpdate,
    repo: DonorRepository = Depends(get_donor_repository),
    db: AsyncSession = Depends(get_db),
):
    donor = await repo.update(donor_id, body)
    await db.commit()
    await db.refresh(donor)
    return donor


@router.delete("/{donor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_donor(
    donor_id: int,
    repo: DonorRepository = Depends(get_donor_repository),
    db: AsyncSession = Depends(get_db),
):
    await repo.delete(donor_id)
    await db.commit()


@router.post("/{donor_id}/notes", status_code=status.HTTP_201_CREATED)
async def add_note(
    donor_id: int,
    body: DonorNoteCreate,
    repo: DonorRepository = Depends(get_donor_repository),
    db: AsyncSession = Depends(get_db),
):
    note = await repo.add_note(donor_id, body.staff_id, body.content)
    await db.commit()
    return note


@router.put("/{donor_id}/staff", response_model=DonorResponse)
async def assign_staff(
    donor_id: int,
    body: AssignStaff,
    repo: DonorRepository = Depends(get_donor_repository),
    db: AsyncSession = Depends(get_db),
):
    donor = await repo.assign_staff(donor_id, body.staff_id)
    await db.commit()
    await db.refresh(donor)
    return donor


@router.get("/{donor_id}/stage")
async def get_stage(donor_id: int, repo: DonorRepository = Depends(get_donor_repository)):
    info = await repo.get_stage_info(donor_id)
    return info.to_dict()
