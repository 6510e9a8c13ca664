"""Staff Routes — CRUD, primary staff, WhatsApp phone registrations.

Invariants:
    - Setting a primary staff member unsets the previous one in the same commit
    - Phone numbers are stored normalized; a number belongs to one staff member
    - Phone routes first check the staff member belongs to the caller's organization
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.api.dependencies import get_staff_repository
from donor_crm.core.domain_types import SortDirection, StaffOrderBy
from donor_crm.data.staff import StaffRepository
from donor_crm.infrastructure.database import get_db
from donor_crm.schemas.staff import StaffCreate, StaffListParams, StaffResponse, StaffUpdate
from donor_crm.schemas.whatsapp import PhoneNumberCreate, PhoneNumberResponse, PhoneNumberUpdate
from donor_crm.services.whatsapp_permission import WhatsAppPermissionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/staff", tags=["staff"])


@router.get("")
async def list_staff(
    search_term: str | None = Query(None, max_length=255),
    is_real_person: bool | None = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    order_by: StaffOrderBy = Query(StaffOrderBy.CREATED_AT),
    order_direction: SortDirection = Query(SortDirection.DESC),
    repo: StaffRepository = Depends(get_staff_repository),
):
    params = StaffListParams(
        search_term=search_term,
        is_real_person=is_real_person,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_direction=order_direction,
    )
    items, total = await repo.list_staff(params)
    return {
        "staff": [StaffResponse.model_validate(s).model_dump(mode="json") for s in items],
        "total_count": total,
    }


@router.post("", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
async def create_staff(
    body: StaffCreate,
    repo: StaffRepository = Depends(get_staff_repository),
    db: AsyncSession = Depends(get_db),
):
    staff = await repo.create(body)
    await db.commit()
    await db.refresh(staff)
    return staff


@router.get("/primary", response_model=StaffResponse | None)
async def get_primary(repo: StaffRepository = Depends(get_staff_repository)):
    return await repo.get_primary()


@router.get("/{staff_id}", response_model=StaffResponse)
async def get_staff(staff_id: int, repo: StaffRepository = Depends(get_staff_repository)):
    return await repo.get_or_404(staff_id)


@router.patch("/{staff_id}", response_model=StaffResponse)
async def update_staff(
    staff_id: int,
    body: StaffUpdate,
    repo: StaffRepository = Depends(get_staff_repository),
    db: AsyncSession = Depends(get_db),
):
    staff = await repo.update(staff_id, body)
    await db.commit()
    await db.refresh(staff)
    return staff


@router.delete("/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_staff(
    staff_id: int,
    repo: StaffRepository = Depends(get_staff_repository),
    db: AsyncSession = Depends(get_db),
):
    await repo.delete(staff_id)
    await db.commit()


@router.put("/{staff_id}/primary", response_model=StaffResponse)
async def set_primary(
    staff_id: int,
    repo: StaffRepository = Depends(get_staff_repository),
    db: AsyncSession = Depends(get_db),
):
    staff = await repo.set_primary(staff_id)
    await db.commit()
    await db.refresh(staff)
    return staff


@router.delete("/{staff_id}/primary", response_model=StaffResponse)
async def unset_primary(
    staff_id: int,
    repo: StaffRepository = Depends(get_staff_repository),
    db: AsyncSession = Depends(get_db),
):
    staff = await repo.unset_primary(staff_id)
    await db.commit()
    await db.refresh(staff)
    return staff


# ─── WhatsApp phone numbers ─────────────────────────────────────

@router.get("/{staff_id}/phone-numbers", response_model=list[PhoneNumberResponse])
async def list_phone_numbers(
    staff_id: int,
    repo: StaffRepository = Depends(get_staff_repository),
    db: AsyncSession = Depends(get_db),
):
    await repo.get_or_404(staff_id)
    return await WhatsAppPermissionService(db).list_phone_numbers(staff_id)


@router.post(
    "/{staff_id}/phone-numbers",
    response_model=PhoneNumberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_phone_number(
    staff_id: int,
    body: PhoneNumberCreate,
    repo: StaffRepository = Depends(get_staff_repository),
    db: AsyncSession = Depends(get_db),
):
    await repo.get_or_404(staff_id)
    registration = await WhatsAppPermissionService(db).add_phone_number(
        staff_id, body.phone_number,
    )
    await db.commit()
    await db.refresh(registration)
    return registration


@router.patch(
    "/{staff_id}/phone-numbers/{phone_number}", response_model=PhoneNumberResponse,
)
async def set_phone_allowed(
    staff_id: int,
    phone_number: str,
    body: PhoneNumberUpdate,
    repo: StaffRepository = Depends(get_staff_repository),
    db: AsyncSession = Depends(get_db),
):
    await repo.get_or_404(staff_id)
    registration = await WhatsAppPermissionService(db).set_allowed(
        staff_id, phone_number, body.is_allowed,
    )
    await db.commit()
    await db.refresh(registration)
    return registration


@router.delete(
    "/{staff_id}/phone-numbers/{phone_number}", status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_phone_number(
    staff_id: int,
    phone_number: str,
    repo: StaffRepository = Depends(get_staff_repository),
    db: AsyncSession = Depends(get_db),
):
    await repo.get_or_404(staff_id)
    await WhatsAppPermissionService(db).remove_phone_number(staff_id, phone_number)
    await db.commit()
