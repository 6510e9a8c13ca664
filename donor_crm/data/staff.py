"""Staff Data Access — organization members and the primary-staff designation.

Invariants:
    - At most one staff member per organization has is_primary = True
    - set_primary clears the previous primary in the same flush (one transaction)
    - Email unique per organization (ConflictError)
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import SortDirection, StaffOrderBy
from donor_crm.core.errors import ConflictError, ResourceNotFoundError
from donor_crm.models.staff import Staff
from donor_crm.schemas.staff import StaffCreate, StaffListParams, StaffUpdate
from donor_crm.services.query_filters import STAFF_FULL_NAME, ilike_contains

logger = logging.getLogger(__name__)

_ORDER_COLUMNS = {
    StaffOrderBy.FIRST_NAME: Staff.first_name,
    StaffOrderBy.LAST_NAME: Staff.last_name,
    StaffOrderBy.EMAIL: Staff.email,
    StaffOrderBy.CREATED_AT: Staff.created_at,
}


class StaffRepository:
    def __init__(self, db: AsyncSession, organization_id: str):
        self.db = db
        self.organization_id = organization_id

    async def get(self, staff_id: int) -> Staff | None:
        result = await self.db.execute(
            select(Staff).where(
                Staff.id == staff_id, Staff.organization_id == self.organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, staff_id: int) -> Staff:
        staff = await self.get(staff_id)
        if staff is None:
            raise ResourceNotFoundError("Staff", str(staff_id))
        return staff

    async def get_by_email(self, email: str) -> Staff | None:
        result = await self.db.execute(
            select(Staff).where(
                Staff.email == email.strip().lower(),
                Staff.organization_id == self.organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, data: StaffCreate) -> Staff:
        if await self.get_by_email(data.email) is not None:
            raise ConflictError("Staff member with this email already exists in this organization.")
        staff = Staff(organization_id=self.organization_id, **data.model_dump())
        self.db.add(staff)
        await self.db.flush()
        logger.info(
            f"Staff {staff.id} created",
            extra={"organization_id": self.organization_id, "staff_id": staff.id},
        )
        return staff

    async def update(self, staff_id: int, data: StaffUpdate) -> Staff:
        staff = await self.get_or_404(staff_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email"):
            changes["email"] = changes["email"].strip().lower()
            existing = await self.get_by_email(changes["email"])
            if existing is not None and existing.id != staff.id:
                raise ConflictError(
                    "Staff member with this email already exists in this organization.",
                )
        for key, value in changes.items():
            setattr(staff, key, value)
        staff.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        return staff

    async def delete(self, staff_id: int) -> None:
        staff = await self.get_or_404(staff_id)
        await self.db.delete(staff)
        await self.db.flush()

    async def list_staff(self, params: StaffListParams) -> tuple[list[Staff], int]:
        clauses = [Staff.organization_id == self.organization_id]
        if params.search_term:
            term = params.search_term.strip()
            clauses.append(or_(
                ilike_contains(Staff.first_name, term),
                ilike_contains(Staff.last_name, term),
                ilike_contains(Staff.email, term),
                ilike_contains(STAFF_FULL_NAME, term),
            ))
        if params.is_real_person is not None:
            clauses.append(Staff.is_real_person.is_(params.is_real_person))

        total = await self.db.scalar(select(func.count(Staff.id)).where(*clauses))
        column = _ORDER_COLUMNS[params.order_by]
        order = column.asc() if params.order_direction == SortDirection.ASC else column.desc()
        result = await self.db.execute(
            select(Staff).where(*clauses)
            .order_by(order, Staff.id.asc())
            .limit(params.limit)
            .offset(params.offset)
        )
        return list(result.scalars().all()), total or 0

    # ─── Primary Staff ───────────────────────────────────────────

    async def get_primary(self) -> Staff | None:
        result = await self.db.execute(
            select(Staff).where(
                Staff.organization_id == self.organization_id, Staff.is_primary.is_(True),
            )
        )
        return result.scalars().first()

    async def set_primary(self, staff_id: int) -> Staff:
        staff = await self.get_or_404(staff_id)
        await self.db.execute(
            update(Staff)
            .where(
                Staff.organization_id == self.organization_id,
                Staff.is_primary.is_(True),
                Staff.id != staff_id,
            )
            .values(is_primary=False)
            .execution_options(synchronize_session="fetch")
        )
        staff.is_primary = True
        staff.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.info(
            f"Staff {staff_id} set as primary",
            extra={"organization_id": self.organization_id, "staff_id": staff_id},
        )
        return staff

    async def unset_primary(self, staff_id: int) -> Staff:
        staff = await self.get_or_404(staff_id)
        staff.is_primary = False
        staff.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        return staff
