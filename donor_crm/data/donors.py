"""Donor Data Access — organization-scoped donor reads and writes.

Invariants:
    - Every read filters donors.organization_id; a foreign donor is indistinguishable from a missing one
    - Email unique per organization: duplicates raise ConflictError before hitting the constraint
    - Assigned staff must belong to the same organization (ForbiddenError otherwise)
    - notes is append-only; each note is {"createdAt", "createdBy": "staff_<id>", "content"}
    - Writes flush, never commit: the route owns the transaction

Design Decisions:
    - list_donors() distinguishes "filter not given" from "filter is None" via model_fields_set
      (gender=None → IS NULL, assigned_to_staff_id=None → unassigned)
    - CRM hook runs after flush so new donors already carry an id
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import DonorOrderBy, SortDirection
from donor_crm.core.donor_journey import StageInfo, resolve_stage
from donor_crm.core.errors import ConflictError, ForbiddenError, ResourceNotFoundError
from donor_crm.models.donor import Donor
from donor_crm.models.organization import Organization
from donor_crm.models.person_research import PersonResearch
from donor_crm.models.staff import Staff
from donor_crm.schemas.donor import DonorCreate, DonorListParams, DonorUpdate
from donor_crm.services.query_filters import DONOR_FULL_NAME, ilike_contains

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "Donor with this email already exists in this organization."

_ORDER_COLUMNS = {
    DonorOrderBy.FIRST_NAME: Donor.first_name,
    DonorOrderBy.LAST_NAME: Donor.last_name,
    DonorOrderBy.EMAIL: Donor.email,
    DonorOrderBy.CREATED_AT: Donor.created_at,
}


class DonorRepository:
    """Donor persistence for one organization."""

    def __init__(self, db: AsyncSession, organization_id: str, crm_sync=None):
        self.db = db
        self.organization_id = organization_id
        self.crm_sync = crm_sync

    # ─── Reads ───────────────────────────────────────────────────

    async def get(self, donor_id: int) -> Donor | None:
        result = await self.db.execute(
            select(Donor).where(
                Donor.id == donor_id, Donor.organization_id == self.organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, donor_id: int) -> Donor:
        donor = await self.get(donor_id)
        if donor is None:
            raise ResourceNotFoundError("Donor", str(donor_id))
        return donor

    async def get_by_email(self, email: str) -> Donor | None:
        result = await self.db.execute(
            select(Donor).where(
                Donor.email == email.strip().lower(),
                Donor.organization_id == self.organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_ids(self, donor_ids: list[int]) -> list[Donor]:
        if not donor_ids:
            return []
        result = await self.db.execute(
            select(Donor)
            .where(Donor.id.in_(donor_ids), Donor.organization_id == self.organization_id)
            .order_by(Donor.id)
        )
        return list(result.scalars().all())

    async def list_donors(self, params: DonorListParams) -> tuple[list[Donor], int]:
        clauses = [Donor.organization_id == self.organization_id]
        given = params.model_fields_set

        if params.search_term:
            term = params.search_term.strip()
            clauses.append(or_(
                ilike_contains(Donor.first_name, term),
                ilike_contains(Donor.last_name, term),
                ilike_contains(Donor.email, term),
                ilike_contains(DONOR_FULL_NAME, term),
            ))
        if params.state:
            clauses.append(Donor.state == params.state.strip().upper())
        if "gender" in given:
            clauses.append(
                Donor.gender.is_(None) if params.gender is None
                else Donor.gender == params.gender
            )
        if "assigned_to_staff_id" in given:
            clauses.append(
                Donor.assigned_to_staff_id.is_(None) if params.assigned_to_staff_id is None
                else Donor.assigned_to_staff_id == params.assigned_to_staff_id
            )
        if params.only_researched:
            clauses.append(exists().where(
                PersonResearch.donor_id == Donor.id, PersonResearch.is_live.is_(True),
            ))

        total = await self.db.scalar(select(func.count(Donor.id)).where(*clauses))

        column = _ORDER_COLUMNS[params.order_by]
        order = column.asc() if params.order_direction == SortDirection.ASC else column.desc()
        stmt = (
            select(Donor).where(*clauses)
            .order_by(order, Donor.id.asc())
            .offset(params.offset)
        )
        if params.limit is not None:
            stmt = stmt.limit(params.limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total or 0

    async def get_stage_info(self, donor_id: int) -> StageInfo:
        donor = await self.get_or_404(donor_id)
        organization = await self.db.get(Organization, self.organization_id)
        journey = organization.donor_journey if organization else None
        return resolve_stage(journey, donor.current_stage_name)

    # ─── Writes ──────────────────────────────────────────────────

    async def _ensure_unique_email(self, email: str, exclude_id: int | None = None) -> None:
        existing = await self.get_by_email(email)
        if existing is not None and existing.id != exclude_id:
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

    async def _ensure_staff_in_organization(self, staff_id: int) -> Staff:
        staff = await self.db.get(Staff, staff_id)
        if staff is None:
            raise ResourceNotFoundError("Staff", str(staff_id))
        if staff.organization_id != self.organization_id:
            raise ForbiddenError("Staff member does not belong to this organization")
        return staff

    async def create(self, data: DonorCreate) -> Donor:
        await self._ensure_unique_email(data.email)
        if data.assigned_to_staff_id is not None:
            await self._ensure_staff_in_organization(data.assigned_to_staff_id)

        donor = Donor(organization_id=self.organization_id, notes=[], **data.model_dump())
        self.db.add(donor)
        await self.db.flush()
        logger.info(
            f"Donor {donor.id} created",
            extra={"organization_id": self.organization_id, "donor_id": donor.id},
        )
        if self.crm_sync is not None and not donor.external_id:
            await self.crm_sync.sync_donor(self.organization_id, donor)
        return donor

    async def update(self, donor_id: int, data: DonorUpdate) -> Donor:
        donor = await self.get_or_404(donor_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email") and changes["email"] != donor.email:
            await self._ensure_unique_email(changes["email"], exclude_id=donor.id)
        for key, value in changes.items():
            setattr(donor, key, value)
        donor.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        if self.crm_sync is not None:
            await self.crm_sync.sync_donor(self.organization_id, donor)
        return donor

    async def delete(self, donor_id: int) -> None:
        donor = await self.get_or_404(donor_id)
        await self.db.delete(donor)
        await self.db.flush()
        logger.info(
            f"Donor {donor_id} deleted",
            extra={"organization_id": self.organization_id, "donor_id": donor_id},
        )

    async def assign_staff(self, donor_id: int, staff_id: int | None) -> Donor:
        """Assign (or, with None, unassign) the staff member who owns the relationship."""
        donor = await self.get_or_404(donor_id)
        if staff_id is not None:
            await self._ensure_staff_in_organization(staff_id)
        donor.assigned_to_staff_id = staff_id
        donor.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        return donor

    async def add_note(self, donor_id: int, staff_id: int, content: str) -> dict:
        donor = await self.get_or_404(donor_id)
        await self._ensure_staff_in_organization(staff_id)
        note = {
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "createdBy": f"staff_{staff_id}",
            "content": content,
        }
        donor.notes = [*(donor.notes or []), note]
        donor.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        logger.info(
            f"Note added to donor {donor_id}",
            extra={
                "organization_id": self.organization_id,
                "donor_id": donor_id,
                "staff_id": staff_id,
            },
        )
        return note
