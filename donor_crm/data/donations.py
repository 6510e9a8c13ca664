"""Donation Data Access — donations are owned through their donor's organization.

Invariants:
    - Donations have no organization_id: every read joins donors and filters donors.organization_id
    - Create/update require donor and project to exist (NOT_FOUND) and belong to the organization (FORBIDDEN)
    - CRM hook runs after every create and update; its failure never fails the write
    - Stats amounts are integer cents; averageAmount is integer division (0 with no donations)
    - Stats come from grouped SQL aggregates; first/last donation via row_number windows

Design Decisions:
    - get_multiple_donor_stats verifies every donor first, so a partial map is never returned
    - donationsByProject ordered by total descending
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import DonationOrderBy, SortDirection
from donor_crm.core.errors import ForbiddenError, ResourceNotFoundError, ValidationError
from donor_crm.models.donation import Donation
from donor_crm.models.donor import Donor
from donor_crm.models.project import Project
from donor_crm.schemas.donation import DonationCreate, DonationListParams, DonationUpdate

logger = logging.getLogger(__name__)

_ORDER_COLUMNS = {
    DonationOrderBy.DATE: Donation.date,
    DonationOrderBy.AMOUNT: Donation.amount,
    DonationOrderBy.CREATED_AT: Donation.created_at,
}


def _empty_stats() -> dict:
    return {
        "totalAmount": 0,
        "donationCount": 0,
        "averageAmount": 0,
        "firstDonation": None,
        "lastDonation": None,
        "donationsByProject": [],
    }


class DonationRepository:
    """Donation persistence for one organization."""

    def __init__(self, db: AsyncSession, organization_id: str, crm_sync=None):
        self.db = db
        self.organization_id = organization_id
        self.crm_sync = crm_sync

    def _scoped(self):
        return (
            select(Donation)
            .join(Donor, Donor.id == Donation.donor_id)
            .where(Donor.organization_id == self.organization_id)
        )

    async def get(self, donation_id: int) -> Donation | None:
        result = await self.db.execute(self._scoped().where(Donation.id == donation_id))
        return result.scalar_one_or_none()

    async def get_or_404(self, donation_id: int) -> Donation:
        donation = await self.get(donation_id)
        if donation is None:
            raise ResourceNotFoundError("Donation", str(donation_id))
        return donation

    async def _owned_donor(self, donor_id: int) -> Donor:
        donor = await self.db.get(Donor, donor_id)
        if donor is None:
            raise ResourceNotFoundError("Donor", str(donor_id))
        if donor.organization_id != self.organization_id:
            raise ForbiddenError("Donor does not belong to this organization")
        return donor

    async def _owned_project(self, project_id: int) -> Project:
        project = await self.db.get(Project, project_id)
        if project is None:
            raise ResourceNotFoundError("Project", str(project_id))
        if project.organization_id != self.organization_id:
            raise ForbiddenError("Project does not belong to this organization")
        return project

    async def _flush_write(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Donation write rejected by the database: {e}")
            raise ValidationError(
                "Could not save donation. Ensure donor and project exist.", "donor_id",
            )

    async def _sync(self, donation: Donation, donor: Donor, project: Project) -> None:
        if self.crm_sync is not None:
            await self.crm_sync.sync_donation(self.organization_id, donation, donor, project)

    async def create(self, data: DonationCreate) -> Donation:
        donor = await self._owned_donor(data.donor_id)
        project = await self._owned_project(data.project_id)

        values = data.model_dump(exclude_none=True)
        donation = Donation(**values)
        self.db.add(donation)
        await self._flush_write()
        logger.info(
            f"Donation {donation.id} created",
            extra={"organization_id": self.organization_id, "donor_id": donor.id},
        )
        await self._sync(donation, donor, project)
        return donation

    async def update(self, donation_id: int, data: DonationUpdate) -> Donation:
        donation = await self.get_or_404(donation_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        donor = await self._owned_donor(changes.get("donor_id", donation.donor_id))
        project = await self._owned_project(changes.get("project_id", donation.project_id))

        for key, value in changes.items():
            setattr(donation, key, value)
        donation.updated_at = datetime.now(timezone.utc)
        await self._flush_write()
        await self._sync(donation, donor, project)
        return donation

    async def delete(self, donation_id: int) -> None:
        donation = await self.get_or_404(donation_id)
        await self.db.delete(donation)
        await self.db.flush()

    async def list_donations(self, params: DonationListParams) -> tuple[list[Donation], int]:
        clauses = []
        if params.donor_id is not None:
            clauses.append(Donation.donor_id == params.donor_id)
        if params.project_id is not None:
            clauses.append(Donation.project_id == params.project_id)
        if params.start_date is not None:
            clauses.append(Donation.date >= params.start_date)
        if params.end_date is not None:
            clauses.append(Donation.date <= params.end_date)

        total = await self.db.scalar(
            select(func.count(Donation.id))
            .join(Donor, Donor.id == Donation.donor_id)
            .where(Donor.organization_id == self.organization_id, *clauses)
        )

        column = _ORDER_COLUMNS[params.order_by]
        order = column.asc() if params.order_direction == SortDirection.ASC else column.desc()
        result = await self.db.execute(
            self._scoped().where(*clauses)
            .order_by(order, Donation.id.asc())
            .limit(params.limit)
            .offset(params.offset)
        )
        return list(result.scalars().all()), total or 0

    # ─── Statistics ──────────────────────────────────────────────

    async def list_for_donor(self, donor_id: int) -> list[Donation]:
        """Every donation of one donor, newest first (with project loaded)."""
        result = await self.db.execute(
            self._scoped()
            .where(Donation.donor_id == donor_id)
            .order_by(Donation.date.desc(), Donation.id.desc())
        )
        return list(result.scalars().all())

    async def _stats_for(self, donor_ids: list[int]) -> dict[int, dict]:
        """Grouped aggregates for donors already known to be in the organization."""
        stats = {donor_id: _empty_stats() for donor_id in donor_ids}

        totals = await self.db.execute(
            select(Donation.donor_id, func.sum(Donation.amount), func.count(Donation.id))
            .where(Donation.donor_id.in_(donor_ids))
            .group_by(Donation.donor_id)
        )
        for donor_id, total, count in totals.all():
            total = int(total or 0)
            stats[donor_id].update(
                totalAmount=total,
                donationCount=count,
                averageAmount=total // count if count else 0,
            )

        first_rank = func.row_number().over(
            partition_by=Donation.donor_id,
            order_by=(Donation.date.asc(), Donation.id.asc()),
        ).label("first_rank")
        last_rank = func.row_number().over(
            partition_by=Donation.donor_id,
            order_by=(Donation.date.desc(), Donation.id.desc()),
        ).label("last_rank")
        ranked = (
            select(Donation.donor_id, Donation.date, Donation.amount, first_rank, last_rank)
            .where(Donation.donor_id.in_(donor_ids))
            .subquery()
        )
        edges = await self.db.execute(
            select(ranked).where(or_(ranked.c.first_rank == 1, ranked.c.last_rank == 1))
        )
        for row in edges.mappings().all():
            point = {"date": row["date"].isoformat(), "amount": row["amount"]}
            if row["first_rank"] == 1:
                stats[row["donor_id"]]["firstDonation"] = point
            if row["last_rank"] == 1:
                stats[row["donor_id"]]["lastDonation"] = point

        project_total = func.sum(Donation.amount)
        by_project = await self.db.execute(
            select(
                Donation.donor_id, Project.id, Project.name,
                project_total, func.count(Donation.id),
            )
            .join(Project, Project.id == Donation.project_id)
            .where(Donation.donor_id.in_(donor_ids))
            .group_by(Donation.donor_id, Project.id, Project.name)
            .order_by(project_total.desc(), Project.id.asc())
        )
        for donor_id, project_id, project_name, total, count in by_project.all():
            stats[donor_id]["donationsByProject"].append({
                "projectId": project_id,
                "projectName": project_name,
                "totalAmount": int(total or 0),
                "donationCount": count,
            })
        return stats

    async def get_donor_stats(self, donor_id: int) -> dict:
        donor = await self.db.scalar(
            select(Donor.id).where(
                Donor.id == donor_id, Donor.organization_id == self.organization_id,
            )
        )
        if donor is None:
            raise ResourceNotFoundError("Donor", str(donor_id))
        return (await self._stats_for([donor_id]))[donor_id]

    async def get_multiple_donor_stats(self, donor_ids: list[int]) -> dict[int, dict]:
        unique_ids = list(dict.fromkeys(donor_ids))
        result = await self.db.execute(
            select(Donor.id).where(
                Donor.id.in_(unique_ids), Donor.organization_id == self.organization_id,
            )
        )
        found = set(result.scalars().all())
        missing = [donor_id for donor_id in unique_ids if donor_id not in found]
        if missing:
            raise ResourceNotFoundError("Donor", ", ".join(str(m) for m in missing))

        return await self._stats_for(unique_ids)
