"""Structured Query Engine — executes the WhatsApp filter DSL against the donor database.

Invariants:
    - Every statement is scoped to one organization; donations through donors.organization_id
    - Returns JSON-safe dicts with camelCase keys (the vocabulary the LLM tools speak)
    - Skipped filters (unknown field, malformed between/in) are logged, never fatal
    - Amount aggregates are integer cents; averageDonation is 0 for donors with no gifts

Design Decisions:
    - Explicit dict from QueryType to handler (no getattr dispatch)
    - donorDetails = donor aggregates + assigned staff columns
    - projectStats computes goal totals in a separate statement so the donation join
      cannot multiply goals
"""

import logging

from sqlalchemy import case, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import QueryEntity, QueryType
from donor_crm.core.json_values import row_to_dict
from donor_crm.models.donation import Donation
from donor_crm.models.donor import Donor
from donor_crm.models.project import Project
from donor_crm.models.staff import Staff
from donor_crm.schemas.query import StructuredQuery
from donor_crm.services.query_filters import (
    ASSIGNED_DONOR_COUNT,
    DISTINCT_DONOR_COUNT,
    DONATION_COUNT,
    FIELD_MAPS,
    LAST_DONATION_DATE,
    TOTAL_DONATED,
    compile_filters,
    resolve_sort,
)

logger = logging.getLogger(__name__)

AVERAGE_DONATION = case(
    (DONATION_COUNT > 0, TOTAL_DONATED // DONATION_COUNT), else_=0,
)


def _donor_columns() -> list:
    return [
        Donor.id.label("id"),
        Donor.first_name.label("firstName"),
        Donor.last_name.label("lastName"),
        Donor.display_name.label("displayName"),
        Donor.email.label("email"),
        Donor.phone.label("phone"),
        Donor.address.label("address"),
        Donor.state.label("state"),
        Donor.is_couple.label("isCouple"),
        Donor.high_potential_donor.label("highPotentialDonor"),
        Donor.current_stage_name.label("currentStageName"),
        Donor.assigned_to_staff_id.label("assignedToStaffId"),
        Donor.notes.label("notes"),
        Donor.created_at.label("createdAt"),
        Donor.updated_at.label("updatedAt"),
    ]


def _donor_aggregates() -> list:
    return [
        TOTAL_DONATED.label("totalDonations"),
        DONATION_COUNT.label("donationCount"),
        LAST_DONATION_DATE.label("lastDonationDate"),
        AVERAGE_DONATION.label("averageDonation"),
    ]


class StructuredQueryEngine:
    """Runs a StructuredQuery for one organization."""

    def __init__(self, db: AsyncSession, organization_id: str):
        self._db = db
        self._org = organization_id
        self._handlers = {
            QueryType.FIND_DONORS: self.find_donors,
            QueryType.DONOR_DETAILS: self.donor_details,
            QueryType.FIND_DONATIONS: self.find_donations,
            QueryType.DONATION_HISTORY: self.donation_history,
            QueryType.FIND_PROJECTS: self.find_projects,
            QueryType.FIND_STAFF: self.find_staff,
            QueryType.DONOR_STATS: self.donor_stats,
            QueryType.PROJECT_STATS: self.project_stats,
        }

    async def execute(self, query: StructuredQuery) -> list[dict]:
        handler = self._handlers[query.query_type]
        rows = await handler(query)
        logger.info(
            f"Structured query {query.query_type.value} returned {len(rows)} rows",
            extra={
                "organization_id": self._org,
                "query_type": query.query_type.value,
                "row_count": len(rows),
            },
        )
        return rows

    def _clauses(self, entity: QueryEntity, query: StructuredQuery) -> list:
        clauses, skipped = compile_filters(query.filters, FIELD_MAPS[entity])
        if skipped:
            logger.warning(
                f"Ignored filters on {entity.value}: {', '.join(skipped)}",
                extra={"organization_id": self._org, "query_type": query.query_type.value},
            )
        return clauses

    async def _fetch(self, stmt) -> list[dict]:
        result = await self._db.execute(stmt)
        return [row_to_dict(row) for row in result.mappings().all()]

    # ─── Donors ──────────────────────────────────────────────────

    def _donor_statement(self, query: StructuredQuery, with_staff: bool = False):
        columns = _donor_columns() + _donor_aggregates()
        stmt = select(*columns).select_from(Donor).outerjoin(
            Donation, Donation.donor_id == Donor.id,
        )
        group_by = [Donor.id]
        if with_staff:
            stmt = stmt.add_columns(
                Staff.id.label("staffId"),
                Staff.first_name.label("staffFirstName"),
                Staff.last_name.label("staffLastName"),
                Staff.email.label("staffEmail"),
            ).outerjoin(Staff, Staff.id == Donor.assigned_to_staff_id)
            group_by.append(Staff.id)
        return (
            stmt.where(
                Donor.organization_id == self._org,
                *self._clauses(QueryEntity.DONORS, query),
            )
            .group_by(*group_by)
            .order_by(*resolve_sort(QueryEntity.DONORS, query.sort_by, query.sort_direction))
            .limit(query.limit)
        )

    async def find_donors(self, query: StructuredQuery) -> list[dict]:
        return await self._fetch(self._donor_statement(query))

    async def donor_details(self, query: StructuredQuery) -> list[dict]:
        return await self._fetch(self._donor_statement(query, with_staff=True))

    # ─── Donations ───────────────────────────────────────────────

    def _donation_statement(self, query: StructuredQuery, sort_by: str | None):
        return (
            select(
                Donation.id.label("id"),
                Donation.amount.label("amount"),
                Donation.currency.label("currency"),
                Donation.date.label("date"),
                Donor.id.label("donorId"),
                Donor.first_name.label("donorFirstName"),
                Donor.last_name.label("donorLastName"),
                Donor.display_name.label("donorDisplayName"),
                Donor.email.label("donorEmail"),
                Project.id.label("projectId"),
                Project.name.label("projectName"),
                Project.description.label("projectDescription"),
            )
            .select_from(Donation)
            .join(Donor, Donor.id == Donation.donor_id)
            .join(Project, Project.id == Donation.project_id)
            .where(
                Donor.organization_id == self._org,
                *self._clauses(QueryEntity.DONATIONS, query),
            )
            .order_by(*resolve_sort(QueryEntity.DONATIONS, sort_by, query.sort_direction))
            .limit(query.limit)
        )

    async def find_donations(self, query: StructuredQuery) -> list[dict]:
        return await self._fetch(self._donation_statement(query, query.sort_by))

    async def donation_history(self, query: StructuredQuery) -> list[dict]:
        return await self._fetch(self._donation_statement(query, query.sort_by or "date"))

    # ─── Projects ────────────────────────────────────────────────

    async def find_projects(self, query: StructuredQuery) -> list[dict]:
        stmt = (
            select(
                Project.id.label("id"),
                Project.name.label("name"),
                Project.description.label("description"),
                Project.active.label("active"),
                Project.goal.label("goal"),
                Project.tags.label("tags"),
                Project.created_at.label("createdAt"),
                Project.updated_at.label("updatedAt"),
                TOTAL_DONATED.label("totalDonations"),
                DONATION_COUNT.label("donationCount"),
                DISTINCT_DONOR_COUNT.label("donorCount"),
            )
            .select_from(Project)
            .outerjoin(Donation, Donation.project_id == Project.id)
            .where(
                Project.organization_id == self._org,
                *self._clauses(QueryEntity.PROJECTS, query),
            )
            .group_by(Project.id)
            .order_by(*resolve_sort(QueryEntity.PROJECTS, query.sort_by, query.sort_direction))
            .limit(query.limit)
        )
        return await self._fetch(stmt)

    # ─── Staff ───────────────────────────────────────────────────

    async def find_staff(self, query: StructuredQuery) -> list[dict]:
        stmt = (
            select(
                Staff.id.label("id"),
                Staff.first_name.label("firstName"),
                Staff.last_name.label("lastName"),
                Staff.email.label("email"),
                Staff.is_real_person.label("isRealPerson"),
                Staff.is_primary.label("isPrimary"),
                Staff.signature.label("signature"),
                Staff.created_at.label("createdAt"),
                Staff.updated_at.label("updatedAt"),
                ASSIGNED_DONOR_COUNT.label("assignedDonorCount"),
            )
            .select_from(Staff)
            .outerjoin(Donor, Donor.assigned_to_staff_id == Staff.id)
            .where(
                Staff.organization_id == self._org,
                *self._clauses(QueryEntity.STAFF, query),
            )
            .group_by(Staff.id)
            .order_by(*resolve_sort(QueryEntity.STAFF, query.sort_by, query.sort_direction))
            .limit(query.limit)
        )
        return await self._fetch(stmt)

    # ─── Statistics ──────────────────────────────────────────────

    async def donor_stats(self, query: StructuredQuery) -> list[dict]:
        stmt = (
            select(
                func.count(distinct(Donor.id)).label("totalDonors"),
                DONATION_COUNT.label("totalDonations"),
                TOTAL_DONATED.label("totalDonationAmount"),
                AVERAGE_DONATION.label("averageDonation"),
                func.count(distinct(
                    case((Donor.high_potential_donor.is_(True), Donor.id)),
                )).label("highPotentialDonors"),
                func.count(distinct(
                    case((Donor.is_couple.is_(True), Donor.id)),
                )).label("couplesCount"),
                func.count(distinct(
                    case((Donor.is_couple.is_(False), Donor.id)),
                )).label("individualsCount"),
            )
            .select_from(Donor)
            .outerjoin(Donation, Donation.donor_id == Donor.id)
            .where(
                Donor.organization_id == self._org,
                *self._clauses(QueryEntity.DONORS, query),
            )
        )
        return await self._fetch(stmt)

    async def project_stats(self, query: StructuredQuery) -> list[dict]:
        clauses = self._clauses(QueryEntity.PROJECTS, query)
        project_stmt = select(
            func.count(Project.id).label("totalProjects"),
            func.count(case((Project.active.is_(True), Project.id))).label("activeProjects"),
            func.coalesce(func.sum(Project.goal), 0).label("totalGoalAmount"),
        ).where(Project.organization_id == self._org, *clauses)
        donation_stmt = (
            select(
                TOTAL_DONATED.label("totalDonationAmount"),
                DONATION_COUNT.label("totalDonations"),
            )
            .select_from(Project)
            .join(Donation, Donation.project_id == Project.id)
            .where(Project.organization_id == self._org, *clauses)
        )
        projects = (await self._fetch(project_stmt))[0]
        donations = (await self._fetch(donation_stmt))[0]
        return [{**projects, **donations}]


async def execute_structured_query(
    db: AsyncSession, organization_id: str, query: StructuredQuery,
) -> list[dict]:
    return await StructuredQueryEngine(db, organization_id).execute(query)
