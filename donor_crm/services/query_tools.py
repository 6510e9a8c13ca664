"""Donor Query Tools — fixed, parameterized queries behind the WhatsApp assistant's tools.

Invariants:
    - Every query is scoped to the caller's organization (donations via the donor join)
    - Name searches are case-insensitive substring matches with LIKE wildcards escaped
    - Results use the camelCase keys of the tool vocabulary; amounts stay in cents
    - A donor outside the organization looks exactly like a missing donor (None / [])

Design Decisions:
    - One class per request (db + organization), mirroring the structured engine
    - Flexible queries are a closed set of templates selected by FlexibleQueryType;
      optional filters are simply omitted from the WHERE clause when absent
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import FlexibleQueryType
from donor_crm.core.errors import ValidationError
from donor_crm.core.json_values import row_to_dict
from donor_crm.models.donation import Donation
from donor_crm.models.donor import Donor
from donor_crm.models.project import Project
from donor_crm.models.staff import Staff
from donor_crm.schemas.query import FlexibleQuery
from donor_crm.services.query_engine import AVERAGE_DONATION
from donor_crm.services.query_filters import (
    DONATION_COUNT, DONOR_FULL_NAME, LAST_DONATION_DATE, STAFF_FULL_NAME,
    TOTAL_DONATED, ilike_contains,
)

logger = logging.getLogger(__name__)


def donor_name_matches(name: str):
    return or_(
        ilike_contains(Donor.first_name, name),
        ilike_contains(Donor.last_name, name),
        ilike_contains(Donor.display_name, name),
        ilike_contains(DONOR_FULL_NAME, name),
    )


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _date_range(start: datetime | None, end: datetime | None) -> list:
    clauses = []
    if start is not None:
        clauses.append(Donation.date >= _aware(start))
    if end is not None:
        clauses.append(Donation.date <= _aware(end))
    return clauses


def _amount_range(min_amount: int | None, max_amount: int | None) -> list:
    clauses = []
    if min_amount is not None:
        clauses.append(Donation.amount >= min_amount)
    if max_amount is not None:
        clauses.append(Donation.amount <= max_amount)
    return clauses


def _count_donors_where(condition):
    return func.count(func.distinct(case((condition, Donor.id))))


_DONATION_ROW = (
    Donor.id.label("donorId"),
    Donor.first_name.label("donorFirstName"),
    Donor.last_name.label("donorLastName"),
    Donor.display_name.label("donorDisplayName"),
    Donation.id.label("donationId"),
    Donation.date.label("donationDate"),
    Donation.amount.label("donationAmount"),
    Donation.currency.label("donationCurrency"),
    Project.id.label("projectId"),
    Project.name.label("projectName"),
)


class DonorQueryTools:
    """Templated donor queries for one organization."""

    def __init__(self, db: AsyncSession, organization_id: str):
        self.db = db
        self.organization_id = organization_id

    async def _rows(self, stmt) -> list[dict]:
        result = await self.db.execute(stmt)
        return [row_to_dict(r) for r in result.mappings().all()]

    def _donation_join(self, *columns):
        return (
            select(*_DONATION_ROW, *columns)
            .select_from(Donation)
            .join(Donor, Donor.id == Donation.donor_id)
            .join(Project, Project.id == Donation.project_id)
        )

    # ─── Donor Lookups ───────────────────────────────────────────

    async def find_donors_by_name(self, name: str, limit: int = 10) -> list[dict]:
        stmt = (
            select(
                Donor.id.label("id"),
                Donor.first_name.label("firstName"),
                Donor.last_name.label("lastName"),
                Donor.display_name.label("displayName"),
                Donor.email.label("email"),
                Donor.phone.label("phone"),
                Donor.is_couple.label("isCouple"),
                TOTAL_DONATED.label("totalDonations"),
                DONATION_COUNT.label("donationCount"),
            )
            .select_from(Donor)
            .outerjoin(Donation, Donation.donor_id == Donor.id)
            .where(
                Donor.organization_id == self.organization_id,
                or_(donor_name_matches(name), ilike_contains(Donor.email, name)),
            )
            .group_by(Donor.id)
            .order_by(DONATION_COUNT.desc(), Donor.first_name.asc(), Donor.id.asc())
            .limit(limit)
        )
        rows = await self._rows(stmt)
        logger.info(
            f"Found {len(rows)} donors matching '{name}'",
            extra={"organization_id": self.organization_id, "row_count": len(rows)},
        )
        return rows

    async def get_donor_details(self, donor_id: int) -> dict | None:
        stmt = (
            select(
                Donor.id.label("id"),
                Donor.first_name.label("firstName"),
                Donor.last_name.label("lastName"),
                Donor.display_name.label("displayName"),
                Donor.email.label("email"),
                Donor.phone.label("phone"),
                Donor.address.label("address"),
                Donor.state.label("state"),
                Donor.is_couple.label("isCouple"),
                Donor.his_first_name.label("hisFirstName"),
                Donor.his_last_name.label("hisLastName"),
                Donor.her_first_name.label("herFirstName"),
                Donor.her_last_name.label("herLastName"),
                Donor.notes.label("notes"),
                Donor.current_stage_name.label("currentStageName"),
                Donor.high_potential_donor.label("highPotentialDonor"),
                Staff.id.label("staffId"),
                Staff.first_name.label("staffFirstName"),
                Staff.last_name.label("staffLastName"),
                Staff.email.label("staffEmail"),
                TOTAL_DONATED.label("totalDonations"),
                DONATION_COUNT.label("donationCount"),
                LAST_DONATION_DATE.label("lastDonationDate"),
            )
            .select_from(Donor)
            .outerjoin(Staff, Staff.id == Donor.assigned_to_staff_id)
            .outerjoin(Donation, Donation.donor_id == Donor.id)
            .where(Donor.id == donor_id, Donor.organization_id == self.organization_id)
            .group_by(Donor.id, Staff.id)
        )
        rows = await self._rows(stmt)
        if not rows:
            logger.warning(
                f"Donor {donor_id} not found",
                extra={"organization_id": self.organization_id, "donor_id": donor_id},
            )
            return None

        row = rows[0]
        staff_id = row.pop("staffId")
        staff = {
            "id": staff_id,
            "firstName": row.pop("staffFirstName"),
            "lastName": row.pop("staffLastName"),
            "email": row.pop("staffEmail"),
        }
        row["assignedStaff"] = staff if staff_id is not None else None
        return row

    async def _donor_in_organization(self, donor_id: int) -> bool:
        result = await self.db.execute(
            select(Donor.id).where(
                Donor.id == donor_id, Donor.organization_id == self.organization_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def get_donation_history(self, donor_id: int, limit: int = 50) -> list[dict]:
        if not await self._donor_in_organization(donor_id):
            logger.warning(
                f"Donation history requested for unknown donor {donor_id}",
                extra={"organization_id": self.organization_id, "donor_id": donor_id},
            )
            return []
        stmt = (
            select(
                Donation.id.label("id"),
                Donation.date.label("date"),
                Donation.amount.label("amount"),
                Donation.currency.label("currency"),
                Project.name.label("projectName"),
                Project.id.label("projectId"),
            )
            .select_from(Donation)
            .join(Project, Project.id == Donation.project_id)
            .where(Donation.donor_id == donor_id)
            .order_by(Donation.date.desc(), Donation.id.desc())
            .limit(limit)
        )
        return await self._rows(stmt)

    # ─── Aggregates ──────────────────────────────────────────────

    async def get_donor_statistics(self) -> dict:
        stmt = (
            select(
                func.count(func.distinct(Donor.id)).label("totalDonors"),
                DONATION_COUNT.label("totalDonations"),
                TOTAL_DONATED.label("totalDonationAmount"),
                AVERAGE_DONATION.label("averageDonationAmount"),
                _count_donors_where(Donor.high_potential_donor.is_(True)).label(
                    "highPotentialDonors",
                ),
                _count_donors_where(Donor.is_couple.is_(True)).label("couplesCount"),
                _count_donors_where(Donor.is_couple.is_(False)).label("individualsCount"),
            )
            .select_from(Donor)
            .outerjoin(Donation, Donation.donor_id == Donor.id)
            .where(Donor.organization_id == self.organization_id)
        )
        return (await self._rows(stmt))[0]

    async def get_top_donors(self, limit: int = 10) -> list[dict]:
        stmt = (
            select(
                Donor.id.label("id"),
                Donor.first_name.label("firstName"),
                Donor.last_name.label("lastName"),
                Donor.display_name.label("displayName"),
                Donor.email.label("email"),
                TOTAL_DONATED.label("totalDonations"),
                DONATION_COUNT.label("donationCount"),
                LAST_DONATION_DATE.label("lastDonationDate"),
            )
            .select_from(Donor)
            .join(Donation, Donation.donor_id == Donor.id)
            .where(Donor.organization_id == self.organization_id)
            .group_by(Donor.id)
            .having(DONATION_COUNT > 0)
            .order_by(TOTAL_DONATED.desc(), Donor.id.asc())
            .limit(limit)
        )
        return await self._rows(stmt)

    # ─── Flexible Templates ──────────────────────────────────────

    async def execute_flexible_query(self, query: FlexibleQuery) -> list[dict]:
        templates = {
            FlexibleQueryType.DONOR_DONATIONS_BY_PROJECT: self._donations_by_project,
            FlexibleQueryType.DONOR_DONATIONS_BY_DATE: self._donations_by_date,
            FlexibleQueryType.PROJECT_DONATIONS: self._project_donations,
            FlexibleQueryType.DONOR_PROJECT_HISTORY: self._donor_project_history,
            FlexibleQueryType.CUSTOM_DONOR_SEARCH: self._custom_donor_search,
        }
        stmt = templates[query.query_type](query)
        rows = await self._rows(stmt.limit(query.limit))
        logger.info(
            f"Flexible query {query.query_type.value} returned {len(rows)} rows",
            extra={
                "organization_id": self.organization_id,
                "query_type": query.query_type.value,
                "row_count": len(rows),
            },
        )
        return rows

    def _donor_clauses(self, query: FlexibleQuery) -> list:
        clauses = [Donor.organization_id == self.organization_id]
        if query.donor_id is not None:
            clauses.append(Donor.id == query.donor_id)
        if query.donor_name:
            clauses.append(donor_name_matches(query.donor_name))
        return clauses

    def _project_clauses(self, query: FlexibleQuery) -> list:
        clauses = []
        if query.project_id is not None:
            clauses.append(Project.id == query.project_id)
        if query.project_name:
            clauses.append(ilike_contains(Project.name, query.project_name))
        return clauses

    def _donations_by_project(self, query: FlexibleQuery):
        return (
            self._donation_join(Project.description.label("projectDescription"))
            .where(and_(
                *self._donor_clauses(query),
                *self._project_clauses(query),
                *_amount_range(query.min_amount, query.max_amount),
            ))
            .order_by(Donation.date.desc(), Donation.id.desc())
        )

    def _donations_by_date(self, query: FlexibleQuery):
        return (
            self._donation_join()
            .where(and_(
                *self._donor_clauses(query),
                *_date_range(query.start_date, query.end_date),
                *_amount_range(query.min_amount, query.max_amount),
            ))
            .order_by(Donation.date.desc(), Donation.id.desc())
        )

    def _project_donations(self, query: FlexibleQuery):
        return (
            self._donation_join(
                Donor.email.label("donorEmail"),
                Project.description.label("projectDescription"),
            )
            .where(and_(
                Donor.organization_id == self.organization_id,
                *self._project_clauses(query),
                *_date_range(query.start_date, query.end_date),
                *_amount_range(query.min_amount, query.max_amount),
            ))
            .order_by(Donation.date.desc(), Donation.amount.desc(), Donation.id.desc())
        )

    def _donor_project_history(self, query: FlexibleQuery):
        if query.donor_id is None and not query.donor_name:
            raise ValidationError(
                "donor-project-history requires donorName or donorId", "donorName",
            )
        partition = (Project.id, Donor.id)
        return (
            self._donation_join(
                Project.description.label("projectDescription"),
                func.sum(Donation.amount).over(partition_by=partition).label(
                    "projectTotalFromDonor",
                ),
                func.count(Donation.id).over(partition_by=partition).label(
                    "projectDonationCount",
                ),
            )
            .where(and_(*self._donor_clauses(query), *self._project_clauses(query)))
            .order_by(Donation.date.desc(), Donation.id.desc())
        )

    def _custom_donor_search(self, query: FlexibleQuery):
        clauses = [Donor.organization_id == self.organization_id]
        name = query.donor_name or query.search_term
        if name:
            clauses.append(donor_name_matches(name))
        if query.donor_id is not None:
            clauses.append(Donor.id == query.donor_id)
        if query.email:
            clauses.append(ilike_contains(Donor.email, query.email))
        if query.phone:
            clauses.append(ilike_contains(Donor.phone, query.phone))
        if query.state:
            clauses.append(ilike_contains(Donor.state, query.state))
        if query.is_couple is not None:
            clauses.append(Donor.is_couple.is_(query.is_couple))
        if query.high_potential is not None:
            clauses.append(Donor.high_potential_donor.is_(query.high_potential))
        if query.assigned_staff:
            clauses.append(or_(
                ilike_contains(Staff.first_name, query.assigned_staff),
                ilike_contains(Staff.last_name, query.assigned_staff),
                ilike_contains(STAFF_FULL_NAME, query.assigned_staff),
            ))
        stmt = (
            select(
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
                Staff.id.label("assignedStaffId"),
                STAFF_FULL_NAME.label("assignedStaffName"),
                TOTAL_DONATED.label("totalDonations"),
                DONATION_COUNT.label("donationCount"),
                LAST_DONATION_DATE.label("lastDonationDate"),
            )
            .select_from(Donor)
            .outerjoin(Staff, Staff.id == Donor.assigned_to_staff_id)
            .outerjoin(Donation, Donation.donor_id == Donor.id)
            .where(and_(*clauses))
            .group_by(Donor.id, Staff.id)
            .order_by(TOTAL_DONATED.desc(), Donor.id.asc())
        )
        if query.min_amount is not None:
            stmt = stmt.having(TOTAL_DONATED >= query.min_amount)
        if query.max_amount is not None:
            stmt = stmt.having(TOTAL_DONATED <= query.max_amount)
        return stmt
