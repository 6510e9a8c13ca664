"""Query Filters — compiles the structured filter DSL into SQLAlchemy expressions.

Invariants:
    - No IO: builds expressions only; query_engine executes them
    - Unknown fields and malformed between/in filters compile to None (caller skips and logs)
    - Every value is a bound parameter — IN/NOT IN included, never string-interpolated
    - User text in LIKE patterns is escaped: '%' and '_' match literally
    - equals/not_equals with a null value compile to IS NULL / IS NOT NULL
    - Values are coerced to the column type; an uncoercible value raises ValidationError

Design Decisions:
    - Field maps keyed by the camelCase names the LLM tools expose
    - NameSearch marker for combined name fields: OR across first, last, display and "first last"
    - Aggregate expressions live here so sort maps and SELECT lists share one definition
    - Unknown sort keys fall back per entity; absent sort_by uses the entity default, descending
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, String, Text, cast, func, or_
from sqlalchemy.sql.elements import ColumnElement

from donor_crm.core.domain_types import (
    FilterOperation, QueryEntity, SortDirection, TEXT_OPERATIONS,
)
from donor_crm.core.errors import ValidationError
from donor_crm.models.donation import Donation
from donor_crm.models.donor import Donor
from donor_crm.models.project import Project
from donor_crm.models.staff import Staff

_LIKE_ESCAPE = "\\"


@dataclass(frozen=True)
class NameSearch:
    """Combined name field: the match is ORed across these expressions."""
    expressions: tuple


# ─── Aggregates ──────────────────────────────────────────────────

TOTAL_DONATED = func.coalesce(func.sum(Donation.amount), 0)
DONATION_COUNT = func.count(Donation.id)
LAST_DONATION_DATE = func.max(Donation.date)
DISTINCT_DONOR_COUNT = func.count(func.distinct(Donation.donor_id))
ASSIGNED_DONOR_COUNT = func.count(Donor.id)


# ─── Field Maps ──────────────────────────────────────────────────

DONOR_FULL_NAME = Donor.first_name + " " + Donor.last_name
STAFF_FULL_NAME = Staff.first_name + " " + Staff.last_name

DONOR_FIELDS: dict[str, Any] = {
    "id": Donor.id,
    "firstName": Donor.first_name,
    "lastName": Donor.last_name,
    "displayName": Donor.display_name,
    "email": Donor.email,
    "phone": Donor.phone,
    "address": Donor.address,
    "state": Donor.state,
    "gender": Donor.gender,
    "isCouple": Donor.is_couple,
    "hisFirstName": Donor.his_first_name,
    "hisLastName": Donor.his_last_name,
    "herFirstName": Donor.her_first_name,
    "herLastName": Donor.her_last_name,
    "highPotentialDonor": Donor.high_potential_donor,
    "currentStageName": Donor.current_stage_name,
    "assignedToStaffId": Donor.assigned_to_staff_id,
    "externalId": Donor.external_id,
    "notes": cast(Donor.notes, Text),
    "createdAt": Donor.created_at,
    "updatedAt": Donor.updated_at,
    "name": NameSearch((
        Donor.first_name, Donor.last_name, Donor.display_name, DONOR_FULL_NAME,
    )),
}

DONATION_FIELDS: dict[str, Any] = {
    "id": Donation.id,
    "amount": Donation.amount,
    "currency": Donation.currency,
    "date": Donation.date,
    "donorId": Donation.donor_id,
    "projectId": Donation.project_id,
    "donorFirstName": Donor.first_name,
    "donorLastName": Donor.last_name,
    "donorEmail": Donor.email,
    "projectName": Project.name,
    "donorName": NameSearch((
        Donor.first_name, Donor.last_name, Donor.display_name, DONOR_FULL_NAME,
    )),
}

PROJECT_FIELDS: dict[str, Any] = {
    "id": Project.id,
    "name": Project.name,
    "description": Project.description,
    "active": Project.active,
    "goal": Project.goal,
    "createdAt": Project.created_at,
    "updatedAt": Project.updated_at,
}

STAFF_FIELDS: dict[str, Any] = {
    "id": Staff.id,
    "firstName": Staff.first_name,
    "lastName": Staff.last_name,
    "email": Staff.email,
    "isRealPerson": Staff.is_real_person,
    "isPrimary": Staff.is_primary,
    "createdAt": Staff.created_at,
    "updatedAt": Staff.updated_at,
    "name": NameSearch((Staff.first_name, Staff.last_name, STAFF_FULL_NAME)),
}

FIELD_MAPS: dict[QueryEntity, dict[str, Any]] = {
    QueryEntity.DONORS: DONOR_FIELDS,
    QueryEntity.DONATIONS: DONATION_FIELDS,
    QueryEntity.PROJECTS: PROJECT_FIELDS,
    QueryEntity.STAFF: STAFF_FIELDS,
}


# ─── Sort Maps ───────────────────────────────────────────────────

SORT_MAPS: dict[QueryEntity, dict[str, tuple]] = {
    QueryEntity.DONORS: {
        "totalDonations": (TOTAL_DONATED,),
        "donationCount": (DONATION_COUNT,),
        "lastDonationDate": (LAST_DONATION_DATE,),
        "firstName": (Donor.first_name,),
        "lastName": (Donor.last_name,),
        "createdAt": (Donor.created_at,),
    },
    QueryEntity.DONATIONS: {
        "amount": (Donation.amount,),
        "date": (Donation.date,),
        "donorName": (Donor.first_name, Donor.last_name),
        "projectName": (Project.name,),
    },
    QueryEntity.PROJECTS: {
        "totalDonations": (TOTAL_DONATED,),
        "donationCount": (DONATION_COUNT,),
        "donorCount": (DISTINCT_DONOR_COUNT,),
        "name": (Project.name,),
    },
    QueryEntity.STAFF: {
        "assignedDonorCount": (ASSIGNED_DONOR_COUNT,),
        "firstName": (Staff.first_name,),
        "lastName": (Staff.last_name,),
    },
}

SORT_FALLBACK = {
    QueryEntity.DONORS: "firstName",
    QueryEntity.DONATIONS: "date",
    QueryEntity.PROJECTS: "name",
    QueryEntity.STAFF: "firstName",
}

DEFAULT_SORT = {
    QueryEntity.DONORS: "totalDonations",
    QueryEntity.DONATIONS: "date",
    QueryEntity.PROJECTS: "totalDonations",
    QueryEntity.STAFF: "assignedDonorCount",
}

_TIEBREAKER = {
    QueryEntity.DONORS: Donor.id,
    QueryEntity.DONATIONS: Donation.id,
    QueryEntity.PROJECTS: Project.id,
    QueryEntity.STAFF: Staff.id,
}


# ─── Value Coercion ──────────────────────────────────────────────

def escape_like(value: str) -> str:
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def ilike_contains(expression, text: str) -> ColumnElement:
    """Case-insensitive substring match with the user text escaped."""
    return expression.ilike(f"%{escape_like(text)}%", escape=_LIKE_ESCAPE)


def _column_type(expression) -> Any:
    return getattr(expression, "type", None)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"cannot interpret {value!r} as a date")
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    raise ValueError(f"cannot interpret {value!r} as a boolean")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(round(value))
    if isinstance(value, str):
        return int(round(float(value.strip())))
    raise ValueError(f"cannot interpret {value!r} as a number")


def coerce_value(expression, value: Any, field: str) -> Any:
    """Convert a JSON-ish filter value to the Python type of the column."""
    if value is None:
        return None
    column_type = _column_type(expression)
    try:
        if isinstance(column_type, Boolean):
            return _to_bool(value)
        if isinstance(column_type, Integer):
            return _to_int(value)
        if isinstance(column_type, DateTime):
            return _to_datetime(value)
    except ValueError as e:
        raise ValidationError(f"Invalid value for '{field}': {e}", field)
    if isinstance(column_type, (String, Text)) and not isinstance(value, str):
        return str(value)
    return value


# ─── Compilation ─────────────────────────────────────────────────

def _as_text(expression):
    if isinstance(_column_type(expression), (String, Text)):
        return expression
    return cast(expression, String)


def _like_pattern(operation: FilterOperation, value: Any) -> str:
    text = escape_like(str(value))
    if operation == FilterOperation.CONTAINS:
        return f"%{text}%"
    if operation == FilterOperation.STARTS_WITH:
        return f"{text}%"
    if operation == FilterOperation.ENDS_WITH:
        return f"%{text}"
    return text


def _compile_name_search(search: NameSearch, flt) -> ColumnElement | None:
    if flt.value is None or flt.value == "":
        return None
    if flt.operation not in TEXT_OPERATIONS and flt.operation != FilterOperation.EQUALS:
        return None
    pattern = _like_pattern(flt.operation, flt.value)
    return or_(*(
        expr.ilike(pattern, escape=_LIKE_ESCAPE) for expr in search.expressions
    ))


def compile_condition(expression, flt) -> ColumnElement | None:
    """Build the predicate for one column-backed filter."""
    op = flt.operation
    if op == FilterOperation.IS_NULL:
        return expression.is_(None)
    if op == FilterOperation.IS_NOT_NULL:
        return expression.is_not(None)

    if op in TEXT_OPERATIONS:
        if flt.value is None:
            return None
        return _as_text(expression).ilike(
            _like_pattern(op, flt.value), escape=_LIKE_ESCAPE,
        )

    if op == FilterOperation.BETWEEN:
        if not flt.values or len(flt.values) != 2:
            return None
        low, high = (coerce_value(expression, v, flt.field) for v in flt.values)
        return expression.between(low, high)

    if op in (FilterOperation.IN, FilterOperation.NOT_IN):
        if not flt.values:
            return None
        values = [coerce_value(expression, v, flt.field) for v in flt.values]
        if op == FilterOperation.IN:
            return expression.in_(values)
        return expression.not_in(values)

    value = coerce_value(expression, flt.value, flt.field)
    if op == FilterOperation.EQUALS:
        return expression.is_(None) if value is None else expression == value
    if op == FilterOperation.NOT_EQUALS:
        return expression.is_not(None) if value is None else expression != value
    if value is None:
        return None
    if op == FilterOperation.GREATER_THAN:
        return expression > value
    if op == FilterOperation.LESS_THAN:
        return expression < value
    if op == FilterOperation.GREATER_THAN_OR_EQUAL:
        return expression >= value
    if op == FilterOperation.LESS_THAN_OR_EQUAL:
        return expression <= value
    return None


def compile_filter(flt, field_map: dict[str, Any]) -> ColumnElement | None:
    """Compile one filter against an entity's field map (None when unusable)."""
    target = field_map.get(flt.field)
    if target is None:
        return None
    if isinstance(target, NameSearch):
        return _compile_name_search(target, flt)
    return compile_condition(target, flt)


def compile_filters(filters, field_map: dict[str, Any]) -> tuple[list, list]:
    """Compile all filters; returns (clauses, skipped field names)."""
    clauses, skipped = [], []
    for flt in filters:
        clause = compile_filter(flt, field_map)
        if clause is None:
            skipped.append(flt.field)
        else:
            clauses.append(clause)
    return clauses, skipped


def resolve_sort(
    entity: QueryEntity, sort_by: str | None, direction: SortDirection,
) -> list:
    """ORDER BY clauses for an entity, with the id as a stable tiebreaker."""
    sort_map = SORT_MAPS[entity]
    if sort_by is None:
        expressions = sort_map[DEFAULT_SORT[entity]]
        direction = SortDirection.DESC
    else:
        expressions = sort_map.get(sort_by) or sort_map[SORT_FALLBACK[entity]]
    ordered = [
        e.asc() if direction == SortDirection.ASC else e.desc() for e in expressions
    ]
    ordered.append(_TIEBREAKER[entity].asc())
    return ordered
