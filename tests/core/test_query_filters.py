"""Query Filters — compiles filter DSL entries to SQL without touching a database.

Tests cover:
    - LIKE patterns: contains / starts_with / ends_with, '%' and '_' escaped, ESCAPE clause
    - Text operators on non-text columns go through CAST
    - between needs exactly two values; in / not_in need a non-empty list
    - equals / not_equals with null → IS NULL / IS NOT NULL
    - Value coercion: ISO dates, boolean words, numeric strings; bad values → ValidationError
    - Unknown fields and non-text operators on name fields compile to None
    - Sort resolution: entity defaults, per-entity fallback for unknown keys, id tiebreaker
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.dialects import sqlite

from donor_crm.core.domain_types import QueryEntity, SortDirection
from donor_crm.core.errors import ValidationError
from donor_crm.models.donation import Donation
from donor_crm.models.donor import Donor
from donor_crm.schemas.query import QueryFilter
from donor_crm.services.query_filters import (
    DONATION_FIELDS, DONOR_FIELDS, PROJECT_FIELDS, STAFF_FIELDS,
    coerce_value, compile_filter, compile_filters, escape_like, resolve_sort,
)


def _f(field, operation, value=None, values=None):
    return QueryFilter(field=field, operation=operation, value=value, values=values)


def _compiled(clause):
    compiled = clause.compile(dialect=sqlite.dialect())
    return str(compiled), list(compiled.params.values())


# --- LIKE patterns ------------------------------------------------------------

def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


def test_contains_escapes_wildcards():
    sql, params = _compiled(compile_filter(_f("email", "contains", "100%_club"), DONOR_FIELDS))
    assert "LIKE" in sql
    assert "ESCAPE" in sql
    assert params == ["%100\\%\\_club%"]


def test_starts_with_and_ends_with_patterns():
    _, starts = _compiled(compile_filter(_f("firstName", "starts_with", "Jo"), DONOR_FIELDS))
    _, ends = _compiled(compile_filter(_f("lastName", "ends_with", "son"), DONOR_FIELDS))
    assert starts == ["Jo%"]
    assert ends == ["%son"]


def test_text_operator_on_number_casts_column():
    sql, params = _compiled(compile_filter(_f("amount", "contains", 250), DONATION_FIELDS))
    assert "CAST(donations.amount AS VARCHAR)" in sql
    assert params == ["%250%"]


def test_text_operator_without_value_is_skipped():
    assert compile_filter(_f("email", "contains"), DONOR_FIELDS) is None


# --- between / in / not_in ------------------------------------------------------

@pytest.mark.parametrize("values", [None, [], [1000], [1000, 2000, 3000]])
def test_between_needs_two_values(values):
    assert compile_filter(_f("amount", "between", values=values), DONATION_FIELDS) is None


def test_between_coerces_both_bounds():
    sql, params = _compiled(
        compile_filter(_f("amount", "between", values=["1000", 2000.4]), DONATION_FIELDS),
    )
    assert "BETWEEN" in sql
    assert params == [1000, 2000]


@pytest.mark.parametrize("operation", ["in", "not_in"])
@pytest.mark.parametrize("values", [None, []])
def test_in_needs_values(operation, values):
    assert compile_filter(_f("state", operation, values=values), DONOR_FIELDS) is None


def test_not_in_is_parameterized():
    sql, params = _compiled(
        compile_filter(_f("state", "not_in", values=["CA", "NY"]), DONOR_FIELDS),
    )
    assert "NOT IN" in sql
    assert "'CA'" not in sql
    assert params == [["CA", "NY"]]


# --- null handling --------------------------------------------------------------

def test_equals_null_is_is_null():
    sql, _ = _compiled(compile_filter(_f("gender", "equals", None), DONOR_FIELDS))
    assert sql == "donors.gender IS NULL"


def test_not_equals_null_is_is_not_null():
    sql, _ = _compiled(compile_filter(_f("assignedToStaffId", "not_equals"), DONOR_FIELDS))
    assert sql == "donors.assigned_to_staff_id IS NOT NULL"


def test_comparison_with_null_is_skipped():
    assert compile_filter(_f("amount", "greater_than"), DONATION_FIELDS) is None


# --- coercion -------------------------------------------------------------------

def test_iso_date_strings():
    assert coerce_value(Donation.date, "2024-03-01", "date") == datetime(
        2024, 3, 1, tzinfo=timezone.utc,
    )
    with_offset = coerce_value(Donation.date, "2024-03-01T10:00:00+02:00", "date")
    assert with_offset.utcoffset() == timedelta(hours=2)


@pytest.mark.parametrize("raw, expected", [
    ("true", True), ("FALSE", False), ("yes", True), ("0", False), (1, True), (False, False),
])
def test_boolean_words(raw, expected):
    assert coerce_value(Donor.is_couple, raw, "isCouple") is expected


def test_numeric_strings():
    assert coerce_value(Donation.amount, " 2500 ", "amount") == 2500
    assert coerce_value(Donation.amount, "99.6", "amount") == 100


@pytest.mark.parametrize("column, raw", [
    (Donor.is_couple, "maybe"),
    (Donation.amount, True),
    (Donation.date, "last tuesday"),
])
def test_uncoercible_values(column, raw):
    with pytest.raises(ValidationError):
        coerce_value(column, raw, "field")


def test_text_column_stringifies_numbers():
    assert coerce_value(Donor.phone, 5550100, "phone") == "5550100"


# --- field resolution -------------------------------------------------------------

def test_name_search_ors_name_columns():
    sql, params = _compiled(compile_filter(_f("name", "contains", "ana"), DONOR_FIELDS))
    assert sql.count(" OR ") == 3
    assert params.count("%ana%") == 4


def test_name_search_rejects_comparison_operators():
    assert compile_filter(_f("name", "greater_than", "a"), STAFF_FIELDS) is None


def test_compile_filters_reports_skipped_fields():
    clauses, skipped = compile_filters(
        [
            _f("active", "equals", "true"),
            _f("budget", "equals", 1),
            _f("goal", "between", values=[1]),
        ],
        PROJECT_FIELDS,
    )
    assert len(clauses) == 1
    assert skipped == ["budget", "goal"]


# --- sorting ----------------------------------------------------------------------

def _order(entity, sort_by, direction=SortDirection.ASC):
    return [
        str(c.compile(dialect=sqlite.dialect()))
        for c in resolve_sort(entity, sort_by, direction)
    ]


def test_default_sort_is_descending_entity_default():
    order = _order(QueryEntity.DONORS, None, SortDirection.ASC)
    assert "sum(donations.amount)" in order[0]
    assert order[0].endswith("DESC")
    assert order[-1] == "donors.id ASC"


@pytest.mark.parametrize("entity, fallback", [
    (QueryEntity.DONORS, "donors.first_name ASC"),
    (QueryEntity.DONATIONS, "donations.date ASC"),
    (QueryEntity.PROJECTS, "projects.name ASC"),
    (QueryEntity.STAFF, "staff.first_name ASC"),
])
def test_unknown_sort_key_falls_back_per_entity(entity, fallback):
    assert _order(entity, "shoeSize")[0] == fallback


def test_explicit_sort_direction():
    assert _order(QueryEntity.DONATIONS, "amount", SortDirection.DESC) == [
        "donations.amount DESC", "donations.id ASC",
    ]
