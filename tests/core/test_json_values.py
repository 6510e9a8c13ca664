"""JSON Values — row values converted to JSON-safe primitives."""

from datetime import date, datetime, timezone
from decimal import Decimal

from donor_crm.core.json_values import json_safe, row_to_dict


def test_dates_become_iso_strings():
    moment = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert json_safe(moment) == "2024-05-01T12:00:00+00:00"
    assert json_safe(date(2024, 5, 1)) == "2024-05-01"


def test_decimals_become_int_or_float():
    assert json_safe(Decimal("1500")) == 1500
    assert isinstance(json_safe(Decimal("1500")), int)
    assert json_safe(Decimal("12.5")) == 12.5


def test_containers_are_converted_recursively():
    value = {"rows": [(Decimal("2"), date(2020, 1, 2))], "n": None}
    assert json_safe(value) == {"rows": [[2, "2020-01-02"]], "n": None}


def test_row_to_dict():
    assert row_to_dict({"total": Decimal("10")}) == {"total": 10}
