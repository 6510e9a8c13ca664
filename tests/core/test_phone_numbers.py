"""Phone Numbers — normalization used for WhatsApp sender lookups."""

import pytest

from donor_crm.core.phone_numbers import normalize_phone_number


@pytest.mark.parametrize("raw, expected", [
    ("(555) 123-4567", "+15551234567"),
    ("1 555 123 4567", "+15551234567"),
    ("+44 20 7946 0958", "+442079460958"),
    ("+1 (555) 123-4567", "+15551234567"),
    ("12345", "12345"),
    ("", ""),
])
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw) == expected
