"""CRM Mapping — provider prefixes and address parsing."""

from donor_crm.core.crm_mapping import add_provider_prefix, parse_address, strip_provider_prefix


def test_prefix_round_trip():
    stored = add_provider_prefix("salesforce", "003ABC")
    assert stored == "salesforce_003ABC"
    assert strip_provider_prefix("salesforce", stored) == "003ABC"


def test_strip_leaves_foreign_ids_untouched():
    assert strip_provider_prefix("salesforce", "blackbaud_9") == "blackbaud_9"
    assert strip_provider_prefix("salesforce", None) == ""


def test_parse_full_address():
    assert parse_address("1 Main St, Springfield, IL, 62701, USA") == {
        "street": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "postal_code": "62701",
        "country": "USA",
    }


def test_parse_partial_address():
    parsed = parse_address("1 Main St, Springfield")
    assert parsed["city"] == "Springfield"
    assert parsed["state"] is None and parsed["country"] is None


def test_parse_empty_address():
    assert parse_address("") is None
    assert parse_address(None) is None
