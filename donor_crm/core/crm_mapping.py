"""CRM Mapping — provider-prefixed external ids and address parsing.

Invariants:
    - Stored external ids are "<provider>_<raw id>"; providers only ever see the raw id
    - strip_provider_prefix leaves ids without the prefix untouched
    - parse_address splits "street, city, state, postal, country" on ", " (missing parts → None)
"""


def add_provider_prefix(provider: str, raw_id: str) -> str:
    return f"{provider}_{raw_id}"


def strip_provider_prefix(provider: str, external_id: str | None) -> str:
    if not external_id:
        return ""
    prefix = f"{provider}_"
    return external_id[len(prefix):] if external_id.startswith(prefix) else external_id


def parse_address(address: str | None) -> dict | None:
    if not address:
        return None
    parts = address.split(", ")
    keys = ("street", "city", "state", "postal_code", "country")
    return {
        key: (parts[i] or None) if i < len(parts) else None
        for i, key in enumerate(keys)
    }
