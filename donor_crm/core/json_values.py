"""JSON Values — converts database row values into JSON-safe primitives.

Invariants:
    - datetime/date → ISO 8601 string; Decimal → int when integral, else float
    - Containers converted recursively; other values returned unchanged
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any


def json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value


def row_to_dict(mapping) -> dict:
    """RowMapping (or any mapping) → plain JSON-safe dict."""
    return {key: json_safe(val) for key, val in dict(mapping).items()}
