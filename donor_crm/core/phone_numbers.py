"""Phone Numbers — canonical E.164-ish form for WhatsApp sender lookups.

Invariants:
    - Keeps digits and a leading '+'; everything else dropped
    - 10 bare digits → "+1" prefix (US); 11 digits starting with 1 → "+" prefix
    - Any other shape returned as the cleaned digits (no guessing)
"""

import re

_NON_DIAL = re.compile(r"[^\d+]")


def normalize_phone_number(phone_number: str) -> str:
    cleaned = _NON_DIAL.sub("", phone_number or "")
    if cleaned.startswith("+"):
        return "+" + cleaned[1:].replace("+", "")
    cleaned = cleaned.replace("+", "")
    if len(cleaned) == 10:
        return "+1" + cleaned
    if len(cleaned) == 11 and cleaned.startswith("1"):
        return "+" + cleaned
    return cleaned
