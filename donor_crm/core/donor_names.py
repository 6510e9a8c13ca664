"""Donor Names — display name and salutation rules for individuals and couples.

Invariants:
    - format_donor_name priority: display_name, his/her names ("X and Y"), first/last, "Unknown Donor"
    - Initials always end with a period
    - Works on any object exposing the donor name attributes (ORM row or test double)
"""

from typing import Protocol


class DonorNameFields(Protocol):
    display_name: str | None
    his_title: str | None
    his_first_name: str | None
    his_initial: str | None
    his_last_name: str | None
    her_title: str | None
    her_first_name: str | None
    her_initial: str | None
    her_last_name: str | None
    is_couple: bool
    first_name: str | None
    last_name: str | None


def _clean(value: str | None) -> str:
    return value.strip() if value else ""


def individual_name(
    title: str | None, first: str | None, initial: str | None, last: str | None,
) -> str | None:
    parts = [p for p in (_clean(title), _clean(first)) if p]
    if _clean(initial):
        init = _clean(initial)
        parts.append(init if init.endswith(".") else f"{init}.")
    if _clean(last):
        parts.append(_clean(last))
    return " ".join(parts) if parts else None


def _his_name(donor: DonorNameFields) -> str | None:
    return individual_name(
        donor.his_title, donor.his_first_name, donor.his_initial, donor.his_last_name,
    )


def _her_name(donor: DonorNameFields) -> str | None:
    return individual_name(
        donor.her_title, donor.her_first_name, donor.her_initial, donor.her_last_name,
    )


def format_donor_name(donor: DonorNameFields) -> str:
    if _clean(donor.display_name):
        return _clean(donor.display_name)

    his, her = _his_name(donor), _her_name(donor)
    if his and her:
        return f"{his} and {her}"
    if his or her:
        return his or her

    full = f"{_clean(donor.first_name)} {_clean(donor.last_name)}".strip()
    return full or "Unknown Donor"


def donor_salutation(donor: DonorNameFields) -> str:
    """Greeting line for email drafts ("Dear Mr. Smith", "Dear John and Jane")."""
    if _clean(donor.display_name):
        return f"Dear {_clean(donor.display_name)}"

    if donor.is_couple:
        his, her = _his_name(donor), _her_name(donor)
        if his and her:
            return f"Dear {his} and {her}"

    title = donor.his_title or donor.her_title
    first = donor.his_first_name or donor.her_first_name
    last = donor.his_last_name or donor.her_last_name
    if title and last:
        return f"Dear {title} {last}"
    if first:
        return f"Dear {first}"
    if _clean(donor.first_name):
        return f"Dear {_clean(donor.first_name)}"
    return "Dear Friend"
