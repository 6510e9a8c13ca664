"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - OrganizationId is the external (auth-provider) string id; entity ids are integers
    - Amounts are integer cents — never floats
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (tool results are JSON)
    - Enum values mirror the camelCase vocabulary exposed to the LLM tools
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

OrganizationId = NewType("OrganizationId", str)
DonorId = NewType("DonorId", int)
ProjectId = NewType("ProjectId", int)
StaffId = NewType("StaffId", int)
DonationId = NewType("DonationId", int)


# ─── Value Types ─────────────────────────────────────────────────

AmountCents = NewType("AmountCents", int)


# ─── Enums ───────────────────────────────────────────────────────

class QueryType(str, Enum):
    """Structured WhatsApp query kinds."""
    FIND_DONORS = "findDonors"
    FIND_DONATIONS = "findDonations"
    FIND_PROJECTS = "findProjects"
    FIND_STAFF = "findStaff"
    DONOR_DETAILS = "donorDetails"
    DONATION_HISTORY = "donationHistory"
    DONOR_STATS = "donorStats"
    PROJECT_STATS = "projectStats"


class FilterOperation(str, Enum):
    """Comparison operators accepted by the filter DSL."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    BETWEEN = "between"
    IN = "in"
    NOT_IN = "not_in"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


TEXT_OPERATIONS = frozenset({
    FilterOperation.CONTAINS,
    FilterOperation.STARTS_WITH,
    FilterOperation.ENDS_WITH,
})


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SqlErrorType(str, Enum):
    """Classification of raw SQL failures reported back to the LLM."""
    SYNTAX = "syntax"
    SECURITY = "security"
    RUNTIME = "runtime"
    UNKNOWN = "unknown"


class FlexibleQueryType(str, Enum):
    """Templated donor queries that need joins beyond the filter DSL."""
    DONOR_DONATIONS_BY_PROJECT = "donor-donations-by-project"
    DONOR_DONATIONS_BY_DATE = "donor-donations-by-date"
    PROJECT_DONATIONS = "project-donations"
    DONOR_PROJECT_HISTORY = "donor-project-history"
    CUSTOM_DONOR_SEARCH = "custom-donor-search"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class DonationOrderBy(str, Enum):
    DATE = "date"
    AMOUNT = "amount"
    CREATED_AT = "created_at"


class DonorOrderBy(str, Enum):
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    EMAIL = "email"
    CREATED_AT = "created_at"


class ProjectOrderBy(str, Enum):
    NAME = "name"
    CREATED_AT = "created_at"


class StaffOrderBy(str, Enum):
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    EMAIL = "email"
    CREATED_AT = "created_at"


class QueryEntity(str, Enum):
    """Tables the filter DSL can target (keys of the field and sort maps)."""
    DONORS = "donors"
    DONATIONS = "donations"
    PROJECTS = "projects"
    STAFF = "staff"


class ActivityType(str, Enum):
    """Staff actions recorded in the WhatsApp activity log."""
    MESSAGE_RECEIVED = "message_received"
    DUPLICATE_IGNORED = "duplicate_ignored"
    PERMISSION_DENIED = "permission_denied"
    TOOL_EXECUTED = "tool_executed"
    TOOL_FAILED = "tool_failed"
    DONOR_NOTE_ADDED = "donor_note_added"
