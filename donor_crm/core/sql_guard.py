"""SQL Guard — security heuristics for LLM-authored raw SQL.

Invariants:
    - Pure functions: no IO, no DB, no SQLAlchemy
    - validate_sql raises SQLSecurityError on the first violation; returns None when the query may run
    - Keyword checks run on the query with string literals blanked, so note text cannot trip them
    - Every SELECT/UPDATE touching an organization-owned table carries the caller's organization id literal
    - Security error messages contain "dangerous", "not allowed" or "organization_id" (classify_error relies on it)

Design Decisions:
    - Blocklist + statement allowlist (SELECT, WITH, INSERT, UPDATE): DELETE and DDL never reach the DB
    - Stacked statements rejected: a trailing ';' is tolerated, anything after it is not
    - Donations have no organization_id column: queries on them must also reference donors
    - Credential and chat tables are unreachable from raw SQL
"""

import re

from donor_crm.core.domain_types import SqlErrorType
from donor_crm.core.errors import SQLSecurityError

DIRECT_ORG_TABLES = frozenset({"donors", "projects", "staff", "organizations"})
INDIRECT_ORG_TABLES = frozenset({"donations"})
AVAILABLE_TABLES = ("donors", "donations", "projects", "staff", "organizations")

_RESTRICTED_TABLES = frozenset({
    "organization_integrations",
    "whatsapp_chat_history",
    "whatsapp_activity_log",
    "staff_whatsapp_phone_numbers",
    "person_research",
    "alembic_version",
})
_RESTRICTED_PREFIXES = ("pg_", "information_schema", "sqlite_")

_BLOCKED_PATTERNS = [
    (re.compile(r"\bdrop\s+table\b"), "drop table"),
    (re.compile(r"\bdrop\s+database\b"), "drop database"),
    (re.compile(r"\btruncate\b"), "truncate"),
    (re.compile(r"\bdelete\s+from\b"), "delete from"),
    (re.compile(r"\balter\s+table\b"), "alter table"),
    (re.compile(r"\bcreate\s+table\b"), "create table"),
    (re.compile(r"\bcreate\s+database\b"), "create database"),
    (re.compile(r"\bgrant\b"), "grant"),
    (re.compile(r"\brevoke\b"), "revoke"),
    (re.compile(r"--"), "--"),
    (re.compile(r"/\*"), "/*"),
    (re.compile(r"\*/"), "*/"),
]

_ALLOWED_STATEMENTS = ("select", "with", "insert", "update")

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_TABLE_REFERENCE = re.compile(r"\b(?:from|join|update|into)\s+\"?([a-z_][a-z0-9_.]*)\"?")
_INSERT_TARGET = re.compile(r"^insert\s+into\s+\"?(\w+)\"?")
_NEAR_TOKEN = re.compile(r'syntax error at or near "([^"]+)"')

_SYNTAX_MARKERS = ("syntax error", "unexpected token", "parse error", "at or near")
_SECURITY_MARKERS = ("dangerous", "not allowed", "organization_id")
_RUNTIME_MARKERS = ("constraint", "duplicate key", "foreign key", "no such table", "no such column")


def normalize_query(query: str) -> str:
    """Lowercase, trim, and drop one trailing semicolon."""
    normalized = query.strip().lower()
    if normalized.endswith(";"):
        normalized = normalized[:-1].rstrip()
    return normalized


def strip_string_literals(normalized: str) -> str:
    """Replace single-quoted literals with empty literals ('' escapes honored)."""
    return _STRING_LITERAL.sub("''", normalized)


def statement_kind(normalized: str) -> str:
    """First keyword of the statement ('' for an empty query)."""
    parts = normalized.split(None, 1)
    return parts[0] if parts else ""


def referenced_tables(normalized: str) -> set[str]:
    """Table names following FROM/JOIN/UPDATE/INTO.

    Schema-qualified names contribute both the schema and the bare table name.
    """
    tables: set[str] = set()
    for match in _TABLE_REFERENCE.finditer(strip_string_literals(normalized)):
        parts = match.group(1).split(".")
        tables.add(parts[-1])
        if len(parts) > 1:
            tables.add(parts[0])
    return tables


def _check_blocklist(code: str) -> None:
    for pattern, label in _BLOCKED_PATTERNS:
        if pattern.search(code):
            raise SQLSecurityError(f"Dangerous SQL operation detected: {label}")
    if ";" in code:
        raise SQLSecurityError("Multiple statements are not allowed")


def _check_statement_kind(code: str) -> str:
    kind = statement_kind(code)
    if kind not in _ALLOWED_STATEMENTS:
        raise SQLSecurityError(
            f"Statement type '{kind or 'empty'}' is not allowed; use SELECT, INSERT or UPDATE",
        )
    return kind


def _check_restricted_tables(tables: set[str]) -> None:
    for table in sorted(tables):
        if table in _RESTRICTED_TABLES or table.startswith(_RESTRICTED_PREFIXES):
            raise SQLSecurityError(f"Access to table '{table}' is not allowed")


def validate_organization_filter(normalized: str, organization_id: str) -> None:
    """Require organization scoping appropriate to the statement and tables touched."""
    code = strip_string_literals(normalized)
    tables = referenced_tables(normalized)
    org_literal = f"'{organization_id.lower()}'"

    insert_match = _INSERT_TARGET.match(code)
    if insert_match:
        target = insert_match.group(1)
        if target in INDIRECT_ORG_TABLES:
            return
        if target in DIRECT_ORG_TABLES and "organization_id" not in code:
            raise SQLSecurityError(
                f"INSERT into {target} must include organization_id in VALUES",
            )
        if target in DIRECT_ORG_TABLES and org_literal not in normalized:
            raise SQLSecurityError(
                f"INSERT into {target} must use organization_id = {org_literal}",
            )
        return

    direct = tables & DIRECT_ORG_TABLES
    if direct:
        if "organization_id" not in code or org_literal not in normalized:
            raise SQLSecurityError(
                f"SELECT/UPDATE queries on {', '.join(sorted(direct))} must include "
                f"WHERE organization_id = {org_literal}",
            )
        return

    if tables & INDIRECT_ORG_TABLES:
        raise SQLSecurityError(
            "Queries on donations must join donors and filter by donors.organization_id",
        )


def validate_sql(query: str, organization_id: str) -> None:
    """Run every security check; raise SQLSecurityError on the first violation."""
    normalized = normalize_query(query)
    code = strip_string_literals(normalized)
    _check_blocklist(code)
    _check_statement_kind(code)
    _check_restricted_tables(referenced_tables(normalized))
    validate_organization_filter(normalized, organization_id)


def classify_error(message: str) -> SqlErrorType:
    """Bucket an error message so the LLM knows whether to rewrite or give up."""
    lowered = message.lower()
    if any(marker in lowered for marker in _SYNTAX_MARKERS):
        return SqlErrorType.SYNTAX
    if any(marker in lowered for marker in _SECURITY_MARKERS):
        return SqlErrorType.SECURITY
    if "does not exist" in lowered and ("relation" in lowered or "column" in lowered):
        return SqlErrorType.RUNTIME
    if any(marker in lowered for marker in _RUNTIME_MARKERS):
        return SqlErrorType.RUNTIME
    return SqlErrorType.UNKNOWN


def suggest_fix(message: str, query: str, organization_id: str | None = None) -> str | None:
    """Short, actionable hint for common SQL mistakes (None when nothing applies)."""
    lowered = message.lower()
    query_lower = query.lower()

    near = _NEAR_TOKEN.search(lowered)
    if near:
        return (
            f'Check the SQL syntax near "{near.group(1)}". Common issues: '
            "missing quotes, parentheses, or commas."
        )

    if "organization_id" in lowered:
        org = organization_id or "your_org_id"
        if query_lower.lstrip().startswith("insert"):
            return f"Include organization_id = '{org}' in the INSERT VALUES clause."
        if "donations" in lowered:
            return (
                "JOIN donors ON donors.id = donations.donor_id and add "
                f"WHERE donors.organization_id = '{org}'."
            )
        return f"Add WHERE organization_id = '{org}' to the query for security compliance."

    if "does not exist" in lowered or "no such table" in lowered or "no such column" in lowered:
        return (
            "Check the table/column name spelling. Available tables: "
            f"{', '.join(AVAILABLE_TABLES)}."
        )

    if "unterminated quoted string" in lowered or "quoted identifier" in lowered \
            or "unrecognized token" in lowered:
        return "Check for unmatched quotes in string values. Use single quotes for string literals."

    return None
