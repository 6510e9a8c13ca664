"""Raw SQL Engine — runs LLM-authored SQL after the security heuristics pass.

Invariants:
    - execute_raw_sql never raises: every failure comes back as SQLExecutionResult.error
    - A failed statement rolls the session back before returning
    - INSERT/UPDATE are committed here (the WhatsApp tool call is the transaction)
    - Rows are JSON-safe dicts; row_count is len(rows) for reads, rowcount for writes

Design Decisions:
    - exec_driver_sql: the query text reaches the driver unchanged (no ':name' bind parsing)
    - describe_schema generated from Base.metadata so it never drifts from the ORM
    - Restricted tables are left out of the schema description entirely
"""

import logging
from dataclasses import asdict, dataclass, field

from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import SqlErrorType
from donor_crm.core.errors import SQLSecurityError
from donor_crm.core.json_values import row_to_dict
from donor_crm.core.sql_guard import (
    AVAILABLE_TABLES, classify_error, normalize_query, statement_kind,
    suggest_fix, validate_sql,
)
from donor_crm.db.base import Base

logger = logging.getLogger(__name__)

_WRITE_STATEMENTS = ("insert", "update")


@dataclass
class SQLError:
    message: str
    type: SqlErrorType
    query: str
    suggestion: str | None = None


@dataclass
class SQLExecutionResult:
    success: bool
    data: list[dict] = field(default_factory=list)
    row_count: int = 0
    error: SQLError | None = None

    def to_dict(self) -> dict:
        result = asdict(self)
        if self.error:
            result["error"]["type"] = self.error.type.value
        return result


def _failure(message: str, error_type: SqlErrorType, query: str,
             organization_id: str) -> SQLExecutionResult:
    return SQLExecutionResult(
        success=False,
        error=SQLError(
            message=message,
            type=error_type,
            query=query,
            suggestion=suggest_fix(message, query, organization_id),
        ),
    )


def _driver_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


async def execute_raw_sql(
    db: AsyncSession, organization_id: str, query: str,
) -> SQLExecutionResult:
    """Validate and run one statement for the organization."""
    try:
        validate_sql(query, organization_id)
    except SQLSecurityError as e:
        logger.warning(
            f"Raw SQL rejected: {e.message}",
            extra={"organization_id": organization_id, "error_code": e.code},
        )
        return _failure(e.message, SqlErrorType.SECURITY, query, organization_id)

    kind = statement_kind(normalize_query(query))
    try:
        conn = await db.connection()
        result = await conn.exec_driver_sql(query)
        rows = [row_to_dict(r) for r in result.mappings().all()] if result.returns_rows else []
        if kind in _WRITE_STATEMENTS:
            row_count = result.rowcount if result.rowcount is not None else len(rows)
            await db.commit()
        else:
            row_count = len(rows)
    except SQLAlchemyError as e:
        await db.rollback()
        message = _driver_message(e)
        logger.warning(
            f"Raw SQL failed: {message}",
            extra={"organization_id": organization_id, "error_code": "SQL_EXECUTION_FAILED"},
        )
        return _failure(message, classify_error(message), query, organization_id)

    logger.info(
        f"Raw SQL {kind} affected {row_count} rows",
        extra={"organization_id": organization_id, "row_count": row_count},
    )
    return SQLExecutionResult(success=True, data=rows, row_count=row_count)


def _describe_table(table) -> list[str]:
    lines = [f"TABLE {table.name}"]
    for column in table.columns:
        parts = [f"  - {column.name} {column.type.compile(dialect=postgresql.dialect())}"]
        if column.primary_key:
            parts.append("PRIMARY KEY")
        if not column.nullable and not column.primary_key:
            parts.append("NOT NULL")
        for fk in column.foreign_keys:
            parts.append(f"REFERENCES {fk.target_fullname}")
        lines.append(" ".join(parts))
    return lines


def describe_schema() -> str:
    """Human-readable schema for the LLM, limited to queryable tables."""
    sections = []
    for name in AVAILABLE_TABLES:
        sections.append("\n".join(_describe_table(Base.metadata.tables[name])))

    notes = """NOTES
  - Amounts (donations.amount, projects.goal) are integer cents: 10000 = $100.00
  - donations has no organization_id: JOIN donors ON donors.id = donations.donor_id
    and filter donors.organization_id
  - Every query on donors, projects, staff or organizations must filter
    organization_id = '<your organization id>'
  - donors.notes is a JSON array of {"createdAt", "createdBy", "content"} objects
  - DELETE and schema changes are not allowed

EXAMPLE (append a note to a donor)
  UPDATE donors
  SET notes = (COALESCE(notes::jsonb, '[]'::jsonb) || jsonb_build_array(jsonb_build_object(
      'createdAt', NOW(), 'createdBy', 'staff_<staff id>', 'content', 'Met at gala')))::json
  WHERE id = <donor id> AND organization_id = '<your organization id>'"""
    return "\n\n".join(sections + [notes])
