"""WhatsApp Handlers — tool handlers for the donor assistant, one method per tool.

Invariants:
    - Every handler takes the raw tool input dict and returns a JSON-safe result dict
    - Input is validated with the pydantic schemas; violations become ValidationError
    - Handlers are bound to one organization and the sending staff member

Design Decisions:
    - Thin wrappers: the query logic lives in query_tools / query_engine / sql_engine
    - execute_sql returns the SQLExecutionResult shape even on failure so the model can retry
"""

import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.errors import ResourceNotFoundError, ValidationError
from donor_crm.data.donors import DonorRepository
from donor_crm.schemas.query import (
    MAX_QUERY_LIMIT, FlexibleQuery, RawSQLRequest, StructuredQuery,
)
from donor_crm.services.query_engine import execute_structured_query
from donor_crm.services.query_tools import DonorQueryTools
from donor_crm.services.sql_engine import describe_schema, execute_raw_sql

logger = logging.getLogger(__name__)


def _parse(model, input_data: dict):
    try:
        return model.model_validate(input_data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "input"
        raise ValidationError(f"Invalid tool input: {first.get('msg')}", field)


def _required_int(input_data: dict, key: str) -> int:
    value = input_data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(f"'{key}' must be an integer", key)
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"'{key}' must be an integer", key)


def _limit(input_data: dict, default: int, maximum: int = MAX_QUERY_LIMIT) -> int:
    value = input_data.get("limit", default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return default
    return min(value, maximum)


class WhatsAppQueryHandlers:
    """Read-only lookups (fixed queries, structured DSL, schema)."""

    def __init__(self, db: AsyncSession, organization_id: str):
        self.db = db
        self.organization_id = organization_id
        self.tools = DonorQueryTools(db, organization_id)

    async def find_donors_by_name(self, input_data: dict) -> dict:
        name = str(input_data.get("name") or "").strip()
        if not name:
            raise ValidationError("'name' is required", "name")
        donors = await self.tools.find_donors_by_name(name, _limit(input_data, 10))
        return {"status": "ok", "count": len(donors), "donors": donors}

    async def get_donor_details(self, input_data: dict) -> dict:
        donor_id = _required_int(input_data, "donorId")
        donor = await self.tools.get_donor_details(donor_id)
        if donor is None:
            raise ResourceNotFoundError("Donor", str(donor_id))
        return {"status": "ok", "donor": donor}

    async def get_donation_history(self, input_data: dict) -> dict:
        donor_id = _required_int(input_data, "donorId")
        donations = await self.tools.get_donation_history(donor_id, _limit(input_data, 50))
        return {"status": "ok", "count": len(donations), "donations": donations}

    async def get_donor_statistics(self, input_data: dict) -> dict:
        return {"status": "ok", "statistics": await self.tools.get_donor_statistics()}

    async def get_top_donors(self, input_data: dict) -> dict:
        donors = await self.tools.get_top_donors(_limit(input_data, 10))
        return {"status": "ok", "count": len(donors), "donors": donors}

    async def execute_flexible_query(self, input_data: dict) -> dict:
        query = _parse(FlexibleQuery, input_data)
        rows = await self.tools.execute_flexible_query(query)
        return {"status": "ok", "count": len(rows), "rows": rows}

    async def query_database(self, input_data: dict) -> dict:
        query = _parse(StructuredQuery, input_data)
        rows = await execute_structured_query(self.db, self.organization_id, query)
        return {"status": "ok", "count": len(rows), "rows": rows}

    async def get_database_schema(self, input_data: dict) -> dict:
        return {"status": "ok", "schema": describe_schema()}


class WhatsAppWriteHandlers:
    """Tools that can change data (raw SQL, donor notes)."""

    def __init__(self, db: AsyncSession, organization_id: str, staff_id: int):
        self.db = db
        self.organization_id = organization_id
        self.staff_id = staff_id

    async def execute_sql(self, input_data: dict) -> dict:
        request = _parse(RawSQLRequest, input_data)
        result = await execute_raw_sql(self.db, self.organization_id, request.query)
        return {"status": "ok" if result.success else "error", **result.to_dict()}

    async def add_donor_note(self, input_data: dict) -> dict:
        donor_id = _required_int(input_data, "donorId")
        content = str(input_data.get("content") or "").strip()
        if not content:
            raise ValidationError("'content' is required", "content")
        note = await DonorRepository(self.db, self.organization_id).add_note(
            donor_id, self.staff_id, content,
        )
        return {"status": "ok", "donorId": donor_id, "note": note}
