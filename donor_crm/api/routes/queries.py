"""Query Routes — structured DSL, templated flexible queries, raw SQL, schema.

Invariants:
    - Structured and flexible queries are read-only and organization-scoped
    - Raw SQL always answers 200 with the SQLExecutionResult shape; security
      rejections and database failures are reported in "error", not as HTTP errors
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.api.dependencies import get_organization_id
from donor_crm.infrastructure.database import get_db
from donor_crm.schemas.query import FlexibleQuery, RawSQLRequest, StructuredQuery
from donor_crm.services.query_engine import execute_structured_query
from donor_crm.services.query_tools import DonorQueryTools
from donor_crm.services.sql_engine import describe_schema, execute_raw_sql

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/queries", tags=["queries"])


@router.post("/structured")
async def structured_query(
    body: StructuredQuery,
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await execute_structured_query(db, organization_id, body)
    return {"count": len(rows), "rows": rows}


@router.post("/flexible")
async def flexible_query(
    body: FlexibleQuery,
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await DonorQueryTools(db, organization_id).execute_flexible_query(body)
    return {"count": len(rows), "rows": rows}


@router.post("/sql")
async def raw_sql(
    body: RawSQLRequest,
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
):
    result = await execute_raw_sql(db, organization_id, body.query)
    return result.to_dict()


@router.get("/schema")
async def database_schema(organization_id: str = Depends(get_organization_id)):
    return {"schema": describe_schema()}
