"""WhatsApp Tool Dispatch — explicit routing from tool_name to handler.

Invariants:
    - Every tool->handler mapping is visible in one dict; no getattr, no auto-discovery
    - execute() never raises: unknown tools, domain errors and handler failures all
      come back as {"status": "error", "error_code", "message"}
    - A database failure rolls the session back before the error result is returned
    - Every call is recorded in the WhatsApp activity log

Design Decisions:
    - Handlers instantiated per dispatch with the caller's organization and staff id
    - Activity log rows are flushed with the tool's own writes; the caller commits
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import ActivityType
from donor_crm.core.errors import DonorCrmError
from donor_crm.services.handle_whatsapp import WhatsAppQueryHandlers, WhatsAppWriteHandlers
from donor_crm.services.whatsapp_activity import WhatsAppActivityLogger

logger = logging.getLogger(__name__)


class WhatsAppToolDispatch:
    """Routes tool_name -> handler for one permitted sender."""

    def __init__(
        self, db: AsyncSession, organization_id: str, staff_id: int, phone_number: str,
    ):
        self._db = db
        self._organization_id = organization_id
        self._staff_id = staff_id
        self._phone_number = phone_number
        self._activity = WhatsAppActivityLogger(db)
        queries = WhatsAppQueryHandlers(db, organization_id)
        writes = WhatsAppWriteHandlers(db, organization_id, staff_id)

        self._handlers = {
            # Fixed lookups
            "find_donors_by_name": queries.find_donors_by_name,
            "get_donor_details": queries.get_donor_details,
            "get_donation_history": queries.get_donation_history,
            "get_donor_statistics": queries.get_donor_statistics,
            "get_top_donors": queries.get_top_donors,
            "execute_flexible_query": queries.execute_flexible_query,

            # Structured DSL and raw SQL
            "query_database": queries.query_database,
            "get_database_schema": queries.get_database_schema,
            "execute_sql": writes.execute_sql,

            # Record updates
            "add_donor_note": writes.add_donor_note,
        }

    @property
    def tool_names(self) -> frozenset[str]:
        return frozenset(self._handlers)

    async def execute(self, tool_name: str, input_data: dict) -> dict:
        """Route tool_name to handler. Returns a result dict, never raises."""
        handler = self._handlers.get(tool_name)
        if handler is None:
            result = {
                "status": "error",
                "error_code": "UNKNOWN_TOOL",
                "message": f"Tool '{tool_name}' does not exist.",
            }
            await self._record(tool_name, input_data, result)
            return result

        try:
            result = await handler(input_data or {})
        except DonorCrmError as e:
            logger.warning(
                f"Tool {tool_name} failed: {e.message}",
                extra={
                    "organization_id": self._organization_id,
                    "tool_name": tool_name,
                    "error_code": e.code,
                },
            )
            result = e.to_tool_result()
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error(
                f"Tool {tool_name} database failure: {e}",
                extra={"organization_id": self._organization_id, "tool_name": tool_name},
            )
            result = {
                "status": "error",
                "error_code": "DATABASE_ERROR",
                "message": "The database could not complete this request.",
            }
        except Exception as e:
            logger.error(
                f"Tool {tool_name} crashed: {e}",
                exc_info=True,
                extra={"organization_id": self._organization_id, "tool_name": tool_name},
            )
            result = {
                "status": "error",
                "error_code": "TOOL_EXECUTION_FAILED",
                "message": f"Tool '{tool_name}' failed unexpectedly.",
            }

        await self._record(tool_name, input_data, result)
        return result

    async def _record(self, tool_name: str, input_data: dict, result: dict) -> None:
        failed = result.get("status") == "error"
        if failed:
            activity = ActivityType.TOOL_FAILED
        elif tool_name == "add_donor_note":
            activity = ActivityType.DONOR_NOTE_ADDED
        else:
            activity = ActivityType.TOOL_EXECUTED
        summary = f"{tool_name} {'failed' if failed else 'executed'}"
        await self._activity.log(
            self._organization_id,
            self._staff_id,
            self._phone_number,
            activity,
            summary,
            {
                "tool": tool_name,
                "input": input_data,
                "error_code": result.get("error_code") if failed else None,
            },
        )
