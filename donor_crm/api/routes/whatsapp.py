"""WhatsApp Routes — tool execution and inbound message intake for registered staff phones.

Invariants:
    - The organization comes from the sender's phone registration, never from the request
    - Unregistered or disabled senders get 403; a disabled sender's attempt is logged first
    - POST /messages answers {"duplicate": true} for a repeat inside the dedup window
      and stores nothing else
    - Tool results are returned as-is (status ok | error); only permission failures are HTTP errors

Design Decisions:
    - No agent loop here: an upstream bot calls /tools/{tool_name} for each tool_use block
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.api.dependencies import get_deduplicator, get_organization_id
from donor_crm.config import get_settings
from donor_crm.core.domain_types import ActivityType, ChatRole
from donor_crm.core.errors import ForbiddenError
from donor_crm.core.message_dedup import MessageDeduplicator
from donor_crm.core.phone_numbers import normalize_phone_number
from donor_crm.infrastructure.database import get_db
from donor_crm.schemas.whatsapp import (
    ActivityResponse, ChatMessageResponse, WhatsAppMessageRequest,
    WhatsAppMessageResponse, WhatsAppToolRequest,
)
from donor_crm.services.define_whatsapp_tools import TOOLS_WHATSAPP
from donor_crm.services.whatsapp_activity import WhatsAppActivityLogger
from donor_crm.services.whatsapp_dispatch import WhatsAppToolDispatch
from donor_crm.services.whatsapp_history import WhatsAppHistoryService
from donor_crm.services.whatsapp_permission import PhonePermission, WhatsAppPermissionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/whatsapp", tags=["whatsapp"])


async def _require_permission(db: AsyncSession, phone_number: str) -> PhonePermission:
    permission = await WhatsAppPermissionService(db).check_phone_permission(phone_number)
    if permission.is_allowed:
        return permission
    if permission.organization_id is not None:
        await WhatsAppActivityLogger(db).log(
            permission.organization_id,
            permission.staff_id,
            permission.phone_number,
            ActivityType.PERMISSION_DENIED,
            permission.reason or "Permission denied",
        )
        await db.commit()
    raise ForbiddenError(permission.reason or "Phone number is not permitted")


@router.get("/tools")
async def list_tools():
    return {"tools": TOOLS_WHATSAPP}


@router.post("/tools/{tool_name}")
async def run_tool(
    tool_name: str,
    body: WhatsAppToolRequest,
    db: AsyncSession = Depends(get_db),
):
    permission = await _require_permission(db, body.phone_number)
    dispatch = WhatsAppToolDispatch(
        db, permission.organization_id, permission.staff_id, permission.phone_number,
    )
    result = await dispatch.execute(tool_name, body.input)
    await db.commit()
    return result


@router.post("/messages", response_model=WhatsAppMessageResponse)
async def receive_message(
    body: WhatsAppMessageRequest,
    db: AsyncSession = Depends(get_db),
    deduplicator: MessageDeduplicator = Depends(get_deduplicator),
):
    permission = await _require_permission(db, body.phone_number)
    activity = WhatsAppActivityLogger(db)

    if deduplicator.check_and_mark(
        body.message, permission.phone_number, permission.organization_id,
    ):
        await activity.log(
            permission.organization_id,
            permission.staff_id,
            permission.phone_number,
            ActivityType.DUPLICATE_IGNORED,
            "Duplicate message ignored",
            {"message_id": body.message_id},
        )
        await db.commit()
        return WhatsAppMessageResponse(duplicate=True)

    message = await WhatsAppHistoryService(db).save_message(
        permission.organization_id,
        permission.staff_id,
        permission.phone_number,
        ChatRole.USER,
        body.message,
        message_id=body.message_id,
    )
    await activity.log(
        permission.organization_id,
        permission.staff_id,
        permission.phone_number,
        ActivityType.MESSAGE_RECEIVED,
        "Message received",
        {"message_id": body.message_id, "length": len(body.message)},
    )
    await db.commit()
    return WhatsAppMessageResponse(duplicate=False, message_id=message.id)


@router.get("/history", response_model=list[ChatMessageResponse])
async def get_history(
    phone_number: str = Query(..., min_length=7),
    staff_id: int | None = Query(None),
    limit: int | None = Query(None, ge=1, le=200),
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
):
    return await WhatsAppHistoryService(db).get_chat_history(
        organization_id,
        staff_id,
        normalize_phone_number(phone_number),
        limit or get_settings().whatsapp_history_limit,
    )


@router.get("/activity", response_model=list[ActivityResponse])
async def get_activity(
    staff_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
):
    return await WhatsAppActivityLogger(db).recent(organization_id, staff_id, limit)


@router.delete("/history", status_code=204)
async def clear_history(
    phone_number: str = Query(..., min_length=7),
    staff_id: int = Query(...),
    organization_id: str = Depends(get_organization_id),
    db: AsyncSession = Depends(get_db),
):
    await WhatsAppHistoryService(db).clear_history(
        organization_id, staff_id, normalize_phone_number(phone_number),
    )
    await db.commit()
