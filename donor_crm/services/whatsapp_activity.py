"""WhatsApp Activity Log — append-only record of what staff did over WhatsApp."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import ActivityType
from donor_crm.core.json_values import json_safe
from donor_crm.models.whatsapp import WhatsAppActivityLog

logger = logging.getLogger(__name__)


class WhatsAppActivityLogger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        organization_id: str,
        staff_id: int | None,
        phone_number: str,
        activity_type: ActivityType,
        summary: str,
        data: dict | None = None,
    ) -> WhatsAppActivityLog:
        entry = WhatsAppActivityLog(
            organization_id=organization_id,
            staff_id=staff_id,
            phone_number=phone_number,
            activity_type=activity_type.value,
            summary=summary,
            data=json_safe(data or {}),
        )
        self.db.add(entry)
        await self.db.flush()
        logger.info(
            summary,
            extra={"organization_id": organization_id, "staff_id": staff_id},
        )
        return entry

    async def recent(
        self, organization_id: str, staff_id: int | None = None, limit: int = 50,
    ) -> list[WhatsAppActivityLog]:
        clauses = [WhatsAppActivityLog.organization_id == organization_id]
        if staff_id is not None:
            clauses.append(WhatsAppActivityLog.staff_id == staff_id)
        result = await self.db.execute(
            select(WhatsAppActivityLog)
            .where(*clauses)
            .order_by(WhatsAppActivityLog.created_at.desc(), WhatsAppActivityLog.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
