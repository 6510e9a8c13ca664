"""WhatsApp History — persisted conversation turns per organization, staff and sender.

Invariants:
    - get_chat_history returns the newest `limit` messages in chronological order (oldest first)
    - staff_id None widens the lookup to every staff member of the organization
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import ChatRole
from donor_crm.models.whatsapp import WhatsAppChatMessage

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20


class WhatsAppHistoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_message(
        self,
        organization_id: str,
        staff_id: int | None,
        from_phone_number: str,
        role: ChatRole,
        content: str,
        message_id: str | None = None,
        tool_calls: list | None = None,
        tool_results: list | None = None,
        tokens_used: dict | None = None,
    ) -> WhatsAppChatMessage:
        message = WhatsAppChatMessage(
            organization_id=organization_id,
            staff_id=staff_id,
            from_phone_number=from_phone_number,
            message_id=message_id,
            role=role.value,
            content=content,
            tool_calls=tool_calls,
            tool_results=tool_results,
            tokens_used=tokens_used,
        )
        self.db.add(message)
        await self.db.flush()
        return message

    async def get_chat_history(
        self,
        organization_id: str,
        staff_id: int | None,
        from_phone_number: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[WhatsAppChatMessage]:
        clauses = [
            WhatsAppChatMessage.organization_id == organization_id,
            WhatsAppChatMessage.from_phone_number == from_phone_number,
        ]
        if staff_id is not None:
            clauses.append(WhatsAppChatMessage.staff_id == staff_id)
        result = await self.db.execute(
            select(WhatsAppChatMessage)
            .where(*clauses)
            .order_by(WhatsAppChatMessage.created_at.desc(), WhatsAppChatMessage.id.desc())
            .limit(limit)
        )
        messages = list(result.scalars().all())
        messages.reverse()
        return messages

    async def clear_history(
        self, organization_id: str, staff_id: int, from_phone_number: str,
    ) -> None:
        await self.db.execute(
            delete(WhatsAppChatMessage).where(
                WhatsAppChatMessage.organization_id == organization_id,
                WhatsAppChatMessage.staff_id == staff_id,
                WhatsAppChatMessage.from_phone_number == from_phone_number,
            )
        )
        logger.info(
            f"Cleared WhatsApp history for {from_phone_number}",
            extra={"organization_id": organization_id, "staff_id": staff_id},
        )


def format_history_for_context(messages: list[WhatsAppChatMessage]) -> str:
    """Render turns as "User: ..." / "Assistant: ..." blocks separated by blank lines."""
    lines = []
    for message in messages:
        speaker = "User" if message.role == ChatRole.USER.value else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n\n".join(lines)
