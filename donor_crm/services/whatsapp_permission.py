"""WhatsApp Permission — maps a sender phone number to a staff member and organization.

Invariants:
    - Lookups use the normalized phone number (core/phone_numbers.py)
    - Unregistered or disabled numbers are denied with a reason; the organization is never guessed
    - A phone number belongs to at most one staff member (unique column)
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.errors import ConflictError, ResourceNotFoundError
from donor_crm.core.phone_numbers import normalize_phone_number
from donor_crm.models.staff import Staff
from donor_crm.models.whatsapp import StaffWhatsAppPhoneNumber

logger = logging.getLogger(__name__)


@dataclass
class PhonePermission:
    is_allowed: bool
    phone_number: str
    staff_id: int | None = None
    organization_id: str | None = None
    reason: str | None = None
    staff: dict = field(default_factory=dict)


class WhatsAppPermissionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_phone_permission(self, phone_number: str) -> PhonePermission:
        phone = normalize_phone_number(phone_number)
        result = await self.db.execute(
            select(StaffWhatsAppPhoneNumber, Staff)
            .join(Staff, Staff.id == StaffWhatsAppPhoneNumber.staff_id)
            .where(StaffWhatsAppPhoneNumber.phone_number == phone)
            .limit(1)
        )
        row = result.first()
        if row is None:
            logger.warning(f"WhatsApp sender {phone} is not registered")
            return PhonePermission(
                is_allowed=False, phone_number=phone,
                reason="Phone number not registered with any staff member",
            )

        registration, staff = row
        if not registration.is_allowed:
            logger.warning(
                f"WhatsApp sender {phone} is disabled",
                extra={"organization_id": staff.organization_id, "staff_id": staff.id},
            )
            return PhonePermission(
                is_allowed=False, phone_number=phone,
                staff_id=staff.id, organization_id=staff.organization_id,
                reason="Phone number access is disabled for this staff member",
            )

        return PhonePermission(
            is_allowed=True, phone_number=phone,
            staff_id=staff.id, organization_id=staff.organization_id,
            staff={
                "id": staff.id,
                "firstName": staff.first_name,
                "lastName": staff.last_name,
                "email": staff.email,
            },
        )

    async def _registration(self, staff_id: int, phone: str) -> StaffWhatsAppPhoneNumber:
        result = await self.db.execute(
            select(StaffWhatsAppPhoneNumber).where(
                StaffWhatsAppPhoneNumber.staff_id == staff_id,
                StaffWhatsAppPhoneNumber.phone_number == phone,
            )
        )
        registration = result.scalar_one_or_none()
        if registration is None:
            raise ResourceNotFoundError("WhatsApp phone number", phone)
        return registration

    async def add_phone_number(self, staff_id: int, phone_number: str) -> StaffWhatsAppPhoneNumber:
        phone = normalize_phone_number(phone_number)
        existing = await self.db.scalar(
            select(StaffWhatsAppPhoneNumber).where(
                StaffWhatsAppPhoneNumber.phone_number == phone,
            )
        )
        if existing is not None:
            raise ConflictError(f"Phone number {phone} is already registered")
        registration = StaffWhatsAppPhoneNumber(staff_id=staff_id, phone_number=phone)
        self.db.add(registration)
        await self.db.flush()
        logger.info(f"WhatsApp number {phone} added", extra={"staff_id": staff_id})
        return registration

    async def remove_phone_number(self, staff_id: int, phone_number: str) -> None:
        registration = await self._registration(staff_id, normalize_phone_number(phone_number))
        await self.db.delete(registration)
        await self.db.flush()

    async def set_allowed(
        self, staff_id: int, phone_number: str, is_allowed: bool,
    ) -> StaffWhatsAppPhoneNumber:
        registration = await self._registration(staff_id, normalize_phone_number(phone_number))
        registration.is_allowed = is_allowed
        await self.db.flush()
        return registration

    async def list_phone_numbers(self, staff_id: int) -> list[StaffWhatsAppPhoneNumber]:
        result = await self.db.execute(
            select(StaffWhatsAppPhoneNumber)
            .where(StaffWhatsAppPhoneNumber.staff_id == staff_id)
            .order_by(StaffWhatsAppPhoneNumber.created_at)
        )
        return list(result.scalars().all())
