"""WhatsApp Schemas — tool invocations, inbound messages and phone registrations."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _SenderFields(BaseModel):
    phone_number: str = Field(min_length=7, max_length=30)

    @field_validator("phone_number")
    @classmethod
    def strip_phone(cls, v: str) -> str:
        v = v.strip()
        if not any(ch.isdigit() for ch in v):
            raise ValueError("phone_number must contain digits")
        return v


class WhatsAppToolRequest(_SenderFields):
    input: dict = Field(default_factory=dict)


class WhatsAppMessageRequest(_SenderFields):
    message: str = Field(min_length=1, max_length=10_000)
    message_id: str | None = Field(None, max_length=255)


class WhatsAppMessageResponse(BaseModel):
    duplicate: bool
    message_id: int | None = None


class PhoneNumberCreate(_SenderFields):
    pass


class PhoneNumberUpdate(BaseModel):
    is_allowed: bool


class PhoneNumberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    staff_id: int
    phone_number: str
    is_allowed: bool
    created_at: datetime


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    staff_id: int | None
    from_phone_number: str
    message_id: str | None
    role: str
    content: str
    created_at: datetime


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    staff_id: int | None
    activity_type: str
    phone_number: str
    summary: str
    data: dict
    created_at: datetime
