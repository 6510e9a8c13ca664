"""Email Schemas — request and structured result of one donor email draft."""

from pydantic import BaseModel, Field, field_validator


class EmailGenerationRequest(BaseModel):
    donor_id: int
    instruction: str = Field(
        "Write a short thank-you email for the donor's recent support.",
        min_length=1, max_length=5000,
    )
    staff_id: int | None = None

    @field_validator("instruction")
    @classmethod
    def strip_instruction(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("instruction cannot be empty or whitespace")
        return v


class EmailGenerationResponse(BaseModel):
    donor_id: int
    subject: str
    reasoning: str
    email_content: str
    response: str
    tokens_used: int
