"""Email Generation — one schema-constrained LLM call per donor email.

Invariants:
    - The model is forced to call submit_email; free-text answers are rejected
    - Staff writing instructions override the organization default
    - Donation amounts are rendered in dollars from integer cents, newest first
    - LLM failures propagate as AnthropicAPIError (the route maps them to 503)

Design Decisions:
    - tool_choice {"type": "tool"} instead of JSON-in-text: Anthropic validates the schema
    - Donations labelled donation-1..N so the reasoning can cite them
"""

import logging
from dataclasses import dataclass

from donor_crm.core.donor_names import donor_salutation, format_donor_name
from donor_crm.core.errors import AnthropicAPIError, ErrorContext
from donor_crm.infrastructure.anthropic_client import ResilientAnthropicClient

logger = logging.getLogger(__name__)

SUBMIT_EMAIL_TOOL = {
    "name": "submit_email",
    "description": "Submit the finished donor email.",
    "input_schema": {
        "type": "object",
        "properties": {
            "subject": {
                "type": "string",
                "description": "Subject line, 1-100 characters",
            },
            "reasoning": {
                "type": "string",
                "description": "Why this content fits the donor; cite donation ids",
            },
            "email_content": {
                "type": "string",
                "description": "Plain-text email body including greeting and sign-off",
            },
            "response": {
                "type": "string",
                "description": "One-sentence note to the staff member about the draft",
            },
        },
        "required": ["subject", "reasoning", "email_content", "response"],
    },
}

_SYSTEM_PROMPT = (
    "You write personal, warm, concise emails from a nonprofit to one of its donors. "
    "Use only the facts given. Never invent donations, projects or amounts. "
    "Always answer by calling submit_email."
)


@dataclass
class GeneratedEmail:
    subject: str
    reasoning: str
    email_content: str
    response: str
    tokens_used: int

    def to_dict(self) -> dict:
        return {
            "subject": self.subject,
            "reasoning": self.reasoning,
            "emailContent": self.email_content,
            "response": self.response,
            "tokensUsed": self.tokens_used,
        }


def format_amount(cents: int, currency: str = "USD") -> str:
    symbol = "$" if currency == "USD" else f"{currency} "
    return f"{symbol}{cents / 100:,.2f}"


def format_donation_history(donations: list) -> str:
    """One line per donation: "- [donation-1] 2024-03-01: $250.00 to Clean Water"."""
    if not donations:
        return "No previous donations."
    ordered = sorted(donations, key=lambda d: d.date, reverse=True)
    lines = []
    for index, donation in enumerate(ordered, start=1):
        project = getattr(donation, "project", None)
        target = f" to {project.name}" if project is not None else ""
        lines.append(
            f"- [donation-{index}] {donation.date.date().isoformat()}: "
            f"{format_amount(donation.amount, donation.currency)}{target}"
        )
    return "\n".join(lines)


def resolve_writing_instructions(
    organization_instructions: str | None, staff_instructions: str | None,
) -> str | None:
    if staff_instructions and staff_instructions.strip():
        return staff_instructions.strip()
    if organization_instructions and organization_instructions.strip():
        return organization_instructions.strip()
    return None


def build_email_context(
    donor,
    donations: list,
    instruction: str,
    organization_name: str | None = None,
    writing_instructions: str | None = None,
    signature: str | None = None,
) -> str:
    total = sum(d.amount for d in donations)
    parts = []
    if organization_name:
        parts.append(f"Organization: {organization_name}")
    parts.extend([
        f"Donor: {format_donor_name(donor)}",
        f"Greeting: {donor_salutation(donor)}",
        f"Total given: {format_amount(total)} across {len(donations)} donation(s)",
        "",
        "Donation history:",
        format_donation_history(donations),
    ])
    if writing_instructions:
        parts.extend(["", "Writing instructions:", writing_instructions])
    if signature:
        parts.extend(["", "Sign the email with:", signature])
    parts.extend(["", "Task:", instruction])
    return "\n".join(parts)


class EmailGenerator:
    def __init__(
        self,
        anthropic_client: ResilientAnthropicClient,
        model: str = "claude-sonnet-4-5",
        max_tokens: int = 4000,
    ) -> None:
        self.client = anthropic_client
        self.model = model
        self.max_tokens = max_tokens

    async def generate_email(
        self,
        donor,
        donations: list,
        instruction: str,
        organization=None,
        staff=None,
    ) -> GeneratedEmail:
        writing_instructions = resolve_writing_instructions(
            getattr(organization, "writing_instructions", None),
            getattr(staff, "writing_instructions", None),
        )
        context = build_email_context(
            donor,
            donations,
            instruction,
            organization_name=getattr(organization, "name", None),
            writing_instructions=writing_instructions,
            signature=getattr(staff, "signature", None),
        )
        error_context = ErrorContext(
            organization_id=getattr(organization, "id", None), tool_name="submit_email",
        )
        response = await self.client.create_message(
            model=self.model,
            max_tokens=self.max_tokens,
            system=_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": context}],
            tools=[SUBMIT_EMAIL_TOOL],
            tool_choice={"type": "tool", "name": "submit_email"},
            context=error_context,
        )

        payload = next(
            (
                b.input for b in response.content
                if getattr(b, "type", None) == "tool_use" and b.name == "submit_email"
            ),
            None,
        )
        if not isinstance(payload, dict):
            raise AnthropicAPIError(
                "Model did not call submit_email", "invalid_response", context=error_context,
            )

        email = GeneratedEmail(
            subject=str(payload.get("subject", "")).strip()[:100],
            reasoning=str(payload.get("reasoning", "")),
            email_content=str(payload.get("email_content", "")),
            response=str(payload.get("response", "")),
            tokens_used=response_tokens(response),
        )
        logger.info(
            f"Generated email for donor {donor.id}",
            extra={"organization_id": error_context.organization_id, "tokens": email.tokens_used},
        )
        return email


def response_tokens(response: object) -> int:
    """Sum input + output tokens from an API response."""
    usage = getattr(response, "usage", None)
    if not usage:
        return 0
    inp = getattr(usage, "input_tokens", 0) or 0
    out = getattr(usage, "output_tokens", 0) or 0
    return inp + out
