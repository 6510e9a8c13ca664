"""Organization ORM — tenant root and its CRM integrations.

Invariants:
    - id is the external auth-provider string id (not generated here)
    - donor_journey is a graph {"nodes": [...], "edges": [...]}; empty graph by default
    - At most one integration per organization is expected to be active

Design Decisions:
    - JSON (not JSONB) columns: identical behavior under SQLite test runs
"""

from datetime import datetime, timezone

from sqlalchemy import String, Text, Boolean, DateTime, JSON, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from donor_crm.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _empty_journey() -> dict:
    return {"nodes": [], "edges": []}


class Organization(Base):
    """Organization — every donor, project and staff row belongs to one."""
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    website_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    website_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    writing_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    donor_journey: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=_empty_journey,
    )
    memory: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    integrations: Mapped[list["OrganizationIntegration"]] = relationship(
        "OrganizationIntegration", back_populates="organization",
        cascade="all, delete-orphan",
    )


class OrganizationIntegration(Base):
    """External CRM credentials for one organization."""
    __tablename__ = "organization_integrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False,
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    provider_metadata: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )

    organization: Mapped["Organization"] = relationship(
        "Organization", back_populates="integrations",
    )
