"""Donor ORM — an individual or a couple giving to the organization.

Invariants:
    - (email, organization_id) unique; (external_id, organization_id) unique
    - notes is a JSON list of {"createdAt", "createdBy", "content"} (append-only via data/donors.py)
    - Couples carry his_*/her_* names; display_name wins when set
    - external_id carries the CRM provider prefix ("salesforce_003...")
"""

from datetime import datetime

from sqlalchemy import (
    String, Text, Boolean, DateTime, JSON, ForeignKey, Integer, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from donor_crm.db.base import Base
from donor_crm.models.organization import _utcnow


class Donor(Base):
    __tablename__ = "donors"
    __table_args__ = (
        UniqueConstraint("email", "organization_id", name="uq_donors_email_org"),
        UniqueConstraint("external_id", "organization_id", name="uq_donors_external_id_org"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    his_title: Mapped[str | None] = mapped_column(String(50), nullable=True)
    his_first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    his_initial: Mapped[str | None] = mapped_column(String(10), nullable=True)
    his_last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    her_title: Mapped[str | None] = mapped_column(String(50), nullable=True)
    her_first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    her_initial: Mapped[str | None] = mapped_column(String(10), nullable=True)
    her_last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_couple: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(10), nullable=True)
    notes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    assigned_to_staff_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True,
    )
    current_stage_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    classification_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)
    predicted_actions: Mapped[list | None] = mapped_column(JSON, nullable=True)
    high_potential_donor: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    assigned_staff: Mapped["Staff | None"] = relationship("Staff", lazy="selectin")
    donations: Mapped[list["Donation"]] = relationship(
        "Donation", back_populates="donor", cascade="all, delete-orphan", passive_deletes=True,
    )
