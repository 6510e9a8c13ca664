"""PersonResearch ORM — versioned web research results about a donor.

Invariants:
    - At most one is_live row per donor (previous rows flipped when a new one is stored)
    - version increments per donor starting at 1
    - research_data holds {"answer", "citations", "totalSources", "timestamp"}
"""

from datetime import datetime

from sqlalchemy import String, Text, Boolean, DateTime, JSON, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from donor_crm.db.base import Base
from donor_crm.models.organization import _utcnow


class PersonResearch(Base):
    __tablename__ = "person_research"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    donor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("donors.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    organization_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False,
    )
    research_topic: Mapped[str] = mapped_column(Text, nullable=False)
    research_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    is_live: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )
