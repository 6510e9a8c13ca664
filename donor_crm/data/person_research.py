"""Person Research Data Access — versioned research rows per donor.

Invariants:
    - save() flips every live row for the donor to not-live before inserting the new one
    - version = max(existing version) + 1, starting at 1
    - Reads are scoped to the organization
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.models.person_research import PersonResearch

logger = logging.getLogger(__name__)


class PersonResearchRepository:
    def __init__(self, db: AsyncSession, organization_id: str):
        self.db = db
        self.organization_id = organization_id

    async def save(
        self, donor_id: int, research_topic: str, research_data: dict, set_as_live: bool = True,
    ) -> PersonResearch:
        if set_as_live:
            await self.db.execute(
                update(PersonResearch)
                .where(PersonResearch.donor_id == donor_id, PersonResearch.is_live.is_(True))
                .values(is_live=False)
                .execution_options(synchronize_session="fetch")
            )
        latest = await self.db.scalar(
            select(func.max(PersonResearch.version)).where(PersonResearch.donor_id == donor_id)
        )
        row = PersonResearch(
            donor_id=donor_id,
            organization_id=self.organization_id,
            research_topic=research_topic,
            research_data=research_data,
            is_live=set_as_live,
            version=(latest or 0) + 1,
        )
        self.db.add(row)
        await self.db.flush()
        logger.info(
            f"Saved research for donor {donor_id}, version {row.version}",
            extra={"organization_id": self.organization_id},
        )
        return row

    async def get(self, donor_id: int, version: int | None = None) -> PersonResearch | None:
        """Live row by default; a specific version when given."""
        clauses = [
            PersonResearch.donor_id == donor_id,
            PersonResearch.organization_id == self.organization_id,
        ]
        if version is None:
            clauses.append(PersonResearch.is_live.is_(True))
        else:
            clauses.append(PersonResearch.version == version)
        result = await self.db.execute(
            select(PersonResearch).where(*clauses).order_by(PersonResearch.version.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_versions(self, donor_id: int) -> list[PersonResearch]:
        result = await self.db.execute(
            select(PersonResearch)
            .where(
                PersonResearch.donor_id == donor_id,
                PersonResearch.organization_id == self.organization_id,
            )
            .order_by(PersonResearch.version.desc())
        )
        return list(result.scalars().all())
