"""Project Data Access — organization-scoped campaigns.

Invariants:
    - Reads and writes filter projects.organization_id
    - Create pushes to the CRM only when the project has no external id; update always pushes
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.domain_types import ProjectOrderBy, SortDirection
from donor_crm.core.errors import ResourceNotFoundError
from donor_crm.models.project import Project
from donor_crm.schemas.project import ProjectCreate, ProjectListParams, ProjectUpdate
from donor_crm.services.query_filters import ilike_contains

logger = logging.getLogger(__name__)

_ORDER_COLUMNS = {
    ProjectOrderBy.NAME: Project.name,
    ProjectOrderBy.CREATED_AT: Project.created_at,
}


class ProjectRepository:
    def __init__(self, db: AsyncSession, organization_id: str, crm_sync=None):
        self.db = db
        self.organization_id = organization_id
        self.crm_sync = crm_sync

    async def get(self, project_id: int) -> Project | None:
        result = await self.db.execute(
            select(Project).where(
                Project.id == project_id, Project.organization_id == self.organization_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, project_id: int) -> Project:
        project = await self.get(project_id)
        if project is None:
            raise ResourceNotFoundError("Project", str(project_id))
        return project

    async def get_by_ids(self, project_ids: list[int]) -> list[Project]:
        if not project_ids:
            return []
        result = await self.db.execute(
            select(Project)
            .where(
                Project.id.in_(project_ids),
                Project.organization_id == self.organization_id,
            )
            .order_by(Project.id)
        )
        return list(result.scalars().all())

    async def create(self, data: ProjectCreate) -> Project:
        project = Project(organization_id=self.organization_id, **data.model_dump())
        self.db.add(project)
        await self.db.flush()
        logger.info(
            f"Project {project.id} created",
            extra={"organization_id": self.organization_id},
        )
        if self.crm_sync is not None and not project.external_id:
            await self.crm_sync.sync_project(self.organization_id, project)
        return project

    async def update(self, project_id: int, data: ProjectUpdate) -> Project:
        project = await self.get_or_404(project_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(project, key, value)
        project.updated_at = datetime.now(timezone.utc)
        await self.db.flush()
        if self.crm_sync is not None:
            await self.crm_sync.sync_project(self.organization_id, project)
        return project

    async def delete(self, project_id: int) -> None:
        project = await self.get_or_404(project_id)
        await self.db.delete(project)
        await self.db.flush()

    async def list_projects(self, params: ProjectListParams) -> tuple[list[Project], int]:
        clauses = [Project.organization_id == self.organization_id]
        if params.active is not None:
            clauses.append(Project.active.is_(params.active))
        if params.search_term:
            term = params.search_term.strip()
            clauses.append(or_(
                ilike_contains(Project.name, term),
                ilike_contains(Project.description, term),
            ))

        total = await self.db.scalar(select(func.count(Project.id)).where(*clauses))
        column = _ORDER_COLUMNS[params.order_by]
        order = column.asc() if params.order_direction == SortDirection.ASC else column.desc()
        result = await self.db.execute(
            select(Project).where(*clauses)
            .order_by(order, Project.id.asc())
            .limit(params.limit)
            .offset(params.offset)
        )
        return list(result.scalars().all()), total or 0
