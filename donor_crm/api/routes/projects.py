"""Project Routes — fundraising campaigns donations are attributed to."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.api.dependencies import get_project_repository
from donor_crm.core.domain_types import ProjectOrderBy, SortDirection
from donor_crm.data.projects import ProjectRepository
from donor_crm.infrastructure.database import get_db
from donor_crm.schemas.project import (
    ProjectCreate, ProjectListParams, ProjectResponse, ProjectUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/projects", tags=["projects"])


@router.get("")
async def list_projects(
    active: bool | None = Query(None),
    search_term: str | None = Query(None, max_length=255),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    order_by: ProjectOrderBy = Query(ProjectOrderBy.CREATED_AT),
    order_direction: SortDirection = Query(SortDirection.DESC),
    repo: ProjectRepository = Depends(get_project_repository),
):
    params = ProjectListParams(
        active=active,
        search_term=search_term,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_direction=order_direction,
    )
    items, total = await repo.list_projects(params)
    return {
        "projects": [
            ProjectResponse.model_validate(p).model_dump(mode="json") for p in items
        ],
        "total_count": total,
    }


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    repo: ProjectRepository = Depends(get_project_repository),
    db: AsyncSession = Depends(get_db),
):
    project = await repo.create(body)
    await db.commit()
    await db.refresh(project)
    return project


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: int, repo: ProjectRepository = Depends(get_project_repository)):
    return await repo.get_or_404(project_id)


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    body: ProjectUpdate,
    repo: ProjectRepository = Depends(get_project_repository),
    db: AsyncSession = Depends(get_db),
):
    project = await repo.update(project_id, body)
    await db.commit()
    await db.refresh(project)
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: int,
    repo: ProjectRepository = Depends(get_project_repository),
    db: AsyncSession = Depends(get_db),
):
    await repo.delete(project_id)
    await db.commit()
