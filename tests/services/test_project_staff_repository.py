"""Project and Staff Repositories — scoping, filters, and the single primary staff rule.

Tests cover:
    - Project create/list/filter by active and search term; foreign projects invisible
    - Staff email uniqueness per organization
    - set_primary clears the previous primary; unset_primary leaves none
"""

import pytest

from donor_crm.core.domain_types import ProjectOrderBy, SortDirection, StaffOrderBy
from donor_crm.core.errors import ConflictError, ResourceNotFoundError
from donor_crm.data.projects import ProjectRepository
from donor_crm.data.staff import StaffRepository
from donor_crm.schemas.project import ProjectCreate, ProjectListParams, ProjectUpdate
from donor_crm.schemas.staff import StaffCreate, StaffListParams, StaffUpdate
from tests.services.conftest import ORG_ID


# -- Projects -----------------------------------------------------------------


async def test_create_project(test_db, seed):
    project = await ProjectRepository(test_db, ORG_ID).create(ProjectCreate(
        name="  Food Bank ", goal=250_000, tags=["food"],
    ))
    assert project.name == "Food Bank"
    assert project.active is True


async def test_list_projects_active_only(test_db, seed):
    projects, total = await ProjectRepository(test_db, ORG_ID).list_projects(
        ProjectListParams(active=True),
    )
    assert total == 1
    assert projects[0].name == "Clean Water"


async def test_list_projects_search_description(test_db, seed):
    projects, _ = await ProjectRepository(test_db, ORG_ID).list_projects(
        ProjectListParams(search_term="RURAL"),
    )
    assert [p.id for p in projects] == [seed.water.id]


async def test_list_projects_ordered_by_name(test_db, seed):
    projects, total = await ProjectRepository(test_db, ORG_ID).list_projects(
        ProjectListParams(order_by=ProjectOrderBy.NAME, order_direction=SortDirection.ASC),
    )
    assert total == 2
    assert [p.name for p in projects] == ["Clean Water", "School Books"]


async def test_update_project(test_db, seed):
    project = await ProjectRepository(test_db, ORG_ID).update(
        seed.school.id, ProjectUpdate(active=True),
    )
    assert project.active is True
    assert project.goal == 100_000


async def test_foreign_project_not_found(test_db, seed):
    with pytest.raises(ResourceNotFoundError):
        await ProjectRepository(test_db, ORG_ID).get_or_404(seed.other_project.id)


async def test_get_by_ids_drops_foreign(test_db, seed):
    projects = await ProjectRepository(test_db, ORG_ID).get_by_ids(
        [seed.water.id, seed.other_project.id],
    )
    assert [p.id for p in projects] == [seed.water.id]


# -- Staff --------------------------------------------------------------------


async def test_create_staff_duplicate_email_conflicts(test_db, seed):
    with pytest.raises(ConflictError):
        await StaffRepository(test_db, ORG_ID).create(StaffCreate(
            first_name="Sam", last_name="Again", email="SAM@hope.example.org",
        ))


async def test_update_staff_email_conflicts(test_db, seed):
    with pytest.raises(ConflictError):
        await StaffRepository(test_db, ORG_ID).update(
            seed.primary_staff.id, StaffUpdate(email="sam@hope.example.org"),
        )


async def test_list_staff_search(test_db, seed):
    staff, total = await StaffRepository(test_db, ORG_ID).list_staff(
        StaffListParams(search_term="sam riv", order_by=StaffOrderBy.FIRST_NAME),
    )
    assert total == 1
    assert staff[0].id == seed.staff.id


async def test_get_primary(test_db, seed):
    assert (await StaffRepository(test_db, ORG_ID).get_primary()).id == seed.primary_staff.id


async def test_set_primary_moves_the_flag(test_db, seed):
    repo = StaffRepository(test_db, ORG_ID)
    await repo.set_primary(seed.staff.id)

    staff, _ = await repo.list_staff(StaffListParams())
    primaries = [s.id for s in staff if s.is_primary]
    assert primaries == [seed.staff.id]


async def test_unset_primary(test_db, seed):
    repo = StaffRepository(test_db, ORG_ID)
    await repo.unset_primary(seed.primary_staff.id)
    assert await repo.get_primary() is None


async def test_set_primary_for_foreign_staff_is_not_found(test_db, seed):
    with pytest.raises(ResourceNotFoundError):
        await StaffRepository(test_db, ORG_ID).set_primary(seed.other_staff.id)
