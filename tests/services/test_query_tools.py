"""Donor Query Tools — fixed lookups and flexible templates behind the WhatsApp tools.

Tests cover:
    - find_donors_by_name matches name or email, ordered by donation count
    - get_donor_details nests assigned staff; foreign donor → None
    - get_donation_history newest first; foreign donor → []
    - get_donor_statistics / get_top_donors totals
    - Flexible templates: by project, by date, project donations, donor project history
      (window totals), custom donor search
"""

from datetime import datetime

import pytest

from donor_crm.core.errors import ValidationError
from donor_crm.schemas.query import FlexibleQuery
from donor_crm.services.query_tools import DonorQueryTools
from tests.services.conftest import ORG_ID


@pytest.fixture
def tools(test_db):
    return DonorQueryTools(test_db, ORG_ID)


def _flex(query_type, **fields):
    return FlexibleQuery.model_validate({"queryType": query_type, **fields})


async def test_find_donors_by_name(tools, seed):
    rows = await tools.find_donors_by_name("doe")
    assert [r["id"] for r in rows] == [seed.couple.id]
    assert rows[0]["totalDonations"] == 100_000


async def test_find_donors_by_name_orders_by_donation_count(tools, seed):
    rows = await tools.find_donors_by_name("example.com")
    assert [r["firstName"] for r in rows] == ["Ana", "John", "Ben"]


async def test_find_donors_by_name_ignores_other_organizations(tools, seed):
    rows = await tools.find_donors_by_name("elsewhere")
    assert rows == []


async def test_get_donor_details(tools, seed):
    donor = await tools.get_donor_details(seed.ana.id)
    assert donor["assignedStaff"]["firstName"] == "Sam"
    assert donor["donationCount"] == 3
    assert donor["totalDonations"] == 40_000


async def test_get_donor_details_unassigned(tools, seed):
    donor = await tools.get_donor_details(seed.ben.id)
    assert donor["assignedStaff"] is None
    assert donor["totalDonations"] == 0


async def test_get_donor_details_foreign(tools, seed):
    assert await tools.get_donor_details(seed.other_donor.id) is None


async def test_get_donation_history(tools, seed):
    rows = await tools.get_donation_history(seed.ana.id, limit=2)
    assert [r["amount"] for r in rows] == [25_000, 5_000]
    assert rows[0]["projectName"] == "Clean Water"


async def test_get_donation_history_foreign(tools, seed):
    assert await tools.get_donation_history(seed.other_donor.id) == []


async def test_get_donor_statistics(tools, seed):
    stats = await tools.get_donor_statistics()
    assert stats["totalDonors"] == 3
    assert stats["totalDonationAmount"] == 140_000
    assert stats["averageDonationAmount"] == 35_000


async def test_get_top_donors_skips_donors_without_gifts(tools, seed):
    rows = await tools.get_top_donors()
    assert [r["firstName"] for r in rows] == ["John", "Ana"]


# -- Flexible templates --------------------------------------------------------


async def test_donations_by_project(tools, seed):
    rows = await tools.execute_flexible_query(_flex(
        "donor-donations-by-project", donorName="ana", projectName="water",
    ))
    assert [r["donationAmount"] for r in rows] == [25_000, 10_000]
    assert rows[0]["projectDescription"] == "Wells in rural areas"


async def test_donations_by_date(tools, seed):
    rows = await tools.execute_flexible_query(_flex(
        "donor-donations-by-date",
        startDate=datetime(2024, 1, 1).isoformat(),
        endDate=datetime(2024, 12, 31).isoformat(),
    ))
    assert sorted(r["donationAmount"] for r in rows) == [25_000, 100_000]


async def test_project_donations_amount_range(tools, seed):
    rows = await tools.execute_flexible_query(_flex(
        "project-donations", projectId=seed.school.id, minAmount=10_000,
    ))
    assert [r["donorEmail"] for r in rows] == ["does@example.com"]


async def test_donor_project_history_window_totals(tools, seed):
    rows = await tools.execute_flexible_query(_flex(
        "donor-project-history", donorId=seed.ana.id,
    ))
    assert len(rows) == 3
    totals = {r["projectName"]: r["projectTotalFromDonor"] for r in rows}
    assert totals == {"Clean Water": 35_000, "School Books": 5_000}
    counts = {r["projectName"]: r["projectDonationCount"] for r in rows}
    assert counts == {"Clean Water": 2, "School Books": 1}


async def test_donor_project_history_requires_donor(tools, seed):
    with pytest.raises(ValidationError):
        await tools.execute_flexible_query(_flex("donor-project-history"))


async def test_custom_donor_search_by_assigned_staff(tools, seed):
    rows = await tools.execute_flexible_query(_flex(
        "custom-donor-search", assignedStaff="rivera",
    ))
    assert [r["id"] for r in rows] == [seed.ana.id]
    assert rows[0]["assignedStaffName"] == "Sam Rivera"


async def test_custom_donor_search_flags_and_min_total(tools, seed):
    rows = await tools.execute_flexible_query(_flex(
        "custom-donor-search", isCouple=False, minAmount=1,
    ))
    assert [r["id"] for r in rows] == [seed.ana.id]


async def test_custom_donor_search_limit(tools, seed):
    rows = await tools.execute_flexible_query(_flex("custom-donor-search", limit=1))
    assert [r["id"] for r in rows] == [seed.couple.id]
