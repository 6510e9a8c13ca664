"""Domain Types — verifies rich type definitions and enum values.

Tests:
    - NewType wrappers exist and are callable
    - Enums serialize to the strings the LLM tools and API use
    - Text-only operations are exactly contains / starts_with / ends_with
"""

import json

from donor_crm.core.domain_types import (
    ActivityType, AmountCents, DonorId, FilterOperation, FlexibleQueryType,
    OrganizationId, QueryType, SqlErrorType, TEXT_OPERATIONS,
)


def test_identity_types_wrap_primitives():
    assert OrganizationId("org_hope") == "org_hope"
    assert DonorId(7) == 7
    assert AmountCents(10_000) == 10_000


def test_query_types_use_camel_case():
    assert QueryType("findDonors") is QueryType.FIND_DONORS
    assert QueryType.PROJECT_STATS.value == "projectStats"


def test_flexible_query_types_use_kebab_case():
    assert {t.value for t in FlexibleQueryType} == {
        "donor-donations-by-project",
        "donor-donations-by-date",
        "project-donations",
        "donor-project-history",
        "custom-donor-search",
    }


def test_text_operations():
    assert TEXT_OPERATIONS == {
        FilterOperation.CONTAINS, FilterOperation.STARTS_WITH, FilterOperation.ENDS_WITH,
    }


def test_enums_serialize_as_strings():
    payload = {"type": SqlErrorType.SECURITY, "activity": ActivityType.PERMISSION_DENIED}
    assert json.loads(json.dumps(payload)) == {
        "type": "security", "activity": "permission_denied",
    }
