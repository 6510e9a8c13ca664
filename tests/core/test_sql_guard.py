"""SQL Guard — tests for raw-SQL security heuristics.

Tests cover:
    - Blocklist keywords and stacked statements rejected
    - Only SELECT / WITH / INSERT / UPDATE accepted
    - Organization filter rules for direct and indirect (donations) tables
    - Keywords inside string literals do not trip the blocklist
    - classify_error / suggest_fix hints
"""

import pytest

from donor_crm.core.domain_types import SqlErrorType
from donor_crm.core.errors import SQLSecurityError
from donor_crm.core.sql_guard import (
    classify_error,
    normalize_query,
    referenced_tables,
    strip_string_literals,
    suggest_fix,
    validate_sql,
)

ORG = "org_abc"


# -- validate_sql: accepted ---------------------------------------------------


def test_select_with_org_filter_is_accepted():
    validate_sql(f"SELECT * FROM donors WHERE organization_id = '{ORG}'", ORG)


def test_trailing_semicolon_is_tolerated():
    validate_sql(f"SELECT id FROM projects WHERE organization_id = '{ORG}';", ORG)


def test_donations_joined_to_donors_is_accepted():
    validate_sql(
        "SELECT d.amount FROM donations d JOIN donors ON donors.id = d.donor_id "
        f"WHERE donors.organization_id = '{ORG}'",
        ORG,
    )


def test_insert_into_donations_needs_no_org_column():
    validate_sql(
        "INSERT INTO donations (donor_id, project_id, amount) VALUES (1, 2, 500)", ORG,
    )


def test_update_note_containing_blocked_words_is_accepted():
    validate_sql(
        "UPDATE donors SET classification_reasoning = 'asked us to delete from list -- later' "
        f"WHERE id = 3 AND organization_id = '{ORG}'",
        ORG,
    )


def test_cte_select_is_accepted():
    validate_sql(
        f"WITH t AS (SELECT id FROM donors WHERE organization_id = '{ORG}') SELECT * FROM t",
        ORG,
    )


# -- validate_sql: rejected ---------------------------------------------------


@pytest.mark.parametrize("query", [
    "DROP TABLE donors",
    "TRUNCATE donors",
    f"DELETE FROM donors WHERE organization_id = '{ORG}'",
    "ALTER TABLE donors ADD COLUMN x int",
    "GRANT ALL ON donors TO public",
    f"SELECT * FROM donors WHERE organization_id = '{ORG}' -- comment",
    f"SELECT * FROM donors /* hi */ WHERE organization_id = '{ORG}'",
])
def test_blocklisted_operations_are_rejected(query):
    with pytest.raises(SQLSecurityError) as exc:
        validate_sql(query, ORG)
    assert "Dangerous" in exc.value.message


def test_stacked_statements_are_rejected():
    with pytest.raises(SQLSecurityError, match="Multiple statements"):
        validate_sql(
            f"SELECT 1 FROM donors WHERE organization_id = '{ORG}'; SELECT 2", ORG,
        )


def test_unknown_statement_kind_is_rejected():
    with pytest.raises(SQLSecurityError, match="not allowed"):
        validate_sql("VACUUM donors", ORG)


def test_select_without_org_filter_is_rejected():
    with pytest.raises(SQLSecurityError, match="organization_id"):
        validate_sql("SELECT * FROM donors", ORG)


def test_select_with_other_org_literal_is_rejected():
    with pytest.raises(SQLSecurityError, match="organization_id"):
        validate_sql("SELECT * FROM staff WHERE organization_id = 'someone_else'", ORG)


def test_donations_without_donor_join_are_rejected():
    with pytest.raises(SQLSecurityError, match="donations"):
        validate_sql("SELECT * FROM donations", ORG)


def test_insert_into_donors_without_org_is_rejected():
    with pytest.raises(SQLSecurityError, match="INSERT into donors"):
        validate_sql(
            "INSERT INTO donors (first_name, last_name, email) VALUES ('a', 'b', 'c@d.e')", ORG,
        )


def test_restricted_tables_are_rejected():
    with pytest.raises(SQLSecurityError, match="organization_integrations"):
        validate_sql(
            f"SELECT access_token FROM organization_integrations WHERE organization_id = '{ORG}'",
            ORG,
        )


def test_system_catalog_is_rejected():
    with pytest.raises(SQLSecurityError, match="pg_"):
        validate_sql("SELECT * FROM pg_catalog.pg_tables", ORG)


# -- helpers ------------------------------------------------------------------


def test_normalize_query_lowercases_and_drops_semicolon():
    assert normalize_query("  SELECT 1;  ") == "select 1"


def test_strip_string_literals_handles_escaped_quotes():
    assert strip_string_literals("select 'it''s; drop table' from x") == "select '' from x"


def test_referenced_tables_collects_from_join_update_into():
    tables = referenced_tables(
        "select * from donors join donations on true join public.projects p on true"
    )
    assert {"donors", "donations", "projects", "public"} <= tables


# -- classify_error / suggest_fix --------------------------------------------


def test_classify_syntax_error():
    assert classify_error('syntax error at or near "FORM"') == SqlErrorType.SYNTAX


def test_classify_security_error():
    assert classify_error("Dangerous SQL operation detected: truncate") == SqlErrorType.SECURITY


def test_classify_missing_relation_as_runtime():
    assert classify_error('relation "donorz" does not exist') == SqlErrorType.RUNTIME


def test_classify_unknown():
    assert classify_error("something odd happened") == SqlErrorType.UNKNOWN


def test_suggest_fix_points_at_syntax_token():
    hint = suggest_fix('syntax error at or near "form"', "select * form donors")
    assert '"form"' in hint


def test_suggest_fix_for_missing_org_filter_on_insert():
    hint = suggest_fix("must include organization_id", "INSERT INTO donors ...", ORG)
    assert f"'{ORG}'" in hint and "INSERT" in hint


def test_suggest_fix_lists_tables_for_missing_relation():
    hint = suggest_fix('relation "donorz" does not exist', "select * from donorz")
    assert "donors" in hint and "donations" in hint


def test_suggest_fix_unterminated_quote():
    hint = suggest_fix("unterminated quoted string at or near", "select 'x")
    assert hint is not None


def test_suggest_fix_returns_none_when_nothing_applies():
    assert suggest_fix("deadlock detected", "select 1") is None
