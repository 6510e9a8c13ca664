"""LLM-backed routes — email drafts, donor research and website summaries.

Tests cover:
    - Email writer resolution: assigned staff instructions and signature, else primary staff
      with the organization's instructions
    - Email LLM failure → 503; foreign donor → 404
    - Research run stored as live version, readable by version; degraded run stores nothing
    - Website summary refresh: updated true on success, false when the site cannot be read
"""

import httpx

from donor_crm.api.dependencies import get_search_client
from donor_crm.core.errors import AnthropicAPIError
from donor_crm.infrastructure.search_client import GOOGLE_SEARCH_URL, WebSearchClient
from donor_crm.main import app
from tests.services.mock_anthropic import text_response, tool_response

_EMAIL = {
    "subject": "Thank you",
    "reasoning": "Recent gift to Clean Water",
    "email_content": "Dear friend, ...",
    "response": "Draft ready",
}


# -- Emails --------------------------------------------------------------------


async def test_email_uses_assigned_staff(client, seed, org_headers, mock_anthropic):
    mock_anthropic.queue(tool_response("submit_email", _EMAIL))
    response = await client.post(
        "/api/v1/emails/generate", json={"donor_id": seed.ana.id}, headers=org_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["donor_id"] == seed.ana.id
    assert body["subject"] == "Thank you"
    assert body["tokens_used"] == 280

    prompt = mock_anthropic.calls[0]["messages"][0]["content"]
    assert "Use first names." in prompt
    assert "Warm and brief." not in prompt
    assert "Sam Rivera\nHope Water" in prompt
    assert "Clean Water" in prompt


async def test_email_falls_back_to_primary_staff(client, seed, org_headers, mock_anthropic):
    mock_anthropic.queue(tool_response("submit_email", _EMAIL))
    await client.post(
        "/api/v1/emails/generate",
        json={"donor_id": seed.ben.id, "instruction": "Invite them to the gala"},
        headers=org_headers,
    )
    prompt = mock_anthropic.calls[0]["messages"][0]["content"]
    assert "Warm and brief." in prompt
    assert "Invite them to the gala" in prompt
    assert "No previous donations." in prompt


async def test_email_without_tool_call_is_503(client, seed, org_headers, mock_anthropic):
    mock_anthropic.queue(text_response("Here is an email"))
    response = await client.post(
        "/api/v1/emails/generate", json={"donor_id": seed.ana.id}, headers=org_headers,
    )
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "ANTHROPIC_API_ERROR"


async def test_email_llm_error_is_503(client, seed, org_headers, mock_anthropic):
    mock_anthropic.queue(AnthropicAPIError("overloaded", "overloaded_error"))
    response = await client.post(
        "/api/v1/emails/generate", json={"donor_id": seed.ana.id}, headers=org_headers,
    )
    assert response.status_code == 503


async def test_email_foreign_donor(client, seed, org_headers, mock_anthropic):
    response = await client.post(
        "/api/v1/emails/generate", json={"donor_id": seed.other_donor.id}, headers=org_headers,
    )
    assert response.status_code == 404
    assert mock_anthropic.calls == []


# -- Research ------------------------------------------------------------------


async def test_research_search_failure_stores_nothing(client, seed, org_headers):
    response = await client.post(
        f"/api/v1/research/donors/{seed.ana.id}", json={}, headers=org_headers,
    )
    body = response.json()
    assert response.status_code == 200
    assert body["research"]["answer"] == "Web search unavailable."
    assert body["record"] is None

    missing = await client.get(f"/api/v1/research/donors/{seed.ana.id}", headers=org_headers)
    assert missing.status_code == 404


async def test_research_stored_and_versioned(
    client, seed, org_headers, external_http, mock_anthropic,
):
    app.dependency_overrides[get_search_client] = (
        lambda: WebSearchClient(app.state.http_client, "key", "engine")
    )
    page = "https://news.example.com/ana"
    external_http.routes[GOOGLE_SEARCH_URL] = httpx.Response(200, json={"items": [
        {"title": "Ana profile", "link": page, "snippet": "Philanthropist"},
    ]})
    external_http.routes[page] = httpx.Response(
        200, text="<html><head><title>Ana</title></head><body><p>Gives often.</p></body></html>",
    )
    mock_anthropic.queue(
        text_response('{"answer": "First", "citations": [], "highPotentialDonor": true}'),
        text_response('{"answer": "Second", "citations": []}'),
    )

    first = await client.post(
        f"/api/v1/research/donors/{seed.ana.id}",
        json={"research_topic": "Ana Silva water charity"},
        headers=org_headers,
    )
    assert first.json()["record"]["version"] == 1
    assert first.json()["record"]["research_topic"] == "Ana Silva water charity"
    await client.post(f"/api/v1/research/donors/{seed.ana.id}", json={}, headers=org_headers)

    live = await client.get(f"/api/v1/research/donors/{seed.ana.id}", headers=org_headers)
    assert live.json()["version"] == 2
    assert live.json()["research_data"]["answer"] == "Second"

    older = await client.get(
        f"/api/v1/research/donors/{seed.ana.id}", params={"version": 1}, headers=org_headers,
    )
    assert older.json()["is_live"] is False

    versions = await client.get(
        f"/api/v1/research/donors/{seed.ana.id}/versions", headers=org_headers,
    )
    assert sorted(v["version"] for v in versions.json()) == [1, 2]

    donor = await client.get(f"/api/v1/donors/{seed.ana.id}", headers=org_headers)
    assert donor.json()["high_potential_donor"] is True


async def test_research_foreign_donor(client, seed, org_headers):
    response = await client.post(
        f"/api/v1/research/donors/{seed.other_donor.id}", json={}, headers=org_headers,
    )
    assert response.status_code == 404


# -- Website summary -----------------------------------------------------------


async def test_website_summary_updated(client, seed, org_headers, external_http, mock_anthropic):
    external_http.routes["https://hope.example.org/"] = httpx.Response(
        200, text="<html><head><title>Hope</title></head><body><p>Wells.</p></body></html>",
    )
    mock_anthropic.queue(text_response("Hope Water builds wells."))

    response = await client.post(
        "/api/v1/organizations/current/website-summary", headers=org_headers,
    )
    assert response.json() == {
        "organization_id": seed.organization.id,
        "website_summary": "Hope Water builds wells.",
        "updated": True,
    }
    current = await client.get("/api/v1/organizations/current", headers=org_headers)
    assert current.json()["website_summary"] == "Hope Water builds wells."


async def test_website_summary_unreadable_site(client, seed, org_headers, mock_anthropic):
    response = await client.post(
        "/api/v1/organizations/current/website-summary", headers=org_headers,
    )
    body = response.json()
    assert body["updated"] is False
    assert body["website_summary"] is None
    assert mock_anthropic.calls == []
