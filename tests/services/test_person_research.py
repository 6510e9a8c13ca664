"""Person Research — search, crawl, summarize and store donor research.

Tests cover:
    - parse_json_answer fallbacks (direct JSON, fenced JSON, raw text)
    - build_research_topic from name and location
    - run(): search failure (HTTP or non-JSON body), no hits, unreadable pages, LLM failure
      → empty results
    - research_donor stores a live version and copies highPotentialDonor onto the donor
    - Re-research bumps the version and demotes the previous live row
"""

import json

import httpx
import pytest

from donor_crm.core.errors import AnthropicAPIError, ResourceNotFoundError
from donor_crm.infrastructure.search_client import GOOGLE_SEARCH_URL, WebSearchClient
from donor_crm.infrastructure.web_crawler import WebCrawler
from donor_crm.services.person_research import (
    PersonResearchService, build_research_topic, parse_json_answer,
)
from tests.services.conftest import ORG_ID
from tests.services.mock_anthropic import text_response

_PROFILE_URL = "https://news.example.com/ana-silva"
_BLOG_URL = "https://blog.example.com/ana"

_SUMMARY = {
    "answer": "Ana Silva founded a water charity [1].",
    "citations": [{"id": 1, "url": _PROFILE_URL, "title": "Profile"}],
    "highPotentialDonor": True,
    "highPotentialDonorRationale": "Long record of giving.",
}


def _search_hits(*links):
    return httpx.Response(200, json={"items": [
        {"title": f"Result {i}", "link": link, "snippet": f"snippet {i}"}
        for i, link in enumerate(links, start=1)
    ]})


def _html(title, body):
    return httpx.Response(
        200, text=f"<html><head><title>{title}</title></head><body><p>{body}</p></body></html>",
    )


@pytest.fixture
def service(test_db, http_client, mock_anthropic):
    return PersonResearchService(
        test_db,
        ORG_ID,
        WebSearchClient(http_client, "key", "engine"),
        WebCrawler(http_client, max_retries=0),
        mock_anthropic,
        model="test-model",
        max_crawl_urls=2,
    )


# -- Pure helpers --------------------------------------------------------------


def test_parse_json_answer_direct():
    assert parse_json_answer(json.dumps(_SUMMARY)) == _SUMMARY


def test_parse_json_answer_fenced():
    text = "Here you go:\n```json\n" + json.dumps(_SUMMARY) + "\n```"
    assert parse_json_answer(text)["highPotentialDonor"] is True


def test_parse_json_answer_raw_text():
    assert parse_json_answer("  Nothing useful found.  ") == {
        "answer": "Nothing useful found.", "citations": [],
    }


def test_build_research_topic(seed):
    assert build_research_topic(seed.ben) == "Ben Okafor NY"
    assert build_research_topic(seed.couple) == "John Doe"


# -- Degraded runs -------------------------------------------------------------


async def test_search_failure_returns_empty(service, external_http):
    external_http.routes[GOOGLE_SEARCH_URL] = httpx.Response(500)
    result = await service.run("Ana Silva")
    assert result["empty"] is True
    assert result["answer"] == "Web search unavailable."


async def test_non_json_search_response_returns_empty(service, external_http):
    external_http.routes[GOOGLE_SEARCH_URL] = httpx.Response(200, text="<html>quota page</html>")
    result = await service.run("Ana Silva")
    assert result["answer"] == "Web search unavailable."


async def test_no_hits_returns_empty(service, external_http):
    external_http.routes[GOOGLE_SEARCH_URL] = httpx.Response(200, json={})
    result = await service.run("Ana Silva")
    assert result["answer"] == "No search results found."


async def test_unreadable_pages_return_empty(service, external_http, mock_anthropic):
    external_http.routes[GOOGLE_SEARCH_URL] = _search_hits(_PROFILE_URL)
    result = await service.run("Ana Silva")
    assert result["answer"] == "None of the search results could be read."
    assert mock_anthropic.calls == []


async def test_llm_failure_returns_empty(service, external_http, mock_anthropic):
    external_http.routes[GOOGLE_SEARCH_URL] = _search_hits(_PROFILE_URL)
    external_http.routes[_PROFILE_URL] = _html("Profile", "Ana Silva runs a charity.")
    mock_anthropic.queue(AnthropicAPIError("overloaded", "overloaded"))

    result = await service.run("Ana Silva")
    assert result["answer"] == "Research summary unavailable."


# -- Stored research -----------------------------------------------------------


async def test_research_donor_stores_live_version(
    service, seed, external_http, mock_anthropic, test_db,
):
    external_http.routes[GOOGLE_SEARCH_URL] = _search_hits(
        _PROFILE_URL, _BLOG_URL, "https://third.example.com/",
    )
    external_http.routes[_PROFILE_URL] = _html("Profile", "Ana Silva runs a charity.")
    external_http.routes[_BLOG_URL] = _html("Blog", "Ana spoke at a gala.")
    mock_anthropic.queue(text_response(json.dumps(_SUMMARY)))

    outcome = await service.research_donor(seed.ben.id, topic="Ana Silva Springfield")

    research = outcome["research"]
    assert research["answer"] == _SUMMARY["answer"]
    assert research["totalSources"] == 2
    assert research["tokensUsed"] == 150
    record = outcome["record"]
    assert record.version == 1
    assert record.is_live is True
    assert record.research_topic == "Ana Silva Springfield"
    assert seed.ben.high_potential_donor is True

    prompt = mock_anthropic.calls[0]["messages"][0]["content"]
    assert "[1] Profile" in prompt
    assert "Snippet: snippet 2" in prompt
    assert "third.example.com" not in prompt


async def test_second_research_demotes_previous(service, seed, external_http, mock_anthropic):
    external_http.routes[GOOGLE_SEARCH_URL] = _search_hits(_PROFILE_URL)
    external_http.routes[_PROFILE_URL] = _html("Profile", "Ana Silva runs a charity.")
    mock_anthropic.queue(
        text_response(json.dumps(_SUMMARY)),
        text_response("Plain text summary."),
    )

    await service.research_donor(seed.ana.id)
    second = await service.research_donor(seed.ana.id)
    assert second["record"].version == 2

    live = await service.get_research(seed.ana.id)
    assert live.version == 2
    assert live.research_data["answer"] == "Plain text summary."
    versions = await service.list_versions(seed.ana.id)
    assert [(v.version, v.is_live) for v in versions] == [(2, True), (1, False)]


async def test_empty_research_is_not_stored(service, seed, external_http):
    external_http.routes[GOOGLE_SEARCH_URL] = httpx.Response(200, json={"items": []})
    outcome = await service.research_donor(seed.ana.id)
    assert outcome["record"] is None
    assert await service.get_research(seed.ana.id) is None


async def test_research_foreign_donor(service, seed):
    with pytest.raises(ResourceNotFoundError):
        await service.research_donor(seed.other_donor.id)
