"""Person Research — web search + crawl + one LLM summary, stored per donor.

Invariants:
    - Search, crawl and LLM failures never raise: the caller gets an empty result
    - At most research_max_crawl_urls pages are crawled, concurrently
    - A result is stored only when at least one source was read
    - Stored research_data: {"answer", "citations", "totalSources", "timestamp",
      "highPotentialDonor", "highPotentialDonorRationale"}

Design Decisions:
    - Single search + single summary call (no reflection loop)
    - parse_json_answer has 3 fallback levels (direct, regex, raw text)
    - highPotentialDonor copied onto the donor row when the summary provides it
"""

import json
import logging
import re
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.errors import AnthropicAPIError, ErrorContext, ExternalServiceError
from donor_crm.data.donors import DonorRepository
from donor_crm.data.person_research import PersonResearchRepository
from donor_crm.infrastructure.anthropic_client import ResilientAnthropicClient
from donor_crm.infrastructure.search_client import WebSearchClient
from donor_crm.infrastructure.web_crawler import CrawledPage, WebCrawler
from donor_crm.models.person_research import PersonResearch
from donor_crm.services.email_generation import response_tokens

logger = logging.getLogger(__name__)

# Per-page share of the prompt; the crawler already caps each page at crawler_max_chars.
_PAGE_PROMPT_CHARS = 8000

_SYSTEM_PROMPT = """You summarize web pages about one person for a nonprofit's donor team.
Report ONLY what the pages say. If the pages are about someone else, say so.

Return ONLY a JSON object:
{
  "answer": "3-6 sentences about the person, citing sources as [1], [2]",
  "citations": [{"id": 1, "url": "exact page URL", "title": "page title"}],
  "highPotentialDonor": true or false,
  "highPotentialDonorRationale": "one sentence"
}"""


def parse_json_answer(text: str) -> dict:
    """Extract a JSON object from model text.

    Fallback levels:
    1. Direct json.loads
    2. Regex: first {...} block (handles ```json fences)
    3. Raw text as the answer with no citations
    """
    text = text.strip()

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    match = re.search(r"\{[\s\S]*\}", text)
    if match:
        try:
            parsed = json.loads(match.group())
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    logger.warning("Summary was not JSON, using raw text as answer")
    return {"answer": text[:2000], "citations": []}


def empty_research(reason: str = "Research unavailable.") -> dict:
    return {
        "answer": reason,
        "citations": [],
        "totalSources": 0,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "empty": True,
    }


def build_research_topic(donor) -> str:
    name = f"{donor.first_name} {donor.last_name}".strip()
    location = ", ".join(p for p in (donor.address, donor.state) if p)
    return f"{name} {location}".strip()


def _pages_prompt(topic: str, pages: list[CrawledPage], snippets: dict[str, str]) -> str:
    parts = [f"Person: {topic}", ""]
    for index, page in enumerate(pages, start=1):
        parts.append(f"[{index}] {page.title or page.url}")
        parts.append(f"URL: {page.url}")
        if snippets.get(page.url):
            parts.append(f"Snippet: {snippets[page.url]}")
        parts.append(page.text[:_PAGE_PROMPT_CHARS])
        parts.append("")
    return "\n".join(parts)


class PersonResearchService:
    def __init__(
        self,
        db: AsyncSession,
        organization_id: str,
        search: WebSearchClient,
        crawler: WebCrawler,
        anthropic_client: ResilientAnthropicClient,
        model: str = "claude-haiku-4-5-20251001",
        max_tokens: int = 2000,
        max_crawl_urls: int = 4,
    ) -> None:
        self.db = db
        self.organization_id = organization_id
        self.search = search
        self.crawler = crawler
        self.client = anthropic_client
        self.model = model
        self.max_tokens = max_tokens
        self.max_crawl_urls = max_crawl_urls
        self.donors = DonorRepository(db, organization_id)
        self.research = PersonResearchRepository(db, organization_id)

    async def research_donor(self, donor_id: int, topic: str | None = None) -> dict:
        """Research a donor and store the result as the live version.

        Returns {"research": research_data, "record": PersonResearch | None}.
        Raises only ResourceNotFoundError for an unknown donor.
        """
        donor = await self.donors.get_or_404(donor_id)
        topic = (topic or "").strip() or build_research_topic(donor)

        result = await self.run(topic)
        if result.get("empty"):
            return {"research": result, "record": None}

        record = await self.research.save(donor.id, topic, result)
        if isinstance(result.get("highPotentialDonor"), bool):
            donor.high_potential_donor = result["highPotentialDonor"]
            await self.db.flush()
        return {"research": result, "record": record}

    async def run(self, topic: str) -> dict:
        """Search, crawl and summarize without touching the database."""
        try:
            hits = await self.search.search(topic)
        except ExternalServiceError as e:
            logger.warning(
                f"Search failed for '{topic}': {e.message}",
                extra={"organization_id": self.organization_id},
            )
            return empty_research("Web search unavailable.")
        if not hits:
            return empty_research("No search results found.")

        snippets = {hit["link"]: hit["snippet"] for hit in hits}
        urls = [hit["link"] for hit in hits[: self.max_crawl_urls]]
        pages = [page for page in await self.crawler.crawl_many(urls) if page.ok]
        if not pages:
            return empty_research("None of the search results could be read.")

        try:
            response = await self.client.create_message(
                model=self.model,
                max_tokens=self.max_tokens,
                system=_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": _pages_prompt(topic, pages, snippets)}],
                context=ErrorContext(organization_id=self.organization_id),
            )
        except AnthropicAPIError as e:
            logger.error(
                f"Research summary failed: {e.message}",
                extra={"organization_id": self.organization_id},
            )
            return empty_research("Research summary unavailable.")

        text = "\n".join(
            b.text for b in response.content if getattr(b, "type", None) == "text"
        )
        if not text.strip():
            return empty_research("Research returned no text.")

        result = parse_json_answer(text)
        result.setdefault("answer", "")
        result.setdefault("citations", [])
        result["totalSources"] = len(pages)
        result["timestamp"] = datetime.now(timezone.utc).isoformat()
        result["tokensUsed"] = response_tokens(response)
        return result

    async def get_research(self, donor_id: int, version: int | None = None) -> PersonResearch | None:
        await self.donors.get_or_404(donor_id)
        return await self.research.get(donor_id, version)

    async def list_versions(self, donor_id: int) -> list[PersonResearch]:
        await self.donors.get_or_404(donor_id)
        return await self.research.list_versions(donor_id)
