"""Website Summary — crawl the organization's own site and store a short summary.

Invariants:
    - Only pages on the website_url host are crawled (max website_max_pages)
    - No pages or a failed LLM call leave the stored summary untouched and return None
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.core.errors import AnthropicAPIError, ErrorContext, ValidationError
from donor_crm.data.organizations import get_organization_or_404
from donor_crm.infrastructure.anthropic_client import ResilientAnthropicClient
from donor_crm.infrastructure.web_crawler import WebCrawler

logger = logging.getLogger(__name__)

_PAGE_PROMPT_CHARS = 6000

_SYSTEM_PROMPT = (
    "Summarize this nonprofit's website for staff who write to donors. "
    "Cover mission, programs, impact figures and tone of voice in at most 300 words. "
    "Use only what the pages say. Answer in plain text."
)


class WebsiteSummaryService:
    def __init__(
        self,
        db: AsyncSession,
        crawler: WebCrawler,
        anthropic_client: ResilientAnthropicClient,
        model: str,
        max_tokens: int = 2000,
        max_pages: int = 5,
    ) -> None:
        self.db = db
        self.crawler = crawler
        self.client = anthropic_client
        self.model = model
        self.max_tokens = max_tokens
        self.max_pages = max_pages

    async def summarize(self, organization_id: str) -> str | None:
        organization = await get_organization_or_404(self.db, organization_id)
        if not organization.website_url:
            raise ValidationError("Organization has no website URL", "website_url")

        pages = await self.crawler.crawl_site(organization.website_url, self.max_pages)
        if not pages:
            logger.warning(
                f"No readable pages at {organization.website_url}",
                extra={"organization_id": organization_id},
            )
            return None

        content = "\n\n".join(
            f"## {page.title or page.url}\n{page.text[:_PAGE_PROMPT_CHARS]}" for page in pages
        )
        try:
            response = await self.client.create_message(
                model=self.model,
                max_tokens=self.max_tokens,
                system=_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": content}],
                context=ErrorContext(organization_id=organization_id),
            )
        except AnthropicAPIError as e:
            logger.error(
                f"Website summary failed: {e.message}",
                extra={"organization_id": organization_id},
            )
            return None

        summary = "\n".join(
            b.text for b in response.content if getattr(b, "type", None) == "text"
        ).strip()
        if not summary:
            return None

        organization.website_summary = summary
        await self.db.flush()
        logger.info(
            f"Stored website summary from {len(pages)} pages",
            extra={"organization_id": organization_id},
        )
        return summary
