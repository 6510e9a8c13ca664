"""API Dependencies — organization scope, shared clients and per-request services.

Invariants:
    - Every organization-scoped route resolves the X-Organization-Id header (401 when missing)
    - Shared clients (httpx, Anthropic, CRM registry, deduplicator) live on app.state,
      created once in the lifespan
    - Repositories and services are built per request around the request's session

Design Decisions:
    - Factories over globals: tests swap app.state members or dependency_overrides
"""

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from donor_crm.config import get_settings
from donor_crm.core.errors import MissingOrganizationError
from donor_crm.core.message_dedup import MessageDeduplicator
from donor_crm.data.donations import DonationRepository
from donor_crm.data.donors import DonorRepository
from donor_crm.data.projects import ProjectRepository
from donor_crm.data.staff import StaffRepository
from donor_crm.infrastructure.anthropic_client import ResilientAnthropicClient
from donor_crm.infrastructure.database import get_db
from donor_crm.infrastructure.search_client import WebSearchClient
from donor_crm.infrastructure.web_crawler import WebCrawler
from donor_crm.services.crm_sync import CrmSyncService
from donor_crm.services.email_generation import EmailGenerator
from donor_crm.services.person_research import PersonResearchService
from donor_crm.services.website_summary import WebsiteSummaryService


async def get_organization_id(
    x_organization_id: str | None = Header(None, alias="X-Organization-Id"),
) -> str:
    if not x_organization_id or not x_organization_id.strip():
        raise MissingOrganizationError()
    return x_organization_id.strip()


# ─── Shared clients (app.state) ─────────────────────────────────

def get_anthropic_client(request: Request) -> ResilientAnthropicClient:
    return request.app.state.anthropic_client


def get_deduplicator(request: Request) -> MessageDeduplicator:
    return request.app.state.deduplicator


def get_crawler(request: Request) -> WebCrawler:
    settings = get_settings()
    return WebCrawler(
        request.app.state.http_client,
        timeout_seconds=settings.crawler_timeout_seconds,
        max_retries=settings.crawler_max_retries,
        max_chars=settings.crawler_max_chars,
    )


def get_search_client(request: Request) -> WebSearchClient:
    settings = get_settings()
    return WebSearchClient(
        request.app.state.http_client,
        api_key=settings.google_search_api_key,
        engine_id=settings.google_search_engine_id,
        results_per_query=settings.search_results_per_query,
    )


# ─── Per-request repositories ───────────────────────────────────

def get_crm_sync(
    request: Request, db: AsyncSession = Depends(get_db),
) -> CrmSyncService:
    return CrmSyncService(db, request.app.state.crm_registry)


def get_donor_repository(
    db: AsyncSession = Depends(get_db),
    organization_id: str = Depends(get_organization_id),
    crm_sync: CrmSyncService = Depends(get_crm_sync),
) -> DonorRepository:
    return DonorRepository(db, organization_id, crm_sync)


def get_donation_repository(
    db: AsyncSession = Depends(get_db),
    organization_id: str = Depends(get_organization_id),
    crm_sync: CrmSyncService = Depends(get_crm_sync),
) -> DonationRepository:
    return DonationRepository(db, organization_id, crm_sync)


def get_project_repository(
    db: AsyncSession = Depends(get_db),
    organization_id: str = Depends(get_organization_id),
    crm_sync: CrmSyncService = Depends(get_crm_sync),
) -> ProjectRepository:
    return ProjectRepository(db, organization_id, crm_sync)


def get_staff_repository(
    db: AsyncSession = Depends(get_db),
    organization_id: str = Depends(get_organization_id),
) -> StaffRepository:
    return StaffRepository(db, organization_id)


# ─── LLM-backed services ────────────────────────────────────────

def get_email_generator(
    client: ResilientAnthropicClient = Depends(get_anthropic_client),
) -> EmailGenerator:
    settings = get_settings()
    return EmailGenerator(client, settings.email_model, settings.email_max_tokens)


def get_person_research_service(
    db: AsyncSession = Depends(get_db),
    organization_id: str = Depends(get_organization_id),
    search: WebSearchClient = Depends(get_search_client),
    crawler: WebCrawler = Depends(get_crawler),
    client: ResilientAnthropicClient = Depends(get_anthropic_client),
) -> PersonResearchService:
    settings = get_settings()
    return PersonResearchService(
        db, organization_id, search, crawler, client,
        model=settings.research_model,
        max_tokens=settings.research_max_tokens,
        max_crawl_urls=settings.research_max_crawl_urls,
    )


def get_website_summary_service(
    db: AsyncSession = Depends(get_db),
    crawler: WebCrawler = Depends(get_crawler),
    client: ResilientAnthropicClient = Depends(get_anthropic_client),
) -> WebsiteSummaryService:
    settings = get_settings()
    return WebsiteSummaryService(
        db, crawler, client,
        model=settings.research_model,
        max_tokens=settings.research_max_tokens,
        max_pages=settings.website_max_pages,
    )
