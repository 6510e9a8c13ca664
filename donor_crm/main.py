"""Donor CRM API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map DonorCrmError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, shared httpx client, Anthropic client, CRM registry and message
      deduplicator are created in the lifespan and stored on app.state

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - One httpx.AsyncClient per process shared by search, crawler and CRM providers
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from donor_crm.api.error_handlers import register_error_handlers
from donor_crm.api.routes import (
    donations, donors, emails, health, organizations, projects, queries, research, staff,
    whatsapp,
)
from donor_crm.config import get_settings
from donor_crm.core.message_dedup import MessageDeduplicator
from donor_crm.infrastructure.anthropic_client import build_anthropic_client
from donor_crm.infrastructure.crm_providers import build_default_registry
from donor_crm.infrastructure.database import init_db
from donor_crm.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    http_client = httpx.AsyncClient(timeout=settings.crawler_timeout_seconds)
    app.state.http_client = http_client
    app.state.crm_registry = build_default_registry(http_client)
    app.state.anthropic_client = build_anthropic_client(settings)
    app.state.deduplicator = MessageDeduplicator(settings.whatsapp_dedup_window_seconds)
    logger.info("Donor CRM API started")
    yield
    await http_client.aclose()
    logger.info("Donor CRM API shutting down")


app = FastAPI(title="Donor CRM API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(organizations.router)
app.include_router(donors.router)
app.include_router(donations.router)
app.include_router(projects.router)
app.include_router(staff.router)
app.include_router(queries.router)
app.include_router(whatsapp.router)
app.include_router(emails.router)
app.include_router(research.router)

register_error_handlers(app)
