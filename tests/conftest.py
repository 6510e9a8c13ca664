"""Root conftest — shared test configuration."""

import os

# Ensure tests don't accidentally use real API keys
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test-fake-key")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("GOOGLE_SEARCH_API_KEY", "test-search-key")
os.environ.setdefault("GOOGLE_SEARCH_ENGINE_ID", "test-engine")
os.environ.setdefault("LOG_FORMAT", "text")
