"""Database Session Manager — one async session per API request for the donor CRM.

Invariants:
    - get_db yields one session per request; repositories flush, routes commit
    - A session that raises is rolled back before the error leaves the dependency
    - DonorCrmError (not found, forbidden, conflict...) propagates unchanged so the
      API error handlers can render its code and status
    - Any other SQLAlchemy failure surfaces as DatabaseError (503)
    - The readiness check (GET /api/v1/health/ready) runs SELECT 1 through health_check

Design Decisions:
    - db_manager is created by init_db in the FastAPI lifespan from Settings
      (database_url, pool size, overflow); tests swap it for an in-memory SQLite engine
    - expire_on_commit=False: route handlers serialize ORM rows after commit
    - The raw SQL tool commits its own INSERT/UPDATE on the request session
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy import text

from donor_crm.core.errors import DatabaseError, DonorCrmError

logger = logging.getLogger(__name__)


class DatabaseSessionManager:
    """Engine and session factory for the CRM database."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.engine = create_async_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except DonorCrmError:
            await session.rollback()
            raise
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise DatabaseError("Integrity constraint violated", "commit")
        except OperationalError as e:
            await session.rollback()
            logger.error(f"DB operational error: {e}")
            raise DatabaseError("Connection or operational error", "execute")
        except DBAPIError as e:
            await session.rollback()
            logger.error(f"DB driver error: {e}")
            raise DatabaseError("Database driver error", "query")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise DatabaseError("Database operation failed", "unknown")
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """SELECT 1 through a fresh session; False when the database is unreachable."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False


# Set by init_db during application startup
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: the request-scoped session shared by repositories and routes."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
