"""
FastAPI dependencies backed by application state.

The lifespan handler stores the database handle, settings and cache on
app.state; routes never reach for module globals.
"""

from typing import AsyncGenerator, Optional

from fastapi import HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from skupulse.config.settings import Settings
from skupulse.database.connection import Database
from skupulse.serving.cache import CacheManager


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Optional[Database]:
    return getattr(request.app.state, "db", None)


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Database session for a request.

    Example:
        @router.get("/items")
        async def items(session: AsyncSession = Depends(get_session)):
            ...
    """
    db = get_database(request)
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    async with db.session() as session:
        yield session


def get_skus_cache(request: Request) -> CacheManager:
    return request.app.state.skus_cache
