import logging
from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from skillpath.core.config import settings
from skillpath.db.session import AsyncSessionLocal
from skillpath.services.advisor_service import AdvisoryService, get_providers
from skillpath.services.errors import InputValidationError, NotFoundError, PreconditionFailedError

logger = logging.getLogger("skillpath.deps")


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        if settings.async_database_url.startswith("postgresql"):
            try:
                await session.execute(text("SET LOCAL statement_timeout = 5000"))
            except SQLAlchemyError:
                logger.warning("statement_timeout_not_set", exc_info=True)
                await session.rollback()
        yield session


async def get_current_user_id(x_user_id: str | None = Header(default=None, alias="X-User-ID")) -> str:
    # Authentication happens upstream; the gateway forwards the caller's id.
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-ID header")
    if len(user_id) > 64:
        raise HTTPException(status_code=422, detail="X-User-ID too long")
    return user_id


def get_advisor() -> AdvisoryService:
    return AdvisoryService(get_providers())


def to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PreconditionFailedError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (InputValidationError, ValueError)):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=500, detail="Internal error")
