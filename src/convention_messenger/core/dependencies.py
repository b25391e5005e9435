from typing import AsyncGenerator
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from convention_messenger.database.session import get_session_factory as _default_session_factory
from convention_messenger.services import ConversationListingService, ConversationProvisioningService


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    # Overridden in tests (app.dependency_overrides) to point at the test database
    return _default_session_factory()


async def get_db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """One session and one transaction per request, committed when the endpoint returns."""
    async with session_factory() as session:
        async with session.begin():
            yield session


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> UUID:
    """
    Authenticated user id. Authentication itself happens upstream (gateway/session
    layer), which forwards the user id in the `X-User-ID` header.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user id")


def get_provisioning_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ConversationProvisioningService:
    return ConversationProvisioningService(session_factory)


def get_listing_service(db: AsyncSession = Depends(get_db_session)) -> ConversationListingService:
    return ConversationListingService(db)
