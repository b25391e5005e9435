"""
Messenger HTTP endpoints (v1).

The caller's identity comes from `get_current_user_id`; every error raised by
the services is turned into a JSON response by the handlers in error_handlers.py.
"""

from uuid import UUID
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from convention_messenger.core.dependencies import (
    get_current_user_id,
    get_listing_service,
    get_provisioning_service,
    get_session_factory,
)
from convention_messenger.exceptions.base import AccessDeniedError, NotFoundError
from convention_messenger.repositories import ConversationRepository, MembershipRepository
from convention_messenger.schemas.conversation import (
    ConversationSummary,
    TeamConversationResponse,
    UnreadTotals,
)
from convention_messenger.services import ConversationListingService, ConversationProvisioningService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messenger", tags=["messenger"])


@router.post(
    "/editions/{edition_id}/teams/{team_id}/members/{user_id}/conversations",
    response_model=TeamConversationResponse,
)
async def ensure_team_conversations(
    edition_id: UUID,
    team_id: UUID,
    user_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    service: ConversationProvisioningService = Depends(get_provisioning_service),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Provision the team conversations after `user_id` joined `team_id`.
    Allowed for the member themself and for the edition's organizers.
    """
    if current_user_id != user_id:
        async with session_factory() as session:
            membership = MembershipRepository(session)
            allowed = (
                await membership.is_edition_organizer(edition_id, current_user_id)
                or await membership.is_convention_organizer(edition_id, current_user_id)
            )
        if not allowed:
            raise AccessDeniedError("Only organizers can provision conversations for another user")

    await service.ensure_conversations_for_user(edition_id, team_id, user_id)

    async with session_factory() as session:
        group = await ConversationRepository(session).find_team_group(edition_id, team_id)
    if group is None:
        raise NotFoundError("Team conversation not found", fields=["team_id"])
    return TeamConversationResponse(conversation_id=group.id)


@router.get("/conversations", response_model=list[ConversationSummary])
async def list_conversations(
    edition_id: UUID = Query(...),
    admin_mode: bool = Query(False),
    current_user_id: UUID = Depends(get_current_user_id),
    listing: ConversationListingService = Depends(get_listing_service),
):
    return await listing.list_conversations(edition_id, current_user_id, admin_mode=admin_mode)


@router.get("/unread-count", response_model=UnreadTotals)
async def unread_count(
    current_user_id: UUID = Depends(get_current_user_id),
    listing: ConversationListingService = Depends(get_listing_service),
):
    return await listing.get_unread_totals(current_user_id)


@router.post("/conversations/{conversation_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_conversation_read(
    conversation_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    listing: ConversationListingService = Depends(get_listing_service),
) -> None:
    await listing.mark_conversation_read(conversation_id, current_user_id)
