"""
Read models returned by the listing view and the HTTP API.
"""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from convention_messenger.models import ConversationType


class ParticipantSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: UUID
    pseudo: str
    last_read_at: datetime | None = None
    # only meaningful for team conversations; None elsewhere
    is_leader: bool | None = None


class MessagePreview(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    preview: str
    created_at: datetime
    author_id: UUID


class ConversationSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    type: ConversationType
    team_id: UUID | None = None
    show_application_id: UUID | None = None
    updated_at: datetime
    last_message: MessagePreview | None = None
    participants: list[ParticipantSummary]
    unread_count: int = 0


class UnreadTotals(BaseModel):
    unread_count: int = 0
    conversation_count: int = 0


class TeamConversationResponse(BaseModel):
    conversation_id: UUID
