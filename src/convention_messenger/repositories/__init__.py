"""
Repository layer.

Usage:
    from convention_messenger.repositories import ConversationRepository, ParticipantRepository
"""

from .base_repository import BaseRepository
from .conversation_repository import ConversationRepository, PrivateConversationCandidate
from .participant_repository import ParticipantRepository, ActiveParticipantRow
from .message_repository import MessageRepository, LastMessageRow
from .membership_repository import MembershipRepository, TeamAssignmentRecord

__all__ = [
    "BaseRepository",
    "ConversationRepository",
    "PrivateConversationCandidate",
    "ParticipantRepository",
    "ActiveParticipantRow",
    "MessageRepository",
    "LastMessageRow",
    "MembershipRepository",
    "TeamAssignmentRecord",
]
