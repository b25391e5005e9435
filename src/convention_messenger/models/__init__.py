"""
Single import point for every ORM model, so that `Base.metadata` is complete
as soon as `convention_messenger.models` is imported:

    from convention_messenger.models import Conversation, ConversationParticipant
"""

from .user import User
from .edition import Convention, Edition, Team, ConventionOrganizer, EditionOrganizer
from .volunteer import ApplicationStatus, VolunteerApplication, ApplicationTeamAssignment
from .show_application import ShowApplication
from .conversation import ConversationType, Conversation, ConversationParticipant
from .message import Message

__all__ = [
    "User",
    "Convention",
    "Edition",
    "Team",
    "ConventionOrganizer",
    "EditionOrganizer",
    "ApplicationStatus",
    "VolunteerApplication",
    "ApplicationTeamAssignment",
    "ShowApplication",
    "ConversationType",
    "Conversation",
    "ConversationParticipant",
    "Message",
]
