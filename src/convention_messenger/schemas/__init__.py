from .conversation import (
    ParticipantSummary,
    MessagePreview,
    ConversationSummary,
    UnreadTotals,
    TeamConversationResponse,
)
from .provisioning import ProvisioningScope, ProvisioningReport

__all__ = [
    "ParticipantSummary",
    "MessagePreview",
    "ConversationSummary",
    "UnreadTotals",
    "TeamConversationResponse",
    "ProvisioningScope",
    "ProvisioningReport",
]
