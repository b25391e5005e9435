from .reconciler import MembershipReconciler, ReconcileAction, plan_reconciliation
from .resolvers import TeamGroupResolver, LeaderPrivateResolver, Resolution
from .provisioning import ConversationProvisioningService
from .listing import ConversationListingService, make_preview

__all__ = [
    "MembershipReconciler",
    "ReconcileAction",
    "plan_reconciliation",
    "TeamGroupResolver",
    "LeaderPrivateResolver",
    "Resolution",
    "ConversationProvisioningService",
    "ConversationListingService",
    "make_preview",
]
