from access_backend.app.account.model.billing import StripeCustomer, StripeOrder, StripeSubscription
from access_backend.app.account.model.deletion_history import DeletionHistory
from access_backend.app.account.model.team import Team, TeamMember, TeamSubscription
from access_backend.app.account.model.trial import UserTrial
from access_backend.app.account.model.user import AuthUser, UserAccountState, UserProfile
from access_backend.app.account.model.webhook_event import WebhookEvent
from access_backend.app.account.model.workspace_account import WorkspaceAccount

__all__ = [
    'AuthUser',
    'DeletionHistory',
    'StripeCustomer',
    'StripeOrder',
    'StripeSubscription',
    'Team',
    'TeamMember',
    'TeamSubscription',
    'UserAccountState',
    'UserProfile',
    'UserTrial',
    'WebhookEvent',
    'WorkspaceAccount',
]
