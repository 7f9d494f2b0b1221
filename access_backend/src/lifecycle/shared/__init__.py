"""Shared configuration and exceptions for the lifecycle module."""

from .config import (
    TRIAL_DURATION_DAYS,
    TRIAL_DURATION,
    DELETION_GRACE_PERIOD,
    SUPER_ADMIN_USER_ID,
    UNLIMITED_SECONDS,
    get_admin_user_ids,
    is_admin_user,
    is_protected_user,
    is_team_price_id,
)
from .exceptions import (
    LifecycleError,
    AccessRequiredError,
    PermissionDeniedError,
    ProtectedAccountError,
    WorkspaceError,
    WorkspaceAlreadyExistsError,
    WorkspaceUpstreamError,
    StripeUpstreamError,
    SubscriptionError,
    TrialError,
    DeletionAbortedError,
    IdentityDeletionError,
    WebhookError,
)

__all__ = [
    'TRIAL_DURATION_DAYS',
    'TRIAL_DURATION',
    'DELETION_GRACE_PERIOD',
    'SUPER_ADMIN_USER_ID',
    'UNLIMITED_SECONDS',
    'get_admin_user_ids',
    'is_admin_user',
    'is_protected_user',
    'is_team_price_id',
    'LifecycleError',
    'AccessRequiredError',
    'PermissionDeniedError',
    'ProtectedAccountError',
    'WorkspaceError',
    'WorkspaceAlreadyExistsError',
    'WorkspaceUpstreamError',
    'StripeUpstreamError',
    'SubscriptionError',
    'TrialError',
    'DeletionAbortedError',
    'IdentityDeletionError',
    'WebhookError',
]
