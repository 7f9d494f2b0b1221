"""
Lifecycle Configuration

Trial, grace-period and access constants shared by the resolver, the
webhook synchronizer, the deletion orchestrator and the trial sweep.

Usage:
    from access_backend.src.lifecycle.shared.config import TRIAL_DURATION, is_admin_user

    trial_end = trial_start + TRIAL_DURATION
"""

from datetime import timedelta
from typing import FrozenSet

from access_backend.core.conf import settings


# =============================================================================
# TRIAL CONFIGURATION
# =============================================================================
TRIAL_DURATION_DAYS: int = 7
TRIAL_DURATION: timedelta = timedelta(days=TRIAL_DURATION_DAYS)

# Grace window between a cancelled period end (or trial end) and teardown
DELETION_GRACE_PERIOD: timedelta = timedelta(hours=24)

SECONDS_PER_DAY: int = 86_400


# =============================================================================
# ACCESS CONFIGURATION
# =============================================================================
# Hard-coded super admin: always has access, can never be deleted
SUPER_ADMIN_USER_ID: str = 'b8782453-a343-4301-a947-67c5bb407d2b'

# "Unlimited" remaining time - a large integer for DB/JSON compatibility
UNLIMITED_SECONDS: int = 100 * 365 * SECONDS_PER_DAY

# Subscription statuses that grant individual access
ACCESS_GRANTING_STATUSES: FrozenSet[str] = frozenset({'active', 'trialing'})

# Subscriptions that are cancelled when an account is deleted
LIVE_SUBSCRIPTION_STATUSES: FrozenSet[str] = frozenset({'active', 'trialing', 'past_due'})

# Trial states that block workspace account creation
WORKSPACE_BLOCKING_TRIAL_STATUSES: FrozenSet[str] = frozenset({'expired', 'scheduled_for_deletion'})


# =============================================================================
# HELPERS
# =============================================================================
def get_admin_user_ids() -> FrozenSet[str]:
    """Admin override allow-list (configured ids plus the protected super admin)."""
    return frozenset(settings.ADMIN_USER_IDS) | {SUPER_ADMIN_USER_ID}


def is_admin_user(user_id: str) -> bool:
    return user_id in get_admin_user_ids()


def is_protected_user(user_id: str) -> bool:
    """Protected identities can never be deleted, by anyone."""
    return user_id == SUPER_ADMIN_USER_ID


def is_team_price_id(price_id: str | None) -> bool:
    return bool(price_id) and price_id in settings.STRIPE_TEAM_PRICE_IDS
