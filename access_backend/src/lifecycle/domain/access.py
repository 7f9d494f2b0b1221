"""
Access Domain Entities

``AccessFacts`` is everything the resolver may look at; ``AccessStatus`` is
what it derives. AccessStatus is computed on every read and never stored.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from .subscription import BillingSnapshot
from .trial import TrialRecord


class AccessType(Enum):
    """Why a user currently has (or lacks) access."""
    PAID_SUBSCRIPTION = "paid_subscription"
    STRIPE_TRIAL = "stripe_trial"
    FREE_TRIAL = "free_trial"
    NO_ACCESS = "no_access"


@dataclass(frozen=True)
class AccessFacts:
    """
    Inputs of the access-level resolver for one user.

    Attributes:
        user_id: User being resolved
        email: User's email (used for the returning-user lookup)
        is_admin: Whether the user is on the admin override allow-list
        trial: The user's trial record, if any
        subscription: The user's individual billing mirror row, if any
        team_subscription: The subscription of the team the user is an active member of
        is_returning_user: Email found in deletion history with a used trial
        account_revoked: Account state or trial already flipped to deleted
    """
    user_id: str
    email: Optional[str] = None
    is_admin: bool = False
    trial: Optional[TrialRecord] = None
    subscription: Optional[BillingSnapshot] = None
    team_subscription: Optional[BillingSnapshot] = None
    is_returning_user: bool = False
    account_revoked: bool = False


@dataclass(frozen=True)
class AccessStatus:
    """Derived access decision consumed by the UI and the workspace bridge."""
    has_access: bool
    access_type: AccessType
    seconds_remaining: int
    days_remaining: int
    is_cancelled_subscription: bool = False
    requires_subscription: bool = False
    can_create_workspace_account: bool = False
    trial_status: Optional[str] = None
    subscription_status: Optional[str] = None
    is_team_member: bool = False
    is_returning_user: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        data = asdict(self)
        data['access_type'] = self.access_type.value
        return data
