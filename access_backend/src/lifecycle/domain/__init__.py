"""Domain entities for the lifecycle module."""

from .access import AccessFacts, AccessStatus, AccessType
from .subscription import BillingSnapshot, SubscriptionStatus, epoch_to_datetime
from .trial import TrialRecord, TrialStatus, trial_state_fields

__all__ = [
    'AccessFacts',
    'AccessStatus',
    'AccessType',
    'BillingSnapshot',
    'SubscriptionStatus',
    'epoch_to_datetime',
    'TrialRecord',
    'TrialStatus',
    'trial_state_fields',
]
