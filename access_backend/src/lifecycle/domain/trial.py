"""
Trial Domain Entity

Represents a user's free-trial window and its deletion scheduling.

Invariant: ``deletion_scheduled_at`` is set if and only if the trial is
``scheduled_for_deletion`` or ``canceled``. Every writer builds its column
values through :func:`trial_state_fields`, which enforces it.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from access_backend.src.lifecycle.shared.config import SECONDS_PER_DAY, TRIAL_DURATION


class TrialStatus(Enum):
    """Possible trial statuses."""
    ACTIVE = "active"
    EXPIRED = "expired"
    CONVERTED_TO_PAID = "converted_to_paid"
    SCHEDULED_FOR_DELETION = "scheduled_for_deletion"
    CANCELED = "canceled"
    DELETED = "deleted"


SCHEDULED_TRIAL_STATUSES = frozenset({TrialStatus.SCHEDULED_FOR_DELETION, TrialStatus.CANCELED})


def trial_state_fields(status: TrialStatus, deletion_scheduled_at: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the status columns of a trial record.

    Args:
        status: New trial status
        deletion_scheduled_at: Required for scheduled/canceled, forbidden otherwise

    Returns:
        Dict of ``trial_status`` and ``deletion_scheduled_at`` column values

    Raises:
        ValueError: If the pair would break the scheduling invariant
    """
    scheduled = status in SCHEDULED_TRIAL_STATUSES
    if scheduled and deletion_scheduled_at is None:
        raise ValueError(f"Trial status '{status.value}' requires a deletion timestamp")
    if not scheduled and deletion_scheduled_at is not None:
        raise ValueError(f"Trial status '{status.value}' cannot carry a deletion timestamp")
    return {
        'trial_status': status.value,
        'deletion_scheduled_at': deletion_scheduled_at,
    }


def seconds_until(moment: Optional[datetime], now: datetime) -> int:
    """Whole seconds from ``now`` until ``moment``, clamped at zero."""
    if moment is None:
        return 0
    return max(0, int((moment - now).total_seconds()))


def days_from_seconds(seconds: int) -> int:
    """Remaining days as shown to users: any started day counts."""
    return math.ceil(seconds / SECONDS_PER_DAY)


@dataclass(frozen=True)
class TrialRecord:
    """
    Snapshot of a user's trial row.

    Attributes:
        user_id: Owner of the trial
        trial_start: When the trial window opened
        trial_end: When the trial window closes
        trial_status: Current status
        deletion_scheduled_at: When the account is due for teardown
    """
    user_id: str
    trial_start: datetime
    trial_end: datetime
    trial_status: TrialStatus
    deletion_scheduled_at: Optional[datetime] = None

    def __post_init__(self):
        trial_state_fields(self.trial_status, self.deletion_scheduled_at)

    @classmethod
    def new(cls, user_id: str, now: datetime) -> 'TrialRecord':
        """Open a fresh trial window starting at ``now``."""
        return cls(
            user_id=user_id,
            trial_start=now,
            trial_end=now + TRIAL_DURATION,
            trial_status=TrialStatus.ACTIVE,
        )

    @classmethod
    def from_row(cls, row) -> 'TrialRecord':
        return cls(
            user_id=row.user_id,
            trial_start=row.trial_start,
            trial_end=row.trial_end,
            trial_status=TrialStatus(row.trial_status),
            deletion_scheduled_at=row.deletion_scheduled_at,
        )

    def is_running(self, now: datetime) -> bool:
        """Check if the free-trial window is open right now."""
        return self.trial_status == TrialStatus.ACTIVE and self.trial_end > now

    def is_consumed(self, now: datetime) -> bool:
        """Check if the user has already spent this trial."""
        if self.trial_status == TrialStatus.ACTIVE:
            return self.trial_end <= now
        return self.trial_status != TrialStatus.CONVERTED_TO_PAID

    def seconds_remaining(self, now: datetime) -> int:
        return seconds_until(self.trial_end, now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'user_id': self.user_id,
            'trial_start': self.trial_start.isoformat(),
            'trial_end': self.trial_end.isoformat(),
            'trial_status': self.trial_status.value,
            'deletion_scheduled_at': self.deletion_scheduled_at.isoformat() if self.deletion_scheduled_at else None,
        }
