"""
Subscription Domain Entity

Read-side snapshot of the billing mirror (``stripe_subscriptions``) and of a
team's own subscription (``team_subscriptions``). Period bounds are epoch
seconds, as Stripe reports them.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class SubscriptionStatus(Enum):
    """Possible subscription statuses."""
    # Local-only states
    NOT_STARTED = "not_started"
    ONE_TIME_PAYMENT = "one_time_payment"
    # Stripe states
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'SubscriptionStatus':
        try:
            return cls(value)
        except ValueError:
            return cls.NOT_STARTED


def epoch_to_datetime(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


@dataclass(frozen=True)
class BillingSnapshot:
    """
    Represents a mirrored Stripe subscription.

    Attributes:
        customer_id: Stripe customer ID (one mirror row per customer)
        subscription_id: Stripe subscription ID, if any
        status: Mirrored status
        price_id: Price of the first subscription item
        current_period_start: Period start (epoch seconds)
        current_period_end: Period end (epoch seconds)
        cancel_at_period_end: Whether the subscription is set to cancel
        deleted_at: When the subscription was deleted at Stripe or locally
    """
    customer_id: str
    status: SubscriptionStatus
    subscription_id: Optional[str] = None
    price_id: Optional[str] = None
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> 'BillingSnapshot':
        return cls(
            customer_id=row.customer_id,
            status=SubscriptionStatus.parse(row.status),
            subscription_id=row.subscription_id,
            price_id=row.price_id,
            current_period_start=row.current_period_start,
            current_period_end=row.current_period_end,
            cancel_at_period_end=bool(row.cancel_at_period_end),
            deleted_at=getattr(row, 'deleted_at', None),
        )

    @property
    def period_end(self) -> Optional[datetime]:
        return epoch_to_datetime(self.current_period_end)

    @property
    def effective_status(self) -> SubscriptionStatus:
        """Status with local soft-deletion applied."""
        if self.deleted_at is not None:
            return SubscriptionStatus.CANCELED
        return self.status

    def is_past_period_end(self, now: datetime) -> bool:
        period_end = self.period_end
        return period_end is not None and period_end <= now

    def is_cancelled_and_lapsed(self, now: datetime) -> bool:
        """Cancelled at period end and that period is over."""
        return self.cancel_at_period_end and self.is_past_period_end(now)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'customer_id': self.customer_id,
            'subscription_id': self.subscription_id,
            'status': self.status.value,
            'price_id': self.price_id,
            'current_period_start': self.current_period_start,
            'current_period_end': self.current_period_end,
            'cancel_at_period_end': self.cancel_at_period_end,
        }
