"""
Subscription Webhook Handler

Handles subscription lifecycle webhook events:
- customer.subscription.created
- customer.subscription.updated
- customer.subscription.deleted

Every event is applied as a full-state replacement of the customer's mirror
row, so redeliveries converge on the same state. Late events about an older
subscription never overwrite a different subscription that is still live.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from access_backend.app.account.crud.crud_billing import stripe_customer_dao, stripe_subscription_dao
from access_backend.app.account.crud.crud_team import team_dao
from access_backend.app.account.crud.crud_trial import user_trial_dao
from access_backend.app.account.model import StripeSubscription
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.domain import TrialStatus, epoch_to_datetime
from access_backend.src.lifecycle.shared.config import DELETION_GRACE_PERIOD, LIVE_SUBSCRIPTION_STATUSES

from ..events import Subscription, SubscriptionCreated, SubscriptionDeleted, SubscriptionUpdated

logger = logging.getLogger(__name__)


class SubscriptionHandler:
    """
    Handler for Stripe subscription webhook events.

    Writes the billing mirror (single writer), the team subscription mirror
    when the customer is a team, and the trial transitions that follow from
    the cancellation flag.
    """

    @classmethod
    async def handle_subscription_created(cls, event: SubscriptionCreated) -> None:
        """
        Handle customer.subscription.created event.

        Args:
            event: Typed Stripe event
        """
        subscription = event.data.object
        logger.info(
            f"[SUBSCRIPTION] Created: sub={subscription.id}, customer={subscription.customer}, "
            f"status={subscription.status}"
        )
        async with async_db_session.begin() as session:
            await cls.apply_subscription(session, subscription, now=epoch_to_datetime(event.created))

    @classmethod
    async def handle_subscription_updated(cls, event: SubscriptionUpdated) -> None:
        """
        Handle customer.subscription.updated event.

        This is triggered when:
        - Status changes (trialing -> active, active -> past_due, etc.)
        - Plan changes
        - Cancel at period end is set/unset

        Args:
            event: Typed Stripe event
        """
        subscription = event.data.object
        logger.info(
            f"[SUBSCRIPTION] Updated: sub={subscription.id}, status={subscription.status}, "
            f"cancel_at_period_end={subscription.cancel_at_period_end}, "
            f"changed={sorted(event.data.previous_attributes)}"
        )
        async with async_db_session.begin() as session:
            await cls.apply_subscription(session, subscription, now=epoch_to_datetime(event.created))

    @classmethod
    async def handle_subscription_deleted(cls, event: SubscriptionDeleted) -> None:
        """
        Handle customer.subscription.deleted event.

        Marks the mirror canceled. Account teardown is left to the trial sweep.

        Args:
            event: Typed Stripe event
        """
        subscription = event.data.object
        # Taken from the event so redeliveries write the same timestamp
        deleted_at = epoch_to_datetime(event.created)
        logger.info(f"[SUBSCRIPTION] Deleted: sub={subscription.id}, customer={subscription.customer}")

        values = cls.mirror_values(subscription)
        values.update(
            status='canceled',
            canceled_at=epoch_to_datetime(subscription.canceled_at) or deleted_at,
            deleted_at=deleted_at,
        )
        async with async_db_session.begin() as session:
            existing = await stripe_subscription_dao.get_by_customer(session, subscription.customer)
            if cls._superseded_by_live(existing, subscription):
                # The customer's mirror already tracks a newer subscription
                logger.info(
                    f"[SUBSCRIPTION] Ignoring deletion of {subscription.id}; "
                    f"customer {subscription.customer} now has {existing.subscription_id}"
                )
                return
            await stripe_subscription_dao.upsert_mirror(session, values)
            await cls._sync_team_subscription(session, subscription, status='canceled')

    # -------------------------------------------------------------------------
    # Shared sync
    # -------------------------------------------------------------------------

    @classmethod
    def mirror_values(cls, subscription: Subscription) -> Dict[str, Any]:
        """
        Build the mirror row for a subscription.

        Card details are only present when Stripe expanded the payment
        method, so they are left untouched otherwise.
        """
        values: Dict[str, Any] = {
            'customer_id': subscription.customer,
            'subscription_id': subscription.id,
            'status': subscription.status,
            'price_id': subscription.price_id,
            'current_period_start': subscription.period_start,
            'current_period_end': subscription.period_end,
            'cancel_at_period_end': subscription.cancel_at_period_end,
            'canceled_at': epoch_to_datetime(subscription.canceled_at),
            'deleted_at': None,
        }
        card = subscription.card
        if card is not None:
            values['payment_method_brand'] = card.brand
            values['payment_method_last4'] = card.last4
        return values

    @classmethod
    async def apply_subscription(
        cls,
        session: AsyncSession,
        subscription: Subscription,
        now: Optional[datetime] = None,
        paying_statuses: FrozenSet[str] = frozenset({'active'}),
    ) -> None:
        """
        Replace the mirror with ``subscription`` and apply trial transitions.

        Args:
            session: Session with an open transaction
            subscription: Authoritative subscription state
            now: Time of the real-world change (event creation time)
            paying_statuses: Statuses that convert the owner's trial to paid
        """
        now = now or datetime.now(timezone.utc)

        existing = await stripe_subscription_dao.get_by_customer(session, subscription.customer)
        if (
            existing is not None
            and existing.subscription_id == subscription.id
            and existing.deleted_at is not None
            and subscription.status != 'canceled'
        ):
            # A deleted Stripe subscription never comes back; this is a late delivery
            logger.info(f"[SUBSCRIPTION] Ignoring stale update for deleted subscription {subscription.id}")
            return
        if subscription.status not in LIVE_SUBSCRIPTION_STATUSES and cls._superseded_by_live(existing, subscription):
            logger.info(
                f"[SUBSCRIPTION] Ignoring {subscription.status} update for {subscription.id}; "
                f"customer {subscription.customer} now has {existing.subscription_id}"
            )
            return

        await stripe_subscription_dao.upsert_mirror(session, cls.mirror_values(subscription))
        await cls._sync_team_subscription(session, subscription)

        customer = await stripe_customer_dao.get_by_customer_id(session, subscription.customer)
        if customer is None or customer.deleted_at is not None:
            logger.warning(f"[SUBSCRIPTION] No user linked to customer {subscription.customer}; trial untouched")
            return

        await cls._apply_trial_transition(session, customer.user_id, subscription, now, paying_statuses)

    @staticmethod
    def _superseded_by_live(existing: Optional[StripeSubscription], subscription: Subscription) -> bool:
        """True when the mirror already tracks a different subscription that is still live."""
        return (
            existing is not None
            and existing.subscription_id is not None
            and existing.subscription_id != subscription.id
            and existing.deleted_at is None
            and existing.status in LIVE_SUBSCRIPTION_STATUSES
        )

    @classmethod
    async def _apply_trial_transition(
        cls,
        session: AsyncSession,
        user_id: str,
        subscription: Subscription,
        now: datetime,
        paying_statuses: FrozenSet[str],
    ) -> None:
        if subscription.cancel_at_period_end:
            period_end = epoch_to_datetime(subscription.period_end)
            if period_end is None:
                logger.warning(f"[SUBSCRIPTION] Cancelled subscription {subscription.id} has no period end")
                return
            deletion_date = period_end + DELETION_GRACE_PERIOD
            await user_trial_dao.set_status(session, user_id, TrialStatus.CANCELED, deletion_date, now=now)
            logger.info(f"[SUBSCRIPTION] User {user_id} cancelled, deletion scheduled for {deletion_date.isoformat()}")
        elif subscription.status in paying_statuses:
            await user_trial_dao.set_status(session, user_id, TrialStatus.CONVERTED_TO_PAID, now=now)
            logger.info(f"[SUBSCRIPTION] User {user_id} is paying, trial converted and scheduling cleared")

    @classmethod
    async def _sync_team_subscription(
        cls,
        session: AsyncSession,
        subscription: Subscription,
        status: Optional[str] = None,
    ) -> None:
        team = await team_dao.get_by_customer_id(session, subscription.customer)
        if team is None:
            return
        await team_dao.upsert_subscription(
            session,
            {
                'team_id': team.id,
                'customer_id': subscription.customer,
                'subscription_id': subscription.id,
                'status': status or subscription.status,
                'price_id': subscription.price_id,
                'current_period_start': subscription.period_start,
                'current_period_end': subscription.period_end,
                'cancel_at_period_end': subscription.cancel_at_period_end,
            },
        )
        logger.info(f"[SUBSCRIPTION] Team {team.id} subscription synced ({status or subscription.status})")
