"""
Subscription Self-Service

Cancel at period end and undo it. Only Stripe is written here; the billing
mirror and the trial record follow from the resulting
``customer.subscription.updated`` webhook, which keeps the synchronizer the
single writer of the mirror.

Usage:
    from access_backend.src.lifecycle.subscriptions import subscription_service

    result = await subscription_service.cancel_subscription(user_id)
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from access_backend.app.account.crud.crud_billing import stripe_customer_dao, stripe_subscription_dao
from access_backend.app.account.model import StripeSubscription
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.domain import epoch_to_datetime
from access_backend.src.lifecycle.external.stripe import StripeAPIWrapper, Subscription
from access_backend.src.lifecycle.shared.config import DELETION_GRACE_PERIOD, LIVE_SUBSCRIPTION_STATUSES
from access_backend.src.lifecycle.shared.exceptions import StripeUpstreamError, SubscriptionError

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Stripe-side subscription changes requested by the user."""

    async def _get_live_subscription(self, user_id: str) -> StripeSubscription:
        async with async_db_session() as db:
            customer = await stripe_customer_dao.get_by_user(db, user_id)
            mirror = await stripe_subscription_dao.get_by_customer(db, customer.customer_id) if customer else None

        if mirror is None or not mirror.subscription_id:
            raise SubscriptionError("No subscription found", code="NO_SUBSCRIPTION", status_code=404)
        if mirror.deleted_at is not None or mirror.status not in LIVE_SUBSCRIPTION_STATUSES:
            raise SubscriptionError("Subscription has already ended", code="SUBSCRIPTION_ENDED")
        return mirror

    @staticmethod
    def _parse(data: Dict[str, Any]) -> Subscription:
        try:
            return Subscription.model_validate(data)
        except ValidationError as e:
            raise StripeUpstreamError(stripe_error=str(e)) from e

    async def cancel_subscription(self, user_id: str) -> Dict[str, Any]:
        """
        Cancel the user's subscription at the end of the current period.

        Args:
            user_id: Subscription owner

        Returns:
            Dict with the cancellation (account deletion) date

        Raises:
            SubscriptionError: If there is no live subscription
            StripeUpstreamError: If Stripe rejects the change
        """
        mirror = await self._get_live_subscription(user_id)
        subscription = self._parse(
            await StripeAPIWrapper.set_cancel_at_period_end(mirror.subscription_id, True)
        )

        period_end = epoch_to_datetime(subscription.period_end)
        deletion_date = period_end + DELETION_GRACE_PERIOD if period_end else None
        logger.info(
            f"[SUBSCRIPTION] User {user_id} cancelled {subscription.id}, "
            f"deletion at {deletion_date.isoformat() if deletion_date else 'unknown'}"
        )
        return {
            'success': True,
            'message': 'Subscription canceled successfully',
            'cancellation_effective_date': deletion_date.isoformat() if deletion_date else None,
            'subscription': {
                'id': subscription.id,
                'status': subscription.status,
                'cancel_at_period_end': subscription.cancel_at_period_end,
                'current_period_end': subscription.period_end,
            },
        }

    async def reactivate_subscription(self, user_id: str) -> Dict[str, Any]:
        """
        Undo a pending cancellation.

        Args:
            user_id: Subscription owner

        Returns:
            Dict with the reactivated subscription

        Raises:
            SubscriptionError: If there is no live subscription
            StripeUpstreamError: If Stripe rejects the change
        """
        mirror = await self._get_live_subscription(user_id)
        if not mirror.cancel_at_period_end:
            logger.info(f"[SUBSCRIPTION] {mirror.subscription_id} is not marked for cancellation, reactivating anyway")

        subscription = self._parse(
            await StripeAPIWrapper.set_cancel_at_period_end(mirror.subscription_id, False)
        )
        logger.info(f"[SUBSCRIPTION] User {user_id} reactivated {subscription.id}")
        return {
            'success': True,
            'message': 'Subscription reactivated successfully',
            'subscription': {
                'id': subscription.id,
                'status': subscription.status,
                'cancel_at_period_end': subscription.cancel_at_period_end,
                'current_period_end': subscription.period_end,
            },
        }


# Global instance
subscription_service = SubscriptionService()
