"""
Checkout Webhook Handler

Handles checkout.session.completed for both subscription and one-time
payment checkouts.
"""

import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from access_backend.app.account.crud.crud_billing import (
    stripe_customer_dao,
    stripe_order_dao,
    stripe_subscription_dao,
)
from access_backend.app.account.crud.crud_trial import user_trial_dao
from access_backend.app.account.crud.crud_user import auth_user_dao
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.domain import SubscriptionStatus, epoch_to_datetime
from access_backend.src.lifecycle.shared.config import ACCESS_GRANTING_STATUSES
from access_backend.src.lifecycle.shared.exceptions import WebhookError

from ..client import StripeAPIWrapper
from ..events import CheckoutSession, CheckoutSessionCompleted, Subscription
from .subscription import SubscriptionHandler

logger = logging.getLogger(__name__)


class CheckoutHandler:
    """
    Handler for Stripe checkout webhook events.

    Subscription checkouts refresh the mirror from Stripe's current
    subscription; paid one-time checkouts get a synthetic
    ``one_time_payment`` mirror row and an order record.
    """

    @classmethod
    async def handle_checkout_completed(cls, event: CheckoutSessionCompleted) -> None:
        """
        Handle checkout.session.completed event.

        Args:
            event: Typed Stripe event
        """
        session = event.data.object
        now = epoch_to_datetime(event.created)

        customer_id = await cls._resolve_customer_id(session)
        if not customer_id:
            logger.error(f"[CHECKOUT] No customer ID available for session {session.id}")
            return

        logger.info(f"[CHECKOUT] Processing {session.mode} session {session.id} for customer {customer_id}")
        await cls._link_customer(session, customer_id)

        if session.mode == 'subscription':
            await cls.sync_customer_from_stripe(customer_id, now)
        elif session.mode == 'payment' and session.payment_status == 'paid':
            await cls._handle_one_time_payment(session, customer_id, now)
        else:
            logger.info(f"[CHECKOUT] Session {session.id} ({session.mode}, {session.payment_status}) - no action needed")

    @classmethod
    async def _resolve_customer_id(cls, session: CheckoutSession) -> Optional[str]:
        if session.customer:
            return session.customer
        if not session.email:
            return None
        logger.info(f"[CHECKOUT] Session {session.id} has no customer, resolving one by email")
        return await StripeAPIWrapper.find_or_create_customer(session.email, idempotency_scope=session.id)

    @classmethod
    async def _link_customer(cls, session: CheckoutSession, customer_id: str) -> None:
        user_id = session.user_id
        async with async_db_session.begin() as db:
            if user_id:
                await stripe_customer_dao.link(db, user_id, customer_id)
                return
            if await stripe_customer_dao.get_by_customer_id(db, customer_id) is not None:
                return

            # No user ID on the session: fall back to the payer's email
            user = await auth_user_dao.get_by_email(db, session.email) if session.email else None
            if user is None:
                logger.warning(f"[CHECKOUT] Session {session.id} matches no user; customer {customer_id} unlinked")
                return
            await stripe_customer_dao.link(db, user.id, customer_id)
            logger.info(f"[CHECKOUT] Linked customer {customer_id} to user {user.id} by email")

    @classmethod
    async def sync_customer_from_stripe(cls, customer_id: str, now: Optional[datetime] = None) -> None:
        """
        Refresh a customer's mirror from Stripe's latest subscription.

        A full replacement rather than a delta, so it is safe to repeat.

        Args:
            customer_id: Stripe customer ID
            now: Time of the triggering event
        """
        subscriptions = await StripeAPIWrapper.list_customer_subscriptions(customer_id, limit=1)

        async with async_db_session.begin() as db:
            if not subscriptions:
                logger.info(f"[CHECKOUT] No subscriptions found for customer {customer_id}")
                await stripe_subscription_dao.upsert_mirror(
                    db, {'customer_id': customer_id, 'status': SubscriptionStatus.NOT_STARTED.value}
                )
                return

            try:
                subscription = Subscription.model_validate(subscriptions[0])
            except ValidationError as e:
                raise WebhookError(f"Unexpected subscription shape for customer {customer_id}: {e}") from e

            # Paying through checkout also protects the trial while Stripe reports trialing
            await SubscriptionHandler.apply_subscription(
                db, subscription, now=now, paying_statuses=ACCESS_GRANTING_STATUSES
            )
        logger.info(f"[CHECKOUT] Synced subscription {subscription.id} ({subscription.status}) for {customer_id}")

    @classmethod
    async def _handle_one_time_payment(cls, session: CheckoutSession, customer_id: str, now: datetime) -> None:
        async with async_db_session.begin() as db:
            await stripe_subscription_dao.upsert_mirror(
                db,
                {
                    'customer_id': customer_id,
                    'status': SubscriptionStatus.ONE_TIME_PAYMENT.value,
                    'deleted_at': None,
                },
            )
            await stripe_order_dao.upsert_order(
                db,
                {
                    'checkout_session_id': session.id,
                    'customer_id': customer_id,
                    'payment_intent_id': session.payment_intent,
                    'amount_subtotal': session.amount_subtotal,
                    'amount_total': session.amount_total,
                    'currency': session.currency,
                    'payment_status': session.payment_status,
                    'status': 'completed',
                },
            )

            customer = await stripe_customer_dao.get_by_customer_id(db, customer_id)
            if customer is not None:
                converted = await user_trial_dao.convert_to_paid(db, [customer.user_id])
                if converted:
                    logger.info(f"[CHECKOUT] Protected one-time payment user {customer.user_id} from trial deletion")

        logger.info(f"[CHECKOUT] Recorded one-time payment for session {session.id}")
