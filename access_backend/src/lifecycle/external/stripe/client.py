"""
Stripe API Client Wrapper

Async wrapper around the Stripe calls the lifecycle module makes. Every
call goes through ``safe_stripe_call`` so Stripe failures surface as a
typed ``StripeUpstreamError``. No retries are performed here; webhook
redelivery and the caller own retrying.

Usage:
    from access_backend.src.lifecycle.external.stripe import StripeAPIWrapper

    customer_id = await StripeAPIWrapper.find_or_create_customer("user@example.com")
"""

import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import stripe

from access_backend.core.conf import settings
from access_backend.src.lifecycle.shared.exceptions import StripeUpstreamError

logger = logging.getLogger(__name__)


def generate_idempotency_key(
    operation: str,
    *parts: Any,
    time_bucket_minutes: int = 60,
    request_id: Optional[str] = None,
) -> str:
    """
    Generate an idempotency key for a Stripe write.

    Without ``request_id`` the key is deterministic: redeliveries of the same
    webhook inside the time bucket reuse it, so Stripe returns the original
    object instead of creating a duplicate. User-initiated writes that can
    legitimately repeat with the same arguments (cancel, reactivate, cancel
    again) pass a per-request ``request_id`` so each one is executed.

    Args:
        operation: Operation type (e.g., 'create_customer')
        *parts: Values identifying the operation
        time_bucket_minutes: Window in which the key is reused
        request_id: Per-request uniqueness component

    Returns:
        40-character hex idempotency key
    """
    bucket = int(datetime.now(timezone.utc).timestamp() // (time_bucket_minutes * 60))
    components = [operation, *[str(part) for part in parts], str(bucket)]
    if request_id:
        components.append(request_id)
    return hashlib.sha256("_".join(components).encode()).hexdigest()[:40]


class StripeAPIWrapper:
    """
    Safe wrapper for Stripe API calls.

    All methods are async class methods that can be called directly:
        subscriptions = await StripeAPIWrapper.list_customer_subscriptions("cus_123")

    Objects are returned as plain dicts so they can be validated by the
    event schemas in ``events.py``.
    """

    @classmethod
    def _ensure_stripe_configured(cls):
        """Raise error if Stripe is not configured."""
        if not settings.STRIPE_SECRET_KEY:
            raise StripeUpstreamError("Payment provider is not configured")
        stripe.api_key = settings.STRIPE_SECRET_KEY

    @classmethod
    async def safe_stripe_call(cls, func: Callable, *args, **kwargs) -> Any:
        """
        Execute a Stripe API call and translate its errors.

        Args:
            func: Async Stripe API function
            *args: Positional arguments
            **kwargs: Keyword arguments

        Returns:
            Result from Stripe API

        Raises:
            StripeUpstreamError: If Stripe rejects the call or is unreachable
        """
        cls._ensure_stripe_configured()
        try:
            return await func(*args, **kwargs)
        except stripe.StripeError as e:
            logger.error(f"[STRIPE CLIENT] {getattr(func, '__qualname__', func)} failed: {type(e).__name__}: {e}")
            raise StripeUpstreamError(stripe_error=str(e)) from e

    # -------------------------------------------------------------------------
    # Customer Operations
    # -------------------------------------------------------------------------

    @classmethod
    async def find_or_create_customer(cls, email: str, idempotency_scope: str = '') -> str:
        """
        Find a Stripe customer by email, creating one when none exists.

        Args:
            email: Customer email
            idempotency_scope: Extra value (e.g. checkout session ID) scoping creation

        Returns:
            Stripe customer ID
        """
        existing = await cls.safe_stripe_call(stripe.Customer.list_async, email=email, limit=1)
        if existing.data:
            customer_id = existing.data[0].id
            logger.info(f"[STRIPE CLIENT] Found existing customer {customer_id}")
            return customer_id

        customer = await cls.safe_stripe_call(
            stripe.Customer.create_async,
            email=email,
            idempotency_key=generate_idempotency_key('create_customer', email, idempotency_scope),
        )
        logger.info(f"[STRIPE CLIENT] Created customer {customer.id}")
        return customer.id

    # -------------------------------------------------------------------------
    # Subscription Operations
    # -------------------------------------------------------------------------

    @classmethod
    async def list_customer_subscriptions(cls, customer_id: str, limit: int = 1) -> List[Dict[str, Any]]:
        """
        List a customer's subscriptions (any status), newest first.

        Args:
            customer_id: Stripe customer ID
            limit: Maximum number of subscriptions

        Returns:
            Subscriptions as plain dicts, with the default payment method expanded
        """
        result = await cls.safe_stripe_call(
            stripe.Subscription.list_async,
            customer=customer_id,
            limit=limit,
            status='all',
            expand=['data.default_payment_method'],
        )
        return [subscription.to_dict() for subscription in result.data]

    @classmethod
    async def retrieve_subscription(cls, subscription_id: str) -> Dict[str, Any]:
        """Retrieve a subscription by ID."""
        subscription = await cls.safe_stripe_call(stripe.Subscription.retrieve_async, subscription_id)
        return subscription.to_dict()

    @classmethod
    async def set_cancel_at_period_end(
        cls,
        subscription_id: str,
        cancel: bool,
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Schedule (or revert) cancellation at the end of the current period.

        Args:
            subscription_id: Stripe subscription ID
            cancel: True to cancel at period end, False to keep renewing
            request_id: Uniqueness component of the idempotency key; a fresh one per call by default

        Returns:
            Updated subscription as a plain dict
        """
        subscription = await cls.safe_stripe_call(
            stripe.Subscription.modify_async,
            subscription_id,
            cancel_at_period_end=cancel,
            idempotency_key=generate_idempotency_key(
                'cancel_at_period_end',
                subscription_id,
                cancel,
                request_id=request_id or uuid.uuid4().hex,
            ),
        )
        return subscription.to_dict()

    @classmethod
    async def cancel_subscription_now(cls, subscription_id: str) -> Optional[Dict[str, Any]]:
        """
        Cancel a subscription immediately.

        Args:
            subscription_id: Stripe subscription ID

        Returns:
            Canceled subscription as a plain dict
        """
        subscription = await cls.safe_stripe_call(
            stripe.Subscription.cancel_async,
            subscription_id,
            idempotency_key=generate_idempotency_key('cancel_now', subscription_id),
        )
        return subscription.to_dict()
