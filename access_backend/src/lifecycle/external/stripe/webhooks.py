"""
Stripe Webhook Service

Central dispatcher for Stripe webhook events.
Handles signature verification, deduplication, and routing to handlers.

Verification is the only synchronous step: once the signature checks out the
endpoint acknowledges the delivery and ``process_event`` runs in the
background. Processing errors are logged and recorded in the event log but
never change the acknowledgement, so transient failures cannot trigger a
Stripe retry storm.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

import stripe
from fastapi import HTTPException, Request

from access_backend.core.conf import settings

from .events import (
    CheckoutSessionCompleted,
    StripeEvent,
    SubscriptionCreated,
    SubscriptionDeleted,
    SubscriptionUpdated,
    parse_event,
    peek_event_header,
)
from .webhook_lock import WebhookLock

logger = logging.getLogger(__name__)


class WebhookService:
    """
    Central service for processing Stripe webhooks.

    Responsibilities:
    - Verify webhook signatures
    - Deduplicate events through the webhook event log
    - Route events to appropriate handlers
    - Handle errors and mark event status

    Usage:
        payload, event_id, event_type = await webhook_service.verify_stripe_webhook(request)
        background_tasks.add_task(webhook_service.process_event, payload)
    """

    async def verify_stripe_webhook(self, request: Request) -> Tuple[bytes, str, str]:
        """
        Verify an incoming Stripe webhook.

        Args:
            request: FastAPI Request object

        Returns:
            Tuple of (raw payload, event ID, event type)

        Raises:
            HTTPException: If the signature is missing or invalid, or the secret is not configured
        """
        payload = await request.body()
        sig_header = request.headers.get('stripe-signature')

        if not sig_header:
            raise HTTPException(status_code=400, detail="Missing stripe-signature header")

        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.error("[WEBHOOK] STRIPE_WEBHOOK_SECRET not configured")
            raise HTTPException(status_code=500, detail="Webhook secret not configured")

        try:
            event = stripe.Webhook.construct_event(
                payload,
                sig_header,
                settings.STRIPE_WEBHOOK_SECRET,
                tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"[WEBHOOK] Invalid signature: {e}")
            raise HTTPException(status_code=400, detail="Invalid webhook signature")
        except ValueError as e:
            logger.warning(f"[WEBHOOK] Invalid payload: {e}")
            raise HTTPException(status_code=400, detail="Invalid payload")

        logger.info(f"[WEBHOOK] Verified event {event.id} ({event.type})")
        return payload, event.id, event.type

    async def process_event(self, payload: bytes) -> Dict[str, Any]:
        """
        Apply a verified event. Never raises.

        Args:
            payload: Raw, already verified request body

        Returns:
            Dict with processing status
        """
        event_id: Optional[str] = None
        try:
            header = peek_event_header(payload)
            event_id, event_type = header['id'], header['type']

            can_process, reason = await WebhookLock.check_and_mark_webhook_processing(
                event_id,
                event_type,
                payload=json.loads(payload),
            )
            if not can_process:
                logger.info(f"[WEBHOOK] Skipping event {event_id}: {reason}")
                return {'status': 'skipped', 'event_id': event_id, 'message': reason}

            logger.info(f"[WEBHOOK] Processing event type: {event_type} (ID: {event_id})")

            event = parse_event(payload)
            if event is None:
                logger.info(f"[WEBHOOK] Unhandled event type: {event_type}")
            else:
                await self._route_event(event)

            await WebhookLock.mark_webhook_completed(event_id)
            return {'status': 'success', 'event_id': event_id}

        except Exception as e:
            logger.error(f"[WEBHOOK] Error processing webhook {event_id}: {e}", exc_info=True)

            if event_id:
                await WebhookLock.mark_webhook_failed(event_id, f"{type(e).__name__}: {str(e)[:500]}")

            return {
                'status': 'failed',
                'event_id': event_id,
                'error': 'processed_with_errors',
            }

    async def _route_event(self, event: StripeEvent) -> None:
        """
        Route event to the appropriate handler.

        Args:
            event: Typed Stripe event
        """
        # Import handlers here to avoid circular imports
        from .handlers.checkout import CheckoutHandler
        from .handlers.subscription import SubscriptionHandler

        if isinstance(event, CheckoutSessionCompleted):
            logger.info("[WEBHOOK] Handling checkout.session.completed")
            await CheckoutHandler.handle_checkout_completed(event)

        elif isinstance(event, SubscriptionCreated):
            logger.info("[WEBHOOK] Handling customer.subscription.created")
            await SubscriptionHandler.handle_subscription_created(event)

        elif isinstance(event, SubscriptionUpdated):
            logger.info("[WEBHOOK] Handling customer.subscription.updated")
            await SubscriptionHandler.handle_subscription_updated(event)

        elif isinstance(event, SubscriptionDeleted):
            logger.info("[WEBHOOK] Handling customer.subscription.deleted")
            await SubscriptionHandler.handle_subscription_deleted(event)


# Global instance
webhook_service = WebhookService()
