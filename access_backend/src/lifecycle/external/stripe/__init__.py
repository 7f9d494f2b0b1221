"""
Stripe Integration Module

Provides the Stripe side of the lifecycle:
- Async API wrapper with typed error translation
- Idempotency key generation
- Typed event schemas
- Webhook processing and event handlers

Usage:
    from access_backend.src.lifecycle.external.stripe import StripeAPIWrapper, webhook_service

    payload, event_id, event_type = await webhook_service.verify_stripe_webhook(request)
    await webhook_service.process_event(payload)
"""

from .client import (
    StripeAPIWrapper,
    generate_idempotency_key,
)

from .events import (
    HANDLED_EVENT_TYPES,
    CheckoutSession,
    Subscription,
    parse_event,
)

from .webhook_lock import WebhookLock

from .webhooks import (
    WebhookService,
    webhook_service,
)

from .handlers import (
    CheckoutHandler,
    SubscriptionHandler,
)

__all__ = [
    # API Client
    'StripeAPIWrapper',
    'generate_idempotency_key',
    # Events
    'HANDLED_EVENT_TYPES',
    'CheckoutSession',
    'Subscription',
    'parse_event',
    # Webhook Lock
    'WebhookLock',
    # Webhook Service
    'WebhookService',
    'webhook_service',
    # Handlers
    'CheckoutHandler',
    'SubscriptionHandler',
]
