"""
Stripe Webhook Handlers

Contains handlers for the Stripe webhook event types the lifecycle acts on:
- CheckoutHandler: Checkout session events
- SubscriptionHandler: Subscription lifecycle events
"""

from .checkout import CheckoutHandler
from .subscription import SubscriptionHandler

__all__ = [
    'CheckoutHandler',
    'SubscriptionHandler',
]
