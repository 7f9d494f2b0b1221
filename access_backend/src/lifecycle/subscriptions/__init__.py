"""Subscription self-service (cancel / reactivate)."""

from .service import SubscriptionService, subscription_service

__all__ = [
    'SubscriptionService',
    'subscription_service',
]
