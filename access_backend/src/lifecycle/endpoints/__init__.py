"""
Lifecycle Endpoints Module

API routes for access and lifecycle operations.

Routers:
- webhooks: Stripe webhook processing
- access: Access-status lookup
- workspace: Workspace account management
- deletion: Account deletion
- trials: Provisioning, trial start and the trial sweep
- subscriptions: Subscription self-service

Usage:
    from access_backend.src.lifecycle.endpoints import lifecycle_router

    app.include_router(lifecycle_router, prefix="/api/v1")
"""

from fastapi import APIRouter

from .access import router as access_router
from .deletion import router as deletion_router
from .dependencies import CurrentUser, get_current_user, verify_cron_secret
from .subscriptions import router as subscriptions_router
from .trials import router as trials_router
from .webhooks import router as webhooks_router
from .workspace import router as workspace_router

# Create main lifecycle router
lifecycle_router = APIRouter()

# Include all sub-routers
lifecycle_router.include_router(webhooks_router)
lifecycle_router.include_router(access_router)
lifecycle_router.include_router(workspace_router)
lifecycle_router.include_router(deletion_router)
lifecycle_router.include_router(trials_router)
lifecycle_router.include_router(subscriptions_router)

__all__ = [
    'lifecycle_router',
    'access_router',
    'deletion_router',
    'subscriptions_router',
    'trials_router',
    'webhooks_router',
    'workspace_router',
    'CurrentUser',
    'get_current_user',
    'verify_cron_secret',
]
