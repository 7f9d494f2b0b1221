"""
Subscription Endpoints

Cancel at period end and reactivate. The mirror updates when Stripe's
webhook arrives.
"""

from typing import Dict

from fastapi import APIRouter, Depends

from access_backend.src.lifecycle.subscriptions import subscription_service

from .dependencies import CurrentUser, get_current_user

router = APIRouter(tags=["lifecycle-subscriptions"])


@router.post("/cancel-subscription")
async def cancel_subscription(user: CurrentUser = Depends(get_current_user)) -> Dict:
    """Cancel the caller's subscription at the end of the billing period."""
    return await subscription_service.cancel_subscription(user.id)


@router.post("/reactivate-subscription")
async def reactivate_subscription(user: CurrentUser = Depends(get_current_user)) -> Dict:
    """Undo a pending cancellation."""
    return await subscription_service.reactivate_subscription(user.id)
