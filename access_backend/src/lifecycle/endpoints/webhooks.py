"""
Webhook Endpoints

Stripe webhook endpoint. Public: the signature check is its only
authentication.
"""

import logging
from typing import Dict

from fastapi import APIRouter, BackgroundTasks, Request

from access_backend.src.lifecycle.external.stripe import webhook_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lifecycle-webhooks"])


@router.post("/webhook")
async def stripe_webhook(request: Request, background_tasks: BackgroundTasks) -> Dict:
    """
    Receive a Stripe webhook.

    Acknowledges as soon as the signature is valid; effects are applied in
    the background. Handles:
    - checkout.session.completed
    - customer.subscription.created
    - customer.subscription.updated
    - customer.subscription.deleted
    """
    payload, event_id, event_type = await webhook_service.verify_stripe_webhook(request)
    background_tasks.add_task(webhook_service.process_event, payload)
    logger.debug(f"[WEBHOOK] Queued {event_type} ({event_id})")
    return {'received': True}
