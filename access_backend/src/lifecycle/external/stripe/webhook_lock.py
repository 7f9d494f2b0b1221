"""
Webhook Lock and Event Log

Deduplicates Stripe deliveries through the ``webhook_events`` table so an
event that already completed is never applied twice, even when several
instances receive the same redelivery.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, update

from access_backend.app.account.model import WebhookEvent
from access_backend.database.db import async_db_session, upsert

logger = logging.getLogger(__name__)

# Processing rows older than this are considered stuck and may be retried
STUCK_PROCESSING_SECONDS = 300


class WebhookLock:
    """
    Database-backed webhook lock.

    Statuses: ``processing`` while a handler runs, ``completed`` once its
    effects are committed, ``failed`` when the handler raised (retryable).
    """

    @classmethod
    async def check_and_mark_webhook_processing(
        cls,
        event_id: str,
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[bool, str]:
        """
        Check if a webhook can be processed and mark it as in-progress.

        Args:
            event_id: Stripe event ID
            event_type: Type of webhook event
            payload: Optional event payload to store
            now: Clock override

        Returns:
            Tuple of (can_process: bool, reason: str)
        """
        now = now or datetime.now(timezone.utc)
        try:
            async with async_db_session.begin() as session:
                result = await session.execute(select(WebhookEvent).where(WebhookEvent.id == event_id))
                existing = result.scalar_one_or_none()

                if existing:
                    if existing.status == 'completed':
                        return False, "Event already processed"
                    elif existing.status == 'processing':
                        age = (now - existing.started_at).total_seconds() if existing.started_at else None
                        if age is not None and age < STUCK_PROCESSING_SECONDS:
                            return False, "Event currently being processed"
                        logger.warning(f"[WEBHOOK LOCK] Event {event_id} stuck in processing, allowing retry")
                    elif existing.status == 'failed':
                        logger.info(f"[WEBHOOK LOCK] Retrying failed event {event_id}")

                await session.execute(
                    upsert(
                        session,
                        WebhookEvent,
                        {
                            'id': event_id,
                            'event_type': event_type,
                            'status': 'processing',
                            'started_at': now,
                            'error_message': None,
                            'payload': payload,
                        },
                        ['id'],
                        update_columns=['status', 'started_at', 'error_message'],
                    )
                )
                return True, "Processing"

        except Exception as e:
            logger.error(f"[WEBHOOK LOCK] Error checking/marking event {event_id}: {e}")
            # Handlers are idempotent: prefer a duplicate over a dropped event
            return True, f"Lock error: {e}"

    @classmethod
    async def mark_webhook_completed(cls, event_id: str) -> bool:
        """
        Mark a webhook event as successfully processed.

        Args:
            event_id: Stripe event ID

        Returns:
            True if marked successfully
        """
        try:
            async with async_db_session.begin() as session:
                await session.execute(
                    update(WebhookEvent)
                    .where(WebhookEvent.id == event_id)
                    .values(status='completed', completed_at=datetime.now(timezone.utc), error_message=None)
                )
            logger.debug(f"[WEBHOOK LOCK] Marked event {event_id} as completed")
            return True

        except Exception as e:
            logger.error(f"[WEBHOOK LOCK] Error marking event {event_id} completed: {e}")
            return False

    @classmethod
    async def mark_webhook_failed(cls, event_id: str, error_message: str) -> bool:
        """
        Mark a webhook event as failed.

        Args:
            event_id: Stripe event ID
            error_message: Error description

        Returns:
            True if marked successfully
        """
        try:
            async with async_db_session.begin() as session:
                await session.execute(
                    update(WebhookEvent)
                    .where(WebhookEvent.id == event_id)
                    .values(status='failed', error_message=error_message[:1000])
                )
            logger.warning(f"[WEBHOOK LOCK] Marked event {event_id} as failed")
            return True

        except Exception as e:
            logger.error(f"[WEBHOOK LOCK] Error marking event {event_id} failed: {e}")
            return False

    @classmethod
    async def get_status(cls, event_id: str) -> Optional[str]:
        """Get the recorded status of an event, if any."""
        async with async_db_session() as session:
            result = await session.execute(select(WebhookEvent.status).where(WebhookEvent.id == event_id))
            return result.scalar_one_or_none()
