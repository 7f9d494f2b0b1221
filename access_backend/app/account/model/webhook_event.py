"""Processed Stripe webhook events."""

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from access_backend.common.model import Base, TimeZone


class WebhookEvent(Base):
    """
    Stripe delivery log used to skip events that already completed.

    ``status`` is one of processing, completed, failed.
    """

    __tablename__ = 'webhook_events'

    id: Mapped[str] = mapped_column(sa.String(255), primary_key=True, comment='Stripe event ID')
    event_type: Mapped[str] = mapped_column(sa.String(128), index=True, comment='Stripe event type')
    status: Mapped[str] = mapped_column(sa.String(16), default='processing', index=True, comment='Processing status')
    started_at: Mapped[datetime | None] = mapped_column(TimeZone, default=None, comment='Last processing start')
    completed_at: Mapped[datetime | None] = mapped_column(TimeZone, default=None, comment='Completion time')
    error_message: Mapped[str | None] = mapped_column(sa.Text, default=None, comment='Last error')
    payload: Mapped[dict[str, Any] | None] = mapped_column(sa.JSON, default=None, comment='Raw event JSON')
