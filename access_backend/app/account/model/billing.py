"""Stripe billing mirror models.

Rows here are written by the webhook synchronizer only (the deletion
orchestrator marks them canceled/deleted during teardown).
"""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from access_backend.common.model import Base, TimeZone, id_key


class StripeCustomer(Base):
    """Link between a user and their Stripe customer."""

    __tablename__ = 'stripe_customers'

    id: Mapped[id_key] = mapped_column(init=False)
    user_id: Mapped[str] = mapped_column(sa.String(36), unique=True, index=True, comment='User ID')
    customer_id: Mapped[str] = mapped_column(sa.String(255), unique=True, index=True, comment='Stripe customer ID')
    deleted_at: Mapped[datetime | None] = mapped_column(TimeZone, default=None, comment='Soft deletion time')


class StripeSubscription(Base):
    """
    Local mirror of a customer's Stripe subscription.

    One row per customer; every write is an upsert on ``customer_id``.
    """

    __tablename__ = 'stripe_subscriptions'

    id: Mapped[id_key] = mapped_column(init=False)
    customer_id: Mapped[str] = mapped_column(sa.String(255), unique=True, index=True, comment='Stripe customer ID')
    status: Mapped[str] = mapped_column(sa.String(32), index=True, comment='Stripe status or not_started/one_time_payment')
    subscription_id: Mapped[str | None] = mapped_column(
        sa.String(255), default=None, index=True, comment='Stripe subscription ID'
    )
    price_id: Mapped[str | None] = mapped_column(sa.String(255), default=None, comment='Price of the first item')
    current_period_start: Mapped[int | None] = mapped_column(sa.BigInteger, default=None, comment='Epoch seconds')
    current_period_end: Mapped[int | None] = mapped_column(sa.BigInteger, default=None, comment='Epoch seconds')
    cancel_at_period_end: Mapped[bool] = mapped_column(default=False, comment='Cancels when the period ends')
    payment_method_brand: Mapped[str | None] = mapped_column(sa.String(32), default=None, comment='Card brand')
    payment_method_last4: Mapped[str | None] = mapped_column(sa.String(4), default=None, comment='Card last 4')
    canceled_at: Mapped[datetime | None] = mapped_column(TimeZone, default=None, comment='Cancellation time')
    deleted_at: Mapped[datetime | None] = mapped_column(TimeZone, default=None, comment='Deletion time')


class StripeOrder(Base):
    """Completed one-time checkout."""

    __tablename__ = 'stripe_orders'

    id: Mapped[id_key] = mapped_column(init=False)
    checkout_session_id: Mapped[str] = mapped_column(
        sa.String(255), unique=True, index=True, comment='Stripe checkout session ID'
    )
    customer_id: Mapped[str] = mapped_column(sa.String(255), index=True, comment='Stripe customer ID')
    payment_intent_id: Mapped[str | None] = mapped_column(sa.String(255), default=None, comment='Payment intent ID')
    amount_subtotal: Mapped[int | None] = mapped_column(sa.BigInteger, default=None, comment='Minor units')
    amount_total: Mapped[int | None] = mapped_column(sa.BigInteger, default=None, comment='Minor units')
    currency: Mapped[str | None] = mapped_column(sa.String(8), default=None, comment='ISO currency')
    payment_status: Mapped[str | None] = mapped_column(sa.String(32), default=None, comment='Stripe payment status')
    status: Mapped[str] = mapped_column(sa.String(32), default='completed', comment='Order status')
