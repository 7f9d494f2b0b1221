"""CRUD operations for the Stripe billing mirror."""

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy_crud_plus import CRUDPlus

from access_backend.app.account.model import StripeCustomer, StripeOrder, StripeSubscription
from access_backend.database.db import upsert


class CRUDStripeCustomer(CRUDPlus[StripeCustomer]):
    """CRUD operations for StripeCustomer model."""

    async def get_by_user(self, db: AsyncSession, user_id: str, include_deleted: bool = False) -> Optional[StripeCustomer]:
        """
        Get a user's Stripe customer link.

        :param db: Database session
        :param user_id: User ID
        :param include_deleted: Also return soft-deleted links
        :return: Customer link or None
        """
        query = select(StripeCustomer).where(StripeCustomer.user_id == user_id)
        if not include_deleted:
            query = query.where(StripeCustomer.deleted_at.is_(None))
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_customer_id(self, db: AsyncSession, customer_id: str) -> Optional[StripeCustomer]:
        result = await db.execute(select(StripeCustomer).where(StripeCustomer.customer_id == customer_id))
        return result.scalar_one_or_none()

    async def get_user_ids(self, db: AsyncSession, customer_ids: Sequence[str]) -> Sequence[str]:
        """
        Get the users linked to Stripe customers (soft-deleted links excluded).

        :param db: Database session
        :param customer_ids: Stripe customer IDs
        :return: User IDs
        """
        if not customer_ids:
            return []
        result = await db.execute(
            select(StripeCustomer.user_id).where(
                and_(StripeCustomer.customer_id.in_(customer_ids), StripeCustomer.deleted_at.is_(None))
            )
        )
        return result.scalars().all()

    async def link(self, db: AsyncSession, user_id: str, customer_id: str) -> None:
        """
        Link a user to a Stripe customer (keeps an existing link).

        :param db: Database session
        :param user_id: User ID
        :param customer_id: Stripe customer ID
        """
        await db.execute(
            upsert(
                db,
                StripeCustomer,
                {'user_id': user_id, 'customer_id': customer_id, 'deleted_at': None},
                ['user_id'],
                update_columns=[],
            )
        )

    async def mark_deleted(self, db: AsyncSession, user_id: str, now: datetime) -> int:
        result = await db.execute(
            update(StripeCustomer).where(StripeCustomer.user_id == user_id).values(deleted_at=now)
        )
        return result.rowcount

    async def delete_by_user(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(delete(StripeCustomer).where(StripeCustomer.user_id == user_id))
        return result.rowcount


class CRUDStripeSubscription(CRUDPlus[StripeSubscription]):
    """CRUD operations for StripeSubscription model."""

    async def get_by_customer(self, db: AsyncSession, customer_id: str) -> Optional[StripeSubscription]:
        """
        Get the mirror row of a customer.

        :param db: Database session
        :param customer_id: Stripe customer ID
        :return: Mirror row or None
        """
        result = await db.execute(select(StripeSubscription).where(StripeSubscription.customer_id == customer_id))
        return result.scalar_one_or_none()

    async def upsert_mirror(self, db: AsyncSession, values: Dict[str, Any]) -> None:
        """
        Replace the mirror row of ``values['customer_id']``.

        Only the columns present in ``values`` are overwritten on conflict.

        :param db: Database session
        :param values: Column values, must include ``customer_id`` and ``status``
        """
        await db.execute(upsert(db, StripeSubscription, values, ['customer_id']))

    async def cancel_live(
        self, db: AsyncSession, customer_id: str, statuses: Sequence[str], now: datetime
    ) -> int:
        """
        Mark a customer's live subscription canceled and deleted.

        :param db: Database session
        :param customer_id: Stripe customer ID
        :param statuses: Statuses considered live
        :param now: Cancellation time
        :return: Number of canceled rows
        """
        result = await db.execute(
            update(StripeSubscription)
            .where(and_(StripeSubscription.customer_id == customer_id, StripeSubscription.status.in_(statuses)))
            .values(status='canceled', cancel_at_period_end=True, canceled_at=now, deleted_at=now)
        )
        return result.rowcount

    async def get_customer_ids_with_status(self, db: AsyncSession, statuses: Sequence[str]) -> Sequence[str]:
        result = await db.execute(
            select(StripeSubscription.customer_id).where(
                and_(StripeSubscription.status.in_(statuses), StripeSubscription.deleted_at.is_(None))
            )
        )
        return result.scalars().all()

    async def delete_by_customer(self, db: AsyncSession, customer_id: str) -> int:
        result = await db.execute(delete(StripeSubscription).where(StripeSubscription.customer_id == customer_id))
        return result.rowcount


class CRUDStripeOrder(CRUDPlus[StripeOrder]):
    """CRUD operations for StripeOrder model."""

    async def upsert_order(self, db: AsyncSession, values: Dict[str, Any]) -> None:
        """
        Record a completed one-time checkout, once per checkout session.

        :param db: Database session
        :param values: Column values, must include ``checkout_session_id``
        """
        await db.execute(upsert(db, StripeOrder, values, ['checkout_session_id']))


# Singleton instances
stripe_customer_dao: CRUDStripeCustomer = CRUDStripeCustomer(StripeCustomer)
stripe_subscription_dao: CRUDStripeSubscription = CRUDStripeSubscription(StripeSubscription)
stripe_order_dao: CRUDStripeOrder = CRUDStripeOrder(StripeOrder)
