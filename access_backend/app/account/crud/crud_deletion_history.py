"""CRUD operations for deletion history."""

from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy_crud_plus import CRUDPlus

from access_backend.app.account.model import DeletionHistory


class CRUDDeletionHistory(CRUDPlus[DeletionHistory]):
    """CRUD operations for DeletionHistory model (append-only)."""

    async def record(
        self,
        db: AsyncSession,
        email: str,
        original_user_id: str,
        has_used_trial: bool,
        ever_subscribed: bool,
        reason: str,
        deleted_at: datetime,
    ) -> DeletionHistory:
        """
        Append a deletion history entry.

        :param db: Database session
        :param email: Email of the account being deleted
        :param original_user_id: User ID of the account being deleted
        :param has_used_trial: Whether a trial was consumed
        :param ever_subscribed: Whether a subscription ever existed
        :param reason: Deletion reason
        :param deleted_at: Deletion time
        :return: New entry
        """
        entry = DeletionHistory(
            email=email.strip().lower(),
            original_user_id=original_user_id,
            deleted_at=deleted_at,
            has_used_trial=has_used_trial,
            ever_subscribed=ever_subscribed,
            deletion_reason=reason,
        )
        db.add(entry)
        await db.flush()
        return entry

    async def has_used_trial(self, db: AsyncSession, email: str) -> bool:
        """
        Check whether an email already consumed a trial on a deleted account.

        :param db: Database session
        :param email: Email to check
        :return: True for returning users
        """
        result = await db.execute(
            select(func.count())
            .select_from(DeletionHistory)
            .where(and_(DeletionHistory.email == email.strip().lower(), DeletionHistory.has_used_trial.is_(True)))
        )
        return result.scalar_one() > 0


# Singleton instance
deletion_history_dao: CRUDDeletionHistory = CRUDDeletionHistory(DeletionHistory)
