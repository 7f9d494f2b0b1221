"""CRUD operations for trial records."""

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy_crud_plus import CRUDPlus

from access_backend.app.account.model import UserTrial
from access_backend.database.db import upsert
from access_backend.src.lifecycle.domain.trial import TrialStatus, trial_state_fields


class CRUDUserTrial(CRUDPlus[UserTrial]):
    """CRUD operations for UserTrial model."""

    async def get_by_user(self, db: AsyncSession, user_id: str) -> Optional[UserTrial]:
        """
        Get a user's trial record.

        :param db: Database session
        :param user_id: User ID
        :return: Trial record or None
        """
        result = await db.execute(select(UserTrial).where(UserTrial.user_id == user_id))
        return result.scalar_one_or_none()

    async def upsert_trial(
        self,
        db: AsyncSession,
        user_id: str,
        trial_start: datetime,
        trial_end: datetime,
        status: TrialStatus = TrialStatus.ACTIVE,
        deletion_scheduled_at: Optional[datetime] = None,
    ) -> None:
        """
        Create or overwrite a user's whole trial window.

        :param db: Database session
        :param user_id: User ID
        :param trial_start: Window start
        :param trial_end: Window end
        :param status: Trial status
        :param deletion_scheduled_at: Teardown time for scheduled/canceled trials
        """
        values = {
            'user_id': user_id,
            'trial_start': trial_start,
            'trial_end': trial_end,
            **trial_state_fields(status, deletion_scheduled_at),
        }
        await db.execute(upsert(db, UserTrial, values, ['user_id']))

    async def set_status(
        self,
        db: AsyncSession,
        user_id: str,
        status: TrialStatus,
        deletion_scheduled_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Set a trial's status, creating a zero-length record when none exists.

        :param db: Database session
        :param user_id: User ID
        :param status: New trial status
        :param deletion_scheduled_at: Teardown time for scheduled/canceled trials
        :param now: Window bounds for a record created here
        """
        fields = trial_state_fields(status, deletion_scheduled_at)
        values = {'user_id': user_id, 'trial_start': now, 'trial_end': now, **fields}
        if now is None:
            await db.execute(update(UserTrial).where(UserTrial.user_id == user_id).values(**fields))
            return
        await db.execute(upsert(db, UserTrial, values, ['user_id'], update_columns=list(fields)))

    async def convert_to_paid(self, db: AsyncSession, user_ids: Sequence[str]) -> int:
        """
        Mark trials of paying users as converted.

        :param db: Database session
        :param user_ids: Users with a paying subscription
        :return: Number of converted trials
        """
        if not user_ids:
            return 0
        result = await db.execute(
            update(UserTrial)
            .where(
                and_(
                    UserTrial.user_id.in_(user_ids),
                    UserTrial.trial_status.in_([
                        TrialStatus.ACTIVE.value,
                        TrialStatus.EXPIRED.value,
                        TrialStatus.SCHEDULED_FOR_DELETION.value,
                    ]),
                )
            )
            .values(**trial_state_fields(TrialStatus.CONVERTED_TO_PAID))
        )
        return result.rowcount

    async def expire_lapsed(self, db: AsyncSession, now: datetime) -> int:
        """
        Expire active trials whose window has closed.

        :param db: Database session
        :param now: Current time
        :return: Number of expired trials
        """
        result = await db.execute(
            update(UserTrial)
            .where(and_(UserTrial.trial_status == TrialStatus.ACTIVE.value, UserTrial.trial_end <= now))
            .values(**trial_state_fields(TrialStatus.EXPIRED))
        )
        return result.rowcount

    async def get_expired(self, db: AsyncSession) -> Sequence[UserTrial]:
        result = await db.execute(select(UserTrial).where(UserTrial.trial_status == TrialStatus.EXPIRED.value))
        return result.scalars().all()

    async def get_due_for_deletion(self, db: AsyncSession, now: datetime) -> Sequence[UserTrial]:
        """
        Get trials whose scheduled deletion time has passed.

        :param db: Database session
        :param now: Current time
        :return: Due trial records
        """
        result = await db.execute(
            select(UserTrial)
            .where(
                and_(
                    or_(
                        UserTrial.trial_status == TrialStatus.SCHEDULED_FOR_DELETION.value,
                        UserTrial.trial_status == TrialStatus.CANCELED.value,
                    ),
                    UserTrial.deletion_scheduled_at <= now,
                )
            )
            .order_by(UserTrial.deletion_scheduled_at)
        )
        return result.scalars().all()

    async def delete_by_user(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(delete(UserTrial).where(UserTrial.user_id == user_id))
        return result.rowcount


# Singleton instance
user_trial_dao: CRUDUserTrial = CRUDUserTrial(UserTrial)
