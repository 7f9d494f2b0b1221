"""CRUD operations for identities, profiles and account state."""

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy_crud_plus import CRUDPlus

from access_backend.app.account.model import AuthUser, UserAccountState, UserProfile
from access_backend.database.db import upsert


class CRUDAuthUser(CRUDPlus[AuthUser]):
    """CRUD operations for AuthUser model."""

    async def get(self, db: AsyncSession, user_id: str) -> Optional[AuthUser]:
        """
        Get an identity by user ID.

        :param db: Database session
        :param user_id: User ID
        :return: Identity or None
        """
        result = await db.execute(select(AuthUser).where(AuthUser.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[AuthUser]:
        """
        Get an identity by login email, case-insensitively.

        :param db: Database session
        :param email: Login email
        :return: Identity or None
        """
        result = await db.execute(select(AuthUser).where(func.lower(AuthUser.email) == email.strip().lower()))
        return result.scalars().first()

    async def get_email(self, db: AsyncSession, user_id: str) -> Optional[str]:
        """
        Get a user's email, falling back to the profile row.

        :param db: Database session
        :param user_id: User ID
        :return: Email or None
        """
        result = await db.execute(select(AuthUser.email).where(AuthUser.id == user_id))
        email = result.scalar_one_or_none()
        if email:
            return email
        result = await db.execute(select(UserProfile.email).where(UserProfile.id == user_id))
        return result.scalar_one_or_none()

    async def ensure(self, db: AsyncSession, user_id: str, email: str) -> None:
        """
        Create the identity if it does not exist yet.

        :param db: Database session
        :param user_id: User ID
        :param email: Login email
        """
        await db.execute(upsert(db, AuthUser, {'id': user_id, 'email': email}, ['id'], update_columns=[]))

    async def delete_by_id(self, db: AsyncSession, user_id: str) -> int:
        """
        Delete an identity.

        :param db: Database session
        :param user_id: User ID
        :return: Number of deleted rows
        """
        result = await db.execute(delete(AuthUser).where(AuthUser.id == user_id))
        return result.rowcount


class CRUDUserProfile(CRUDPlus[UserProfile]):
    """CRUD operations for UserProfile model."""

    async def ensure(self, db: AsyncSession, user_id: str, email: str, full_name: Optional[str] = None) -> None:
        await db.execute(
            upsert(db, UserProfile, {'id': user_id, 'email': email, 'full_name': full_name}, ['id'], update_columns=[])
        )

    async def delete_by_id(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(delete(UserProfile).where(UserProfile.id == user_id))
        return result.rowcount


class CRUDUserAccountState(CRUDPlus[UserAccountState]):
    """CRUD operations for UserAccountState model."""

    async def get_by_user(self, db: AsyncSession, user_id: str) -> Optional[UserAccountState]:
        result = await db.execute(select(UserAccountState).where(UserAccountState.user_id == user_id))
        return result.scalar_one_or_none()

    async def upsert_state(
        self,
        db: AsyncSession,
        user_id: str,
        account_status: str,
        has_access: bool,
        access_level: str,
        trial_days_remaining: int,
    ) -> None:
        """
        Create or overwrite a user's account state.

        :param db: Database session
        :param user_id: User ID
        :param account_status: e.g. trial_active, deleted
        :param has_access: Coarse access flag
        :param access_level: e.g. trial, suspended
        :param trial_days_remaining: Days left in the trial
        """
        values = {
            'user_id': user_id,
            'account_status': account_status,
            'has_access': has_access,
            'access_level': access_level,
            'trial_days_remaining': trial_days_remaining,
        }
        await db.execute(upsert(db, UserAccountState, values, ['user_id']))

    async def delete_by_user(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(delete(UserAccountState).where(UserAccountState.user_id == user_id))
        return result.rowcount


# Singleton instances
auth_user_dao: CRUDAuthUser = CRUDAuthUser(AuthUser)
user_profile_dao: CRUDUserProfile = CRUDUserProfile(UserProfile)
account_state_dao: CRUDUserAccountState = CRUDUserAccountState(UserAccountState)
