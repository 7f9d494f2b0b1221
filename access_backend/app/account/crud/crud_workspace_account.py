"""CRUD operations for workspace account links."""

from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy_crud_plus import CRUDPlus

from access_backend.app.account.model import WorkspaceAccount
from access_backend.database.db import upsert


class CRUDWorkspaceAccount(CRUDPlus[WorkspaceAccount]):
    """CRUD operations for WorkspaceAccount model."""

    async def get_by_user(self, db: AsyncSession, user_id: str) -> Optional[WorkspaceAccount]:
        result = await db.execute(select(WorkspaceAccount).where(WorkspaceAccount.user_id == user_id))
        return result.scalar_one_or_none()

    async def upsert_link(
        self,
        db: AsyncSession,
        user_id: str,
        email: str,
        workspace_user_id: Optional[str],
        is_active: bool = True,
    ) -> None:
        """
        Create or refresh a user's workspace link.

        :param db: Database session
        :param user_id: User ID
        :param email: Workspace login email
        :param workspace_user_id: User ID inside the workspace product, if known
        :param is_active: Last known active flag
        """
        values = {
            'user_id': user_id,
            'email': email,
            'workspace_user_id': workspace_user_id,
            'is_active': is_active,
        }
        update_columns = ['email', 'is_active']
        if workspace_user_id is not None:
            update_columns.append('workspace_user_id')
        await db.execute(upsert(db, WorkspaceAccount, values, ['user_id'], update_columns=update_columns))

    async def set_active_by_email(self, db: AsyncSession, email: str, is_active: bool) -> int:
        result = await db.execute(
            update(WorkspaceAccount).where(WorkspaceAccount.email == email).values(is_active=is_active)
        )
        return result.rowcount

    async def delete_by_user(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(delete(WorkspaceAccount).where(WorkspaceAccount.user_id == user_id))
        return result.rowcount


# Singleton instance
workspace_account_dao: CRUDWorkspaceAccount = CRUDWorkspaceAccount(WorkspaceAccount)
