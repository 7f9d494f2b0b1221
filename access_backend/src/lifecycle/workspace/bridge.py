"""
Workspace Account Bridge

Creates, deactivates and reactivates a user's Axie Studio account, gated by
the access resolver.

The bridge re-resolves access itself before creating or reactivating an
account; the UI's button visibility is advisory only. Removal is a
deactivation in the workspace product so the user's workspace data survives
a later reactivation.

Usage:
    from access_backend.src.lifecycle.workspace import workspace_bridge

    result = await workspace_bridge.create_account(email, password, user_id)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from access_backend.app.account.crud.crud_workspace_account import workspace_account_dao
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.access import access_resolver
from access_backend.src.lifecycle.domain import AccessStatus
from access_backend.src.lifecycle.external.workspace import AxieStudioClient
from access_backend.src.lifecycle.shared.exceptions import (
    AccessRequiredError,
    WorkspaceAlreadyExistsError,
    WorkspaceError,
    WorkspaceUpstreamError,
)

logger = logging.getLogger(__name__)


def _workspace_id(user: Dict[str, Any]) -> Optional[str]:
    value = user.get('id') or user.get('user_id')
    return str(value) if value is not None else None


class WorkspaceAccountBridge:
    """
    Access-gated workspace account management.

    Args:
        client_factory: Builds the workspace API client (an async context manager)
    """

    def __init__(self, client_factory: Callable[[], AxieStudioClient] = AxieStudioClient):
        self.client_factory = client_factory

    async def _resolve(self, user_id: str, now: Optional[datetime]) -> AccessStatus:
        async with async_db_session() as db:
            return await access_resolver.resolve(db, user_id, now=now)

    @staticmethod
    def _already_exists(email: str) -> Dict[str, Any]:
        return {
            'success': True,
            'already_exists': True,
            'user_id': 'existing',
            'email': email,
            'message': 'AxieStudio account already exists for this email',
        }

    async def _save_link(self, user_id: str, email: str, workspace_user_id: Optional[str], is_active: bool) -> None:
        async with async_db_session.begin() as db:
            await workspace_account_dao.upsert_link(db, user_id, email, workspace_user_id, is_active=is_active)

    async def create_account(
        self,
        email: str,
        password: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Create the user's workspace account.

        Args:
            email: Login email (also the workspace username)
            password: Workspace password, passed through and never stored
            user_id: Owning user
            now: Clock override for the access check

        Returns:
            Dict with success, already_exists, user_id and email

        Raises:
            AccessRequiredError: If the user lacks access right now
            WorkspaceUpstreamError: If the workspace API fails
        """
        now = now or datetime.now(timezone.utc)
        status = await self._resolve(user_id, now)
        if not status.has_access or not status.can_create_workspace_account:
            logger.info(f"[WORKSPACE] Access denied for user {user_id}: {status.access_type.value}")
            raise AccessRequiredError(
                message=(
                    "AxieStudio account creation requires an active subscription or trial. "
                    "Please subscribe to continue."
                ),
                has_access=False,
                trial_status=status.trial_status or 'unknown',
                subscription_status=status.subscription_status or 'none',
            )

        async with self.client_factory() as client:
            try:
                existing = await client.find_user(email)
            except WorkspaceUpstreamError as e:
                # Best-effort; the duplicate-username answer is the fallback detection
                logger.warning(f"[WORKSPACE] Existence check failed for user {user_id}: {e.message}")
                existing = None

            if existing:
                logger.info(f"[WORKSPACE] Account already exists for user {user_id}")
                await self._save_link(
                    user_id, email, _workspace_id(existing), bool(existing.get('is_active', True))
                )
                return self._already_exists(email)

            try:
                created = await client.create_user(email, password, is_active=True)
            except WorkspaceAlreadyExistsError:
                await self._save_link(user_id, email, None, True)
                return self._already_exists(email)

            workspace_user_id = _workspace_id(created)
            if workspace_user_id:
                try:
                    await client.update_user(workspace_user_id, is_active=True, is_verified=True)
                except WorkspaceUpstreamError as e:
                    logger.warning(f"[WORKSPACE] Activation of {workspace_user_id} failed, continuing: {e.message}")

        await self._save_link(user_id, email, workspace_user_id, True)
        logger.info(f"[WORKSPACE] Created account for user {user_id}")
        return {
            'success': True,
            'already_exists': False,
            'user_id': workspace_user_id or 'unknown',
            'email': email,
        }

    async def deactivate_account(self, email: str) -> bool:
        """
        Deactivate the workspace account of an email, preserving its data.

        Args:
            email: Login email

        Returns:
            True if an account was deactivated, False if none exists
        """
        async with self.client_factory() as client:
            user = await client.find_user(email)
            if user is None:
                logger.info("[WORKSPACE] No workspace account to deactivate")
                return False
            workspace_user_id = _workspace_id(user)
            if workspace_user_id is None:
                raise WorkspaceUpstreamError("Workspace user listing carries no user ID")
            await client.update_user(workspace_user_id, is_active=False)

        async with async_db_session.begin() as db:
            await workspace_account_dao.set_active_by_email(db, email, False)
        logger.info(f"[WORKSPACE] Deactivated workspace user {workspace_user_id}")
        return True

    async def reactivate_account(self, email: str, user_id: str, now: Optional[datetime] = None) -> bool:
        """
        Reactivate a deactivated workspace account.

        Args:
            email: Login email
            user_id: Owning user (must currently have access)
            now: Clock override for the access check

        Returns:
            True once the account is active

        Raises:
            AccessRequiredError: If the user lacks access right now
            WorkspaceError: If no workspace account exists for the email
        """
        status = await self._resolve(user_id, now)
        if not status.has_access:
            raise AccessRequiredError(
                message="Reactivating the workspace account requires an active subscription or trial",
                has_access=False,
                trial_status=status.trial_status or 'unknown',
                subscription_status=status.subscription_status or 'none',
            )

        async with self.client_factory() as client:
            user = await client.find_user(email)
            if user is None:
                raise WorkspaceError("No workspace account found for this email", code="NOT_FOUND", status_code=404)
            workspace_user_id = _workspace_id(user)
            if workspace_user_id is None:
                raise WorkspaceUpstreamError("Workspace user listing carries no user ID")
            await client.update_user(workspace_user_id, is_active=True)

        await self._save_link(user_id, email, workspace_user_id, True)
        logger.info(f"[WORKSPACE] Reactivated workspace user {workspace_user_id} for user {user_id}")
        return True


# Global instance
workspace_bridge = WorkspaceAccountBridge()
