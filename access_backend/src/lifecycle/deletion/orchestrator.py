"""
Account Deletion Orchestrator

Tears a user down across billing, the workspace product, the internal
records and the authentication identity.

Steps run in order, each in its own transaction:
1. Record deletion history (fatal on failure: nothing else runs)
2. Billing cleanup and workspace deactivation (best-effort)
3. Access revocation (trial and account state flipped to terminal states)
4. Data deletion, table by table (best-effort)
5. Identity deletion (fatal on failure)

The history entry comes first because it is the only control against
delete-and-resignup trial abuse. Access is revoked before rows are removed,
so a half-finished deletion still leaves the user without access.

Usage:
    from access_backend.src.lifecycle.deletion import account_deletion_service

    report = await account_deletion_service.delete_account(caller_id, user_id)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from access_backend.app.account.crud.crud_billing import stripe_customer_dao, stripe_subscription_dao
from access_backend.app.account.crud.crud_deletion_history import deletion_history_dao
from access_backend.app.account.crud.crud_team import team_dao
from access_backend.app.account.crud.crud_trial import user_trial_dao
from access_backend.app.account.crud.crud_user import account_state_dao, auth_user_dao, user_profile_dao
from access_backend.app.account.crud.crud_workspace_account import workspace_account_dao
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.domain import SubscriptionStatus, TrialStatus
from access_backend.src.lifecycle.external.stripe import StripeAPIWrapper
from access_backend.src.lifecycle.shared.config import LIVE_SUBSCRIPTION_STATUSES, is_protected_user
from access_backend.src.lifecycle.shared.exceptions import (
    DeletionAbortedError,
    IdentityDeletionError,
    PermissionDeniedError,
    ProtectedAccountError,
    StripeUpstreamError,
)
from access_backend.src.lifecycle.workspace import WorkspaceAccountBridge, workspace_bridge

logger = logging.getLogger(__name__)

IMMEDIATE_DELETION_REASON = 'immediate_deletion'


@dataclass
class DeletionReport:
    """Per-step outcome of one account deletion."""
    user_id: str
    reason: str
    steps: List[Dict[str, Any]] = field(default_factory=list)

    def add(self, step: str, status: str, detail: Optional[str] = None) -> None:
        self.steps.append({'step': step, 'status': status, 'detail': detail})

    @property
    def failed_steps(self) -> List[str]:
        return [step['step'] for step in self.steps if step['status'] == 'failed']

    def to_dict(self) -> dict:
        return {
            'user_id': self.user_id,
            'reason': self.reason,
            'steps': self.steps,
            'failed_steps': self.failed_steps,
        }


class AccountDeletionService:
    """
    Multi-system account deletion.

    Args:
        workspace: Bridge used to deactivate the workspace account
    """

    def __init__(self, workspace: WorkspaceAccountBridge = workspace_bridge):
        self.workspace = workspace

    async def delete_account(self, caller_id: str, user_id: str, now: Optional[datetime] = None) -> DeletionReport:
        """
        Delete the caller's own account.

        Args:
            caller_id: Authenticated caller
            user_id: Account to delete (must be the caller's)
            now: Clock override

        Returns:
            DeletionReport

        Raises:
            PermissionDeniedError: If the caller targets another identity
            ProtectedAccountError: If the target is the protected admin
            DeletionAbortedError: If the history entry could not be written
            IdentityDeletionError: If the identity could not be deleted
        """
        if caller_id != user_id:
            logger.warning(f"[DELETION] User {caller_id} attempted to delete {user_id}")
            raise PermissionDeniedError("You can only delete your own account")
        if is_protected_user(user_id):
            logger.warning(f"[DELETION] Rejected deletion of protected account {user_id}")
            raise ProtectedAccountError("Super admin account cannot be deleted")

        return await self.purge_account(user_id, IMMEDIATE_DELETION_REASON, now=now)

    async def purge_account(self, user_id: str, reason: str, now: Optional[datetime] = None) -> DeletionReport:
        """
        Run the deletion steps for a user.

        Also used by the trial sweep for scheduled deletions.

        Args:
            user_id: Account to delete
            reason: Deletion reason recorded in the history
            now: Clock override

        Returns:
            DeletionReport
        """
        if is_protected_user(user_id):
            raise ProtectedAccountError("Super admin account cannot be deleted")

        now = now or datetime.now(timezone.utc)
        report = DeletionReport(user_id=user_id, reason=reason)
        logger.info(f"[DELETION] Starting deletion for user {user_id} ({reason})")

        email = await self._record_history(user_id, reason, now)
        report.add('record_history', 'ok')

        await self._cleanup_billing(user_id, now, report)
        await self._deactivate_workspace(email, report)
        await self._revoke_access(user_id, now, report)
        await self._delete_data(user_id, report)
        await self._delete_identity(user_id, report)

        logger.info(f"[DELETION] Completed deletion for user {user_id} (failed steps: {report.failed_steps})")
        return report

    # -------------------------------------------------------------------------
    # Step 1: history
    # -------------------------------------------------------------------------

    async def _record_history(self, user_id: str, reason: str, now: datetime) -> str:
        try:
            async with async_db_session.begin() as db:
                email = await auth_user_dao.get_email(db, user_id)
                if not email:
                    raise ValueError("Could not retrieve user email for deletion history")

                trial = await user_trial_dao.get_by_user(db, user_id)
                ever_subscribed = False
                customer = await stripe_customer_dao.get_by_user(db, user_id, include_deleted=True)
                if customer:
                    mirror = await stripe_subscription_dao.get_by_customer(db, customer.customer_id)
                    ever_subscribed = mirror is not None and (
                        mirror.subscription_id is not None
                        or mirror.status == SubscriptionStatus.ONE_TIME_PAYMENT.value
                    )

                await deletion_history_dao.record(
                    db,
                    email=email,
                    original_user_id=user_id,
                    has_used_trial=trial is not None or ever_subscribed,
                    ever_subscribed=ever_subscribed,
                    reason=reason,
                    deleted_at=now,
                )
        except Exception as e:
            logger.error(f"[DELETION] CRITICAL: Failed to record deletion history for {user_id}: {e}")
            raise DeletionAbortedError() from e

        logger.info(f"[DELETION] Deletion history recorded for user {user_id}")
        return email

    # -------------------------------------------------------------------------
    # Step 2: billing and workspace
    # -------------------------------------------------------------------------

    async def _cleanup_billing(self, user_id: str, now: datetime, report: DeletionReport) -> None:
        try:
            async with async_db_session() as db:
                customer = await stripe_customer_dao.get_by_user(db, user_id, include_deleted=True)
                mirror = await stripe_subscription_dao.get_by_customer(db, customer.customer_id) if customer else None

            if customer is None:
                logger.info(f"[DELETION] No Stripe customer found for user {user_id}")
                report.add('billing_cleanup', 'skipped', 'no customer')
                return

            if mirror and mirror.subscription_id and mirror.status in LIVE_SUBSCRIPTION_STATUSES:
                try:
                    await StripeAPIWrapper.cancel_subscription_now(mirror.subscription_id)
                    logger.info(f"[DELETION] Cancelled Stripe subscription {mirror.subscription_id}")
                except StripeUpstreamError as e:
                    # The subscription.deleted webhook reconciles later
                    logger.warning(f"[DELETION] Stripe cancel of {mirror.subscription_id} failed: {e.stripe_error}")

            async with async_db_session.begin() as db:
                cancelled = await stripe_subscription_dao.cancel_live(
                    db, customer.customer_id, list(LIVE_SUBSCRIPTION_STATUSES), now
                )
                await stripe_customer_dao.mark_deleted(db, user_id, now)
            report.add('billing_cleanup', 'ok', f'{cancelled} subscription(s) cancelled')
        except Exception as e:
            logger.warning(f"[DELETION] Billing cleanup failed for {user_id} (non-critical): {e}")
            report.add('billing_cleanup', 'failed')

    async def _deactivate_workspace(self, email: str, report: DeletionReport) -> None:
        try:
            deactivated = await self.workspace.deactivate_account(email)
            report.add('workspace_deactivation', 'ok' if deactivated else 'skipped')
        except Exception as e:
            logger.warning(f"[DELETION] Workspace deactivation failed (non-critical): {e}")
            report.add('workspace_deactivation', 'failed')

    # -------------------------------------------------------------------------
    # Step 3: access revocation
    # -------------------------------------------------------------------------

    async def _revoke_access(self, user_id: str, now: datetime, report: DeletionReport) -> None:
        try:
            async with async_db_session.begin() as db:
                await account_state_dao.upsert_state(
                    db,
                    user_id,
                    account_status='deleted',
                    has_access=False,
                    access_level='suspended',
                    trial_days_remaining=0,
                )
                await user_trial_dao.set_status(db, user_id, TrialStatus.DELETED, now=now)
            logger.info(f"[DELETION] Access revoked for user {user_id}")
            report.add('revoke_access', 'ok')
        except Exception as e:
            logger.warning(f"[DELETION] Access revocation failed for {user_id}: {e}")
            report.add('revoke_access', 'failed')

    # -------------------------------------------------------------------------
    # Step 4: data deletion
    # -------------------------------------------------------------------------

    async def _delete_data(self, user_id: str, report: DeletionReport) -> None:
        async def delete_subscriptions(db: AsyncSession) -> int:
            customer = await stripe_customer_dao.get_by_user(db, user_id, include_deleted=True)
            return await stripe_subscription_dao.delete_by_customer(db, customer.customer_id) if customer else 0

        steps: List[Tuple[str, Callable[[AsyncSession], Awaitable[int]]]] = [
            ('stripe_subscriptions', delete_subscriptions),
            ('workspace_accounts', lambda db: workspace_account_dao.delete_by_user(db, user_id)),
            ('team_members', lambda db: team_dao.delete_memberships(db, user_id)),
            ('user_account_state', lambda db: account_state_dao.delete_by_user(db, user_id)),
            ('stripe_customers', lambda db: stripe_customer_dao.delete_by_user(db, user_id)),
            ('user_trials', lambda db: user_trial_dao.delete_by_user(db, user_id)),
            ('user_profiles', lambda db: user_profile_dao.delete_by_id(db, user_id)),
        ]
        for table, delete_rows in steps:
            try:
                async with async_db_session.begin() as db:
                    count = await delete_rows(db)
                logger.info(f"[DELETION] Deleted {count} row(s) from {table}")
                report.add(f'delete_{table}', 'ok')
            except Exception as e:
                logger.warning(f"[DELETION] Failed to delete from {table}: {e}")
                report.add(f'delete_{table}', 'failed')

    # -------------------------------------------------------------------------
    # Step 5: identity
    # -------------------------------------------------------------------------

    async def _delete_identity(self, user_id: str, report: DeletionReport) -> None:
        try:
            async with async_db_session.begin() as db:
                deleted = await auth_user_dao.delete_by_id(db, user_id)
        except Exception as e:
            logger.error(f"[DELETION] Identity deletion failed for {user_id}: {e}")
            report.add('delete_identity', 'failed')
            raise IdentityDeletionError() from e

        if not deleted:
            logger.warning(f"[DELETION] No identity row found for {user_id}")
        report.add('delete_identity', 'ok')
        logger.info(f"[DELETION] Identity deleted for user {user_id}")


# Global instance
account_deletion_service = AccountDeletionService()
