"""
Trial Sweep

The externally scheduled trial-expiry and scheduled-deletion run. Nothing in
this service times itself; a cron job calls ``POST /trial-cleanup``.

Steps:
1. Protect paying customers (their trials become ``converted_to_paid``)
2. Expire active trials whose window has closed
3. Schedule expired trials for deletion after the grace period and
   deactivate their workspace accounts (best-effort)
4. Delete users whose scheduled deletion is due, except the protected
   admin and anyone who still resolves to access
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from access_backend.app.account.crud.crud_billing import stripe_customer_dao, stripe_subscription_dao
from access_backend.app.account.crud.crud_trial import user_trial_dao
from access_backend.app.account.crud.crud_user import auth_user_dao
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.access import access_resolver
from access_backend.src.lifecycle.deletion import AccountDeletionService, account_deletion_service
from access_backend.src.lifecycle.domain import SubscriptionStatus, TrialStatus
from access_backend.src.lifecycle.shared.config import (
    ACCESS_GRANTING_STATUSES,
    DELETION_GRACE_PERIOD,
    is_protected_user,
)
from access_backend.src.lifecycle.shared.exceptions import LifecycleError
from access_backend.src.lifecycle.workspace import WorkspaceAccountBridge

logger = logging.getLogger(__name__)

PAYING_STATUSES = sorted(ACCESS_GRANTING_STATUSES | {SubscriptionStatus.ONE_TIME_PAYMENT.value})


class TrialSweep:
    """
    Trial expiry and scheduled deletion.

    Args:
        deletion_service: Orchestrator used for due deletions
        workspace: Bridge used to deactivate lapsed workspace accounts,
            defaults to the deletion service's bridge
    """

    def __init__(
        self,
        deletion_service: AccountDeletionService = account_deletion_service,
        workspace: Optional[WorkspaceAccountBridge] = None,
    ):
        self.deletion_service = deletion_service
        self.workspace = workspace or deletion_service.workspace

    async def run(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run one sweep.

        Args:
            now: Clock override

        Returns:
            Dict with success, total_candidates, protected_users, processed and results
        """
        now = now or datetime.now(timezone.utc)
        logger.info(f"[TRIAL SWEEP] Starting at {now.isoformat()}")

        async with async_db_session.begin() as db:
            customer_ids = await stripe_subscription_dao.get_customer_ids_with_status(db, PAYING_STATUSES)
            paying_user_ids = await stripe_customer_dao.get_user_ids(db, customer_ids)
            converted = await user_trial_dao.convert_to_paid(db, paying_user_ids)

            expired = await user_trial_dao.expire_lapsed(db, now)

            scheduled = 0
            lapsed: List[str] = []
            for trial in await user_trial_dao.get_expired(db):
                await user_trial_dao.set_status(
                    db,
                    trial.user_id,
                    TrialStatus.SCHEDULED_FOR_DELETION,
                    trial.trial_end + DELETION_GRACE_PERIOD,
                )
                scheduled += 1
                lapsed.append(trial.user_id)

        logger.info(f"[TRIAL SWEEP] converted={converted} expired={expired} scheduled={scheduled}")
        deactivated = await self._deactivate_workspaces(lapsed, now)

        async with async_db_session() as db:
            candidates = list(await user_trial_dao.get_due_for_deletion(db, now))

        safe_to_delete: List[Any] = []
        for trial in candidates:
            if is_protected_user(trial.user_id):
                logger.warning(f"[TRIAL SWEEP] Skipping protected account {trial.user_id}")
                continue
            async with async_db_session() as db:
                status = await access_resolver.resolve(db, trial.user_id, now=now)
            if status.has_access:
                logger.info(f"[TRIAL SWEEP] Skipping {trial.user_id}: still has {status.access_type.value} access")
                continue
            safe_to_delete.append(trial)

        results = []
        for trial in safe_to_delete:
            reason = 'subscription_canceled' if trial.trial_status == TrialStatus.CANCELED.value else 'trial_expired'
            try:
                report = await self.deletion_service.purge_account(trial.user_id, reason, now=now)
                results.append({'user_id': trial.user_id, 'success': True, 'failed_steps': report.failed_steps})
            except LifecycleError as e:
                logger.error(f"[TRIAL SWEEP] Deletion of {trial.user_id} failed: {e.code}")
                results.append({'user_id': trial.user_id, 'success': False, 'error': e.code})

        logger.info(f"[TRIAL SWEEP] Done: candidates={len(candidates)} processed={len(safe_to_delete)}")
        return {
            'success': True,
            'message': 'Trial cleanup completed',
            'converted': converted,
            'expired': expired,
            'scheduled': scheduled,
            'deactivated': deactivated,
            'total_candidates': len(candidates),
            'protected_users': len(candidates) - len(safe_to_delete),
            'processed': len(safe_to_delete),
            'results': results,
        }

    async def _deactivate_workspaces(self, user_ids: List[str], now: datetime) -> int:
        """Deactivate the workspace accounts of lapsed trials; failures are logged and skipped."""
        deactivated = 0
        for user_id in user_ids:
            if is_protected_user(user_id):
                continue
            async with async_db_session() as db:
                status = await access_resolver.resolve(db, user_id, now=now)
                email = await auth_user_dao.get_email(db, user_id)
            if status.has_access or not email:
                continue
            try:
                if await self.workspace.deactivate_account(email):
                    deactivated += 1
            except LifecycleError as e:
                logger.warning(f"[TRIAL SWEEP] Workspace deactivation for {user_id} failed: {e.code}")
        return deactivated


# Global instance
trial_sweep = TrialSweep()
