"""
Trial Service

Signup provisioning and explicit trial start.

A returning email (one found in the deletion history with a consumed trial)
never gets a fresh free trial: provisioning gives it a trial that is already
expired, and starting a trial is rejected with ``requires_subscription``.

Usage:
    from access_backend.src.lifecycle.trials import trial_service

    result = await trial_service.provision_user(user_id, email)
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from access_backend.app.account.crud.crud_deletion_history import deletion_history_dao
from access_backend.app.account.crud.crud_trial import user_trial_dao
from access_backend.app.account.crud.crud_user import account_state_dao, auth_user_dao, user_profile_dao
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.domain import TrialRecord, TrialStatus
from access_backend.src.lifecycle.domain.trial import days_from_seconds
from access_backend.src.lifecycle.shared.config import TRIAL_DURATION_DAYS
from access_backend.src.lifecycle.shared.exceptions import PermissionDeniedError, TrialError

logger = logging.getLogger(__name__)


class TrialService:
    """Creates and restarts trial records."""

    async def provision_user(
        self,
        user_id: str,
        email: str,
        full_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Provision a newly signed-up user.

        Creates the identity, profile, trial record and account state.
        Calling it again for an existing user keeps the existing trial.

        Args:
            user_id: New user's ID
            email: Login email
            full_name: Optional display name
            now: Clock override

        Returns:
            Dict describing the user's trial
        """
        now = now or datetime.now(timezone.utc)

        async with async_db_session.begin() as db:
            await auth_user_dao.ensure(db, user_id, email)
            await user_profile_dao.ensure(db, user_id, email, full_name)

            existing = await user_trial_dao.get_by_user(db, user_id)
            if existing is not None:
                logger.info(f"[TRIAL] User {user_id} already provisioned")
                trial = TrialRecord.from_row(existing)
                is_returning_user = await deletion_history_dao.has_used_trial(db, email)
                return {**trial.to_dict(), 'is_returning_user': is_returning_user}

            is_returning_user = await deletion_history_dao.has_used_trial(db, email)
            if is_returning_user:
                # Zero-length window: no free access, subscription required
                trial = TrialRecord(user_id=user_id, trial_start=now, trial_end=now, trial_status=TrialStatus.EXPIRED)
                await account_state_dao.upsert_state(
                    db, user_id, account_status='trial_expired', has_access=False,
                    access_level='none', trial_days_remaining=0,
                )
                logger.info(f"[TRIAL] Returning user {user_id} provisioned without a free trial")
            else:
                trial = TrialRecord.new(user_id, now)
                await account_state_dao.upsert_state(
                    db, user_id, account_status='trial_active', has_access=True,
                    access_level='trial', trial_days_remaining=TRIAL_DURATION_DAYS,
                )
                logger.info(f"[TRIAL] User {user_id} provisioned with a {TRIAL_DURATION_DAYS}-day trial")

            await user_trial_dao.upsert_trial(
                db, user_id, trial.trial_start, trial.trial_end, status=trial.trial_status
            )

        return {**trial.to_dict(), 'is_returning_user': is_returning_user}

    async def start_trial(self, caller_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Start (or restart) a 7-day free trial for the caller.

        Args:
            caller_id: Authenticated caller
            user_id: Target user (must be the caller)
            now: Clock override

        Returns:
            Dict with the new trial window

        Raises:
            PermissionDeniedError: If the caller targets another user
            TrialError: If a trial is running or was already used
        """
        if caller_id != user_id:
            raise PermissionDeniedError("You can only start trial for your own account")

        now = now or datetime.now(timezone.utc)

        async with async_db_session.begin() as db:
            existing_row = await user_trial_dao.get_by_user(db, user_id)
            existing = TrialRecord.from_row(existing_row) if existing_row else None
            if existing and existing.is_running(now):
                raise TrialError("You already have an active trial", code="TRIAL_ACTIVE")

            email = await auth_user_dao.get_email(db, user_id)
            returning = bool(email) and await deletion_history_dao.has_used_trial(db, email)
            if returning or (existing and existing.is_consumed(now)):
                logger.info(f"[TRIAL] User {user_id} already used their trial")
                raise TrialError(
                    "You have already used your free trial. Please subscribe to continue.",
                    code="TRIAL_ALREADY_USED",
                    requires_subscription=True,
                )

            trial = TrialRecord.new(user_id, now)
            await user_trial_dao.upsert_trial(db, user_id, trial.trial_start, trial.trial_end)
            await account_state_dao.upsert_state(
                db, user_id, account_status='trial_active', has_access=True,
                access_level='trial', trial_days_remaining=TRIAL_DURATION_DAYS,
            )

        logger.info(f"[TRIAL] Started {TRIAL_DURATION_DAYS}-day trial for user {user_id}")
        return {
            'success': True,
            'message': f'{TRIAL_DURATION_DAYS}-day free trial activated successfully!',
            'trial_start_date': trial.trial_start.isoformat(),
            'trial_end_date': trial.trial_end.isoformat(),
            'days_remaining': days_from_seconds(trial.seconds_remaining(now)),
        }


# Global instance
trial_service = TrialService()
