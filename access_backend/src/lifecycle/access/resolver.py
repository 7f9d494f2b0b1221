"""
Access-Level Resolver

Derives a user's ``AccessStatus`` from the trial record, the billing mirror,
team inheritance and the admin override list.

``resolve_access`` is a pure function of its facts and the clock;
``AccessResolver`` only loads those facts (read-only) and calls it. Nothing
here writes, and the result is never cached or persisted.

Precedence (highest wins):
1. Admin override
2. Account revoked (deletion in progress) - fails closed
3. Active team inheritance
4. Individual paid subscription (or Stripe trial / one-time payment)
5. Free trial
6. No access

Usage:
    from access_backend.src.lifecycle.access import access_resolver

    async with async_db_session() as session:
        status = await access_resolver.resolve(session, user_id)
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from access_backend.app.account.crud.crud_billing import stripe_customer_dao, stripe_subscription_dao
from access_backend.app.account.crud.crud_deletion_history import deletion_history_dao
from access_backend.app.account.crud.crud_team import team_dao
from access_backend.app.account.crud.crud_trial import user_trial_dao
from access_backend.app.account.crud.crud_user import account_state_dao, auth_user_dao
from access_backend.src.lifecycle.domain import (
    AccessFacts,
    AccessStatus,
    AccessType,
    BillingSnapshot,
    SubscriptionStatus,
    TrialRecord,
    TrialStatus,
)
from access_backend.src.lifecycle.domain.trial import days_from_seconds, seconds_until
from access_backend.src.lifecycle.shared.config import (
    ACCESS_GRANTING_STATUSES,
    UNLIMITED_SECONDS,
    WORKSPACE_BLOCKING_TRIAL_STATUSES,
    is_admin_user,
    is_team_price_id,
)

logger = logging.getLogger(__name__)


def _grant(
    facts: AccessFacts,
    access_type: AccessType,
    seconds: int,
    is_cancelled: bool = False,
    is_team_member: bool = False,
) -> AccessStatus:
    trial_status = facts.trial.trial_status.value if facts.trial else None
    return AccessStatus(
        has_access=True,
        access_type=access_type,
        seconds_remaining=seconds,
        days_remaining=days_from_seconds(seconds),
        is_cancelled_subscription=is_cancelled,
        requires_subscription=False,
        can_create_workspace_account=trial_status not in WORKSPACE_BLOCKING_TRIAL_STATUSES,
        trial_status=trial_status,
        subscription_status=_subscription_status(facts),
        is_team_member=is_team_member,
        is_returning_user=facts.is_returning_user,
    )


def _subscription_status(facts: AccessFacts) -> Optional[str]:
    if facts.subscription is None:
        return None
    return facts.subscription.effective_status.value


def _team_access(facts: AccessFacts, now: datetime) -> Optional[AccessStatus]:
    team_sub = facts.team_subscription
    if team_sub is None:
        return None
    if team_sub.effective_status != SubscriptionStatus.ACTIVE or not is_team_price_id(team_sub.price_id):
        return None
    if team_sub.is_cancelled_and_lapsed(now):
        return None

    seconds = seconds_until(team_sub.period_end, now) if team_sub.current_period_end else UNLIMITED_SECONDS
    return _grant(
        facts,
        AccessType.PAID_SUBSCRIPTION,
        seconds,
        is_cancelled=team_sub.cancel_at_period_end,
        is_team_member=True,
    )


def _subscription_access(facts: AccessFacts, now: datetime) -> Optional[AccessStatus]:
    sub = facts.subscription
    if sub is None:
        return None

    status = sub.effective_status
    if status == SubscriptionStatus.ONE_TIME_PAYMENT:
        return _grant(facts, AccessType.PAID_SUBSCRIPTION, UNLIMITED_SECONDS)

    if status.value not in ACCESS_GRANTING_STATUSES:
        return None
    # Cancelled subscriptions keep access until the paid period ends
    if sub.is_cancelled_and_lapsed(now):
        return None

    access_type = AccessType.STRIPE_TRIAL if status == SubscriptionStatus.TRIALING else AccessType.PAID_SUBSCRIPTION
    seconds = seconds_until(sub.period_end, now) if sub.current_period_end else UNLIMITED_SECONDS
    return _grant(facts, access_type, seconds, is_cancelled=sub.cancel_at_period_end)


def _free_trial_access(facts: AccessFacts, now: datetime) -> Optional[AccessStatus]:
    trial = facts.trial
    if trial is None or facts.is_returning_user:
        return None
    if not trial.is_running(now):
        return None
    return _grant(facts, AccessType.FREE_TRIAL, trial.seconds_remaining(now))


def _no_access(facts: AccessFacts, now: datetime) -> AccessStatus:
    trial_consumed = facts.trial is not None and facts.trial.is_consumed(now)
    return AccessStatus(
        has_access=False,
        access_type=AccessType.NO_ACCESS,
        seconds_remaining=0,
        days_remaining=0,
        is_cancelled_subscription=bool(facts.subscription and facts.subscription.cancel_at_period_end),
        requires_subscription=facts.is_returning_user or trial_consumed or facts.account_revoked,
        can_create_workspace_account=False,
        trial_status=facts.trial.trial_status.value if facts.trial else None,
        subscription_status=_subscription_status(facts),
        is_team_member=facts.team_subscription is not None,
        is_returning_user=facts.is_returning_user,
    )


def resolve_access(facts: AccessFacts, now: datetime) -> AccessStatus:
    """
    Derive the access decision for one user.

    Args:
        facts: Trial, billing, team and admin facts for the user
        now: The single clock every expiry is measured against

    Returns:
        AccessStatus
    """
    if facts.is_admin:
        return AccessStatus(
            has_access=True,
            access_type=AccessType.PAID_SUBSCRIPTION,
            seconds_remaining=UNLIMITED_SECONDS,
            days_remaining=days_from_seconds(UNLIMITED_SECONDS),
            can_create_workspace_account=True,
            trial_status=facts.trial.trial_status.value if facts.trial else None,
            subscription_status=_subscription_status(facts),
        )

    if facts.account_revoked:
        return _no_access(facts, now)

    for rule in (_team_access, _subscription_access, _free_trial_access):
        status = rule(facts, now)
        if status is not None:
            return status

    return _no_access(facts, now)


class AccessResolver:
    """
    Loads access facts from the database and resolves them.

    Read-only: it never writes, so it is safe to call before any
    access-gated external call.
    """

    async def load_facts(self, session: AsyncSession, user_id: str) -> AccessFacts:
        """
        Read everything the resolver needs for one user.

        Args:
            session: Database session (no writes are issued)
            user_id: User to load

        Returns:
            AccessFacts
        """
        email = await auth_user_dao.get_email(session, user_id)

        trial_row = await user_trial_dao.get_by_user(session, user_id)
        trial = TrialRecord.from_row(trial_row) if trial_row else None

        subscription = None
        customer = await stripe_customer_dao.get_by_user(session, user_id)
        if customer:
            sub_row = await stripe_subscription_dao.get_by_customer(session, customer.customer_id)
            if sub_row:
                subscription = BillingSnapshot.from_row(sub_row)

        team_subscription = None
        team_row = await team_dao.get_inherited_subscription(session, user_id)
        if team_row:
            team_subscription = BillingSnapshot.from_row(team_row)

        is_returning_user = bool(email) and await deletion_history_dao.has_used_trial(session, email)

        account_state = await account_state_dao.get_by_user(session, user_id)
        account_revoked = (
            (account_state is not None and account_state.account_status == 'deleted')
            or (trial is not None and trial.trial_status == TrialStatus.DELETED)
        )

        return AccessFacts(
            user_id=user_id,
            email=email,
            is_admin=is_admin_user(user_id),
            trial=trial,
            subscription=subscription,
            team_subscription=team_subscription,
            is_returning_user=is_returning_user,
            account_revoked=account_revoked,
        )

    async def resolve(self, session: AsyncSession, user_id: str, now: Optional[datetime] = None) -> AccessStatus:
        """
        Resolve a user's current access.

        Args:
            session: Database session
            user_id: User to resolve
            now: Clock override (defaults to the server's UTC time)

        Returns:
            AccessStatus
        """
        now = now or datetime.now(timezone.utc)
        facts = await self.load_facts(session, user_id)
        status = resolve_access(facts, now)
        logger.debug(
            f"[ACCESS] user={user_id} access_type={status.access_type.value} "
            f"has_access={status.has_access} days_remaining={status.days_remaining}"
        )
        return status


# Global instance
access_resolver = AccessResolver()
