"""Integration tests for trial provisioning, trial start and the trial sweep."""

from datetime import datetime, timedelta, timezone

import pytest

from access_backend.app.account.crud.crud_deletion_history import deletion_history_dao
from access_backend.app.account.crud.crud_trial import user_trial_dao
from access_backend.app.account.crud.crud_user import account_state_dao, auth_user_dao
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.deletion import AccountDeletionService
from access_backend.src.lifecycle.domain import TrialStatus
from access_backend.src.lifecycle.shared.config import SUPER_ADMIN_USER_ID
from access_backend.src.lifecycle.shared.exceptions import PermissionDeniedError, TrialError
from access_backend.src.lifecycle.trials import TrialSweep, trial_service
from access_backend.src.lifecycle.workspace import WorkspaceAccountBridge
from access_backend.tests.factories import auth_headers, seed_subscription, seed_trial, seed_user


async def get_trial(user_id: str):
    async with async_db_session() as db:
        return await user_trial_dao.get_by_user(db, user_id)


async def record_deleted_account(email: str, now: datetime) -> None:
    async with async_db_session.begin() as db:
        await deletion_history_dao.record(
            db,
            email=email,
            original_user_id='old-user',
            has_used_trial=True,
            ever_subscribed=False,
            reason='immediate_deletion',
            deleted_at=now - timedelta(days=30),
        )


class TestProvisioning:
    """Tests for ``provision_user``."""

    @pytest.mark.asyncio
    async def test_new_user_gets_seven_day_trial(self, now):
        result = await trial_service.provision_user('user-1', 'new@example.com', full_name='New User', now=now)

        assert result['trial_status'] == 'active'
        assert result['trial_end'] == (now + timedelta(days=7)).isoformat()
        assert result['is_returning_user'] is False
        async with async_db_session() as db:
            state = await account_state_dao.get_by_user(db, 'user-1')
            email = await auth_user_dao.get_email(db, 'user-1')
        assert state.account_status == 'trial_active'
        assert state.trial_days_remaining == 7
        assert email == 'new@example.com'

    @pytest.mark.asyncio
    async def test_provisioning_twice_keeps_original_trial(self, now):
        await trial_service.provision_user('user-1', 'new@example.com', now=now)

        result = await trial_service.provision_user('user-1', 'new@example.com', now=now + timedelta(days=3))

        assert result['trial_start'] == now.isoformat()

    @pytest.mark.asyncio
    async def test_returning_user_gets_no_free_time(self, now):
        await record_deleted_account('back@example.com', now)

        result = await trial_service.provision_user('user-2', 'back@example.com', now=now)

        assert result['is_returning_user'] is True
        assert result['trial_status'] == 'expired'
        assert result['trial_start'] == result['trial_end']
        async with async_db_session() as db:
            state = await account_state_dao.get_by_user(db, 'user-2')
        assert state.has_access is False


class TestStartTrial:
    """Tests for ``start_trial``."""

    @pytest.mark.asyncio
    async def test_starts_trial_for_user_without_one(self, now):
        await seed_user('user-1', 'user@example.com')

        result = await trial_service.start_trial('user-1', 'user-1', now=now)

        assert result['success'] is True
        assert result['days_remaining'] == 7
        assert result['trial_end_date'] == (now + timedelta(days=7)).isoformat()
        assert (await get_trial('user-1')).trial_status == 'active'

    @pytest.mark.asyncio
    async def test_other_user_is_forbidden(self, now):
        with pytest.raises(PermissionDeniedError):
            await trial_service.start_trial('user-1', 'user-2', now=now)

    @pytest.mark.asyncio
    async def test_running_trial_is_rejected(self, now):
        await trial_service.provision_user('user-1', 'user@example.com', now=now)

        with pytest.raises(TrialError) as exc_info:
            await trial_service.start_trial('user-1', 'user-1', now=now + timedelta(days=1))

        assert exc_info.value.code == 'TRIAL_ACTIVE'

    @pytest.mark.asyncio
    async def test_returning_user_is_rejected(self, now):
        await record_deleted_account('back@example.com', now)
        await seed_user('user-2', 'back@example.com')

        with pytest.raises(TrialError) as exc_info:
            await trial_service.start_trial('user-2', 'user-2', now=now)

        assert exc_info.value.code == 'TRIAL_ALREADY_USED'
        assert exc_info.value.to_dict()['requires_subscription'] is True
        assert await get_trial('user-2') is None

    @pytest.mark.asyncio
    async def test_consumed_trial_is_not_restarted(self, now):
        await trial_service.provision_user('user-1', 'user@example.com', now=now)

        with pytest.raises(TrialError) as exc_info:
            await trial_service.start_trial('user-1', 'user-1', now=now + timedelta(days=8))

        assert exc_info.value.code == 'TRIAL_ALREADY_USED'


class TestTrialSweep:
    """Tests for the scheduled trial sweep."""

    @pytest.fixture
    def sweep(self, fake_axie) -> TrialSweep:
        workspace = WorkspaceAccountBridge(client_factory=fake_axie.client_factory)
        return TrialSweep(deletion_service=AccountDeletionService(workspace=workspace))

    @pytest.mark.asyncio
    async def test_sweep_expires_schedules_and_deletes(self, sweep, now):
        # Lapsed two days ago: due for deletion one day ago
        await seed_user('lapsed', 'lapsed@example.com')
        await seed_trial('lapsed', trial_end=now - timedelta(days=2))
        # Lapsed two hours ago: still inside the grace period
        await seed_user('recent', 'recent@example.com')
        await seed_trial('recent', trial_end=now - timedelta(hours=2))
        # Lapsed but paying
        await seed_user('payer', 'payer@example.com')
        await seed_trial('payer', trial_end=now - timedelta(days=2))
        await seed_subscription('payer', customer_id='cus_payer', period_end=now + timedelta(days=20))

        result = await sweep.run(now=now)

        assert result['success'] is True
        assert result['converted'] == 1
        assert result['expired'] == 2
        assert result['scheduled'] == 2
        assert result['processed'] == 1
        assert result['results'] == [{'user_id': 'lapsed', 'success': True, 'failed_steps': []}]

        assert await get_trial('lapsed') is None
        recent = await get_trial('recent')
        assert recent.trial_status == 'scheduled_for_deletion'
        assert recent.deletion_scheduled_at == now + timedelta(hours=22)
        payer = await get_trial('payer')
        assert payer.trial_status == 'converted_to_paid'
        assert payer.deletion_scheduled_at is None

        async with async_db_session() as db:
            assert await deletion_history_dao.has_used_trial(db, 'lapsed@example.com') is True
            assert await auth_user_dao.get(db, 'lapsed') is None

    @pytest.mark.asyncio
    async def test_cancelled_subscriber_is_deleted_after_grace_period(self, sweep, now):
        period_end = now - timedelta(days=2)
        await seed_user('leaver', 'leaver@example.com')
        await seed_trial(
            'leaver',
            trial_end=now - timedelta(days=30),
            status=TrialStatus.CANCELED,
            deletion_scheduled_at=period_end + timedelta(hours=24),
        )
        # Stripe already deleted the subscription at period end
        await seed_subscription('leaver', status='canceled', cancel_at_period_end=True, period_end=period_end)

        result = await sweep.run(now=now)

        assert result['processed'] == 1
        async with async_db_session() as db:
            history = await deletion_history_dao.has_used_trial(db, 'leaver@example.com')
        assert history is True
        assert await get_trial('leaver') is None

    @pytest.mark.asyncio
    async def test_user_who_still_has_access_is_skipped(self, sweep, now):
        # Deletion date passed but the paid period was extended at Stripe
        await seed_user('renewed', 'renewed@example.com')
        await seed_trial(
            'renewed',
            trial_end=now - timedelta(days=30),
            status=TrialStatus.CANCELED,
            deletion_scheduled_at=now - timedelta(hours=1),
        )
        await seed_subscription('renewed', cancel_at_period_end=True, period_end=now + timedelta(days=5))

        result = await sweep.run(now=now)

        assert result['total_candidates'] == 1
        assert result['protected_users'] == 1
        assert result['processed'] == 0
        assert (await get_trial('renewed')).trial_status == 'canceled'

    @pytest.mark.asyncio
    async def test_protected_admin_is_never_deleted(self, sweep, now):
        await seed_user(SUPER_ADMIN_USER_ID, 'admin@example.com')
        await seed_trial(
            SUPER_ADMIN_USER_ID,
            trial_end=now - timedelta(days=3),
            status=TrialStatus.SCHEDULED_FOR_DELETION,
            deletion_scheduled_at=now - timedelta(days=2),
        )

        result = await sweep.run(now=now)

        assert result['protected_users'] == 1
        assert result['processed'] == 0
        async with async_db_session() as db:
            assert await auth_user_dao.get(db, SUPER_ADMIN_USER_ID) is not None

    @pytest.mark.asyncio
    async def test_sweep_deactivates_lapsed_workspace_accounts(self, sweep, fake_axie, now):
        await seed_user('lapsed', 'lapsed@example.com')
        await seed_trial('lapsed', trial_end=now - timedelta(hours=3))
        workspace_user = fake_axie.add_user('lapsed@example.com')
        # The protected admin keeps its workspace account
        await seed_user(SUPER_ADMIN_USER_ID, 'admin@example.com')
        await seed_trial(SUPER_ADMIN_USER_ID, trial_end=now - timedelta(hours=3))
        admin_workspace = fake_axie.add_user('admin@example.com')

        result = await sweep.run(now=now)

        assert result['scheduled'] == 2
        assert result['deactivated'] == 1
        assert workspace_user['is_active'] is False
        assert admin_workspace['is_active'] is True
        assert (await get_trial('lapsed')).trial_status == 'scheduled_for_deletion'

    @pytest.mark.asyncio
    async def test_workspace_outage_does_not_fail_sweep(self, sweep, fake_axie, now):
        await seed_user('lapsed', 'lapsed@example.com')
        await seed_trial('lapsed', trial_end=now - timedelta(hours=3))
        fake_axie.add_user('lapsed@example.com')
        fake_axie.fail_listing = True

        result = await sweep.run(now=now)

        assert result['success'] is True
        assert result['scheduled'] == 1
        assert result['deactivated'] == 0
        assert (await get_trial('lapsed')).trial_status == 'scheduled_for_deletion'

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, sweep, now):
        await seed_user('lapsed', 'lapsed@example.com')
        await seed_trial('lapsed', trial_end=now - timedelta(hours=3))

        first = await sweep.run(now=now)
        second = await sweep.run(now=now)

        assert first['scheduled'] == 1
        assert second['expired'] == 0
        assert second['scheduled'] == 0
        assert second['processed'] == 0


class TestTrialEndpoints:
    """Tests for the trial endpoints."""

    @pytest.mark.asyncio
    async def test_provision_account(self, client):
        response = await client.post(
            '/api/v1/provision-account',
            json={'full_name': 'New User'},
            headers=auth_headers('user-1', 'new@example.com'),
        )

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is True
        assert body['trial']['trial_status'] == 'active'

        status = await client.get('/api/v1/access-status', headers=auth_headers('user-1'))
        assert status.json()['access_type'] == 'free_trial'
        assert status.json()['days_remaining'] == 7

    @pytest.mark.asyncio
    async def test_provision_account_requires_email_claim(self, client):
        response = await client.post('/api/v1/provision-account', json={}, headers=auth_headers('user-1'))

        assert response.status_code == 400
        assert response.json()['code'] == 'EMAIL_REQUIRED'

    @pytest.mark.asyncio
    async def test_start_trial_for_other_user_is_forbidden(self, client):
        response = await client.post(
            '/api/v1/start-trial', json={'user_id': 'user-2'}, headers=auth_headers('user-1')
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_start_trial_defaults_to_caller(self, client):
        await seed_user('user-1', 'user@example.com')

        response = await client.post('/api/v1/start-trial', json={}, headers=auth_headers('user-1'))

        assert response.status_code == 200
        assert response.json()['days_remaining'] == 7

    @pytest.mark.asyncio
    async def test_trial_cleanup_requires_cron_secret(self, client):
        response = await client.post('/api/v1/trial-cleanup', headers={'x-cron-secret': 'wrong'})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_trial_cleanup_runs_sweep(self, client, workspace_api):
        await seed_user('lapsed', 'lapsed@example.com')
        await seed_trial('lapsed', trial_end=datetime.now(timezone.utc) - timedelta(days=3))

        response = await client.post('/api/v1/trial-cleanup', headers={'x-cron-secret': 'cron-secret'})

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is True
        assert body['processed'] == 1
