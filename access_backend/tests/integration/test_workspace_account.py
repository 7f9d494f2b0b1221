"""Integration tests for the workspace account bridge and its endpoint."""

from datetime import datetime, timedelta, timezone

import pytest

from access_backend.app.account.crud.crud_workspace_account import workspace_account_dao
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.domain import TrialStatus
from access_backend.src.lifecycle.shared.exceptions import AccessRequiredError, WorkspaceError
from access_backend.src.lifecycle.workspace import WorkspaceAccountBridge
from access_backend.tests.factories import auth_headers, seed_subscription, seed_trial, seed_user

EMAIL = 'builder@example.com'


async def get_link(user_id: str = 'user-1'):
    async with async_db_session() as db:
        return await workspace_account_dao.get_by_user(db, user_id)


@pytest.fixture
def bridge(fake_axie) -> WorkspaceAccountBridge:
    return WorkspaceAccountBridge(client_factory=fake_axie.client_factory)


@pytest.fixture
async def trial_user(now):
    await seed_user('user-1', EMAIL)
    await seed_trial('user-1', trial_end=now + timedelta(days=3))


class TestCreateAccount:
    """Tests for ``create_account``."""

    @pytest.mark.asyncio
    async def test_creates_account_for_user_with_access(self, bridge, trial_user, fake_axie, now):
        result = await bridge.create_account(EMAIL, 'pw-123', 'user-1', now=now)

        assert result == {'success': True, 'already_exists': False, 'user_id': 'ws-1', 'email': EMAIL}
        assert fake_axie.users['ws-1']['is_active'] is True
        link = await get_link()
        assert link.workspace_user_id == 'ws-1'
        assert link.is_active is True

    @pytest.mark.asyncio
    async def test_password_is_never_stored(self, bridge, trial_user, now):
        await bridge.create_account(EMAIL, 'pw-secret-123', 'user-1', now=now)

        link = await get_link()
        assert 'pw-secret-123' not in {str(value) for value in vars(link).values()}

    @pytest.mark.asyncio
    async def test_existing_account_is_reported(self, bridge, trial_user, fake_axie, now):
        fake_axie.add_user(EMAIL)

        result = await bridge.create_account(EMAIL, 'pw-123', 'user-1', now=now)

        assert result['already_exists'] is True
        assert result['user_id'] == 'existing'
        assert fake_axie.count('POST', '/api/v1/users/') == 0
        assert (await get_link()).workspace_user_id == 'ws-1'

    @pytest.mark.asyncio
    async def test_duplicate_username_is_reported_when_listing_fails(self, bridge, trial_user, fake_axie, now):
        fake_axie.add_user(EMAIL)
        fake_axie.fail_listing = True

        result = await bridge.create_account(EMAIL, 'pw-123', 'user-1', now=now)

        assert result['already_exists'] is True
        assert len(fake_axie.users) == 1

    @pytest.mark.asyncio
    async def test_expired_trial_is_denied(self, bridge, now, fake_axie):
        await seed_user('user-1', EMAIL)
        await seed_trial('user-1', trial_end=now - timedelta(days=1), status=TrialStatus.EXPIRED)

        with pytest.raises(AccessRequiredError) as exc_info:
            await bridge.create_account(EMAIL, 'pw-123', 'user-1', now=now)

        assert exc_info.value.to_dict() == {
            'error': (
                'AxieStudio account creation requires an active subscription or trial. '
                'Please subscribe to continue.'
            ),
            'code': 'ACCESS_REQUIRED',
            'has_access': False,
            'trial_status': 'expired',
            'subscription_status': 'none',
        }
        assert fake_axie.requests == []

    @pytest.mark.asyncio
    async def test_paying_user_can_create(self, bridge, now):
        await seed_user('user-1', EMAIL)
        await seed_subscription('user-1', period_end=now + timedelta(days=20))

        result = await bridge.create_account(EMAIL, 'pw-123', 'user-1', now=now)

        assert result['success'] is True


class TestDeactivateAndReactivate:
    """Tests for deactivation and reactivation."""

    @pytest.mark.asyncio
    async def test_deactivation_preserves_account(self, bridge, trial_user, fake_axie, now):
        await bridge.create_account(EMAIL, 'pw-123', 'user-1', now=now)

        assert await bridge.deactivate_account(EMAIL) is True

        assert fake_axie.users['ws-1']['is_active'] is False
        assert (await get_link()).is_active is False

    @pytest.mark.asyncio
    async def test_listing_keyed_by_user_id_is_supported(self, bridge, trial_user, fake_axie, now):
        fake_axie.add_user(EMAIL, id_field='user_id')

        assert await bridge.deactivate_account(EMAIL) is True
        assert fake_axie.users['ws-1']['is_active'] is False
        assert fake_axie.count('PATCH', '/api/v1/users/ws-1') == 1

        assert await bridge.reactivate_account(EMAIL, 'user-1', now=now) is True
        assert fake_axie.users['ws-1']['is_active'] is True
        assert (await get_link()).workspace_user_id == 'ws-1'

    @pytest.mark.asyncio
    async def test_deactivating_missing_account_is_a_no_op(self, bridge):
        assert await bridge.deactivate_account(EMAIL) is False

    @pytest.mark.asyncio
    async def test_reactivation_restores_account(self, bridge, trial_user, fake_axie, now):
        fake_axie.add_user(EMAIL, is_active=False)

        assert await bridge.reactivate_account(EMAIL, 'user-1', now=now) is True

        assert fake_axie.users['ws-1']['is_active'] is True
        assert (await get_link()).is_active is True

    @pytest.mark.asyncio
    async def test_reactivation_requires_access(self, bridge, fake_axie, now):
        await seed_user('user-1', EMAIL)
        fake_axie.add_user(EMAIL, is_active=False)

        with pytest.raises(AccessRequiredError):
            await bridge.reactivate_account(EMAIL, 'user-1', now=now)

        assert fake_axie.users['ws-1']['is_active'] is False

    @pytest.mark.asyncio
    async def test_reactivating_missing_account_is_not_found(self, bridge, trial_user, now):
        with pytest.raises(WorkspaceError) as exc_info:
            await bridge.reactivate_account(EMAIL, 'user-1', now=now)

        assert exc_info.value.status_code == 404


class TestWorkspaceEndpoint:
    """Tests for POST /axie-studio-account."""

    @pytest.fixture
    async def live_trial_user(self):
        await seed_user('user-1', EMAIL)
        await seed_trial('user-1', trial_end=datetime.now(timezone.utc) + timedelta(days=3))

    @pytest.mark.asyncio
    async def test_create(self, client, workspace_api, live_trial_user):
        response = await client.post(
            '/api/v1/axie-studio-account',
            json={'action': 'create', 'password': 'pw-123'},
            headers=auth_headers('user-1', EMAIL),
        )

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is True
        assert body['already_exists'] is False
        assert body['email'] == EMAIL

    @pytest.mark.asyncio
    async def test_create_uses_stored_email_when_token_has_none(self, client, workspace_api, live_trial_user):
        response = await client.post(
            '/api/v1/axie-studio-account',
            json={'action': 'create', 'password': 'pw-123'},
            headers=auth_headers('user-1'),
        )

        assert response.status_code == 200
        assert workspace_api.users['ws-1']['username'] == EMAIL

    @pytest.mark.asyncio
    async def test_create_requires_password(self, client, workspace_api, live_trial_user):
        response = await client.post(
            '/api/v1/axie-studio-account', json={'action': 'create'}, headers=auth_headers('user-1', EMAIL)
        )

        assert response.status_code == 400
        assert response.json()['code'] == 'PASSWORD_REQUIRED'

    @pytest.mark.asyncio
    async def test_create_without_access_is_forbidden(self, client, workspace_api):
        await seed_user('user-1', EMAIL)

        response = await client.post(
            '/api/v1/axie-studio-account',
            json={'action': 'create', 'password': 'pw-123'},
            headers=auth_headers('user-1', EMAIL),
        )

        assert response.status_code == 403
        assert response.json()['code'] == 'ACCESS_REQUIRED'
        assert response.json()['has_access'] is False

    @pytest.mark.asyncio
    async def test_delete_and_reactivate(self, client, workspace_api, live_trial_user):
        workspace_api.add_user(EMAIL)
        headers = auth_headers('user-1', EMAIL)

        deleted = await client.post('/api/v1/axie-studio-account', json={'action': 'delete'}, headers=headers)
        assert deleted.status_code == 200
        assert deleted.json()['message'] == 'Axie Studio account deactivated (data preserved)'
        assert workspace_api.users['ws-1']['is_active'] is False

        reactivated = await client.post('/api/v1/axie-studio-account', json={'action': 'reactivate'}, headers=headers)
        assert reactivated.status_code == 200
        assert workspace_api.users['ws-1']['is_active'] is True

    @pytest.mark.asyncio
    async def test_unknown_action_is_rejected(self, client, workspace_api, live_trial_user):
        response = await client.post(
            '/api/v1/axie-studio-account', json={'action': 'rename'}, headers=auth_headers('user-1', EMAIL)
        )

        assert response.status_code == 405
        assert response.json()['code'] == 'INVALID_ACTION'

    @pytest.mark.asyncio
    async def test_workspace_outage_is_bad_gateway(self, client, workspace_api, live_trial_user):
        workspace_api.fail_listing = True

        response = await client.post(
            '/api/v1/axie-studio-account', json={'action': 'delete'}, headers=auth_headers('user-1', EMAIL)
        )

        assert response.status_code == 502
        assert response.json()['code'] == 'UPSTREAM_ERROR'
