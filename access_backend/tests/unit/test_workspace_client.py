"""Tests for the Axie Studio API client, run against an in-memory transport."""

import httpx
import pytest

from access_backend.core.conf import settings
from access_backend.src.lifecycle.external.workspace import AxieStudioClient
from access_backend.src.lifecycle.shared.exceptions import WorkspaceAlreadyExistsError, WorkspaceUpstreamError


class TestAuthentication:
    """Tests for login and API key minting."""

    @pytest.mark.asyncio
    async def test_api_key_is_minted_once_per_client(self, fake_axie):
        async with fake_axie.client_factory() as client:
            await client.list_users()
            await client.list_users()

        assert fake_axie.count('POST', '/api/v1/login') == 1
        assert fake_axie.count('POST', '/api/v1/api_key/') == 1
        assert fake_axie.count('GET', '/api/v1/users/') == 2

    @pytest.mark.asyncio
    async def test_login_failure_is_upstream_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={'detail': 'Bad credentials'}))

        async with AxieStudioClient(base_url='http://axie.test', transport=transport) as client:
            with pytest.raises(WorkspaceUpstreamError) as exc_info:
                await client.login()

        assert exc_info.value.status == 401

    @pytest.mark.asyncio
    async def test_missing_base_url_is_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, 'AXIESTUDIO_APP_URL', '')

        with pytest.raises(WorkspaceUpstreamError):
            async with AxieStudioClient():
                pass


class TestUsers:
    """Tests for user listing, lookup and creation."""

    @pytest.mark.asyncio
    async def test_find_user_is_case_insensitive(self, fake_axie):
        fake_axie.add_user('Person@Example.com')

        async with fake_axie.client_factory() as client:
            user = await client.find_user('person@example.COM')
            missing = await client.find_user('other@example.com')

        assert user['id'] == 'ws-1'
        assert missing is None

    @pytest.mark.asyncio
    async def test_list_users_accepts_bare_list(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == '/api/v1/login':
                return httpx.Response(200, json={'access_token': 't'})
            if request.url.path == '/api/v1/api_key/':
                return httpx.Response(200, json={'api_key': 'k'})
            return httpx.Response(200, json=[{'id': 'u1', 'username': 'a@example.com'}])

        async with AxieStudioClient(base_url='http://axie.test', transport=httpx.MockTransport(handler)) as client:
            users = await client.list_users()

        assert users == [{'id': 'u1', 'username': 'a@example.com'}]

    @pytest.mark.asyncio
    async def test_create_user_sends_email_as_username(self, fake_axie):
        async with fake_axie.client_factory() as client:
            created = await client.create_user('new@example.com', 'pw-123')

        assert created['username'] == 'new@example.com'
        assert fake_axie.users[created['id']]['is_active'] is True

    @pytest.mark.asyncio
    async def test_duplicate_username_raises_already_exists(self, fake_axie):
        fake_axie.add_user('taken@example.com')

        async with fake_axie.client_factory() as client:
            with pytest.raises(WorkspaceAlreadyExistsError) as exc_info:
                await client.create_user('taken@example.com', 'pw-123')

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_network_error_is_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('connection refused', request=request)

        async with AxieStudioClient(base_url='http://axie.test', transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(WorkspaceUpstreamError) as exc_info:
                await client.list_users()

        assert exc_info.value.message == 'Workspace service is unreachable'

    @pytest.mark.asyncio
    async def test_update_user_patches_fields(self, fake_axie):
        user = fake_axie.add_user('person@example.com')

        async with fake_axie.client_factory() as client:
            updated = await client.update_user(user['id'], is_active=False)

        assert updated['is_active'] is False
        assert fake_axie.users[user['id']]['is_active'] is False
