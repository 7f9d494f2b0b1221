"""
Axie Studio API Client

Thin async client for the externally hosted workspace product. The product
is treated as an opaque account store: this client logs in with the service
credentials, mints an API key and lists, creates and patches users.

No retries are performed here; retrying is the caller's responsibility.

Usage:
    async with AxieStudioClient() as client:
        user = await client.find_user("user@example.com")
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from access_backend.core.conf import settings
from access_backend.src.lifecycle.shared.exceptions import WorkspaceAlreadyExistsError, WorkspaceUpstreamError

logger = logging.getLogger(__name__)

# The product answers duplicate usernames with a generic 400 carrying this text
USERNAME_UNAVAILABLE = 'username is unavailable'


class AxieStudioClient:
    """
    Workspace product API client.

    Must be used as an async context manager so the HTTP session is closed.
    ``transport`` lets tests plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.AXIESTUDIO_APP_URL).rstrip('/')
        self._username = username or settings.AXIESTUDIO_USERNAME
        self._password = password or settings.AXIESTUDIO_PASSWORD
        self._timeout = timeout or settings.AXIESTUDIO_TIMEOUT_SECONDS
        self._transport = transport
        self._api_key: Optional[str] = None
        self.http_session: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> 'AxieStudioClient':
        if not self.base_url:
            raise WorkspaceUpstreamError("Workspace service is not configured")
        self.http_session = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.http_session:
            await self.http_session.aclose()
            self.http_session = None

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if not self.http_session:
            raise RuntimeError("AxieStudioClient is not initialized. Use 'async with' context manager.")
        try:
            return await self.http_session.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[WORKSPACE] {method} {path} failed: {type(e).__name__}: {e}")
            raise WorkspaceUpstreamError("Workspace service is unreachable") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        logger.error(f"[WORKSPACE] {action} failed with status {response.status_code}")
        raise WorkspaceUpstreamError(f"Workspace {action} failed", status=response.status_code)

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def login(self) -> str:
        """
        Log in with the service account.

        Returns:
            Access token
        """
        response = await self._request(
            'POST',
            '/api/v1/login',
            data={'username': self._username, 'password': self._password},
        )
        self._raise_for_status(response, 'login')
        return response.json()['access_token']

    async def get_api_key(self) -> str:
        """
        Mint (once per client) an API key for the user-management calls.

        Returns:
            API key
        """
        if self._api_key:
            return self._api_key
        access_token = await self.login()
        response = await self._request(
            'POST',
            '/api/v1/api_key/',
            headers={'Authorization': f'Bearer {access_token}'},
            json={'name': settings.AXIESTUDIO_API_KEY_NAME},
        )
        self._raise_for_status(response, 'API key creation')
        self._api_key = response.json()['api_key']
        return self._api_key

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def list_users(self) -> List[Dict[str, Any]]:
        """
        List workspace users.

        The API answers either ``{"users": [...], "total_count": n}`` or a bare list.
        """
        api_key = await self.get_api_key()
        response = await self._request('GET', '/api/v1/users/', headers={'x-api-key': api_key})
        self._raise_for_status(response, 'user listing')
        data = response.json()
        if isinstance(data, dict):
            return data.get('users') or []
        return data

    async def find_user(self, email: str) -> Optional[Dict[str, Any]]:
        """
        Find a workspace user by email (usernames are emails).

        Args:
            email: Login email

        Returns:
            User dict or None
        """
        email = email.lower()
        for user in await self.list_users():
            if (user.get('username') or '').lower() == email or (user.get('email') or '').lower() == email:
                return user
        return None

    async def create_user(self, email: str, password: str, is_active: bool = True) -> Dict[str, Any]:
        """
        Create a workspace user.

        Args:
            email: Login email, also used as username
            password: Initial password (never logged or stored)
            is_active: Initial active flag

        Returns:
            Created user dict

        Raises:
            WorkspaceAlreadyExistsError: If the username is taken
            WorkspaceUpstreamError: On any other failure
        """
        api_key = await self.get_api_key()
        response = await self._request(
            'POST',
            '/api/v1/users/',
            headers={'x-api-key': api_key},
            json={
                'username': email,
                'password': password,
                'email': email,
                'is_active': is_active,
                'is_superuser': False,
                'is_verified': True,
                'is_staff': False,
                'first_name': '',
                'last_name': '',
            },
        )
        if response.status_code == 400 and USERNAME_UNAVAILABLE in response.text:
            logger.info(f"[WORKSPACE] Username already taken: {email}")
            raise WorkspaceAlreadyExistsError(email)
        self._raise_for_status(response, 'user creation')
        return response.json()

    async def update_user(self, workspace_user_id: str, **fields: Any) -> Dict[str, Any]:
        """
        Patch a workspace user.

        Args:
            workspace_user_id: User ID inside the workspace product
            **fields: Fields to patch (e.g. is_active)

        Returns:
            Updated user dict
        """
        api_key = await self.get_api_key()
        response = await self._request(
            'PATCH',
            f'/api/v1/users/{workspace_user_id}',
            headers={'x-api-key': api_key},
            json=fields,
        )
        self._raise_for_status(response, 'user update')
        return response.json()
