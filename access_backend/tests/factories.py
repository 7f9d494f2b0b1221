"""Builders for tokens, signed Stripe payloads, seeded rows and a fake workspace API."""

import hashlib
import hmac
import json
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import jwt

from access_backend.app.account.crud.crud_billing import stripe_customer_dao, stripe_subscription_dao
from access_backend.app.account.crud.crud_trial import user_trial_dao
from access_backend.app.account.crud.crud_user import auth_user_dao, user_profile_dao
from access_backend.core.conf import settings
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.domain import TrialStatus
from access_backend.src.lifecycle.external.workspace import AxieStudioClient
from access_backend.src.lifecycle.shared.config import TRIAL_DURATION


# -----------------------------------------------------------------------------
# Auth
# -----------------------------------------------------------------------------

def make_token(user_id: str, email: Optional[str] = None, expires_in: int = 3600) -> str:
    payload: Dict[str, Any] = {'sub': user_id, 'exp': int(time.time()) + expires_in}
    if email:
        payload['email'] = email
    return jwt.encode(payload, settings.TOKEN_SECRET_KEY, algorithm=settings.TOKEN_ALGORITHM)


def auth_headers(user_id: str, email: Optional[str] = None) -> Dict[str, str]:
    return {'Authorization': f'Bearer {make_token(user_id, email)}'}


# -----------------------------------------------------------------------------
# Stripe payloads
# -----------------------------------------------------------------------------

def sign_payload(payload: bytes, secret: Optional[str] = None, timestamp: Optional[int] = None) -> str:
    """Build a ``stripe-signature`` header the way Stripe signs deliveries."""
    secret = secret or settings.STRIPE_WEBHOOK_SECRET
    timestamp = timestamp or int(time.time())
    signed_payload = f'{timestamp}.{payload.decode()}'.encode()
    signature = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={signature}'


def subscription_payload(
    subscription_id: str = 'sub_123',
    customer_id: str = 'cus_123',
    status: str = 'active',
    price_id: str = 'price_basic',
    period_start: int = 1_767_225_600,
    period_end: int = 1_769_904_000,
    cancel_at_period_end: bool = False,
    canceled_at: Optional[int] = None,
    card: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """A subscription object shaped like Stripe's API response."""
    return {
        'id': subscription_id,
        'object': 'subscription',
        'customer': customer_id,
        'status': status,
        'cancel_at_period_end': cancel_at_period_end,
        'current_period_start': period_start,
        'current_period_end': period_end,
        'canceled_at': canceled_at,
        'collection_method': 'charge_automatically',
        'items': {
            'object': 'list',
            'data': [{'id': 'si_123', 'object': 'subscription_item', 'price': {'id': price_id, 'object': 'price'}}],
        },
        'default_payment_method': {'id': 'pm_123', 'object': 'payment_method', 'card': card} if card else 'pm_123',
        'metadata': {},
    }


def checkout_session_payload(
    session_id: str = 'cs_123',
    mode: str = 'subscription',
    customer_id: Optional[str] = 'cus_123',
    user_id: Optional[str] = None,
    email: str = 'user@example.com',
    payment_status: str = 'paid',
    amount_total: Optional[int] = None,
) -> Dict[str, Any]:
    return {
        'id': session_id,
        'object': 'checkout.session',
        'mode': mode,
        'customer': customer_id,
        'customer_details': {'email': email},
        'client_reference_id': None,
        'payment_status': payment_status,
        'payment_intent': 'pi_123' if mode == 'payment' else None,
        'subscription': 'sub_123' if mode == 'subscription' else None,
        'amount_subtotal': amount_total,
        'amount_total': amount_total,
        'currency': 'usd' if amount_total is not None else None,
        'metadata': {'user_id': user_id} if user_id else {},
    }


def event_payload(
    event_type: str,
    obj: Dict[str, Any],
    event_id: str = 'evt_123',
    created: Optional[int] = None,
) -> bytes:
    """Serialize a Stripe event envelope."""
    return json.dumps({
        'id': event_id,
        'object': 'event',
        'type': event_type,
        'created': created or int(time.time()),
        'livemode': False,
        'data': {'object': obj},
    }).encode()


# -----------------------------------------------------------------------------
# Seeded rows
# -----------------------------------------------------------------------------

async def seed_user(user_id: str, email: str) -> None:
    async with async_db_session.begin() as db:
        await auth_user_dao.ensure(db, user_id, email)
        await user_profile_dao.ensure(db, user_id, email)


async def seed_trial(
    user_id: str,
    trial_end: datetime,
    status: TrialStatus = TrialStatus.ACTIVE,
    deletion_scheduled_at: Optional[datetime] = None,
) -> None:
    async with async_db_session.begin() as db:
        await user_trial_dao.upsert_trial(
            db,
            user_id,
            trial_end - TRIAL_DURATION,
            trial_end,
            status=status,
            deletion_scheduled_at=deletion_scheduled_at,
        )


async def seed_subscription(
    user_id: str,
    customer_id: str = 'cus_123',
    subscription_id: Optional[str] = 'sub_123',
    status: str = 'active',
    period_end: Optional[datetime] = None,
    cancel_at_period_end: bool = False,
    price_id: str = 'price_basic',
) -> None:
    """Link a customer to the user and write its mirror row."""
    async with async_db_session.begin() as db:
        await stripe_customer_dao.link(db, user_id, customer_id)
        await stripe_subscription_dao.upsert_mirror(
            db,
            {
                'customer_id': customer_id,
                'subscription_id': subscription_id,
                'status': status,
                'price_id': price_id,
                'current_period_end': int(period_end.timestamp()) if period_end else None,
                'cancel_at_period_end': cancel_at_period_end,
            },
        )


# -----------------------------------------------------------------------------
# Workspace product
# -----------------------------------------------------------------------------

class FakeAxieStudio:
    """In-memory stand-in for the workspace product's HTTP API."""

    base_url = 'http://axie.test'
    api_key = 'ws-api-key'

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.fail_listing = False

    def add_user(self, email: str, is_active: bool = True, id_field: str = 'id') -> Dict[str, Any]:
        user_id = f'ws-{len(self.users) + 1}'
        self.users[user_id] = {id_field: user_id, 'username': email, 'email': email, 'is_active': is_active}
        return self.users[user_id]

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == '/api/v1/login':
            return httpx.Response(200, json={'access_token': 'service-token', 'token_type': 'bearer'})
        if path == '/api/v1/api_key/':
            if request.headers.get('authorization') != 'Bearer service-token':
                return httpx.Response(401, json={'detail': 'Unauthorized'})
            return httpx.Response(200, json={'api_key': self.api_key})
        if request.headers.get('x-api-key') != self.api_key:
            return httpx.Response(403, json={'detail': 'Invalid API key'})

        if path == '/api/v1/users/' and request.method == 'GET':
            if self.fail_listing:
                return httpx.Response(503, json={'detail': 'Unavailable'})
            return httpx.Response(200, json={'users': list(self.users.values()), 'total_count': len(self.users)})

        if path == '/api/v1/users/' and request.method == 'POST':
            body = json.loads(request.content)
            if any(user['username'] == body['username'] for user in self.users.values()):
                return httpx.Response(400, json={'detail': 'This username is unavailable.'})
            user = self.add_user(body['email'], is_active=body['is_active'])
            return httpx.Response(201, json=user)

        if path.startswith('/api/v1/users/') and request.method == 'PATCH':
            user = self.users.get(path.rsplit('/', 1)[-1])
            if user is None:
                return httpx.Response(404, json={'detail': 'User not found'})
            user.update(json.loads(request.content))
            return httpx.Response(200, json=user)

        return httpx.Response(404, json={'detail': 'Not found'})

    def client_factory(self) -> AxieStudioClient:
        return AxieStudioClient(
            base_url=self.base_url,
            username='service@example.com',
            password='service-password',
            transport=httpx.MockTransport(self.handler),
        )
