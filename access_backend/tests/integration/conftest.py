from typing import AsyncGenerator

import pytest

from httpx import ASGITransport, AsyncClient

from access_backend.database.db import async_engine, create_tables, drop_tables
from access_backend.src.lifecycle.workspace import workspace_bridge


@pytest.fixture(autouse=True)
async def database() -> AsyncGenerator[None, None]:
    """Fresh in-memory schema per test."""
    await create_tables()
    yield
    await drop_tables()
    # The pooled connection is bound to this test's event loop
    await async_engine.dispose()


@pytest.fixture(scope='session')
def app():
    from access_backend.core.registrar import register_app

    return register_app()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as c:
        yield c


@pytest.fixture
def workspace_api(fake_axie, monkeypatch):
    """Route the global workspace bridge to the in-memory workspace API."""
    monkeypatch.setattr(workspace_bridge, 'client_factory', fake_axie.client_factory)
    return fake_axie
