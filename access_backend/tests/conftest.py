import os

# Settings are read once at import time
os.environ['DATABASE_TYPE'] = 'sqlite'
os.environ['DATABASE_SCHEMA'] = ':memory:'
os.environ['TOKEN_SECRET_KEY'] = 'test-token-secret-key-with-32-bytes!'
os.environ['STRIPE_SECRET_KEY'] = 'sk_test_123'
os.environ['STRIPE_WEBHOOK_SECRET'] = 'whsec_test_123'
os.environ['CRON_SECRET'] = 'cron-secret'
os.environ['AXIESTUDIO_APP_URL'] = 'http://axie.test'

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402

from access_backend.tests.factories import FakeAxieStudio  # noqa: E402


@pytest.fixture
def now() -> datetime:
    """Fixed clock for service-level tests."""
    return datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fake_axie() -> FakeAxieStudio:
    return FakeAxieStudio()
