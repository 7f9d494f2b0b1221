"""Tests for the command line sweep command."""

from unittest.mock import AsyncMock, patch

import cappa
import pytest

from access_backend import cli
from access_backend.src.lifecycle.shared.exceptions import DeletionAbortedError


@pytest.mark.asyncio
async def test_sweep_prints_results():
    result = {
        'success': True,
        'converted': 0,
        'expired': 1,
        'scheduled': 1,
        'total_candidates': 1,
        'protected_users': 0,
        'processed': 1,
        'results': [{'user_id': 'user-1', 'success': True, 'failed_steps': []}],
    }

    with patch.object(cli.trial_sweep, 'run', new=AsyncMock(return_value=result)) as mock_run:
        await cli.sweep()

    mock_run.assert_awaited_once()


@pytest.mark.asyncio
async def test_sweep_failure_exits_non_zero():
    with patch.object(cli.trial_sweep, 'run', new=AsyncMock(side_effect=DeletionAbortedError())):
        with pytest.raises(cappa.Exit):
            await cli.sweep()
