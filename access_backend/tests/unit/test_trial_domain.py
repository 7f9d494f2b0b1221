"""Tests for the trial record and its scheduling invariant."""

from datetime import datetime, timedelta, timezone

import pytest

from access_backend.src.lifecycle.domain import TrialRecord, TrialStatus, trial_state_fields
from access_backend.src.lifecycle.domain.trial import days_from_seconds, seconds_until

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class TestTrialStateFields:
    """A deletion timestamp exists exactly for scheduled and canceled trials."""

    @pytest.mark.parametrize('status', [TrialStatus.SCHEDULED_FOR_DELETION, TrialStatus.CANCELED])
    def test_scheduled_statuses_require_timestamp(self, status):
        with pytest.raises(ValueError):
            trial_state_fields(status)

        fields = trial_state_fields(status, NOW)
        assert fields == {'trial_status': status.value, 'deletion_scheduled_at': NOW}

    @pytest.mark.parametrize('status', [
        TrialStatus.ACTIVE,
        TrialStatus.EXPIRED,
        TrialStatus.CONVERTED_TO_PAID,
        TrialStatus.DELETED,
    ])
    def test_other_statuses_reject_timestamp(self, status):
        with pytest.raises(ValueError):
            trial_state_fields(status, NOW)

        assert trial_state_fields(status)['deletion_scheduled_at'] is None

    def test_record_enforces_invariant_on_construction(self):
        with pytest.raises(ValueError):
            TrialRecord('user-1', NOW, NOW, TrialStatus.CANCELED)


class TestTrialRecord:
    """Tests for trial window helpers."""

    def test_new_trial_lasts_seven_days(self):
        trial = TrialRecord.new('user-1', NOW)

        assert trial.trial_status == TrialStatus.ACTIVE
        assert trial.trial_end - trial.trial_start == timedelta(days=7)
        assert trial.is_running(NOW) is True
        assert trial.is_consumed(NOW) is False

    def test_lapsed_active_trial_counts_as_consumed(self):
        trial = TrialRecord.new('user-1', NOW - timedelta(days=8))

        assert trial.is_running(NOW) is False
        assert trial.is_consumed(NOW) is True

    def test_converted_trial_is_not_consumed(self):
        trial = TrialRecord('user-1', NOW - timedelta(days=8), NOW - timedelta(days=1), TrialStatus.CONVERTED_TO_PAID)

        assert trial.is_consumed(NOW) is False

    def test_to_dict_serializes_timestamps(self):
        trial = TrialRecord.new('user-1', NOW)

        data = trial.to_dict()

        assert data['trial_status'] == 'active'
        assert data['trial_end'] == (NOW + timedelta(days=7)).isoformat()
        assert data['deletion_scheduled_at'] is None


class TestRemainingTime:
    """Tests for remaining-time rounding."""

    def test_seconds_until_clamps_at_zero(self):
        assert seconds_until(NOW - timedelta(hours=1), NOW) == 0
        assert seconds_until(None, NOW) == 0

    def test_any_started_day_counts(self):
        assert days_from_seconds(0) == 0
        assert days_from_seconds(1) == 1
        assert days_from_seconds(86_400) == 1
        assert days_from_seconds(86_401) == 2
