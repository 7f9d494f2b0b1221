"""Trial provisioning, trial start and the trial sweep."""

from .sweep import TrialSweep, trial_sweep
from .trial_service import TrialService, trial_service

__all__ = [
    'TrialService',
    'TrialSweep',
    'trial_service',
    'trial_sweep',
]
