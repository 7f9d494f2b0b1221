"""
Trial Endpoints

Signup provisioning, explicit trial start and the scheduler-triggered sweep.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from access_backend.src.lifecycle.shared.exceptions import LifecycleError
from access_backend.src.lifecycle.trials import trial_service, trial_sweep

from .dependencies import CurrentUser, get_current_user, verify_cron_secret

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lifecycle-trials"])


class ProvisionAccountRequest(BaseModel):
    """Request for signup provisioning."""
    full_name: Optional[str] = None


class StartTrialRequest(BaseModel):
    """Request for trial start."""
    user_id: Optional[str] = None


@router.post("/provision-account")
async def provision_account(
    request: ProvisionAccountRequest,
    user: CurrentUser = Depends(get_current_user),
) -> Dict:
    """Provision the caller after signup (identity, profile, trial)."""
    if not user.email:
        raise LifecycleError("Token carries no email", code="EMAIL_REQUIRED")
    trial = await trial_service.provision_user(user.id, user.email, full_name=request.full_name)
    return {'success': True, 'trial': trial}


@router.post("/start-trial")
async def start_trial(
    request: StartTrialRequest,
    user: CurrentUser = Depends(get_current_user),
) -> Dict:
    """Start a 7-day free trial for the caller."""
    return await trial_service.start_trial(user.id, request.user_id or user.id)


@router.post("/trial-cleanup", dependencies=[Depends(verify_cron_secret)])
async def trial_cleanup() -> Dict:
    """Expire trials and run due scheduled deletions. Called by the external scheduler."""
    return await trial_sweep.run()
