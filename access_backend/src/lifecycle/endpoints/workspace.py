"""
Workspace Account Endpoint

Create, deactivate or reactivate the caller's Axie Studio account.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from access_backend.app.account.crud.crud_user import auth_user_dao
from access_backend.database.db import async_db_session
from access_backend.src.lifecycle.shared.exceptions import LifecycleError
from access_backend.src.lifecycle.workspace import workspace_bridge

from .dependencies import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lifecycle-workspace"])


class WorkspaceAccountRequest(BaseModel):
    """Request for workspace account management."""
    action: str
    password: Optional[str] = None


@router.post("/axie-studio-account")
async def manage_workspace_account(
    request: WorkspaceAccountRequest,
    user: CurrentUser = Depends(get_current_user),
) -> Dict:
    """
    Manage the caller's workspace account.

    Actions:
    - create: requires ``password`` and current access
    - delete: deactivates the account (data preserved)
    - reactivate: requires current access
    """
    email = user.email
    if not email:
        async with async_db_session() as db:
            email = await auth_user_dao.get_email(db, user.id)
    if not email:
        raise LifecycleError("User email is not available", code="EMAIL_REQUIRED")

    if request.action == 'create':
        if not request.password:
            raise LifecycleError("Password is required for account creation", code="PASSWORD_REQUIRED")
        result = await workspace_bridge.create_account(email, request.password, user.id)
        return {'message': 'Axie Studio account created successfully', **result}

    if request.action == 'delete':
        await workspace_bridge.deactivate_account(email)
        return {'success': True, 'message': 'Axie Studio account deactivated (data preserved)'}

    if request.action == 'reactivate':
        await workspace_bridge.reactivate_account(email, user.id)
        return {'success': True, 'message': 'Axie Studio account reactivated successfully'}

    raise LifecycleError("Invalid request method or action", code="INVALID_ACTION", status_code=405)
