"""
Account Deletion Endpoint

Failures are sanitized: the body never reveals whether an internal, auth
or network problem caused them.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from access_backend.src.lifecycle.deletion import account_deletion_service
from access_backend.src.lifecycle.shared.exceptions import (
    DeletionAbortedError,
    IdentityDeletionError,
    LifecycleError,
    PermissionDeniedError,
    ProtectedAccountError,
)

from .dependencies import CurrentUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lifecycle-deletion"])


class DeleteAccountRequest(BaseModel):
    """Request for account deletion."""
    user_id: Optional[str] = None


@router.post("/delete-user-account")
async def delete_user_account(
    request: DeleteAccountRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """Delete the caller's own account across all systems."""
    if not request.user_id:
        raise LifecycleError("User ID is required", code="USER_ID_REQUIRED")

    try:
        await account_deletion_service.delete_account(user.id, request.user_id)
    except (PermissionDeniedError, ProtectedAccountError):
        raise
    except DeletionAbortedError as e:
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    except Exception as e:
        logger.error(f"[DELETION] Deletion of {request.user_id} failed: {type(e).__name__}")
        error = e if isinstance(e, IdentityDeletionError) else IdentityDeletionError()
        return JSONResponse(
            status_code=500,
            content={**error.to_dict(), 'timestamp': datetime.now(timezone.utc).isoformat()},
        )

    return {'success': True, 'message': 'User account deleted successfully'}
