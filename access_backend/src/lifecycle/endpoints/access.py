"""
Access Status Endpoint

Exposes the resolver's decision for the caller. Advisory only: every
access-gated action re-resolves on its own.
"""

from typing import Dict

from fastapi import APIRouter, Depends

from access_backend.database.db import CurrentSession
from access_backend.src.lifecycle.access import access_resolver

from .dependencies import CurrentUser, get_current_user

router = APIRouter(tags=["lifecycle-access"])


@router.get("/access-status")
async def get_access_status(db: CurrentSession, user: CurrentUser = Depends(get_current_user)) -> Dict:
    """Get the caller's current access level."""
    status = await access_resolver.resolve(db, user.id)
    return status.to_dict()
