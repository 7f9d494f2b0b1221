from fastapi import APIRouter

from access_backend.core.conf import settings
from access_backend.src.lifecycle.endpoints import lifecycle_router

router = APIRouter()

router.include_router(lifecycle_router, prefix=settings.FASTAPI_API_V1_PATH, tags=["Lifecycle"])
