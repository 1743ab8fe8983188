"""Main router aggregation."""

from fastapi import APIRouter

from keygate.api.admin import router as admin_router
from keygate.api.auth import router as auth_router
from keygate.api.search import router as search_router
from keygate.api.usage import router as usage_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(admin_router, prefix="/admin", tags=["admin"])
api_router.include_router(search_router, prefix="/search", tags=["search"])
api_router.include_router(usage_router, tags=["usage"])
