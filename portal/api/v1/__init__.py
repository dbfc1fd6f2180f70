from fastapi import APIRouter

from portal.api.v1.routers import (
    admin,
    admission,
    auth,
    dashboard,
    files,
    health,
    profile,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(admission.router)
api_router.include_router(dashboard.router)
api_router.include_router(profile.router)
api_router.include_router(admin.router)
api_router.include_router(files.router)

__all__ = ["api_router"]
