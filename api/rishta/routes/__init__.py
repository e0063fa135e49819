from fastapi import FastAPI

from .admin import router as admin_router
from .auth import router as auth_router
from .packages import router as packages_router
from .profile import router as profile_router
from .proposals import router as proposals_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(profile_router, tags=["profiles"])
    app.include_router(packages_router, tags=["packages"])
    app.include_router(proposals_router, tags=["proposals"])
    app.include_router(admin_router, tags=["admin"])
