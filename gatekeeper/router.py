"""Central API router aggregating all domain routers."""

from fastapi import APIRouter

from gatekeeper.admin.router import router as admin_router
from gatekeeper.auth.router import router as auth_router
from gatekeeper.health.router import router as health_router
from gatekeeper.user.router import router as user_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(auth_router)
api_router.include_router(user_router)
api_router.include_router(admin_router)
