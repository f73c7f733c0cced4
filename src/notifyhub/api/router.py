"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from notifyhub.api.routes import health, notifications, templates

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(notifications.router)
api_router.include_router(templates.router)
