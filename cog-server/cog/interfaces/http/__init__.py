"""HTTP surface: webhook API and management UI routers."""

from fastapi import APIRouter

from .routers import api, ui


def create_http_router(api_prefix: str = "/api/v1") -> APIRouter:
    router = APIRouter()
    router.include_router(api.router, prefix=api_prefix, tags=["webhooks"])
    router.include_router(ui.router, prefix="/ui", tags=["ui"])
    return router


__all__ = [
    "create_http_router",
]
