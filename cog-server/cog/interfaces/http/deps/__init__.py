"""Reusable FastAPI dependencies."""

from fastapi import Request

from cog.core.container import ApplicationContainer
from cog.domain.scripts import ScriptService


def get_container(request: Request) -> ApplicationContainer:
    return request.app.state.container


def get_script_service(request: Request) -> ScriptService:
    return get_container(request).service


__all__ = [
    "get_container",
    "get_script_service",
]
