"""Translate script domain errors into HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cog.domain.scripts.exceptions import (
    ConcurrencyLimitError,
    DuplicateScriptError,
    InvalidCronExpressionError,
    ScriptError,
    ScriptNotFoundError,
    SpawnError,
    StorageError,
    UnsupportedRuntimeError,
    WebhookDisabledError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[ScriptError], int] = {
    ScriptNotFoundError: status.HTTP_404_NOT_FOUND,
    WebhookDisabledError: status.HTTP_400_BAD_REQUEST,
    UnsupportedRuntimeError: status.HTTP_400_BAD_REQUEST,
    InvalidCronExpressionError: status.HTTP_400_BAD_REQUEST,
    DuplicateScriptError: status.HTTP_409_CONFLICT,
    ConcurrencyLimitError: status.HTTP_429_TOO_MANY_REQUESTS,
    SpawnError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(exc: ScriptError) -> int:
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_script_error(request: Request, exc: ScriptError) -> JSONResponse:
    code = status_code_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"message": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ScriptError, handle_script_error)
