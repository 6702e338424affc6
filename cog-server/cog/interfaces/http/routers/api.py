"""Webhook endpoints for triggering and running scripts."""
import json
from typing import Optional
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request

from cog.domain.scripts import ScriptService, format_arguments
from cog.interfaces.http.deps import get_script_service
from cog.schemas import MessageResponse, RunResponse

router = APIRouter()


def _request_arguments(request: Request) -> list[str]:
    return format_arguments(request.query_params.multi_items())


async def _request_payload(request: Request) -> Optional[str]:
    """Serialize the request body as one JSON line for the script's stdin."""
    body = await request.body()
    if not body.strip():
        return None
    text = body.decode("utf-8", errors="replace")
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded"):
        return json.dumps(dict(parse_qsl(text, keep_blank_values=True)), ensure_ascii=False)
    try:
        return json.dumps(json.loads(text), ensure_ascii=False, separators=(",", ":"))
    except ValueError:
        return json.dumps(text, ensure_ascii=False)


@router.post("/trigger/{script_id}", response_model=MessageResponse, summary="Trigger a script and return immediately")
async def trigger_script(
    script_id: str,
    request: Request,
    service: ScriptService = Depends(get_script_service),
):
    payload = await _request_payload(request)
    service.trigger(script_id, _request_arguments(request), payload)
    return MessageResponse(message="Script execution has been triggered.")


@router.post("/run/{script_id}", response_model=RunResponse, summary="Run a script and wait for its output")
async def run_script(
    script_id: str,
    request: Request,
    service: ScriptService = Depends(get_script_service),
):
    payload = await _request_payload(request)
    outcome = await service.run(script_id, _request_arguments(request), payload)
    message = (
        "Script exceeded its execution time window."
        if outcome.timed_out
        else "Script has executed successfully!"
    )
    return RunResponse(
        message=message,
        output=outcome.stdout,
        output_error=outcome.stderr,
        exit_code=outcome.exit_code,
        timed_out=outcome.timed_out,
    )
