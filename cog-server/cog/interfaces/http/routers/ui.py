"""Management UI: list, create, edit and delete scripts."""
from typing import Type, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError

from cog.core.security import require_ui_user
from cog.domain.scripts import ScriptService
from cog.interfaces.http.deps import get_container, get_script_service
from cog.schemas import ScriptCreate, ScriptIdResponse, ScriptSummaryResponse, ScriptUpdate

router = APIRouter(dependencies=[Depends(require_ui_user)])

ModelT = TypeVar("ModelT", bound=BaseModel)


async def _read_model(request: Request, model: Type[ModelT]) -> ModelT:
    """Accept the editor's JSON body as well as a plain HTML form post."""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            data = await request.json()
        else:
            # blank optional inputs arrive as ""
            data = {key: value for key, value in (await request.form()).items() if value != ""}
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Malformed request body") from exc
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc


@router.get("", response_class=HTMLResponse, summary="Script list")
async def home(request: Request, service: ScriptService = Depends(get_script_service)):
    scripts = [ScriptSummaryResponse.model_validate(item) for item in service.list_scripts()]
    return request.app.state.templates.TemplateResponse(request, "ui/home.html", {"scripts": scripts})


@router.get("/new", response_class=HTMLResponse, summary="New script editor")
async def new_script_page(request: Request, service: ScriptService = Depends(get_script_service)):
    return request.app.state.templates.TemplateResponse(
        request, "ui/new.html", {"runtimes": service.runtimes()}
    )


@router.post("/new", response_model=ScriptIdResponse, summary="Create a script")
async def create_script(request: Request, service: ScriptService = Depends(get_script_service)):
    payload = await _read_model(request, ScriptCreate)
    descriptor = service.register(
        name=payload.name,
        runtime=payload.runtime,
        source=payload.code,
        webhook_enabled=payload.webhook,
        cron_enabled=payload.cron,
        cron_schedule=payload.cron_schedule,
        timeout_ms=payload.timeout,
    )
    return ScriptIdResponse(id=descriptor.id)


@router.get("/scripts/{script_id}", response_class=HTMLResponse, summary="Script details")
async def script_page(script_id: str, request: Request, service: ScriptService = Depends(get_script_service)):
    descriptor = service.get_script(script_id)
    next_run = get_container(request).scheduler.next_run(script_id)
    return request.app.state.templates.TemplateResponse(
        request,
        "ui/script.html",
        {
            "script": descriptor,
            "next_run": next_run,
            "api_prefix": get_container(request).settings.api_prefix,
        },
    )


@router.get("/scripts/{script_id}/raw", response_class=PlainTextResponse, summary="Script source")
async def script_source(script_id: str, service: ScriptService = Depends(get_script_service)):
    return PlainTextResponse(service.read_source(script_id))


@router.post("/scripts/{script_id}", response_model=ScriptIdResponse, summary="Update a script")
async def update_script(script_id: str, request: Request, service: ScriptService = Depends(get_script_service)):
    payload = await _read_model(request, ScriptUpdate)
    descriptor = service.update(
        script_id,
        source=payload.code,
        name=payload.name,
        webhook_enabled=payload.webhook,
        cron_enabled=payload.cron,
        cron_schedule=payload.cron_schedule,
        timeout_ms=payload.timeout,
    )
    return ScriptIdResponse(id=descriptor.id)


@router.delete("/scripts/{script_id}", response_model=ScriptIdResponse, summary="Delete a script")
async def delete_script(script_id: str, service: ScriptService = Depends(get_script_service)):
    service.delete(script_id)
    return ScriptIdResponse(id=None)
