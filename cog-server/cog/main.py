from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from cog import __version__
from cog.core.config import Settings, get_settings
from cog.core.container import build_container
from cog.core.logging import configure_logging
from cog.interfaces.http import create_http_router
from cog.interfaces.http.errors import register_error_handlers


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)
    container = build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await container.startup()
        try:
            yield
        finally:
            await container.shutdown()

    app = FastAPI(
        title=settings.project_name,
        description="On-demand and scheduled script runner",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.templates = Jinja2Templates(directory=str(settings.templates_path))

    register_error_handlers(app)
    app.include_router(create_http_router(settings.api_prefix))

    @app.get("/", include_in_schema=False)
    async def index():
        return RedirectResponse(url="/ui")

    return app


app = create_app()
