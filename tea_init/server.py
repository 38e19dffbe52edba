"""
Local HTTP status surface for the tea CLI bootstrap.

There is no module-level app: settings (and any .env file) are only read when
an app is built. Serve with ``uvicorn --factory tea_init.server:create_app``.
"""
from __future__ import annotations
from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from .cli_state import TeaCli
from .installer import platform_midfix
from .settings import Settings
from .types import InitializationError, InitState
from .utils import init_http_client, close_http_client


logger = logging.getLogger("tea_init")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger.setLevel(logging.INFO)


def create_app(settings: Settings | None = None, cli: TeaCli | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    if settings.debug_mode:
        logger.setLevel(logging.DEBUG)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_http_client(timeout=settings.http_timeout)
        app.state.cli = cli or TeaCli(settings)
        # same as the desktop shell: start installing as soon as we are up
        app.state.cli.start()
        try:
            yield
        finally:
            await close_http_client()

    app = FastAPI(title="tea CLI bootstrap", lifespan=lifespan)
    app.state.settings = settings

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(status="ok")

    @app.get("/config", response_model=ConfigResponse)
    async def config():
        try:
            midfix = platform_midfix()
        except InitializationError:
            midfix = None
        return ConfigResponse(
            tea_prefix=str(settings.tea_prefix),
            dist_url=settings.dist_url,
            init_retries=settings.init_retries,
            midfix=midfix,
        )

    @app.get("/cli", response_model=CliResponse)
    async def cli_version(request: Request):
        tea: TeaCli = request.app.state.cli
        try:
            version = await tea.ensure()
        except Exception as e:
            logger.warning("/cli failed err=%r", e)
            raise HTTPException(status_code=503, detail=str(e) or type(e).__name__)
        return CliResponse(state=tea.get_state(), version=version)

    @app.get("/cli/state", response_model=CliResponse)
    async def cli_state(request: Request):
        tea: TeaCli = request.app.state.cli
        return CliResponse(state=tea.get_state())

    @app.post("/cli/reset", response_model=CliResponse)
    async def cli_reset(request: Request):
        tea: TeaCli = request.app.state.cli
        tea.reset()
        return CliResponse(state=tea.get_state())

    return app


class HealthResponse(BaseModel):
    status: str


class ConfigResponse(BaseModel):
    tea_prefix: str
    dist_url: str
    init_retries: int
    midfix: str | None = None


class CliResponse(BaseModel):
    state: InitState
    version: str | None = None
