"""FastAPI application for the flock compilation server."""

from __future__ import annotations

import enum
import logging
import uuid

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from flock import __version__
from flock.config import ServerConfiguration
from flock.protocol import (
    COMPILE_ENDPOINT,
    STATUS_ENDPOINT,
    CompilationRequest,
    CompilationResponse,
)
from flock.server.admission import AdmissionController
from flock.server.compiler import DEFAULT_COMPILE_TIMEOUT_SECONDS, RemoteCompiler
from flock.server.registry import FrontendRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


class RequestState(enum.Enum):
    RECEIVED = "received"
    VERSION_MATCHED = "version_matched"
    ADMITTED = "admitted"
    COMPILING = "compiling"
    COMPLETED = "completed"
    FAILED = "failed"


class ServerState:
    """Read-only registry and SDK table plus the admission counter."""

    def __init__(
        self,
        config: ServerConfiguration,
        registry: FrontendRegistry,
        compile_timeout_seconds: float = DEFAULT_COMPILE_TIMEOUT_SECONDS,
    ):
        self.config = config
        self.registry = registry
        self.admission = AdmissionController(config.number_of_parallel_compilations)
        self.compile_timeout_seconds = compile_timeout_seconds


def _transition(request_id: str, state: RequestState) -> None:
    logger.info("request %s: %s", request_id, state.value)


def _failure(request_id: str, status_code: int, reason: str, message: str) -> JSONResponse:
    _transition(request_id, RequestState.FAILED)
    logger.warning("request %s failed: %s", request_id, reason)
    body = CompilationResponse.failed(reason, message).model_dump(mode="json")
    return JSONResponse(status_code=status_code, content=body)


@router.get(STATUS_ENDPOINT)
async def status(request: Request):
    server: ServerState = request.app.state.flock
    return {
        "version": __version__,
        "compiler_versions": server.registry.versions,
        "sdks": sorted(server.config.sdks),
        "active_compilations": server.admission.active,
        "waiting_compilations": server.admission.waiting,
        "max_parallel_compilations": server.config.number_of_parallel_compilations,
    }


@router.post(COMPILE_ENDPOINT)
async def compile_sources(req: CompilationRequest, request: Request):
    server: ServerState = request.app.state.flock
    request_id = uuid.uuid4().hex[:12]
    _transition(request_id, RequestState.RECEIVED)

    frontend = server.registry.lookup(req.info.compiler_version)
    if frontend is None:
        return _failure(
            request_id, 409, "no_matching_compiler_version",
            f"no frontend matches compiler version {req.info.compiler_version!r}",
        )
    sdk = server.config.sdks.get(req.info.sdk_platform_and_version)
    if sdk is None:
        return _failure(
            request_id, 409, "sdk_not_found",
            f"SDK {req.info.sdk_platform_and_version!r} is not installed",
        )
    _transition(request_id, RequestState.VERSION_MATCHED)

    compiler = RemoteCompiler(frontend, sdk, timeout_seconds=server.compile_timeout_seconds)
    async with server.admission.slot():
        _transition(request_id, RequestState.ADMITTED)
        _transition(request_id, RequestState.COMPILING)
        outcome = await compiler.compile(req.inputs, req.info.frontend_options)

    if not outcome.ok:
        return _failure(request_id, 422, outcome.reason or "compilation_failed", outcome.message)

    _transition(request_id, RequestState.COMPLETED)
    return CompilationResponse.completed(outcome.artifacts).model_dump(mode="json")


def create_app(
    config: ServerConfiguration,
    registry: FrontendRegistry | None = None,
    compile_timeout_seconds: float = DEFAULT_COMPILE_TIMEOUT_SECONDS,
) -> FastAPI:
    """Build the app; the registry is queried from the configured frontends if not given."""
    if registry is None:
        registry = FrontendRegistry.from_paths(config.swift_compiler_frontends)

    app = FastAPI(title="flock-server", version=__version__)
    app.state.flock = ServerState(config, registry, compile_timeout_seconds)

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        message = "; ".join(str(e.get("msg", "")) for e in exc.errors())
        body = CompilationResponse.failed("invalid_request", message).model_dump(mode="json")
        return JSONResponse(status_code=422, content=body)

    app.include_router(router)
    return app
