"""ASGI entry point: builds the FastAPI app, its error envelope and startup guards."""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from staffhub.audit import SYSTEM_ACTOR
from staffhub.db import engine
from staffhub.errors import ApiError, error_response
from staffhub.logging_utils import setup_json_logging
from staffhub.routers import auth, employees, locations, pages, profiles, realtime
from staffhub.services.config_guard import verify_connection_settings
from staffhub.services.schema_guard import SchemaGuardResult, verify_runtime_schema
from staffhub.services.storage import PUBLIC_PREFIX
from staffhub.settings import get_cors_origins, get_settings, get_storage_root

settings = get_settings()
setup_json_logging(settings.log_level, service=settings.app_name)
logger = logging.getLogger("staffhub.request")
startup_logger = logging.getLogger("staffhub.startup")

HTTP_ERROR_CODES = {
    401: "INVALID_TOKEN",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "TOO_MANY_ATTEMPTS",
}

_LOCATION_NOISE = ("body", "query", "path")


def _validation_message(exc: RequestValidationError) -> str:
    messages: list[str] = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part not in _LOCATION_NOISE)
        message = str(item.get("msg") or "Invalid value.").removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid request."


def _run_config_guard(app: FastAPI) -> None:
    result = verify_connection_settings()
    app.state.config_guard_result = result
    if result.ok:
        startup_logger.info("config_guard_ok", extra=result.to_dict())
        return
    startup_logger.error("config_guard_failed", extra=result.to_dict())
    if settings.config_guard_strict:
        result.raise_for_missing()


async def _run_schema_guard(app: FastAPI) -> None:
    result = await asyncio.to_thread(verify_runtime_schema, engine)
    app.state.schema_guard_result = result
    if result.ok:
        startup_logger.info("schema_guard_ok", extra=result.to_dict())
        return
    startup_logger.error("schema_guard_failed", extra=result.to_dict())
    if settings.schema_guard_strict:
        raise RuntimeError("Runtime schema guard failed: " + "; ".join(result.issues))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    _run_config_guard(app)
    await _run_schema_guard(app)
    yield
    engine.dispose()


async def _tag_request(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    request.state.request_id = request_id
    request.state.actor = getattr(request.state, "actor", SYSTEM_ACTOR)
    request.state.actor_id = getattr(request.state, "actor_id", SYSTEM_ACTOR)

    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        logger.info(
            "request_complete",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                "actor": getattr(request.state, "actor", SYSTEM_ACTOR),
                "actor_id": getattr(request.state, "actor_id", SYSTEM_ACTOR),
            },
        )


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def on_api_error(request: Request, exc: ApiError) -> JSONResponse:
        return error_response(request, status_code=exc.status_code, code=exc.code, message=exc.message)

    @app.exception_handler(HTTPException)
    async def on_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        return error_response(
            request,
            status_code=exc.status_code,
            code=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            message=str(exc.detail) if exc.detail else "Request failed.",
        )

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(request, status_code=422, code="VALIDATION_ERROR", message=_validation_message(exc))

    @app.exception_handler(Exception)
    async def on_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "method": request.method,
                "path": request.url.path,
            },
        )
        return error_response(request, status_code=500, code="INTERNAL_ERROR", message="Unexpected server error.")


def create_app() -> FastAPI:
    application = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.middleware("http")(_tag_request)
    _install_error_handlers(application)

    @application.get("/health")
    def health() -> dict[str, Any]:
        schema_result: SchemaGuardResult = getattr(
            application.state,
            "schema_guard_result",
            SchemaGuardResult(ok=False, checked_at_utc=datetime.now(timezone.utc), issues=["SCHEMA_GUARD_NOT_RUN"]),
        )
        config_result = getattr(application.state, "config_guard_result", None)
        return {
            "status": "ok",
            "schema_guard": schema_result.to_dict(),
            "config_guard": config_result.to_dict() if config_result is not None else None,
        }

    for module in (auth, profiles, locations, employees, realtime):
        application.include_router(module.router)

    application.mount(
        f"{PUBLIC_PREFIX}/{settings.storage_bucket}",
        StaticFiles(directory=str(get_storage_root() / settings.storage_bucket), check_dir=False),
        name="user-documents",
    )

    # Catch-all page router goes last so API, realtime and storage paths win.
    application.include_router(pages.router)
    return application


app = create_app()
