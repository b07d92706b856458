"""
FastAPI application entry point for the agency backend.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agency.config import get_settings
from agency.dependencies import get_error_tracker, get_request_log
from agency.errors import AgencyError, ValidationFailedError, error_body
from agency.routes import router

logger = logging.getLogger(__name__)


def _error_response(request: Request, error: Exception, status_code: int) -> JSONResponse:
    tracked = get_error_tracker().track(
        error, {"method": request.method, "path": request.url.path}
    )
    if status_code >= 500:
        get_request_log().error("Request failed", error=error, error_id=tracked.id)
    return JSONResponse(status_code=status_code, content=error_body(error, tracked))


async def handle_agency_error(request: Request, exc: AgencyError) -> JSONResponse:
    return _error_response(request, exc, exc.status_code)


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _error_response(request, Exception(exc.detail), exc.status_code)


async def handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}" for e in exc.errors()
    ]
    return _error_response(request, ValidationFailedError(errors), 422)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(request, exc, 500)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.getLogger("agency").setLevel(settings.log_level)
    app = FastAPI(title=settings.app_name, version=settings.app_version)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        get_request_log().api(
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    app.add_exception_handler(AgencyError, handle_agency_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
