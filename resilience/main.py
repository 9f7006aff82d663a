"""
HTTP surface of the resilience core.

Every endpoint is a thin async wrapper around a synchronous operation in
``resilience.operations`` and answers with the ``{"success", "data",
"error"}`` envelope. Run with ``uvicorn resilience.main:app``.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from resilience import __version__
from resilience.config import get_settings
from resilience.operations import format_validation_error
from resilience.routers import dr, incidents
from resilience.utils.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _failure(status_code: int, error: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "data": None, "error": error},
        headers={REQUEST_ID_HEADER: request_id},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "application_startup",
        version=app.version,
        correlation_window_minutes=settings.correlation_window_minutes,
        correlation_max_hops=settings.correlation_max_hops,
    )
    yield
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    """Build the FastAPI application with CORS, request tracing and routers."""
    settings = get_settings()

    app = FastAPI(
        title="Cloud Resilience API",
        description="DR posture analysis, recovery planning and multi-cloud incident correlation",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def trace_requests(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("request_failed", error=str(e), exc_info=True)
            return _failure(500, "Internal server error", request_id)

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response

    @app.exception_handler(RequestValidationError)
    async def malformed_body(request: Request, exc: RequestValidationError):
        # Body is not a JSON object; operations validate everything else
        message = format_validation_error(exc)
        logger.warning("request_body_rejected", error=message)
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        return _failure(422, message, request_id)

    @app.get("/health", tags=["System"])
    async def health_check():
        return {"status": "healthy", "version": app.version}

    app.include_router(dr.router, prefix="/api/v1/dr", tags=["Disaster Recovery"])
    app.include_router(incidents.router, prefix="/api/v1/incidents", tags=["Incidents"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "resilience.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
