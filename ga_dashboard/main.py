"""
FastAPI application factory with middleware, CORS, request tracing and the
error envelope.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ga_dashboard import __version__
from ga_dashboard.auth.dependencies import get_current_admin
from ga_dashboard.config import get_settings
from ga_dashboard.connectors.report_client import ReportQueryError, init_report_client
from ga_dashboard.engine.pipeline import ReportTimeoutError
from ga_dashboard.models.enums import ErrorKind
from ga_dashboard.routers import analytics, auth
from ga_dashboard.utils.logging import configure_logging, get_logger

# Configure logging at module level
configure_logging()
logger = get_logger(__name__)

ERROR_STATUS = {
    ErrorKind.AUTH: 502,
    ErrorKind.QUOTA: 429,
    ErrorKind.UNSUPPORTED: 400,
    ErrorKind.CONFIGURATION: 503,
    ErrorKind.TRANSIENT: 502,
}


def error_response(status_code: int, message: str, headers=None, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, **extra},
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Initializes the report client once at startup.
    """
    settings = get_settings()

    logger.info(
        "application_startup",
        version=app.version,
        property_id=settings.ga_property_id,
        dev_mode=settings.dev_mode,
    )

    init_report_client(settings)

    yield

    logger.info("application_shutdown")


def register_exception_handlers(app: FastAPI) -> None:
    """Translate domain and framework errors into the error envelope."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'][1:])}: {err['msg']}" for err in exc.errors()
        )
        logger.info("request_invalid", path=request.url.path, error=message)
        return error_response(400, message or "Invalid request")

    @app.exception_handler(ReportQueryError)
    async def report_query_exception_handler(request: Request, exc: ReportQueryError):
        logger.warning("report_request_failed", path=request.url.path, kind=exc.kind.value, error=str(exc))
        return error_response(ERROR_STATUS[exc.kind], str(exc), kind=exc.kind.value)

    @app.exception_handler(ReportTimeoutError)
    async def report_timeout_exception_handler(request: Request, exc: ReportTimeoutError):
        return error_response(504, str(exc))


def create_app() -> FastAPI:
    """
    Application factory.
    Creates and configures FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="GA Dashboard API",
        description="Google Analytics 4 reporting dashboard backend",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # Request tracing middleware
    @app.middleware("http")
    async def request_tracing_middleware(request: Request, call_next):
        """Add request ID and timing to all requests."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
            )

            return response
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                exc_info=True,
            )
            return error_response(
                500,
                "Internal server error",
                headers={"X-Request-ID": request_id},
                request_id=request_id,
            )

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {"status": "healthy", "version": app.version}

    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(
        analytics.router,
        prefix="/api/analytics",
        tags=["Analytics"],
        dependencies=[Depends(get_current_admin)],
    )

    logger.info("application_configured", routers_count=2)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "ga_dashboard.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
