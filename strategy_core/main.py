"""
PURPOSE: FastAPI application factory and lifecycle management for the strategy service.

Initializes the FastAPI application with:
- The strategy-builder API router
- CORS middleware restricted to configured origins
- Rate limiting and exception handlers
- Startup tasks (logging, table creation)
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from strategy_core.api import api_router
from strategy_core.config.settings import settings
from strategy_core.core.rate_limit import limiter
from strategy_core.db.engine import init_models
from strategy_core.utils.logger import get_logger, setup_logging
from strategy_core.version import get_version


logger = get_logger(__name__)


# ════════════════════════════════════════════════════════════════
# Lifecycle Events
# ════════════════════════════════════════════════════════════════


async def on_startup() -> None:
    """
    PURPOSE: Execute startup tasks.

    CALLED BY: FastAPI lifespan startup

    Tasks:
        1. Setup logging with configured level
        2. Create missing database tables
    """
    try:
        setup_logging(settings.LOG_LEVEL)
        logger.info(
            "application_startup_starting",
            version=get_version().get("version"),
            log_level=settings.LOG_LEVEL,
        )

        await init_models()
        logger.info("database_tables_ready")

        logger.info("application_startup_complete")

    except Exception as e:
        logger.critical("application_startup_failed", error=str(e))
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    PURPOSE: Manage application lifespan.

    CALLED BY: FastAPI during application startup and shutdown
    """
    await on_startup()

    yield

    logger.info("application_shutdown_complete")


# ════════════════════════════════════════════════════════════════
# Exception Handlers
# ════════════════════════════════════════════════════════════════


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    PURPOSE: Handle Pydantic validation errors with consistent JSON response.

    CALLED BY: FastAPI when request validation fails

    Args:
        request: HTTP request that failed validation
        exc: RequestValidationError with validation details

    Returns:
        JSONResponse: Formatted error response with validation details
    """
    logger.warning(
        "request_validation_failed",
        path=request.url.path,
        method=request.method,
        error_count=len(exc.errors())
    )

    safe_errors = jsonable_encoder(
        exc.errors(),
        custom_encoder={
            ValueError: lambda e: str(e),
            Exception: lambda e: str(e),
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "status": "error",
            "detail": "Request validation failed",
            "errors": safe_errors,
        },
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    PURPOSE: Handle unexpected exceptions with logging and safe error response.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exception_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": "error",
            "detail": "Internal server error",
        },
    )


# ════════════════════════════════════════════════════════════════
# FastAPI Application Factory
# ════════════════════════════════════════════════════════════════


def create_app(llm: Optional[Any] = None) -> FastAPI:
    """
    PURPOSE: Create and configure the FastAPI application.

    CALLED BY: Application entrypoint (uvicorn), tests

    Args:
        llm: Optional LLM client with an async generate(system_prompt, messages)
            method. Without it the turn endpoint answers 503.

    Returns:
        FastAPI: Configured FastAPI application ready to run
    """
    version = get_version()["version"]

    app = FastAPI(
        title="Strategy Core",
        description="Futures strategy rule extraction and validation",
        version=version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.llm = llm

    # ────────────────────────────────────────────────────────────
    # Middleware
    # ────────────────────────────────────────────────────────────

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    # ────────────────────────────────────────────────────────────
    # Routes
    # ────────────────────────────────────────────────────────────

    app.include_router(api_router)

    @app.get("/", tags=["root"])
    async def root():
        """
        PURPOSE: Root endpoint for API availability check.

        Returns:
            dict: Service information and version
        """
        return {
            "status": "ok",
            "service": "Strategy Core API",
            "version": version,
            "registry_version": get_version()["registry_version"],
        }

    # ────────────────────────────────────────────────────────────
    # Exception Handlers
    # ────────────────────────────────────────────────────────────

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("fastapi_application_created", version=version, api_prefix="/api")

    return app


# Create the application
app = create_app()
