"""FastAPI application factory.

Main entry point for the Skoo Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from skoo import __version__
from skoo.config.app_config import load_app_config
from skoo.db import init_db
from skoo.llm.client import LLMError, LLMQuotaError, LLMRateLimitError
from skoo.web.routes import (
    calendar_router,
    coach_router,
    copilot_router,
    health_router,
    study_tools_router,
    subscription_router,
)

logger = structlog.get_logger(__name__)

RATE_LIMIT_MESSAGE = "Trop de requêtes, réessaie dans quelques instants."
QUOTA_MESSAGE = "Crédits IA insuffisants."
INTERNAL_ERROR_MESSAGE = "Erreur interne du serveur."


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    config = load_app_config()
    init_db(config.db_path)
    logger.info("api_startup", db_path=str(config.db_path))
    yield


async def rate_limit_handler(request: Request, exc: LLMRateLimitError) -> JSONResponse:
    logger.warning("api_rate_limited", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": RATE_LIMIT_MESSAGE},
    )


async def quota_handler(request: Request, exc: LLMQuotaError) -> JSONResponse:
    logger.warning("api_quota_exhausted", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content={"error": QUOTA_MESSAGE},
    )


async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    logger.error("api_llm_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc), "details": exc.details},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("api_unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR_MESSAGE, "details": str(exc)},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="Skoo API",
        description="Study planner backend with an AI copilot",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LLMRateLimitError, rate_limit_handler)
    app.add_exception_handler(LLMQuotaError, quota_handler)
    app.add_exception_handler(LLMError, llm_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health_router)
    app.include_router(copilot_router)
    app.include_router(study_tools_router)
    app.include_router(coach_router)
    app.include_router(subscription_router)
    app.include_router(calendar_router)

    return app


# Default app instance for uvicorn
app = create_app()
