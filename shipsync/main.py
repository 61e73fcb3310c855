"""
FastAPI application entry point.
Configures routes, middleware, error rendering and lifecycle events.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shipsync.config import settings
from shipsync.database import init_db, close_db
from shipsync.errors import SandboxError
from shipsync.logging_config import configure_logging

# Import routers - MUST BE AT TOP LEVEL
from shipsync.api.payments import router as payments_router
from shipsync.api.shipping import router as shipping_router
from shipsync.api.webhooks.ipg import router as ipg_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle manager."""
    # Startup
    configure_logging()
    logger.info(f"Starting up {settings.app_name} ({settings.app_env})...")
    await init_db()

    yield

    # Shutdown
    await close_db()
    logger.info("Shutting down...")


app = FastAPI(
    title="ShipSync",
    description="Payment session and shipment orchestration sandbox",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


def error_response(status_code: int, error: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
    )


@app.exception_handler(SandboxError)
async def sandbox_error_handler(request: Request, exc: SandboxError):
    # Server-side details only leave the process in development
    include_details = exc.status_code < 500 or settings.is_development
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.to_dict(include_details=include_details))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return error_response(400, {
        "code": "VALIDATION_FAILED",
        "message": "Validation failed.",
        "details": details,
    })


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    error = {"code": "SERVER_ERROR", "message": "Internal Server Error"}
    if settings.is_development:
        error["details"] = str(exc)
    return error_response(500, error)


# CORS middleware
origins = [settings.base_url]
if settings.is_development:
    origins.append("*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.app_env,
    }


app.include_router(payments_router)
app.include_router(shipping_router)

# Register webhook routes
app.include_router(
    ipg_router,
    prefix="/api/ipg",
    tags=["webhooks"],
)
