"""
EPW Decoder Service - Main Application

FastAPI application entry point.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import structlog

from config import settings, check_connection
from services.epw_service import (
    get_attribute_resolver,
    get_exception_store,
    get_kv_store,
    shutdown,
)

logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level))

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer() if settings.is_production
            else structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: build the store, optionally warm the attribute cache
    Shutdown: close the attributes HTTP client
    """
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug,
        store_backend=settings.store_backend
    )

    resolver = get_attribute_resolver()
    if settings.preload_attributes_on_startup:
        counts = await resolver.preload()
        logger.info("startup_attributes_loaded", counts=counts)

    yield

    logger.info("application_shutting_down")
    await shutdown()


# Create FastAPI app
app = FastAPI(
    title="EPW Decoder Service",
    description="EPW article code decoding and manual exception management",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Store backend, exception table integrity and attribute cache state
    """
    store = get_kv_store()
    integrity = get_exception_store().validate_integrity()
    healthy = integrity.is_valid

    store_status = {
        "backend": store.name,
        "exceptions_valid": integrity.is_valid,
        "errors": integrity.errors,
    }
    if store.name == "supabase":
        store_status["supabase"] = check_connection()
        healthy = healthy and store_status["supabase"]["status"] == "healthy"

    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "store": store_status,
        "attributes": get_attribute_resolver().cache_status(),
    }


@app.get("/")
async def root():
    """
    Root endpoint.

    Returns:
        API information and available endpoints
    """
    return {
        "name": "EPW Decoder Service API",
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "decode": "/api/epw/decode",
            "attributes": "/api/epw/attributes",
            "exceptions": "/api/epw/exceptions",
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes.epw import router as epw_router

app.include_router(epw_router)  # Prefix already in router


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
