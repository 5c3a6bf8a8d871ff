"""
FastAPI application entry point
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import paychain.models  # noqa: F401  (registers every mapper before the first query)
from paychain.infrastructure.settings import get_settings
from paychain.infrastructure.logging_config import setup_logging
from paychain.api.exceptions import register_exception_handlers
from paychain.api.public.health import router as health_router
from paychain.api.public.metrics import router as metrics_router
from paychain.api.v1 import router as api_v1_router
from paychain.api.admin import router as admin_router
from paychain.api.webhooks import router as webhooks_router
from paychain.utils.trace_id import TraceIDMiddleware
from paychain.utils.request_logging import RequestLoggingMiddleware
from paychain.utils.security_headers import SecurityHeadersMiddleware

settings = get_settings()

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="PayChain Core API",
    description="Mobile-money charge and settlement engine",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

if settings.CORS_ENABLED:
    cors_origins = settings.cors_allow_origins_list
    if not cors_origins:
        logger.warning(
            "CORS_ENABLED=True but CORS_ALLOW_ORIGINS is empty. "
            "Set CORS_ALLOW_ORIGINS (comma-separated) to allow browser callers."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=settings.cors_allow_methods_list or ["*"],
        allow_headers=settings.cors_allow_headers_list or ["*"],
        allow_credentials=False,
    )

# Last added is outermost: trace id must be bound before the request is logged
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TraceIDMiddleware)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(api_v1_router)
app.include_router(admin_router)
app.include_router(webhooks_router)


@app.get("/")
async def root():
    return {
        "name": "PayChain Core API",
        "version": "1.0.0",
        "status": "running",
    }
