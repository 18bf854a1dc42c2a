"""Main FastAPI application with middleware and logging setup."""

from __future__ import annotations

import json
import logging
import sys
import time

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import setup_error_handlers
from app.core.otel_setup import setup_opentelemetry
from app.core.middleware import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    RequestLoggingMiddleware,
    setup_cors,
    setup_gzip,
)
from app.imports.routes import catalog_router as import_catalog_router
from app.imports.routes import router as imports_router

# API prefix constant
API_PREFIX = "/api/v1"


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            "timestamp": time.time(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add extra fields from record
        for key in ("request_id", "error_code", "status_code", "path", "method"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class RequestIDDefaultFilter(logging.Filter):
    """Give every record a request_id so the text format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


def setup_logging() -> None:
    """Configure structured JSON logging (or text logging for dev)."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        # Human-readable format for dev
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(request_id)s] - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    stdout_handler.addFilter(RequestIDDefaultFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Clear existing handlers to avoid duplicates
    root_logger.handlers = []
    root_logger.addHandler(stdout_handler)

    # Set levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# Setup logging before creating app
setup_logging()

# Setup OpenTelemetry (must be done before app creation)
setup_opentelemetry()

app = FastAPI(
    title=settings.service_name,
    version="0.1.0",
)

# Setup error handlers (must be done before routes are added)
setup_error_handlers(app, debug=(settings.app_env != "production"))

# Add middleware (order matters - add in reverse order of execution)
# Last added = first executed

# 1. Request ID (first to execute, last to add)
app.add_middleware(RequestIDMiddleware)

# 2. Security Headers
app.add_middleware(SecurityHeadersMiddleware)

# 3. Request Logging (after request ID is set)
if settings.enable_request_logging:
    app.add_middleware(RequestLoggingMiddleware)

# 4. CORS
setup_cors(app)

# 5. GZip Compression (last to execute, first to add)
if settings.enable_gzip:
    setup_gzip(app)

# Include routers
app.include_router(imports_router, prefix=API_PREFIX)
app.include_router(import_catalog_router, prefix=API_PREFIX)


@app.get("/health")
async def health() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(
        {
            "status": "ok",
            "env": settings.app_env,
            "version": app.version,
        }
    )
