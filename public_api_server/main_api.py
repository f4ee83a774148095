import time
import uuid
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from public_api_server.config import Settings, settings as default_settings
from public_api_server.context import GatewayRequest
from public_api_server.errors import INTERNAL_ERROR_BODY
from public_api_server.gateway import PublicAPIGateway
from public_api_server.health import Metrics, router as health_router
from public_api_server.logging_config import (
    get_logger,
    log_exception,
    log_request_end,
    log_request_start,
    setup_logging,
)
from public_api_server.sql_store import SQLAlchemyRecordStore, create_record_store
from public_api_server.store import RecordStore

GATEWAY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Context variable for request ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    gateway: Optional[PublicAPIGateway] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration (defaults to the environment)
        store: Record store (defaults to one built from DATABASE_URL)
        gateway: Fully wired gateway; overrides store when given
    """
    settings = settings or default_settings
    if gateway is not None:
        store = gateway.store
    owns_store = store is None
    store = store or create_record_store(settings)
    gateway = gateway or PublicAPIGateway(store, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = get_logger("startup")
        if settings.database_create_tables and isinstance(store, SQLAlchemyRecordStore):
            await store.create_all()
            logger.info("database_tables_created")
        logger.info("startup_complete", environment=settings.environment)
        yield
        await gateway.notifier.drain()
        if owns_store:
            await store.close()

    app = FastAPI(
        title="Storefront Public API",
        description="API-key authenticated catalog and SMM resale gateway.",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.gateway = gateway
    app.state.metrics = Metrics()

    # Add security headers middleware
    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        """Add security headers to all responses"""
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response

    # Logging middleware
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log all incoming requests and responses with timing"""
        request_id = str(uuid.uuid4())
        request_id_var.set(request_id)

        client_ip = request.client.host if request.client else "unknown"

        start_time = time.time()
        log_request_start(
            method=request.method,
            path=request.url.path,
            request_id=request_id,
            client_ip=client_ip,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            log_exception(
                e,
                context={
                    "method": request.method,
                    "path": request.url.path,
                    "request_id": request_id,
                    "duration_ms": duration_ms,
                }
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        app.state.metrics.record_request(response.status_code, duration_ms)
        log_request_end(
            method=request.method,
            path=request.url.path,
            request_id=request_id,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        response.headers["X-Request-ID"] = request_id
        return response

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions"""
        request_id = request_id_var.get("")
        log_exception(
            exc,
            context={
                "method": request.method,
                "path": request.url.path,
                "request_id": request_id,
            }
        )
        return JSONResponse(
            content=dict(INTERNAL_ERROR_BODY),
            status_code=500,
            headers={"X-Request-ID": request_id},
        )

    app.include_router(health_router)

    # Registered last so the health routes win.
    @app.api_route("/{full_path:path}", methods=GATEWAY_METHODS, include_in_schema=False)
    async def public_api(request: Request, full_path: str):
        """Hand the request to the gateway and render its response."""
        gateway_request = GatewayRequest(
            method=request.method,
            path=request.url.path,
            headers=dict(request.headers),
            query=dict(request.query_params),
            body=await request.body(),
        )
        result = await request.app.state.gateway.handle(gateway_request)

        if result.body is None:
            return Response(status_code=result.status_code, headers=result.headers)
        return JSONResponse(
            content=jsonable_encoder(result.body),
            status_code=result.status_code,
            headers=result.headers,
        )

    return app


setup_logging(
    log_level=default_settings.log_level,
    log_format=default_settings.log_format,
    log_file=default_settings.log_file_path if default_settings.log_file_enabled else None,
    log_max_bytes=default_settings.log_file_max_size,
    log_backup_count=default_settings.log_file_backup_count,
)

app = create_app()

# Example for running locally:
# uvicorn public_api_server.main_api:app --host 0.0.0.0 --port 8002
