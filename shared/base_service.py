"""
Base service class for Elections Access Layer services.
"""

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Dict, Optional
import time
import os

from prometheus_client import CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST

from shared.config import BaseConfig
from shared.logging import configure_logging, get_logger, set_request_id, clear_context
from shared.metrics import get_metrics_collector
from shared.errors import ElectionsError, InfrastructureError, PolicyDenial, ValidationError


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, config: BaseConfig, service_name: str, metrics_registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.config = config

        # Configure logging
        configure_logging(service_name, self.config.log_level)

        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name, metrics_registry)
        self.metrics_registry = self.metrics.registry
        self._start_time = time.time()

        # Create FastAPI app
        self.app = self._create_app()

        # Set up middleware
        self._setup_middleware()

        # Set up routes
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await self.startup()
            try:
                yield
            finally:
                await self.shutdown()

        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Elections Access Layer - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
            lifespan=lifespan,
        )

    async def startup(self):
        """Acquire resources. Override in subclasses."""

    async def shutdown(self):
        """Release resources. Override in subclasses."""

    def _allowed_origins(self):
        return [
            self.config.frontend_url,
            "http://localhost:5173",
            "http://localhost:3000",
        ]

    def _setup_middleware(self):
        """Set up middleware."""

        # CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else self._allowed_origins(),
            allow_credentials=self.config.env != "local",
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Request-ID"],
        )

        # Request timing and correlation middleware
        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            start_time = time.time()
            request_id = set_request_id(request.headers.get("X-Request-ID"))

            try:
                response = await call_next(request)
            finally:
                duration = time.time() - start_time

            response.headers["X-Request-ID"] = request_id

            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration
            )

            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )
            clear_context()

            return response

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            dependencies = await self._check_dependencies()
            healthy = all(status == "ok" for status in dependencies.values())
            self.metrics.record_health_check("ok" if healthy else "error")

            return JSONResponse(
                status_code=200 if healthy else 503,
                content={
                    "service": self.service_name,
                    "status": "ok" if healthy else "degraded",
                    "uptime_seconds": self._get_uptime(),
                    "dependencies": dependencies,
                    "version": "1.0.0",
                    "commit": os.getenv("GIT_COMMIT", "unknown")
                }
            )

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(self.metrics_registry),
                media_type=CONTENT_TYPE_LATEST
            )

        # Error handlers
        @self.app.exception_handler(ElectionsError)
        async def elections_exception_handler(request: Request, exc: ElectionsError):
            """Handle ElectionsError."""
            if isinstance(exc, InfrastructureError):
                self.logger.error("Infrastructure error", code=exc.code, message=exc.message)
                self.metrics.record_error(exc.operation)
            elif isinstance(exc, PolicyDenial):
                self.logger.info("Request refused by policy", code=exc.code, message=exc.message)
            else:
                self.logger.info("Request rejected", code=exc.code, message=exc.message)
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response().model_dump()
            )

        @self.app.exception_handler(RequestValidationError)
        async def request_validation_handler(request: Request, exc: RequestValidationError):
            """Render malformed request bodies as a 400 ValidationError."""
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
            error = ValidationError("Request body must be a JSON object", details={"fields": fields})
            self.logger.info("Malformed request", fields=fields)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response().model_dump()
            )

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("unhandled")
            return JSONResponse(
                status_code=500,
                content={
                    "code": "internal-error",
                    "message": "Internal server error",
                    "details": {}
                }
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
