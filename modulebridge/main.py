"""
ModuleBridge devtools service.

Exposes the in-process runtime for inspection:
- Structured logging with correlation IDs
- Prometheus metrics
- Health checks (liveness and readiness)
- Channel introspection, event injection and store export/import
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from .config import Settings, get_settings
from .logging import setup_logging, get_logger
from .api.router import router
from .middleware import CorrelationIdMiddleware, MetricsMiddleware
from .health import HealthChecker
from .runtime import Runtime, build_runtime

VERSION = "0.1.0"

logger = get_logger()


def create_app(runtime: Runtime | None = None, settings: Settings | None = None) -> FastAPI:
    """
    Build the devtools app around a runtime.

    Args:
        runtime: Runtime to expose (built from settings when omitted)
        settings: Configuration used when building the runtime
    """
    settings = settings or get_settings()
    setup_logging(json_output=settings.LOG_JSON, service_name="modulebridge")
    if runtime is None:
        runtime = build_runtime(settings)
    health_checker = HealthChecker(runtime, service_name="modulebridge", version=VERSION)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "service_starting",
            version=VERSION,
            env=settings.ENV,
            backend=settings.STORAGE_BACKEND,
        )
        yield
        logger.info("service_stopping")
        runtime.shutdown()

    app = FastAPI(
        title="ModuleBridge",
        version=VERSION,
        description="Cross-module event channel and persistent store",
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    # Add middleware (order matters: correlation ID first, then metrics)
    app.add_middleware(MetricsMiddleware, metrics=runtime.metrics)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(router)
    app.mount("/metrics", make_asgi_app(registry=runtime.metrics.registry))

    @app.get("/health")
    async def health():
        """Liveness check - returns 200 if service is running."""
        logger.debug("health_check_liveness")
        return health_checker.liveness()

    @app.get("/health/ready")
    async def health_ready():
        """
        Readiness check.

        Returns:
            200: The durable medium is usable
            503: The durable medium is not usable
        """
        logger.debug("health_check_readiness")
        result = health_checker.readiness()
        status_code = 200 if result["status"] == "ready" else 503
        return JSONResponse(result, status_code=status_code)

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "modulebridge.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
    )
