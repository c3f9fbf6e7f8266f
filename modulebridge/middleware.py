"""
Request middleware for the devtools surface.

Channel and store calls made while serving a request log through structlog,
so the request context is bound before the route runs and those entries carry
the correlation id and the store namespace being inspected.
"""
import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import structlog

log = structlog.get_logger()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Bind a correlation id and the targeted store namespace to the log context.

    The id comes from the X-Correlation-ID header or is generated, and is
    echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        context = {"correlation_id": correlation_id, "http_method": request.method, "http_path": request.url.path}
        if request.url.path.startswith("/v1/store"):
            runtime = getattr(request.app.state, "runtime", None)
            default_prefix = runtime.default_store.prefix if runtime is not None else None
            context["store_prefix"] = request.query_params.get("prefix", default_prefix)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**context)

        response = await call_next(request)
        response.headers["x-correlation-id"] = correlation_id
        return response


def route_template(request: Request) -> str:
    """
    Path label for metrics.

    Store keys are unbounded, so requests are labelled by the matched route
    (``/v1/store/{key:path}``) rather than the concrete URL.
    """
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count and time requests in the runtime's Prometheus registry."""

    def __init__(self, app, metrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/metrics"):
            return await call_next(request)

        self.metrics.http_requests_active.inc()
        start_time = time.time()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        except Exception as e:
            log.error("http_request_error", error=str(e), error_type=type(e).__name__)
            raise
        finally:
            duration = time.time() - start_time
            path = route_template(request)
            self.metrics.http_requests_total.labels(
                service=self.metrics.service_name, method=request.method, path=path, status=status
            ).inc()
            self.metrics.http_request_duration.labels(
                service=self.metrics.service_name, method=request.method, path=path
            ).observe(duration)
            self.metrics.http_requests_active.dec()
            log.info("http_request", http_status=status, route=path, duration_ms=round(duration * 1000, 2))
