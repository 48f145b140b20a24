"""HTTP metrics middleware."""
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import structlog

log = structlog.get_logger()


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect HTTP metrics for Prometheus.

    - Records request count by method, path, status
    - Records request duration histogram
    - Tracks active requests
    """

    def __init__(self, app, metrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint to avoid recursion
        if request.url.path.startswith("/metrics"):
            return await call_next(request)

        service = self.metrics.service_name
        active = self.metrics.http_requests_active.labels(service=service)
        active.inc()
        start_time = time.time()
        status = 500

        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration = time.time() - start_time
            self.metrics.http_requests_total.labels(
                service=service,
                method=request.method,
                path=request.url.path,
                status=status,
            ).inc()
            self.metrics.http_request_duration.labels(
                service=service,
                method=request.method,
                path=request.url.path,
            ).observe(duration)
            active.dec()
            log.info(
                "http_request",
                http_status=status,
                duration_ms=round(duration * 1000, 2),
            )
