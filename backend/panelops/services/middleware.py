"""Request tracing middleware: request id propagation and per-request timing."""
import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from panelops.services.logging_config import organization_id_var, request_id_var

logger = logging.getLogger("panelops-api.middleware")

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = frozenset({"/health"})


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Reuses the caller's X-Request-ID (or mints one), exposes it to log records
    through the request context, and reports the handling time in
    X-Process-Time. Health checks are not logged.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        request_token = request_id_var.set(request_id)
        organization_token = organization_id_var.set(None)
        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            response.headers[REQUEST_ID_HEADER] = request_id
            response.headers["X-Process-Time"] = str(elapsed_ms)
            if request.url.path not in QUIET_PATHS:
                logger.info(
                    f"{request.method} {request.url.path} → {response.status_code}",
                    extra={
                        "http_method": request.method,
                        "http_path": request.url.path,
                        "http_status": response.status_code,
                        "duration_ms": elapsed_ms,
                    },
                )
            return response
        finally:
            organization_id_var.reset(organization_token)
            request_id_var.reset(request_token)
