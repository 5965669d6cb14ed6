"""
Request ID and log context middleware
"""
import uuid
import time
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from momento.utils.logger import log_context

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an X-Request-ID and scopes it (plus X-Device-ID
    for guest calls) onto log records. Logs request timing.
    """

    SKIP_PATHS = {"/", "/api/docs", "/api/redoc", "/api/openapi.json", "/api/v1/health"}

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        device_id = request.headers.get("X-Device-ID")

        with log_context(request_id=request_id, device_id=device_id):
            start_time = time.perf_counter()
            try:
                response = await call_next(request)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"Request failed: {request.method} {request.url.path} - {type(e).__name__}",
                    extra={"duration_ms": round(duration_ms, 2)},
                    exc_info=True
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            response.headers["X-Request-ID"] = request_id

            if request.url.path not in self.SKIP_PATHS:
                log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
                logger.log(
                    log_level,
                    f"{request.method} {request.url.path} - {response.status_code}",
                    extra={"status_code": response.status_code, "duration_ms": round(duration_ms, 2)}
                )

            return response
