"""
Logging setup and request logging middleware
"""
import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("app.requests")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the whole process"""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # httpx logs every request at INFO, including URLs with query strings
    logging.getLogger("httpx").setLevel(logging.WARNING)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status code and duration of every request"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(f"{request.method} {request.url.path} failed after {duration_ms:.1f}ms")
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms")
        response.headers["X-Process-Time"] = f"{duration_ms:.1f}"
        return response
