"""请求监控和日志中间件

只记录出错的请求和慢请求，并在响应头中返回处理时间。
"""
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from config.settings import get_settings
from config.logging import get_logger


logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """请求日志中间件"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        threshold = get_settings().logging.slow_request_threshold
        start_time = time.perf_counter()
        label = f"{request.method} {request.url.path}"

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - start_time
            logger.error(f"[API] {label} - {elapsed:.3f}s - ERROR: {e}")
            raise

        elapsed = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{elapsed:.3f}"

        if response.status_code >= 400:
            logger.warning(f"[API] {label} - {response.status_code} - {elapsed:.3f}s")
        elif threshold and elapsed > threshold:
            logger.warning(f"[API] {label} - SLOW - {elapsed:.3f}s")

        return response
