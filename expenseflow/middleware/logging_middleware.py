"""
Logging Middleware
Logs every HTTP request with status and duration
"""

import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from expenseflow.utils.helpers import get_client_ip
from expenseflow.utils.logger import setup_logger

logger = setup_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses"""

    async def dispatch(self, request: Request, call_next):
        """Process request and log details"""
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        start_time = time.time()

        with logger.contextualize(request_id=request_id):
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} | "
                f"Client: {get_client_ip(request)}"
            )

            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    f"[{request_id}] {request.method} {request.url.path} failed after "
                    f"{time.time() - start_time:.3f}s"
                )
                raise

            logger.info(
                f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} "
                f"in {time.time() - start_time:.3f}s"
            )

        response.headers["X-Request-ID"] = request_id
        return response
