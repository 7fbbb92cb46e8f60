import time
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("access")

class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request, tagged with a request id"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]

        logger.info(
            f"🌐 [{request_id}] {request.method} {request.url.path} - "
            f"Client: {request.client.host if request.client else 'unknown'} - "
            f"User: {request.headers.get('x-user-id', 'anonymous')}"
        )

        response = await call_next(request)
        process_time = time.time() - start_time

        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            f"{'⚠️' if response.status_code >= 400 else '✅'} [{request_id}] {request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.4f}s"
        )

        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id
        return response
