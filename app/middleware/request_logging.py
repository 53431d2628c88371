import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

log = logging.getLogger("image-service.access")

# query parameters that must not reach the logs verbatim
REDACT_PARAMS = {"sig"}

def _safe_query(request: Request) -> str:
    parts = []
    for key, value in request.query_params.multi_items():
        parts.append(f"{key}=[REDACTED]" if key in REDACT_PARAMS else f"{key}={value}")
    return "&".join(parts)[:400]

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        rid = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        start = time.time()
        status = 500
        try:
            response: Response = await call_next(request)
            status = response.status_code
        finally:
            dur_ms = int((time.time() - start) * 1000)
            log.info(
                "%s %s?%s %s %dms rid=%s",
                request.method,
                request.url.path,
                _safe_query(request),
                status,
                dur_ms,
                rid,
            )

        response.headers["X-Request-Id"] = rid
        return response
