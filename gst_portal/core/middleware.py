from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Callable
import logging
import time

logger = logging.getLogger(__name__)

PUBLIC_PREFIXES = ["/health", "/docs", "/redoc", "/openapi.json"]


class TenantMiddleware(BaseHTTPMiddleware):
    """Rejects tenant-scoped requests that carry no X-Tenant-ID and logs every request."""

    async def dispatch(self, request: Request, call_next: Callable):
        endpoint = request.url.path
        method = request.method
        tenant_id = request.headers.get("X-Tenant-ID")
        is_public = endpoint == "/" or any(endpoint.startswith(p) for p in PUBLIC_PREFIXES)

        if not tenant_id and not is_public:
            logger.warning(f"{method} {endpoint} rejected: missing tenant identifier")
            return JSONResponse(status_code=400, content={"detail": "Missing tenant identifier"})

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(f"{method} {endpoint} tenant={tenant_id or 'PUBLIC'} status={status_code} {elapsed_ms:.1f}ms")
