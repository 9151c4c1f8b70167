import time
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

log = structlog.get_logger("access")

# load balancer health checks
SKIP_PATHS = {"/health"}

class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            if request.url.path not in SKIP_PATHS:
                status = response.status_code if response is not None else 500
                emit = log.warning if status >= 500 else log.info
                emit(
                    "http_request",
                    method=request.method,
                    path=request.url.path,
                    route=getattr(request.scope.get("route"), "path", None),
                    client_ip=request.client.host if request.client else None,
                    status_code=status,
                    duration_ms=int((time.perf_counter() - start) * 1000),
                )
