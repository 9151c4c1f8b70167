import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from structlog.contextvars import bind_contextvars, clear_contextvars

from scriib.settings import settings

class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        clear_contextvars()
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        # clear_contextvars drops the service name bound at startup
        bind_contextvars(request_id=rid, service=settings.service_name)
        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
