import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_LENGTH = 8

# Swagger UI needs inline JS/CSS
_SKIP_CSP_PATHS = {"/docs", "/redoc", "/openapi.json"}


def new_request_id() -> str:
    return uuid.uuid4().hex[:REQUEST_ID_LENGTH]


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or new_request_id()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request with a short id and harden response headers."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.request_id = new_request_id()
        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request.state.request_id
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Cache-Control"] = "no-store"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"

        if request.url.path not in _SKIP_CSP_PATHS:
            response.headers["Content-Security-Policy"] = (
                "default-src 'none'; frame-ancestors 'none'"
            )

        return response
