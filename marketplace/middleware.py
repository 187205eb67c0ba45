"""Application middleware: request body size limit."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from marketplace.schemas.envelope import error_response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies larger than max_bytes based on Content-Length."""

    def __init__(self, app, max_bytes: int = 1_048_576) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
        if request.method in ("POST", "PATCH", "PUT"):
            content_length = request.headers.get("content-length")
            if content_length and content_length.isdigit() and int(content_length) > self.max_bytes:
                return JSONResponse(
                    status_code=413,
                    content=error_response(f"Request body too large (max {self.max_bytes} bytes)"),
                )
        return await call_next(request)
