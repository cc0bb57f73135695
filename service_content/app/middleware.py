"""
HTTP middleware specific to the content service.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.staticfiles import StaticFiles


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "Referrer-Policy": "no-referrer",
}


def strip_trailing_slash(path: str) -> str:
    """Return ``path`` without its trailing slash; root is left alone."""
    if len(path) > 1 and path.endswith("/"):
        return path[:-1]
    return path


class TrailingSlashMiddleware(BaseHTTPMiddleware):
    """Permanently redirect ``/path/`` to ``/path`` before routing."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        target = strip_trailing_slash(path)
        if target != path:
            if request.url.query:
                target = f"{target}?{request.url.query}"
            return RedirectResponse(target, status_code=301)
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach a conservative set of browser security headers."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response


class CachedStaticFiles(StaticFiles):
    """Static files served with a long-lived public Cache-Control."""

    def __init__(self, *args, max_age: int = 345600, **kwargs):
        self.max_age = max_age
        super().__init__(*args, **kwargs)

    def file_response(self, *args, **kwargs) -> Response:
        response = super().file_response(*args, **kwargs)
        response.headers["Cache-Control"] = f"public, max-age={self.max_age}"
        return response
