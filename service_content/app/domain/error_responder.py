"""
Map pipeline and control-plane failures onto client responses.
"""

from typing import Optional

from starlette.responses import HTMLResponse, JSONResponse, Response

from shared.errors import ContentLayerException, ServiceError
from shared.logging import get_logger, get_request_id
from ..rendering.renderer import TemplateRenderer

HTML_RANGES = ("text/html", "text/*", "*/*")

TITLES = {
    400: "Bad request",
    404: "Page not found",
    405: "Method not allowed",
    500: "Something went wrong",
    502: "Content unavailable",
    503: "Service unavailable",
}


def accepts_html(accept_header: Optional[str]) -> bool:
    """True when the client's Accept header admits HTML.

    An absent header accepts anything. Media ranges with ``q=0`` are refusals.
    """
    if accept_header is None or not accept_header.strip():
        return True

    for part in accept_header.split(","):
        media_range, *params = [piece.strip() for piece in part.split(";")]
        if media_range.lower() not in HTML_RANGES:
            continue
        quality = 1.0
        for param in params:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        if quality > 0:
            return True
    return False


class ErrorResponder:
    """Builds the error response for a failure. Never raises."""

    def __init__(self, renderer: Optional[TemplateRenderer], template_name: str = "fourofour.html"):
        self.renderer = renderer
        self.template_name = template_name
        self.logger = get_logger("content.errors")

    async def respond(self, error: Exception, accepts_html: bool) -> Response:
        if not isinstance(error, ContentLayerException):
            error = ServiceError("Internal server error")
        status = error.status_code or 500

        if not accepts_html:
            payload = error.to_response().model_dump(by_alias=True)
            return JSONResponse(status_code=status, content=payload)

        try:
            html = await self.renderer.render(
                self.template_name,
                {
                    "status": status,
                    "title": TITLES.get(status, "Error"),
                    "message": error.message,
                    "code": error.code,
                    "request_id": get_request_id(),
                },
            )
        except Exception as exc:
            self.logger.error("Error page rendering failed", template=self.template_name, error=str(exc))
            return Response(status_code=status)

        return HTMLResponse(content=html, status_code=status)
