"""
Jinja2 renderer for content templates.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from shared.errors import RenderError
from shared.logging import get_logger

BUILTIN_TEMPLATES = Path(__file__).parent / "templates"


class TemplateRenderer:
    """Renders named templates against view models.

    Site templates are searched before the built-in ones, so a site can
    override the error page by shipping its own ``fourofour.html``.
    """

    def __init__(self, template_dirs: Optional[Iterable[Union[str, Path]]] = None):
        search_path = [str(path) for path in (template_dirs or [])]
        search_path.append(str(BUILTIN_TEMPLATES))
        self.env = Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(["html", "htm", "xml"]),
            enable_async=True,
        )
        self.logger = get_logger("content.renderer")

    async def render(self, template_name: str, view_model: Dict[str, Any], **extra: Any) -> str:
        """Render ``template_name``; raises RenderError."""
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as exc:
            self.logger.error("Template not found", template=template_name)
            raise RenderError(
                f"Template '{template_name}' not found",
                details={"template": template_name},
            ) from exc
        except Exception as exc:
            self.logger.error("Template failed to load", template=template_name, error=str(exc))
            raise RenderError(
                f"Template '{template_name}' failed to load",
                details={"template": template_name, "error": str(exc)},
            ) from exc

        context = dict(view_model)
        context.update(extra)
        try:
            return await template.render_async(**context)
        except Exception as exc:
            self.logger.error("Template evaluation failed", template=template_name, error=str(exc))
            raise RenderError(
                f"Template '{template_name}' failed to render",
                details={"template": template_name, "error": str(exc)},
            ) from exc

    async def render_static(self, descriptor) -> str:
        """Render a static route directly against its fixed resource path."""
        return await self.render(
            descriptor.template_name,
            {"resource": descriptor.upstream_path},
            request=descriptor.original_request.context(),
        )


async def render(template_name: str, view_model: Dict[str, Any], engine: TemplateRenderer, **extra: Any) -> str:
    """Render through the engine handle carried by a request descriptor."""
    if engine is None:
        raise RenderError("No template engine configured", details={"template": template_name})
    return await engine.render(template_name, view_model, **extra)
