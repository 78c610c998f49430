from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from ..errors import RenderError

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def render_html(name: str, **context: Any) -> str:
    """Render one of the packaged page templates."""
    try:
        return _env.get_template(name).render(**context)
    except TemplateError as e:
        raise RenderError(f"unable to render template {name}: {e}") from e
