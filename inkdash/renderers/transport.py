from datetime import datetime
from typing import Any, Dict

from ..core.scheduler import RenderContext
from .templates import render_html


def make_transport_renderer(settings: Dict[str, Any]):
    """Static departure board; rows come straight from configuration."""
    title = settings.get("title", "Abfahrten")
    departures = list(settings.get("departures") or [])

    def render_transport(ctx: RenderContext) -> str:
        return render_html(
            "transport.html",
            title=title,
            departures=departures,
            now=datetime.now().strftime("%H:%M"),
        )

    return render_transport
