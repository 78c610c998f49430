from typing import Any, Dict

import requests

from ..core.scheduler import RenderContext
from ..errors import RenderError
from .templates import render_html


def fetch_quote(settings: Dict[str, Any], timeout: float) -> Dict[str, Any]:
    try:
        response = requests.get(
            settings["url"], params={"language": settings.get("language", "de")}, timeout=timeout
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        raise RenderError(f"unable to fetch quote: {e}") from e
    if not isinstance(data, dict):
        raise RenderError(f"unexpected quote payload: {type(data).__name__}")
    return data


def make_quote_renderer(settings: Dict[str, Any]):
    def render_quote(ctx: RenderContext) -> str:
        quote = fetch_quote(settings, ctx.fetch_timeout)
        return render_html("quote.html", quote=quote)

    return render_quote
