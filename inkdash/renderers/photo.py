from pathlib import Path
from typing import Any, Dict

from PIL import Image

from ..core.pipeline import fit_cover
from ..core.scheduler import RenderContext
from ..errors import RenderError


def make_photo_renderer(settings: Dict[str, Any]):
    """Static photo, cover-fitted to the display. Rendered once per process."""
    path = Path(settings.get("path", "assets/photo.jpg"))

    def render_photo(ctx: RenderContext) -> Image.Image:
        try:
            with Image.open(path) as img:
                return fit_cover(img, ctx.size)
        except OSError as e:
            raise RenderError(f"unable to load photo {path}: {e}") from e

    return render_photo
