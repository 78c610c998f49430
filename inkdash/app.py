from dataclasses import dataclass
from typing import Optional, Sequence

from .config import Settings
from .constants import SLOTS
from .core.cache import ImageCache
from .core.dispatcher import ContentDispatcher
from .core.scheduler import RefreshScheduler, Rasterizer, SlotRenderer


@dataclass
class Dashboard:
    """Everything the refresh thread and the HTTP handlers share."""
    settings: Settings
    cache: ImageCache
    dispatcher: ContentDispatcher
    scheduler: RefreshScheduler


def build_dashboard(
    settings: Settings,
    renderers: Optional[Sequence[SlotRenderer]] = None,
    rasterizer: Optional[Rasterizer] = None
) -> Dashboard:
    """
    Composition root: create the cache, dispatcher and scheduler.

    Renderers and rasterizer default to the real network and browser
    collaborators; tests pass their own.
    """
    if renderers is None:
        from .renderers import build_renderers
        renderers = build_renderers(settings)
    if rasterizer is None:
        from .renderers.browser import HtmlRasterizer
        rasterizer = HtmlRasterizer(settings.display_size)

    cache = ImageCache(SLOTS)
    dispatcher = ContentDispatcher(settings.priority_slot, settings.window, settings.rotation)
    scheduler = RefreshScheduler(
        cache,
        renderers,
        rasterizer=rasterizer,
        interval=settings.interval,
        fetch_timeout=settings.fetch_timeout,
        raster_timeout=settings.raster_timeout,
        low=settings.hybrid_low,
        high=settings.hybrid_high,
        size=settings.display_size,
    )
    return Dashboard(settings, cache, dispatcher, scheduler)
