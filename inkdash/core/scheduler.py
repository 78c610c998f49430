import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence, Tuple, Union

from PIL import Image

from ..constants import DISPLAY_SIZE, HYBRID_LOW, HYBRID_HIGH, DitherPattern
from ..errors import RenderCancelled
from .cache import ImageCache
from .pipeline import image_to_bitmap

logger = logging.getLogger(__name__)

RenderOutput = Union[Image.Image, str]


@dataclass(frozen=True)
class RenderContext:
    """Handed to every render function: the stop signal plus timeouts."""
    stop_event: threading.Event
    fetch_timeout: float = 5.0
    raster_timeout: float = 10.0
    size: Tuple[int, int] = DISPLAY_SIZE

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    def check(self) -> None:
        """Raise RenderCancelled once shutdown has been requested."""
        if self.stop_event.is_set():
            raise RenderCancelled("shutdown requested")


@dataclass(frozen=True)
class SlotRenderer:
    """
    How one cache slot is produced.

    `render` returns either a finished image or an HTML document, which
    is rasterized before dithering. `once` slots are skipped after their
    first successful render; `direct` slots bypass dithering.
    """
    slot: str
    render: Callable[[RenderContext], RenderOutput]
    pattern: DitherPattern = 'floyd-steinberg'
    invert: bool = False
    once: bool = False
    direct: bool = False


class Rasterizer(Protocol):
    def rasterize(self, html: str, ctx: RenderContext) -> Image.Image: ...

    def close(self) -> None: ...


class RefreshScheduler:
    """
    Background thread that keeps the image cache fresh.

    Every `interval` seconds each renderer runs in turn: render, rasterize
    HTML if needed, dither, encode, store. A failing slot is logged and
    keeps its previous image; the remaining slots still run. The scheduler
    is the only writer to the cache.
    """

    def __init__(
        self,
        cache: ImageCache,
        renderers: Sequence[SlotRenderer],
        rasterizer: Optional[Rasterizer] = None,
        interval: float = 20.0,
        fetch_timeout: float = 5.0,
        raster_timeout: float = 10.0,
        low: float = HYBRID_LOW,
        high: float = HYBRID_HIGH,
        size: Tuple[int, int] = DISPLAY_SIZE,
        stop_event: Optional[threading.Event] = None
    ):
        for renderer in renderers:
            if renderer.slot not in cache:
                raise KeyError(f"Renderer for unknown cache slot: {renderer.slot}")
        self.cache = cache
        self.renderers = tuple(renderers)
        self.rasterizer = rasterizer
        self.interval = interval
        self.low = low
        self.high = high
        self.stop_event = stop_event or threading.Event()
        self.context = RenderContext(self.stop_event, fetch_timeout, raster_timeout, size)
        self.first_pass_done = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def render_slot(self, renderer: SlotRenderer) -> bool:
        """Produce and store one slot. Returns True if the cache was updated."""
        ctx = self.context
        try:
            output = renderer.render(ctx)
            ctx.check()
            if isinstance(output, str):
                if self.rasterizer is None:
                    raise RuntimeError("renderer returned HTML but no rasterizer is configured")
                output = self.rasterizer.rasterize(output, ctx)
                ctx.check()
            data = image_to_bitmap(
                output,
                pattern=renderer.pattern,
                invert=renderer.invert,
                low=self.low,
                high=self.high,
                direct=renderer.direct,
            )
            # A render that finished after shutdown was requested is dropped
            ctx.check()
        except RenderCancelled:
            logger.info("render %s cancelled, keeping previous image", renderer.slot)
            return False
        except Exception:
            logger.exception("render %s failed, keeping previous image", renderer.slot)
            return False

        self.cache.set(renderer.slot, data)
        logger.debug("render %s stored %d bytes", renderer.slot, len(data))
        return True

    def refresh_all(self) -> int:
        """Run one tick over every renderer. Returns the number of slots updated."""
        started = time.monotonic()
        updated = 0
        for renderer in self.renderers:
            if self.stop_event.is_set():
                break
            if renderer.once and self.cache.is_populated(renderer.slot):
                continue
            if self.render_slot(renderer):
                updated += 1
        logger.debug("refresh tick updated %d/%d slots in %.2fs",
                     updated, len(self.renderers), time.monotonic() - started)
        return updated

    def _run(self, initial_pass: bool) -> None:
        logger.info("background renderer started, interval %.0fs", self.interval)
        try:
            if initial_pass:
                self.refresh_all()
            self.first_pass_done.set()
            while not self.stop_event.wait(self.interval):
                self.refresh_all()
        finally:
            self.first_pass_done.set()
            if self.rasterizer is not None:
                self.rasterizer.close()
            logger.info("background renderer stopped")

    def start(self, initial_pass: bool = True, wait: bool = True) -> None:
        """
        Start the background thread.

        The initial pass runs on the background thread too, so every browser
        call happens on the thread that owns the browser. With `wait` the
        call returns only after that pass has finished.
        """
        if self._thread is not None:
            raise RuntimeError("scheduler already started")
        self._thread = threading.Thread(
            target=self._run, args=(initial_pass,), daemon=True, name="RefreshScheduler"
        )
        self._thread.start()
        if wait:
            self.first_pass_done.wait()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal shutdown and wait for the in-flight tick to wind down."""
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
