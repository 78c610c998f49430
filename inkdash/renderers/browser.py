import io
import logging
from typing import Optional, Tuple

from PIL import Image
from playwright.sync_api import sync_playwright, Error as PlaywrightError

from ..constants import DISPLAY_SIZE
from ..core.scheduler import RenderContext
from ..errors import RenderError

logger = logging.getLogger(__name__)


class HtmlRasterizer:
    """
    Headless Chromium that turns HTML documents into screenshots.

    Playwright's sync API is bound to the thread that started it, so the
    browser is launched lazily on first use (the scheduler thread) and must
    be closed from that same thread.
    """

    def __init__(self, size: Tuple[int, int] = DISPLAY_SIZE):
        self.size = size
        self._playwright = None
        self._browser = None
        self._page = None

    def _ensure_page(self):
        if self._page is not None:
            return self._page
        width, height = self.size
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=True, args=["--disable-gpu", "--no-sandbox"]
        )
        self._page = self._browser.new_page(
            viewport={"width": width, "height": height}, device_scale_factor=1
        )
        logger.info("headless browser started (%dx%d)", width, height)
        return self._page

    def rasterize(self, html: str, ctx: RenderContext) -> Image.Image:
        ctx.check()
        timeout_ms = ctx.raster_timeout * 1000
        try:
            page = self._ensure_page()
            page.set_content(html, wait_until="load", timeout=timeout_ms)
            png_bytes = page.screenshot(type="png", timeout=timeout_ms)
        except PlaywrightError as e:
            # A wedged page is rebuilt on the next render
            self.close()
            raise RenderError(f"rasterization failed: {e}") from e

        with Image.open(io.BytesIO(png_bytes)) as img:
            return img.convert("RGB")

    def close(self) -> None:
        page, browser, playwright = self._page, self._browser, self._playwright
        self._page = self._browser = self._playwright = None
        for name, closer in (("page", page), ("browser", browser)):
            if closer is None:
                continue
            try:
                closer.close()
            except PlaywrightError as e:
                logger.warning("error closing playwright %s: %s", name, e)
        if playwright is not None:
            playwright.stop()
