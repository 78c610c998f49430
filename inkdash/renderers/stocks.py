import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Tuple

import requests
from PIL import Image, ImageDraw, ImageFont

from ..core.scheduler import RenderContext
from ..errors import RenderError

CHART_URL = "https://query1.finance.yahoo.com/v7/finance/chart/{symbol}"
# Without a browser-like agent Yahoo tends to answer with HTML
USER_AGENT = "Mozilla/5.0 (compatible; inkdash/1.0)"

# Chart margins
LEFT, RIGHT, TOP, BOTTOM = 40.0, 10.0, 70.0, 40.0

BLACK = (0, 0, 0)
WHITE = (255, 255, 255)


def _font(size, bold=False):
    candidates = [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-ExtraBold.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    ] if bold else [
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    ]
    for path in candidates:
        if os.path.exists(path):
            try:
                return ImageFont.truetype(path, size)
            except OSError:
                continue
    return ImageFont.load_default()


@dataclass
class PriceSeries:
    symbol: str
    dates: List[datetime]
    prices: List[float]


def parse_chart(symbol: str, payload: Dict[str, Any]) -> PriceSeries:
    """Extract (date, close) pairs, dropping non-positive or missing closes."""
    chart = payload.get("chart") or {}
    results = chart.get("result") or []
    if not results or chart.get("error"):
        raise RenderError(f"yahoo chart error: {chart.get('error')!r}")

    result = results[0]
    try:
        timestamps = result["timestamp"]
        closes = result["indicators"]["quote"][0]["close"]
    except (KeyError, IndexError, TypeError) as e:
        raise RenderError(f"unexpected chart payload: {e}") from e

    if len(timestamps) != len(closes):
        raise RenderError("len(timestamp) != len(close)")

    dates, prices = [], []
    for ts, price in zip(timestamps, closes):
        if price is None or price <= 0:
            continue
        dates.append(datetime.fromtimestamp(ts))
        prices.append(float(price))

    if not prices:
        raise RenderError("no valid prices")
    return PriceSeries(symbol, dates, prices)


def fetch_series(settings: Dict[str, Any], timeout: float) -> PriceSeries:
    symbol = settings["symbol"]
    try:
        response = requests.get(
            CHART_URL.format(symbol=symbol),
            params={"range": settings.get("range", "1y"), "interval": settings.get("interval", "1d"),
                    "includePrePost": "false"},
            headers={"User-Agent": USER_AGENT},
            timeout=timeout,
        )
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as e:
        raise RenderError(f"stock fetch {symbol}: {e}") from e
    return parse_chart(symbol.split(".")[0], payload)


def render_chart(series: PriceSeries, size: Tuple[int, int], currency: str = "€") -> Image.Image:
    """Line chart of the series: title, date range, price grid, price line."""
    width, height = size
    img = Image.new("RGB", size, BLACK)
    draw = ImageDraw.Draw(img)

    prices = series.prices
    min_p, max_p = min(prices), max(prices)
    if max_p == min_p:
        max_p += 1

    first, last = prices[0], prices[-1]
    change_pct = (last / first - 1.0) * 100

    title = f"{series.symbol} · {last:.2f} {currency}  ({change_pct:+.2f}%)"
    draw.text((width / 2, 30), title, fill=WHITE, font=_font(40, bold=True), anchor="mm")

    date_label = f"{series.dates[0]:%d.%m.%Y} — {series.dates[-1]:%d.%m.%Y}"
    draw.text((width / 2, 55), date_label, fill=WHITE, font=_font(16), anchor="mm")

    plot_w = width - LEFT - RIGHT
    plot_h = height - TOP - BOTTOM

    axis_font = _font(12)
    for i in range(5):
        val = min_p + (max_p - min_p) * i / 4.0
        y = height - BOTTOM - (i / 4.0) * plot_h
        draw.line([(LEFT, y), (width - RIGHT, y)], fill=WHITE, width=1)
        draw.text((LEFT - 4, y), f"{val:.0f}", fill=WHITE, font=axis_font, anchor="rm")

    n = len(prices)
    span = max(n - 1, 1)
    points = [
        (LEFT + (i / span) * plot_w, height - BOTTOM - ((p - min_p) / (max_p - min_p)) * plot_h)
        for i, p in enumerate(prices)
    ]
    if n > 1:
        draw.line(points, fill=WHITE, width=2)

    lx, ly = points[-1]
    draw.ellipse([lx - 3, ly - 3, lx + 3, ly + 3], fill=WHITE)
    return img


def make_stocks_renderer(settings: Dict[str, Any]):
    def render_stocks(ctx: RenderContext) -> Image.Image:
        series = fetch_series(settings, ctx.fetch_timeout)
        return render_chart(series, ctx.size, settings.get("currency", "€"))

    return render_stocks
