import math
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Tuple
from zoneinfo import ZoneInfo

import requests

from ..core.scheduler import RenderContext
from ..errors import RenderError
from .templates import render_html

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

# WMO weather codes -> (icon, text)
WEATHER_CODES: Mapping[int, Tuple[str, str]] = MappingProxyType({
    0:  ("☀", "Klar"),
    1:  ("🌤", "Überwiegend klar"),
    2:  ("⛅", "Teilw. bewölkt"),
    3:  ("☁", "Bewölkt"),
    45: ("〰", "Nebel"),
    48: ("〰", "Nebel"),
    51: ("☂", "Leichter Niesel"),
    53: ("☂", "Nieselregen"),
    55: ("☂", "Starker Niesel"),
    61: ("☂", "Leichter Regen"),
    63: ("☂", "Regen"),
    65: ("☂", "Starker Regen"),
    71: ("❄", "Leichter Schnee"),
    73: ("❄", "Schnee"),
    75: ("❄", "Starker Schnee"),
    80: ("☂", "Schauer"),
    81: ("☂", "Starke Schauer"),
    82: ("☂", "Gewittrige Schauer"),
    95: ("⛈", "Gewitter"),
    96: ("⛈", "Gewitter & Hagel"),
    99: ("⛈", "Starkes Gewitter"),
})
UNKNOWN_WEATHER: Tuple[str, str] = ("·", "—")

WEEKDAYS = ("Mo", "Di", "Mi", "Do", "Fr", "Sa", "So")


def describe(code: int) -> Tuple[str, str]:
    """Icon and text for a WMO code, with a fallback for unknown codes."""
    return WEATHER_CODES.get(int(code), UNKNOWN_WEATHER)


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def day_label(index: int, day: date) -> str:
    if index == 0:
        return "Heute"
    if index == 1:
        return "Morgen"
    return WEEKDAYS[day.weekday()]


@dataclass
class WeatherDay:
    label: str
    date_short: str
    icon: str
    text: str
    temp_min: int
    temp_max: int


@dataclass
class WeatherView:
    city: str
    updated_at: datetime
    current_temp: int
    feels_like: int
    humidity: int
    wind_kmh: float
    today_min: int
    today_max: int
    today_icon: str
    today_text: str
    days: List[WeatherDay] = field(default_factory=list)


def build_view(data: Dict[str, Any], city: str, tz: ZoneInfo) -> WeatherView:
    """Turn an Open-Meteo response into the template's view model."""
    try:
        current = data["current"]
        daily = data["daily"]
        icon, text = describe(current["weather_code"])
        view = WeatherView(
            city=city,
            updated_at=datetime.now(tz),
            current_temp=round_half_away(current["temperature_2m"]),
            feels_like=round_half_away(current["apparent_temperature"]),
            humidity=int(current["relative_humidity_2m"]),
            wind_kmh=float(current["wind_speed_10m"]),
            today_min=round_half_away(daily["temperature_2m_min"][0]),
            today_max=round_half_away(daily["temperature_2m_max"][0]),
            today_icon=icon,
            today_text=text,
        )
        for i, date_str in enumerate(daily["time"]):
            day = date.fromisoformat(date_str)
            day_icon, day_text = describe(daily["weather_code"][i])
            view.days.append(WeatherDay(
                label=day_label(i, day),
                date_short=day.strftime("%d.%m."),
                icon=day_icon,
                text=day_text,
                temp_min=round_half_away(daily["temperature_2m_min"][i]),
                temp_max=round_half_away(daily["temperature_2m_max"][i]),
            ))
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise RenderError(f"unexpected weather payload: {e}") from e
    return view


def fetch_weather(settings: Dict[str, Any], timeout: float) -> Dict[str, Any]:
    params = {
        "latitude": settings["latitude"],
        "longitude": settings["longitude"],
        "current": "temperature_2m,weather_code,relative_humidity_2m,apparent_temperature,wind_speed_10m",
        "daily": "weather_code,temperature_2m_max,temperature_2m_min,relative_humidity_2m_mean",
        "forecast_days": settings.get("forecast_days", 7),
        "timezone": settings["timezone"],
    }
    try:
        response = requests.get(FORECAST_URL, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as e:
        raise RenderError(f"weather fetch: {e}") from e


def make_weather_renderer(settings: Dict[str, Any]):
    tz = ZoneInfo(settings["timezone"])

    def render_weather(ctx: RenderContext) -> str:
        data = fetch_weather(settings, ctx.fetch_timeout)
        ctx.check()
        view = build_view(data, settings["city"], tz)
        return render_html("weather.html", w=view)

    return render_weather
