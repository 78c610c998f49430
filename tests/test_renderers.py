import sys
import threading
from datetime import date, datetime, timedelta
from pathlib import Path
from unittest.mock import patch
from zoneinfo import ZoneInfo

# Add project root to path so we can import inkdash
sys.path.append(str(Path(__file__).parent.parent))

import pytest
import requests
from PIL import Image

from inkdash.core.pipeline import fit_cover
from inkdash.core.scheduler import RenderContext
from inkdash.errors import RenderError
from inkdash.renderers import build_renderers
from inkdash.renderers.calendar import CalendarEvent, add_month, build_columns, parse_events
from inkdash.renderers.photo import make_photo_renderer
from inkdash.renderers.quote import make_quote_renderer
from inkdash.renderers.stocks import PriceSeries, parse_chart, render_chart
from inkdash.renderers.transport import make_transport_renderer
from inkdash.renderers.weather import (
    UNKNOWN_WEATHER, build_view, day_label, describe, make_weather_renderer, round_half_away
)
from inkdash.config import settings_from_dict


TZ = ZoneInfo("Europe/Berlin")


def make_ctx(size=(80, 48)):
    return RenderContext(threading.Event(), fetch_timeout=1.0, raster_timeout=1.0, size=size)


# ------------------------------------------------------------------
# weather
# ------------------------------------------------------------------

def test_describe_known_and_unknown_codes():
    assert describe(0) == ("☀", "Klar")
    assert describe(95)[1] == "Gewitter"
    assert describe(42) == UNKNOWN_WEATHER


@pytest.mark.parametrize("value,expected", [
    (2.5, 3), (-2.5, -3), (2.4, 2), (-2.4, -2), (0.0, 0), (0.5, 1), (-0.5, -1), (11.7, 12),
])
def test_round_half_away(value, expected):
    assert round_half_away(value) == expected


def test_day_label():
    monday = date(2024, 3, 4)
    assert day_label(0, monday) == "Heute"
    assert day_label(1, monday) == "Morgen"
    assert day_label(2, monday) == "Mo"
    assert day_label(5, date(2024, 3, 10)) == "So"


WEATHER_PAYLOAD = {
    "current": {
        "temperature_2m": 12.5,
        "weather_code": 3,
        "relative_humidity_2m": 81,
        "apparent_temperature": 10.4,
        "wind_speed_10m": 14.2,
    },
    "daily": {
        "time": ["2024-03-04", "2024-03-05", "2024-03-06"],
        "weather_code": [3, 61, 77],
        "temperature_2m_max": [13.5, 11.2, 9.9],
        "temperature_2m_min": [4.5, -0.5, 2.0],
    },
}


def test_build_view():
    view = build_view(WEATHER_PAYLOAD, "Düsseldorf", TZ)
    assert view.city == "Düsseldorf"
    assert view.current_temp == 13
    assert view.feels_like == 10
    assert (view.today_min, view.today_max) == (5, 14)
    assert view.today_text == "Bewölkt"
    assert [d.label for d in view.days] == ["Heute", "Morgen", "Mi"]
    assert view.days[1].temp_min == -1
    assert view.days[1].date_short == "05.03."
    # Code 77 is not in the table
    assert (view.days[2].icon, view.days[2].text) == UNKNOWN_WEATHER


def test_build_view_rejects_broken_payload():
    with pytest.raises(RenderError):
        build_view({"current": {}}, "X", TZ)


@patch('inkdash.renderers.weather.requests.get')
def test_weather_renderer_produces_html(mock_get):
    mock_get.return_value.json.return_value = WEATHER_PAYLOAD
    settings = settings_from_dict({}).section("weather")
    html = make_weather_renderer(settings)(make_ctx())
    assert "Düsseldorf" in html
    assert "13°" in html
    _, kwargs = mock_get.call_args
    assert kwargs["timeout"] == 1.0


@patch('inkdash.renderers.weather.requests.get')
def test_weather_fetch_error_becomes_render_error(mock_get):
    mock_get.side_effect = requests.ConnectionError("offline")
    settings = settings_from_dict({}).section("weather")
    with pytest.raises(RenderError):
        make_weather_renderer(settings)(make_ctx())


# ------------------------------------------------------------------
# quote / transport
# ------------------------------------------------------------------

@patch('inkdash.renderers.quote.requests.get')
def test_quote_renderer_escapes_text(mock_get):
    mock_get.return_value.json.return_value = {"quote": "A < B", "authorName": "Kant"}
    html = make_quote_renderer({"url": "http://example.invalid"})(make_ctx())
    assert "A &lt; B" in html
    assert "Kant" in html


@patch('inkdash.renderers.quote.requests.get')
def test_quote_rejects_non_object(mock_get):
    mock_get.return_value.json.return_value = ["nope"]
    with pytest.raises(RenderError):
        make_quote_renderer({"url": "http://example.invalid"})(make_ctx())


def test_transport_lists_departures():
    render = make_transport_renderer({
        "title": "Abfahrten",
        "departures": [{"time": "07:21", "line": "U79", "destination": "Duisburg"}],
    })
    html = render(make_ctx())
    assert "U79" in html and "Duisburg" in html


def test_transport_without_departures():
    assert "Keine Abfahrten" in make_transport_renderer({})(make_ctx())


# ------------------------------------------------------------------
# calendar
# ------------------------------------------------------------------

ICS = b"""BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//test//EN
BEGIN:VEVENT
UID:1
DTSTART;VALUE=DATE:20240310
DTEND;VALUE=DATE:20240311
SUMMARY:Geburtstag
END:VEVENT
BEGIN:VEVENT
UID:2
DTSTART:20240305T090000Z
DTEND:20240305T100000Z
SUMMARY:Zahnarzt
LOCATION:Praxis
END:VEVENT
BEGIN:VEVENT
UID:3
DTSTART:20240501T090000Z
DTEND:20240501T100000Z
SUMMARY:Zu spaet
END:VEVENT
END:VCALENDAR
"""


def test_parse_events_filters_and_sorts():
    start = datetime(2024, 3, 4, tzinfo=TZ)
    end = datetime(2024, 4, 4, tzinfo=TZ)
    events = parse_events(ICS, start, end, TZ)

    assert [e.summary for e in events] == ["Zahnarzt", "Geburtstag"]
    assert events[0].location == "Praxis"
    assert events[0].start.hour == 10  # 09:00 UTC in Berlin winter time
    assert not events[0].all_day
    assert events[1].all_day


def test_parse_events_rejects_garbage():
    with pytest.raises(RenderError):
        parse_events(b"not a calendar", datetime(2024, 1, 1, tzinfo=TZ), datetime(2024, 2, 1, tzinfo=TZ), TZ)


def _events(n):
    base = datetime(2024, 3, 4, tzinfo=TZ)
    return [CalendarEvent(base + timedelta(hours=i), base + timedelta(hours=i + 1), f"e{i}", "", False)
            for i in range(n)]


def test_build_columns_fills_in_order():
    cols = build_columns(_events(5), col_count=3, per_col=2)
    assert [[e.summary for e in col] for col in cols] == [["e0", "e1"], ["e2", "e3"], ["e4"]]


def test_build_columns_overflow_stays_in_last_column():
    cols = build_columns(_events(8), col_count=2, per_col=2)
    assert len(cols[0]) == 2
    assert len(cols[1]) == 6


def test_build_columns_without_columns():
    assert build_columns(_events(3), col_count=0, per_col=8) == []


@pytest.mark.parametrize("day,expected", [
    (date(2024, 3, 4), date(2024, 4, 4)),
    (date(2024, 12, 15), date(2025, 1, 15)),
    (date(2024, 1, 31), date(2024, 2, 29)),
    (date(2023, 1, 31), date(2023, 2, 28)),
])
def test_add_month(day, expected):
    assert add_month(day) == expected


def test_calendar_without_url_fails():
    render = build_renderers(settings_from_dict({}))
    calendar = [r for r in render if r.slot == "calendar"][0]
    with pytest.raises(RenderError):
        calendar.render(make_ctx())


# ------------------------------------------------------------------
# stocks
# ------------------------------------------------------------------

def test_parse_chart_drops_invalid_closes():
    payload = {"chart": {"result": [{
        "timestamp": [1709510400, 1709596800, 1709683200, 1709769600],
        "indicators": {"quote": [{"close": [100.0, None, 0, 104.5]}]},
    }], "error": None}}
    series = parse_chart("VWCE", payload)
    assert series.prices == [100.0, 104.5]
    assert len(series.dates) == 2


@pytest.mark.parametrize("payload", [
    {},
    {"chart": {"result": [], "error": None}},
    {"chart": {"result": None, "error": {"code": "Not Found"}}},
    {"chart": {"result": [{"timestamp": [1, 2], "indicators": {"quote": [{"close": [1.0]}]}}]}},
    {"chart": {"result": [{"timestamp": [1], "indicators": {"quote": [{"close": [None]}]}}]}},
])
def test_parse_chart_errors(payload):
    with pytest.raises(RenderError):
        parse_chart("VWCE", payload)


def test_render_chart_is_white_on_black():
    series = PriceSeries("VWCE", [datetime(2024, 1, d) for d in range(1, 6)], [100, 102, 101, 105, 104])
    img = render_chart(series, (400, 240))
    assert img.size == (400, 240)
    assert img.mode == "RGB"
    assert img.getpixel((0, 0)) == (0, 0, 0)
    # Something was drawn in white
    assert img.convert("L").getextrema()[1] == 255


def test_render_chart_flat_series():
    series = PriceSeries("X", [datetime(2024, 1, 1)], [50.0])
    assert render_chart(series, (200, 120)).size == (200, 120)


# ------------------------------------------------------------------
# photo
# ------------------------------------------------------------------

@pytest.mark.parametrize("src_size", [(1600, 600), (300, 900), (800, 480)])
def test_fit_cover_fills_target(src_size):
    img = fit_cover(Image.new("RGB", src_size, (10, 20, 30)), (800, 480))
    assert img.size == (800, 480)
    assert img.getpixel((400, 240)) == (10, 20, 30)


def test_fit_cover_crops_center():
    # Left third red, middle blue, right third red: a wide source keeps the middle
    img = Image.new("RGB", (300, 60), (255, 0, 0))
    img.paste((0, 0, 255), (100, 0, 200, 60))
    fitted = fit_cover(img, (60, 60))
    assert fitted.getpixel((30, 30)) == (0, 0, 255)
    assert fitted.getpixel((2, 30)) == (0, 0, 255)


def test_photo_renderer(tmp_path):
    path = tmp_path / "photo.png"
    Image.new("RGB", (200, 100), (255, 255, 255)).save(path)
    img = make_photo_renderer({"path": str(path)})(make_ctx(size=(40, 40)))
    assert img.size == (40, 40)


def test_photo_renderer_missing_file(tmp_path):
    with pytest.raises(RenderError):
        make_photo_renderer({"path": str(tmp_path / "absent.jpg")})(make_ctx())


# ------------------------------------------------------------------
# wiring
# ------------------------------------------------------------------

def test_build_renderers_follows_slot_settings():
    settings = settings_from_dict({
        "slots": {"quote": {"enabled": False}},
        "dispatch": {"rotation": ["weather", "stocks", "calendar"]},
    })
    renderers = {r.slot: r for r in build_renderers(settings)}
    assert "quote" not in renderers
    assert renderers["photo"].once and renderers["photo"].invert
    assert renderers["stocks"].direct
    assert list(renderers) == ["transport", "weather", "photo", "stocks", "calendar"]
