from typing import Any, Callable, Dict, List

from ..config import Settings
from ..constants import SLOTS
from ..core.scheduler import SlotRenderer

from .calendar import make_calendar_renderer
from .photo import make_photo_renderer
from .quote import make_quote_renderer
from .stocks import make_stocks_renderer
from .transport import make_transport_renderer
from .weather import make_weather_renderer

RENDERER_FACTORIES: Dict[str, Callable[[Dict[str, Any]], Callable]] = {
    'transport': make_transport_renderer,
    'weather': make_weather_renderer,
    'quote': make_quote_renderer,
    'photo': make_photo_renderer,
    'stocks': make_stocks_renderer,
    'calendar': make_calendar_renderer,
}


def build_renderers(settings: Settings) -> List[SlotRenderer]:
    """One SlotRenderer per enabled slot, in refresh order."""
    renderers = []
    for slot in SLOTS:
        slot_settings = settings.slots.get(slot)
        if slot_settings is None or not slot_settings.enabled:
            continue
        renderers.append(SlotRenderer(
            slot=slot,
            render=RENDERER_FACTORIES[slot](settings.section(slot)),
            pattern=slot_settings.pattern,
            invert=slot_settings.invert,
            once=slot_settings.once,
            direct=slot_settings.direct,
        ))
    return renderers
