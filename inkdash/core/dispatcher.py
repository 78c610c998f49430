import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence, Tuple

from ..errors import ConfigError
from .utils import minutes_since_midnight


def parse_clock(hhmm: str) -> int:
    """Parse 'HH:MM' into minutes since midnight."""
    try:
        hours_str, minutes_str = hhmm.strip().split(':')
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ConfigError(f"Invalid clock time {hhmm!r}, expected HH:MM") from None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ConfigError(f"Clock time out of range: {hhmm!r}")
    return hours * 60 + minutes


@dataclass(frozen=True)
class ClockWindow:
    """Half-open [start, end) range of minutes since midnight, no wraparound."""
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise ConfigError(f"Window start must precede end ({self.start} >= {self.end})")

    @classmethod
    def parse(cls, start: str, end: str) -> 'ClockWindow':
        return cls(parse_clock(start), parse_clock(end))

    def contains(self, now: datetime) -> bool:
        return self.start <= minutes_since_midnight(now) < self.end


class ContentDispatcher:
    """
    Picks the slot served by the generic dashboard endpoint.

    Inside the priority window the priority slot always wins. Outside it
    the rotation slots are served round-robin; each call advances the
    rotation by one whether or not the caller ends up serving the image.
    """

    def __init__(self, priority_slot: str, window: ClockWindow, rotation: Sequence[str]):
        if not rotation:
            raise ConfigError("Rotation needs at least one slot")
        self.priority_slot = priority_slot
        self.window = window
        self.rotation: Tuple[str, ...] = tuple(rotation)
        self._index = 0
        self._lock = threading.Lock()

    @property
    def index(self) -> int:
        with self._lock:
            return self._index

    def dispatch(self, now: datetime) -> str:
        if self.window.contains(now):
            return self.priority_slot

        with self._lock:
            slot = self.rotation[self._index]
            self._index = (self._index + 1) % len(self.rotation)
        return slot
