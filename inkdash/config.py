import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from .constants import DITHER_PATTERNS, SLOTS, HYBRID_LOW, HYBRID_HIGH, MAX_SAMPLE
from .core.dispatcher import ClockWindow
from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV = "INKDASH_CONFIG"

# ------------------------------------------------------------------
# DEFAULT CONFIG
# ------------------------------------------------------------------
DEFAULT_CONFIG: Dict[str, Any] = {
    "server": {"host": "0.0.0.0", "port": 8443},
    "display": {"width": 800, "height": 480},
    "refresh": {
        "interval": 20,
        "fetch_timeout": 5,
        "raster_timeout": 10,
    },
    "dispatch": {
        "priority_slot": "transport",
        "priority_from": "07:15",
        "priority_to": "07:40",
        "rotation": ["weather", "quote", "stocks", "calendar"],
    },
    "dither": {
        "default_pattern": "floyd-steinberg",
        "hybrid_low": HYBRID_LOW,
        "hybrid_high": HYBRID_HIGH,
    },
    "slots": {
        "transport": {},
        "weather": {},
        "quote": {},
        "photo": {"invert": True, "once": True},
        "stocks": {"direct": True},
        "calendar": {},
    },
    "weather": {
        "city": "Düsseldorf",
        "latitude": 51.2277,
        "longitude": 6.7735,
        "timezone": "Europe/Berlin",
        "forecast_days": 7,
    },
    "quote": {
        "url": "https://api.zitat-service.de/v1/quote",
        "language": "de",
    },
    "stocks": {
        "symbol": "VWCE.DE",
        "range": "1y",
        "interval": "1d",
        "currency": "€",
    },
    "calendar": {
        "ics_url": "",
        "timezone": "Europe/Berlin",
        "columns": 3,
        "per_column": 8,
    },
    "photo": {"path": "assets/photo.jpg"},
    "transport": {
        "title": "Abfahrten",
        "departures": [],
    },
}


@dataclass(frozen=True)
class SlotSettings:
    pattern: str = "floyd-steinberg"
    invert: bool = False
    enabled: bool = True
    once: bool = False
    direct: bool = False


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    display_size: Tuple[int, int]
    interval: float
    fetch_timeout: float
    raster_timeout: float
    priority_slot: str
    window: ClockWindow
    rotation: Tuple[str, ...]
    hybrid_low: float
    hybrid_high: float
    slots: Dict[str, SlotSettings]
    sections: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def section(self, name: str) -> Dict[str, Any]:
        """Raw settings for an external collaborator (weather, quote, ...)."""
        return self.sections.get(name, {})


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _check_slot(name: str, where: str) -> str:
    if name not in SLOTS:
        raise ConfigError(f"{where}: unknown slot {name!r}, expected one of {', '.join(SLOTS)}")
    return name


def _check_pattern(pattern: Any, where: str) -> str:
    if pattern not in DITHER_PATTERNS:
        raise ConfigError(f"{where}: unknown dithering pattern {pattern!r}")
    return pattern


def _slot_settings(name: str, raw: Dict[str, Any], default_pattern: str) -> SlotSettings:
    _check_slot(name, "slots")
    if not isinstance(raw, dict):
        raise ConfigError(f"slots.{name}: expected a mapping")
    return SlotSettings(
        pattern=_check_pattern(raw.get("pattern", default_pattern), f"slots.{name}.pattern"),
        invert=bool(raw.get("invert", False)),
        enabled=bool(raw.get("enabled", True)),
        once=bool(raw.get("once", False)),
        direct=bool(raw.get("direct", False)),
    )


def settings_from_dict(raw: Dict[str, Any]) -> Settings:
    """Validate a merged configuration dict and build Settings."""
    cfg = _merge(DEFAULT_CONFIG, raw or {})
    try:
        server, display, refresh = cfg["server"], cfg["display"], cfg["refresh"]
        dispatch, dither = cfg["dispatch"], cfg["dither"]

        window = ClockWindow.parse(str(dispatch["priority_from"]), str(dispatch["priority_to"]))
        priority_slot = _check_slot(dispatch["priority_slot"], "dispatch.priority_slot")
        rotation = tuple(_check_slot(s, "dispatch.rotation") for s in dispatch["rotation"])
        if not rotation:
            raise ConfigError("dispatch.rotation: at least one slot is required")

        default_pattern = _check_pattern(dither["default_pattern"], "dither.default_pattern")
        low, high = float(dither["hybrid_low"]), float(dither["hybrid_high"])
        if not (0 <= low <= high <= MAX_SAMPLE):
            raise ConfigError(f"dither: need 0 <= hybrid_low <= hybrid_high <= {MAX_SAMPLE}")

        settings = Settings(
            host=str(server["host"]),
            port=int(server["port"]),
            display_size=(int(display["width"]), int(display["height"])),
            interval=float(refresh["interval"]),
            fetch_timeout=float(refresh["fetch_timeout"]),
            raster_timeout=float(refresh["raster_timeout"]),
            priority_slot=priority_slot,
            window=window,
            rotation=rotation,
            hybrid_low=low,
            hybrid_high=high,
            slots={name: _slot_settings(name, slot or {}, default_pattern) for name, slot in cfg["slots"].items()},
            sections={
                name: dict(cfg.get(name) or {})
                for name in ("weather", "quote", "stocks", "calendar", "photo", "transport")
            },
        )
    except (KeyError, TypeError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    except ValueError as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"Invalid configuration value: {e}") from e

    if settings.interval <= 0:
        raise ConfigError("refresh.interval must be positive")
    served = [("dispatch.priority_slot", settings.priority_slot)]
    served += [("dispatch.rotation", slot) for slot in settings.rotation]
    for where, slot in served:
        slot_settings = settings.slots.get(slot)
        if slot_settings is None or not slot_settings.enabled:
            raise ConfigError(f"{where}: slot {slot!r} is disabled and would never be rendered")
    return settings


def load_config(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a YAML file merged over DEFAULT_CONFIG.

    The path falls back to $INKDASH_CONFIG; when neither is given, or the
    file does not exist, the defaults are used.
    """
    path = path or os.environ.get(CONFIG_ENV)
    raw: Dict[str, Any] = {}
    if path:
        config_path = Path(path)
        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {config_path}: {e}") from e
            if not isinstance(raw, dict):
                raise ConfigError(f"{config_path}: top level must be a mapping")
            logger.info("loaded configuration from %s", config_path)
        else:
            logger.warning("config file %s not found, using defaults", config_path)
    return settings_from_dict(raw)
