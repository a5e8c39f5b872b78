import logging

from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Tuple

from screeninfo import Monitor, ScreenInfoError, get_monitors

from .tree import join_path, lookup
from ..utils.definitions import DISPLAY_SETS_KEY

logger = logging.getLogger(__name__)


@dataclass
class DisplayDescriptor:
    uuid: str
    display_id: Optional[int] = None
    number: Optional[int] = None
    is_main: bool = False
    is_connected: bool = False
    resolution: Optional[Tuple[int, int]] = None
    refresh_rate: Optional[int] = None
    scale: Optional[int] = None
    origin: Optional[Tuple[int, int]] = None
    config_version: Optional[int] = None
    name: Optional[str] = None

    @property
    def short_uuid(self) -> str:
        return self.uuid[:8] + "..."

    @property
    def description(self) -> str:
        if self.resolution:
            width, height = self.resolution
            text = f"{width}x{height}"
            if self.refresh_rate:
                text += f" @ {self.refresh_rate}Hz"
            if (self.scale or 1) > 1:
                text += f" @ {self.scale}x"
            return text
        return "Unknown resolution"

    @property
    def friendly_name(self) -> str:
        if self.name:
            return f"{self.name} (Main)" if self.is_main and self.is_connected else self.name
        if self.is_main:
            return f"Main Display {self.short_uuid}"
        if self.is_connected:
            return f"Display {self.short_uuid}"
        last_seen = f" (last seen: Config {self.config_version})" if self.config_version is not None else ""
        return f"Display {self.short_uuid}{last_seen}"


def _coordinate(value) -> int:
    # OriginX/OriginY show up both as integers and as numeric strings
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return 0
    return 0


def parse_display_sets(display_sets) -> List[DisplayDescriptor]:
    """
    Build display descriptors from the window server's ``DisplaySets`` value.

    Every configuration the window server remembers is walked so displays that
    are not plugged in right now are still reported. Displays from the current
    configuration (``ConfigVersion == 1``) sort first, then by UUID.
    """
    if display_sets is None:
        return []
    configs = lookup(display_sets, "Configs", kind=list, path=DISPLAY_SETS_KEY)
    if not configs:
        return []

    current_uuids = set()
    for config in configs:
        if isinstance(config, dict) and config.get("ConfigVersion") == 1:
            for display in config.get("DisplayConfig") or []:
                if isinstance(display, dict) and isinstance(display.get("UUID"), str):
                    current_uuids.add(display["UUID"])
            break

    displays = []
    processed = set()
    for index, config in enumerate(configs):
        path = join_path(DISPLAY_SETS_KEY, "Configs", index)
        display_config = lookup(config, "DisplayConfig", kind=list, path=path)
        config_version = lookup(config, "ConfigVersion", kind=int, path=path)
        if display_config is None or config_version is None:
            continue

        for display in display_config:
            if not isinstance(display, dict):
                continue
            uuid = display.get("UUID")
            info = display.get("CurrentInfo")
            if not isinstance(uuid, str) or not isinstance(info, dict) or uuid in processed:
                continue
            width, height = info.get("Wide"), info.get("High")
            if not isinstance(width, int) or not isinstance(height, int):
                continue

            displays.append(
                DisplayDescriptor(
                    uuid=uuid,
                    is_connected=uuid in current_uuids,
                    resolution=(width, height),
                    refresh_rate=info.get("Hz") if isinstance(info.get("Hz"), int) else None,
                    scale=info.get("Scale") if isinstance(info.get("Scale"), int) else None,
                    origin=(_coordinate(info.get("OriginX")), _coordinate(info.get("OriginY"))),
                    config_version=config_version,
                )
            )
            if uuid in current_uuids:
                processed.add(uuid)

    # A display listed in several historical configs is reported once
    unique = {}
    for display in displays:
        known = unique.get(display.uuid)
        if known is None or (display.is_connected and not known.is_connected):
            unique[display.uuid] = display

    return sorted(unique.values(), key=lambda d: (not d.is_connected, d.uuid))


def attach_monitors(displays: Iterable[DisplayDescriptor], monitors: Iterable[Monitor]) -> List[DisplayDescriptor]:
    """
    Correlate live monitors with window-server displays by their origin.

    Connected displays are numbered from 1, main display first, then by
    position from left to right.
    """
    monitors = list(monitors)
    by_origin = {(m.x, m.y): m for m in monitors}

    result = []
    for display in displays:
        # Only displays in the current window-server configuration can be live
        monitor = by_origin.get(display.origin) if display.is_connected and display.origin is not None else None
        if monitor is not None:
            display = replace(
                display,
                is_main=bool(monitor.is_primary) or display.origin == (0, 0),
                name=monitor.name or display.name,
            )
        elif not monitors and display.is_connected:
            # Without live monitor data the main display sits at the origin
            display = replace(display, is_main=display.origin == (0, 0))
        result.append(display)

    connected = sorted(
        (d for d in result if d.is_connected),
        key=lambda d: (not d.is_main, d.origin or (0, 0), d.uuid),
    )
    numbers = {display.uuid: number for number, display in enumerate(connected, start=1)}
    return [replace(display, number=numbers.get(display.uuid, display.number)) for display in result]


def enumerate_displays(domain=None, monitor_source: Callable[[], List[Monitor]] = get_monitors) -> List[DisplayDescriptor]:
    """Known displays from the window server, enriched with live monitor data."""
    display_sets = domain.get(DISPLAY_SETS_KEY) if domain is not None else None
    displays = parse_display_sets(display_sets)

    try:
        monitors = monitor_source()
    except ScreenInfoError as e:
        logger.warning("Could not enumerate connected monitors: %s", e)
        monitors = []

    return attach_monitors(displays, monitors)
