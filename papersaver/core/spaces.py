import logging

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .displays import DisplayDescriptor, enumerate_displays
from .errors import (
    DisplayNotFound,
    InvalidScreenIdentifier,
    SpaceNotFound,
    SpaceNotFoundOnDisplay,
)
from .preferences import PreferenceDomain
from .tree import join_path, lookup
from ..utils.definitions import (
    SPACES_CONFIGURATION_KEY,
    SPACES_DOMAIN,
    WINDOWSERVER_DOMAIN,
)

logger = logging.getLogger(__name__)

MAIN_DISPLAY_IDENTIFIER = "Main"


@dataclass
class SpaceDescriptor:
    space_id: int
    uuid: str
    display_identifier: str
    is_current: bool = False
    is_collapsed: bool = False
    is_auto_created: bool = False

    @property
    def is_historical(self) -> bool:
        return self.is_collapsed or self.is_auto_created


def parse_spaces(config) -> List[SpaceDescriptor]:
    """
    Extract every space from the ``SpacesDisplayConfiguration`` mapping.

    A missing section yields no spaces; a section of the wrong type raises
    ParseError naming it.
    """
    if config is None:
        return []
    root = SPACES_CONFIGURATION_KEY
    monitors = lookup(config, "Management Data", "Monitors", kind=list, path=root)
    if not monitors:
        return []

    spaces = []
    for index, monitor in enumerate(monitors):
        path = join_path(root, "Management Data", "Monitors", index)
        display_identifier = lookup(monitor, "Display Identifier", kind=str, path=path) or ""
        current_uuid = lookup(monitor, "Current Space", "uuid", kind=str, path=path)

        for position, space in enumerate(lookup(monitor, "Spaces", kind=list, path=path) or []):
            space_path = join_path(path, "Spaces", position)
            uuid = lookup(space, "uuid", kind=str, path=space_path) or ""
            spaces.append(
                SpaceDescriptor(
                    space_id=lookup(space, "ManagedSpaceID", kind=int, path=space_path) or 0,
                    uuid=uuid,
                    display_identifier=display_identifier,
                    is_current=current_uuid is not None and uuid == current_uuid,
                )
            )

        collapsed = lookup(monitor, "Collapsed Space", kind=dict, path=path)
        if collapsed is not None:
            collapsed_path = join_path(path, "Collapsed Space")
            uuid = lookup(collapsed, "uuid", kind=str, path=collapsed_path) or ""
            spaces.append(
                SpaceDescriptor(
                    space_id=lookup(collapsed, "ManagedSpaceID", kind=int, path=collapsed_path) or 0,
                    uuid=uuid,
                    display_identifier=display_identifier,
                    is_current=current_uuid is not None and uuid == current_uuid,
                    is_collapsed=True,
                    is_auto_created=lookup(collapsed, "AutoCreated", kind=int, path=collapsed_path) == 1,
                )
            )

    return sorted(spaces, key=lambda s: s.space_id)


class SpaceDisplayIndex:
    """
    Lookup between spaces, their 1-based position on a display, and the
    displays themselves. Built fresh for each operation.
    """

    def __init__(self, spaces: List[SpaceDescriptor], displays: List[DisplayDescriptor]):
        self._spaces = list(spaces)
        self._displays = list(displays)

    @classmethod
    def from_system(
        cls,
        spaces_domain: Optional[PreferenceDomain] = None,
        displays_domain: Optional[PreferenceDomain] = None,
        monitor_source: Optional[Callable] = None,
    ) -> "SpaceDisplayIndex":
        spaces_domain = spaces_domain or PreferenceDomain(SPACES_DOMAIN)
        displays_domain = displays_domain or PreferenceDomain(WINDOWSERVER_DOMAIN, current_host=True)

        spaces = parse_spaces(spaces_domain.get(SPACES_CONFIGURATION_KEY))
        if monitor_source is None:
            displays = enumerate_displays(displays_domain)
        else:
            displays = enumerate_displays(displays_domain, monitor_source)
        logger.debug("Indexed %d spaces across %d displays", len(spaces), len(displays))
        return cls(spaces, displays)

    # --- Displays ---

    def displays(self) -> List[DisplayDescriptor]:
        return list(self._displays)

    def main_display(self) -> Optional[DisplayDescriptor]:
        for display in self._displays:
            if display.is_main:
                return display
        connected = [d for d in self._displays if d.is_connected]
        return connected[0] if connected else (self._displays[0] if self._displays else None)

    def display_uuids(self) -> List[str]:
        return [d.uuid for d in self._displays if d.uuid]

    def display_by_number(self, number: int) -> DisplayDescriptor:
        for display in self._displays:
            if display.number == number:
                return display
        raise DisplayNotFound(number)

    def display_by_uuid(self, uuid: str) -> DisplayDescriptor:
        for display in self._displays:
            if display.uuid.upper() == str(uuid).upper():
                return display
        raise DisplayNotFound(uuid)

    def display_by_screen(self, screen_id) -> DisplayDescriptor:
        if isinstance(screen_id, bool) or not isinstance(screen_id, int) or screen_id <= 0:
            raise InvalidScreenIdentifier()
        for display in self._displays:
            if display.display_id == screen_id:
                return display
        raise DisplayNotFound(screen_id)

    def resolve_display_uuid(self, identifier: str) -> Optional[str]:
        """Map a spaces 'Display Identifier' to a display UUID."""
        if identifier == MAIN_DISPLAY_IDENTIFIER:
            main = self.main_display()
            return main.uuid if main else None
        return identifier or None

    # --- Spaces ---

    def spaces(self, include_historical: bool = True) -> List[SpaceDescriptor]:
        if include_historical:
            return list(self._spaces)
        return [s for s in self._spaces if not s.is_historical]

    def space_uuids(self) -> List[str]:
        return [s.uuid for s in self._spaces if s.uuid and not s.is_historical]

    def space_by_id(self, space_id: int) -> SpaceDescriptor:
        for space in self._spaces:
            if space.space_id == space_id:
                return space
        raise SpaceNotFound(space_id)

    def space_by_uuid(self, uuid: str) -> SpaceDescriptor:
        for space in self._spaces:
            if space.uuid == uuid:
                return space
        raise SpaceNotFound(uuid)

    def spaces_for_display(self, display_uuid: str, include_historical: bool = False) -> List[SpaceDescriptor]:
        return [
            s
            for s in self.spaces(include_historical)
            if (self.resolve_display_uuid(s.display_identifier) or "").upper() == display_uuid.upper()
        ]

    def current_space_for_display(self, display_uuid: str) -> Optional[SpaceDescriptor]:
        for space in self.spaces_for_display(display_uuid):
            if space.is_current and space.uuid:
                return space
        return None

    def space_uuid(self, display_number: int, space_number: int) -> str:
        """UUID of the ``space_number``-th regular space on display ``display_number``."""
        try:
            display = self.display_by_number(display_number)
        except DisplayNotFound as e:
            raise SpaceNotFoundOnDisplay(display_number, space_number) from e
        spaces = self.spaces_for_display(display.uuid)
        if space_number < 1 or space_number > len(spaces):
            raise SpaceNotFoundOnDisplay(display_number, space_number)
        return spaces[space_number - 1].uuid

    def current_spaces(self) -> List[SpaceDescriptor]:
        return [s for s in self._spaces if s.is_current]

    def current_target(self) -> Optional[Tuple[str, Optional[str]]]:
        """``(space_uuid, display_uuid)`` of the first current space."""
        for space in self.current_spaces():
            if space.uuid:
                return space.uuid, self.resolve_display_uuid(space.display_identifier)
        return None
