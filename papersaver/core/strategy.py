"""
Schema strategies.

macOS 14 moved wallpaper and screensaver state from a couple of global
preference keys into a per-display, per-space tree. Exactly one strategy is
picked per operation from the running OS major version.
"""

import re
import copy
import datetime
import platform
import logging

from abc import ABC, abstractmethod
from enum import Enum
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .catalog import ScreensaverInfo, ScreensaverModule
from .config_store import ConfigStore
from .errors import (
    InvalidConfiguration,
    ModernFeatureRequired,
    SpaceNotFoundOnDisplay,
    SystemVersionDetectionFailed,
)
from .payload_codec import PayloadCodec, ScreensaverType, file_url, infer_screensaver_type, url_to_path
from .preferences import PreferenceDomain
from .spaces import SpaceDisplayIndex
from .tree import (
    Choice,
    ChoiceList,
    build_section,
    child_mapping,
    display_entry,
    display_keys,
    join_path,
    lookup,
    read_section,
)
from .wallpaper import WallpaperInfo, WallpaperOptions
from ..utils.definitions import (
    ALL_SPACES_ENTRY_TYPE,
    ALL_SPACES_KEY,
    AUTOMATIC_SCREENSAVER_NAME,
    DESKTOP_BACKGROUND_KEY,
    MODERN_SCHEMA_MAJOR_VERSION,
    PROVIDER_IMAGE,
    SCREENSAVER_MODULE_KEY,
    SECTION_DESKTOP,
    SECTION_IDLE,
    SECTION_LINKED,
    SYSTEM_DEFAULT_KEY,
    WALLPAPER_PROVIDER_PREFIX,
)

logger = logging.getLogger(__name__)

Version = Tuple[int, int, int]
# (space_uuid, display_uuid); None on one side means Displays[d] or Spaces[s].Default
Leaf = Tuple[Optional[str], Optional[str]]
TREE_WIDE = (None, None)


def is_wallpaper_provider(provider: str) -> bool:
    return provider.startswith(WALLPAPER_PROVIDER_PREFIX) and ScreensaverType.from_provider(provider) is None


# --- Version detection ---


def parse_version(value: Union[str, Sequence[int]]) -> Version:
    if isinstance(value, str):
        match = re.match(r"^\s*(\d+)(?:\.(\d+))?(?:\.(\d+))?", value)
        if not match:
            raise SystemVersionDetectionFailed(f"unrecognised version '{value}'")
        return tuple(int(part or 0) for part in match.groups())

    parts = [int(p) for p in value]
    if not parts:
        raise SystemVersionDetectionFailed("empty version")
    parts = (parts + [0, 0])[:3]
    return tuple(parts)


def _mac_version() -> str:
    return platform.mac_ver()[0]


def detect_system_version(probe: Optional[Callable] = None) -> Version:
    probe = probe or _mac_version
    try:
        value = probe()
    except Exception as e:
        raise SystemVersionDetectionFailed(str(e)) from e
    if not value:
        raise SystemVersionDetectionFailed()
    return parse_version(value)


def _utc_now() -> datetime.datetime:
    # plistlib writes naive datetimes, interpreted as UTC
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None, microsecond=0)


# --- Targets ---


class Scope(Enum):
    GLOBAL = "global"
    DISPLAY = "display"
    SPACE = "space"


@dataclass(frozen=True)
class Target:
    scope: Scope = Scope.GLOBAL
    display_uuid: Optional[str] = None
    space_uuid: Optional[str] = None

    @classmethod
    def everywhere(cls) -> "Target":
        return cls(Scope.GLOBAL)

    @classmethod
    def display(cls, display_uuid: str) -> "Target":
        return cls(Scope.DISPLAY, display_uuid=display_uuid)

    @classmethod
    def space(cls, space_uuid: str, display_uuid: Optional[str] = None) -> "Target":
        return cls(Scope.SPACE, display_uuid=display_uuid, space_uuid=space_uuid)


class SchemaStrategy(ABC):
    is_modern = False

    @abstractmethod
    def get_screensaver(self, target: Target) -> Optional[ScreensaverInfo]:
        pass

    @abstractmethod
    def set_screensaver(self, module: ScreensaverModule, target: Target) -> List[Leaf]:
        pass

    @abstractmethod
    def get_wallpaper(self, target: Target) -> Optional[WallpaperInfo]:
        pass

    @abstractmethod
    def set_wallpaper(self, image_path: str, options: WallpaperOptions, target: Target) -> List[Leaf]:
        pass


class LegacyStrategy(SchemaStrategy):
    """
    Pre-14 scheme: one global screensaver key and one global wallpaper key.
    Anything narrower than "everywhere" is rejected before touching storage.
    """

    def __init__(
        self,
        screensaver_domain: PreferenceDomain,
        desktop_domain: PreferenceDomain,
        global_screensaver_domain: Optional[PreferenceDomain] = None,
    ):
        self.screensaver_domain = screensaver_domain
        self.desktop_domain = desktop_domain
        self.global_screensaver_domain = global_screensaver_domain

    @staticmethod
    def _require_global(target: Target):
        if target.scope != Scope.GLOBAL:
            raise ModernFeatureRequired()

    def _module_dict(self) -> Optional[dict]:
        # the current-host value wins, the any-host domain is the fallback
        module = lookup(self.screensaver_domain.read(), SCREENSAVER_MODULE_KEY, kind=dict)
        if not module and self.global_screensaver_domain is not None:
            module = lookup(self.global_screensaver_domain.read(), SCREENSAVER_MODULE_KEY, kind=dict)
        return module

    def get_screensaver(self, target: Target) -> Optional[ScreensaverInfo]:
        module = self._module_dict()
        if not module:
            return None
        name = lookup(module, "moduleName", kind=str, path=SCREENSAVER_MODULE_KEY)
        path = lookup(module, "path", kind=str, path=SCREENSAVER_MODULE_KEY)
        if not name:
            return None
        return ScreensaverInfo(
            name=name,
            identifier=name,
            type=infer_screensaver_type(path) if path else ScreensaverType.TRADITIONAL,
            module_path=path,
        )

    def set_screensaver(self, module: ScreensaverModule, target: Target) -> List[Leaf]:
        self._require_global(target)
        self.screensaver_domain.set(
            SCREENSAVER_MODULE_KEY,
            {"moduleName": module.name, "path": module.path, "type": 0},
        )
        logger.info("Set global screensaver to %s", module.name)
        return [(None, None)]

    def get_wallpaper(self, target: Target) -> Optional[WallpaperInfo]:
        values = self.desktop_domain.read()
        image_path = lookup(values, DESKTOP_BACKGROUND_KEY, "default", "ImageFilePath", kind=str)
        if not image_path:
            return None
        return WallpaperInfo(image_url=file_url(image_path))

    def set_wallpaper(self, image_path: str, options: WallpaperOptions, target: Target) -> List[Leaf]:
        self._require_global(target)
        values = self.desktop_domain.read()
        background = child_mapping(values, DESKTOP_BACKGROUND_KEY)
        default = child_mapping(background, "default", DESKTOP_BACKGROUND_KEY)
        default["ImageFilePath"] = image_path
        self.desktop_domain.write(values)
        logger.info("Set global wallpaper to %s", image_path)
        return [(None, None)]


class ModernStrategy(SchemaStrategy):
    """
    14+ scheme: a tree of per-display and per-space entries in the wallpaper
    store. Reads fall back from the most specific entry to the least specific;
    writes replace one section of each targeted leaf and nothing else.
    """

    is_modern = True

    def __init__(self, store: ConfigStore, index: SpaceDisplayIndex, clock: Optional[Callable] = None):
        self.store = store
        self.index = index
        self.clock = clock or _utc_now

    # --- Reads ---

    @staticmethod
    def _tree_wide(tree: dict, key: str, section: str, with_payload: bool = False) -> Optional[ChoiceList]:
        entry = lookup(tree, key, kind=dict)
        # Linked holds the "Automatic" idle choice
        names = (section, SECTION_LINKED) if section == SECTION_IDLE else (section,)
        for name in names:
            choice_list = read_section(entry, name, key)
            if choice_list is None:
                continue
            if with_payload and not choice_list.first.configuration:
                continue
            return choice_list
        return None

    @staticmethod
    def resolve(tree: dict, section: str, space_uuid: Optional[str], display_uuid: Optional[str]):
        """
        Find the ChoiceList that applies to ``(space, display)``.

        Order: AllSpacesAndDisplays when it carries a payload, then
        Spaces[s].Displays[d], Spaces[s].Default, Displays[d] and finally
        SystemDefault. Returns ``(choice_list, leaf)`` or None when nothing is
        configured; the two tree-wide entries report the leaf ``(None, None)``.
        """
        shared = ModernStrategy._tree_wide(tree, ALL_SPACES_KEY, section, with_payload=True)
        if shared is not None:
            return shared, TREE_WIDE

        candidates = []
        if space_uuid:
            if display_uuid:
                candidates.append(((space_uuid, display_uuid), ("Spaces", space_uuid, "Displays", display_uuid)))
            candidates.append(((space_uuid, None), ("Spaces", space_uuid, "Default")))
        if display_uuid:
            candidates.append(((None, display_uuid), ("Displays", display_uuid)))

        for leaf, keys in candidates:
            entry = lookup(tree, *keys, kind=dict)
            choice_list = read_section(entry, section, join_path(*keys))
            if choice_list is not None:
                return choice_list, leaf

        fallback = ModernStrategy._tree_wide(tree, SYSTEM_DEFAULT_KEY, section)
        if fallback is not None:
            return fallback, TREE_WIDE
        return None

    def _read_target(self, target: Target) -> Tuple[Optional[str], Optional[str]]:
        if target.space_uuid:
            return target.space_uuid, target.display_uuid
        if target.display_uuid:
            current = self.index.current_space_for_display(target.display_uuid)
            return (current.uuid if current else None), target.display_uuid
        current = self.index.current_target()
        return current if current else (None, None)

    def get_screensaver(self, target: Target) -> Optional[ScreensaverInfo]:
        space_uuid, display_uuid = self._read_target(target)
        resolved = self.resolve(self.store.load(), SECTION_IDLE, space_uuid, display_uuid)
        if resolved is None:
            return None

        choice = resolved[0].first
        if is_wallpaper_provider(choice.provider):
            return ScreensaverInfo(
                name=AUTOMATIC_SCREENSAVER_NAME,
                identifier=choice.provider,
                type=ScreensaverType.DEFAULT_SCREEN,
                display_uuid=display_uuid,
                space_uuid=space_uuid,
            )
        name, screensaver_type = PayloadCodec.decode_screensaver(choice.configuration, choice.provider)
        module_path = None
        if screensaver_type in (ScreensaverType.TRADITIONAL, ScreensaverType.APP_EXTENSION):
            url = PayloadCodec.decode_screensaver_url(choice.configuration)
            module_path = url_to_path(url) if url else None
        return ScreensaverInfo(
            name=name or screensaver_type.display_name,
            identifier=name or choice.provider,
            type=screensaver_type,
            module_path=module_path,
            display_uuid=display_uuid,
            space_uuid=space_uuid,
        )

    def get_wallpaper(self, target: Target) -> Optional[WallpaperInfo]:
        space_uuid, display_uuid = self._read_target(target)
        resolved = self.resolve(self.store.load(), SECTION_DESKTOP, space_uuid, display_uuid)
        if resolved is None:
            return None

        choice_list = resolved[0]
        choice = choice_list.first
        if not choice.provider.startswith(PROVIDER_IMAGE):
            return None
        image_url = PayloadCodec.decode_wallpaper_image(choice.configuration)
        if image_url is None:
            return None
        return WallpaperInfo(
            image_url=image_url,
            style=PayloadCodec.decode_wallpaper_options(choice_list.encoded_option_values),
            display_uuid=display_uuid,
            space_uuid=space_uuid,
        )

    # --- Writes ---

    def leaves_for(self, target: Target, tree: Optional[dict] = None) -> List[Leaf]:
        index = self.index
        if target.scope == Scope.GLOBAL:
            displays = index.display_uuids()
            spaces = index.space_uuids()
            if displays and spaces:
                return [(s, d) for d in displays for s in spaces]
            if displays:
                return [(None, d) for d in displays]
            if spaces:
                return [(s, None) for s in spaces]
            raise InvalidConfiguration("no displays or spaces are known")

        if target.scope == Scope.DISPLAY:
            display = index.display_by_uuid(target.display_uuid)
            leaves = [(None, display.uuid)]
            leaves.extend((s.uuid, display.uuid) for s in index.spaces_for_display(display.uuid) if s.uuid)
            return leaves

        space = index.space_by_uuid(target.space_uuid)
        if not target.display_uuid:
            # per-display entries of the space outrank its Default
            existing = lookup(tree or {}, "Spaces", space.uuid, "Displays", kind=dict)
            return [(space.uuid, None)] + [(space.uuid, key) for key in display_keys(existing)]
        display = index.display_by_uuid(target.display_uuid)
        if space.uuid not in [s.uuid for s in index.spaces_for_display(display.uuid, include_historical=True)]:
            raise SpaceNotFoundOnDisplay(display.uuid, space.uuid)
        return [(space.uuid, display.uuid)]

    @staticmethod
    def merge_leaf(tree: dict, leaf: Leaf, section: str, section_value: dict):
        """Replace ``section`` of one leaf entry, creating the path to it if needed."""
        space_uuid, display_uuid = leaf
        if space_uuid is None:
            entry = display_entry(child_mapping(tree, "Displays"), display_uuid, "Displays")
        else:
            space = child_mapping(child_mapping(tree, "Spaces"), space_uuid, "Spaces")
            space_path = join_path("Spaces", space_uuid)
            if display_uuid is None:
                entry = display_entry(space, "Default", space_path)
            else:
                displays = child_mapping(space, "Displays", space_path)
                entry = display_entry(displays, display_uuid, join_path(space_path, "Displays"))
        entry[section] = copy.deepcopy(section_value)

    @staticmethod
    def merge_tree_wide(tree: dict, section: str, section_value: Optional[dict]):
        """
        Keep AllSpacesAndDisplays and SystemDefault in line with a write.

        ``section_value`` is the new section for an everywhere write, or None
        for a narrower one, in which case the section is only dropped from
        AllSpacesAndDisplays so it stops overriding the targeted leaves.
        """
        shared = lookup(tree, ALL_SPACES_KEY, kind=dict)
        if section_value is None:
            if shared is not None:
                shared.pop(section, None)
                if section == SECTION_IDLE:
                    shared.pop(SECTION_LINKED, None)
            return

        if section == SECTION_IDLE:
            # an explicit choice leaves Automatic mode
            shared = child_mapping(tree, ALL_SPACES_KEY)
            shared.pop(SECTION_LINKED, None)
            shared["Type"] = ALL_SPACES_ENTRY_TYPE
        if shared is not None:
            shared[section] = copy.deepcopy(section_value)
        display_entry(tree, SYSTEM_DEFAULT_KEY)[section] = copy.deepcopy(section_value)

    def _write(self, section: str, choice_list: ChoiceList, target: Target) -> List[Leaf]:
        tree = self.store.load()
        leaves = self.leaves_for(target, tree)
        section_value = build_section(choice_list, self.clock())
        for leaf in leaves:
            self.merge_leaf(tree, leaf, section, section_value)
            logger.debug("Merged %s section into leaf %s", section, leaf)
        self.merge_tree_wide(tree, section, section_value if target.scope == Scope.GLOBAL else None)
        self.store.save(tree)
        logger.info("Wrote %s section to %d leaves", section, len(leaves))
        return leaves

    def set_screensaver(self, module: ScreensaverModule, target: Target) -> List[Leaf]:
        blob = PayloadCodec.encode_screensaver(module.path, module.type)
        choice = Choice(module.type.provider_identifier, blob)
        return self._write(SECTION_IDLE, ChoiceList([choice]), target)

    def screensaver_applied(self, module: ScreensaverModule, leaves: List[Leaf]) -> bool:
        """Whether every written leaf now reads back as ``module``."""
        tree = self.store.load()
        for space_uuid, display_uuid in leaves:
            resolved = self.resolve(tree, SECTION_IDLE, space_uuid, display_uuid)
            if resolved is None:
                return False
            choice = resolved[0].first
            name, screensaver_type = PayloadCodec.decode_screensaver(choice.configuration, choice.provider)
            if screensaver_type != module.type:
                return False
            if module.type == ScreensaverType.TRADITIONAL and name != module.name:
                return False
        return True

    def set_wallpaper(self, image_path: str, options: WallpaperOptions, target: Target) -> List[Leaf]:
        choice = Choice(PROVIDER_IMAGE, PayloadCodec.encode_wallpaper_image(image_path))
        choice_list = ChoiceList([choice], PayloadCodec.encode_wallpaper_options(options.style))
        return self._write(SECTION_DESKTOP, choice_list, target)


def select_strategy(
    version: Version,
    store: ConfigStore,
    index_provider: Callable[[], SpaceDisplayIndex],
    screensaver_domain: PreferenceDomain,
    desktop_domain: PreferenceDomain,
    clock: Optional[Callable] = None,
    global_screensaver_domain: Optional[PreferenceDomain] = None,
) -> SchemaStrategy:
    if version[0] < MODERN_SCHEMA_MAJOR_VERSION:
        logger.debug("macOS %s: using legacy preference keys", ".".join(map(str, version)))
        return LegacyStrategy(screensaver_domain, desktop_domain, global_screensaver_domain)
    logger.debug("macOS %s: using the wallpaper store", ".".join(map(str, version)))
    return ModernStrategy(store, index_provider(), clock)
