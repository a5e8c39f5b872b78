import time
import logging
import subprocess

from typing import Callable, List, Optional, Union

from .catalog import ScreensaverCatalog, ScreensaverInfo, ScreensaverModule
from .config_store import ConfigStore
from .displays import DisplayDescriptor
from .errors import InvalidConfiguration, ModernFeatureRequired, PaperSaverError, WriteError
from .payload_codec import PayloadCodec
from .preferences import PreferenceDomain
from .spaces import SpaceDescriptor, SpaceDisplayIndex
from .strategy import (
    Leaf,
    ModernStrategy,
    SchemaStrategy,
    Target,
    detect_system_version,
    is_wallpaper_provider,
    select_strategy,
)
from .tree import lookup
from .wallpaper import WallpaperInfo, WallpaperOptions, validate_wallpaper_image
from ..utils.definitions import (
    AGENT_SETTLE_SECONDS,
    AUTOMATIC_SCREENSAVER_NAME,
    DESKTOP_DOMAIN,
    IDLE_TIME_KEY,
    SCREENSAVER_DOMAIN,
    SECTION_IDLE,
    WALLPAPER_AGENT,
)

logger = logging.getLogger(__name__)


def restart_wallpaper_agent():
    """Ask the wallpaper agent to reload the store; launchd restarts it."""
    try:
        result = subprocess.run(
            ["killall", WALLPAPER_AGENT],
            check=False,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        logger.warning("Could not restart %s: %s", WALLPAPER_AGENT, e)
        return
    if result.returncode != 0:
        logger.debug("killall %s exited with %d: %s", WALLPAPER_AGENT, result.returncode, result.stderr.strip())


def wait_for_agent():
    time.sleep(AGENT_SETTLE_SECONDS)


class PaperSaver:
    """
    Entry point for reading and changing the screensaver and wallpaper
    configuration.

    Every collaborator is injected so the engine can be pointed at a copy of
    the store and at fake preference domains. The schema is chosen again on
    every call from ``version_probe``.
    """

    def __init__(
        self,
        store_path: Optional[str] = None,
        version_probe: Optional[Callable] = None,
        index_provider: Optional[Callable[[], SpaceDisplayIndex]] = None,
        catalog: Optional[ScreensaverCatalog] = None,
        screensaver_domain: Optional[PreferenceDomain] = None,
        desktop_domain: Optional[PreferenceDomain] = None,
        agent_restarter: Optional[Callable[[], None]] = None,
        clock: Optional[Callable] = None,
        global_screensaver_domain: Optional[PreferenceDomain] = None,
        settle: Optional[Callable[[], None]] = None,
        verify_writes: bool = True,
    ):
        self.store = ConfigStore(store_path)
        self.version_probe = version_probe
        self.index_provider = index_provider or SpaceDisplayIndex.from_system
        self.catalog = catalog or ScreensaverCatalog()
        self.screensaver_domain = screensaver_domain or PreferenceDomain(SCREENSAVER_DOMAIN, current_host=True)
        self.desktop_domain = desktop_domain or PreferenceDomain(DESKTOP_DOMAIN)
        self.global_screensaver_domain = global_screensaver_domain or PreferenceDomain(SCREENSAVER_DOMAIN)
        self.agent_restarter = agent_restarter or restart_wallpaper_agent
        self.clock = clock
        self.settle = settle or wait_for_agent
        self.verify_writes = verify_writes

    # --- Internals ---

    def _strategy(self) -> SchemaStrategy:
        return select_strategy(
            detect_system_version(self.version_probe),
            self.store,
            self.index_provider,
            self.screensaver_domain,
            self.desktop_domain,
            self.clock,
            self.global_screensaver_domain,
        )

    @staticmethod
    def _read_target(display_uuid: Optional[str], space_uuid: Optional[str]) -> Target:
        if space_uuid:
            return Target.space(space_uuid, display_uuid)
        if display_uuid:
            return Target.display(display_uuid)
        return Target.everywhere()

    @staticmethod
    def _write_target(
        strategy: SchemaStrategy,
        display_number: Optional[int],
        space_number: Optional[int],
        space_uuid: Optional[str],
    ) -> Target:
        if space_number is not None and display_number is None:
            raise InvalidConfiguration("a space number needs a display number")
        if display_number is None and not space_uuid:
            return Target.everywhere()
        if not strategy.is_modern:
            raise ModernFeatureRequired()

        index = strategy.index
        if display_number is None:
            return Target.space(space_uuid)
        if space_number is not None:
            space_uuid = index.space_uuid(display_number, space_number)
        display = index.display_by_number(display_number)
        if space_uuid:
            return Target.space(space_uuid, display.uuid)
        return Target.display(display.uuid)

    def _after_write(self, strategy: SchemaStrategy, skip_restart: bool) -> bool:
        if strategy.is_modern and not skip_restart:
            self.agent_restarter()
            return True
        return False

    def _verify_screensaver(self, strategy: ModernStrategy, module: ScreensaverModule, leaves: List[Leaf]):
        """
        Read the store back once the agent has settled and put the previous
        file back when the agent dropped the change.
        """
        if not self.verify_writes:
            return
        self.settle()
        try:
            applied = strategy.screensaver_applied(module, leaves)
        except PaperSaverError as e:
            logger.warning("Could not verify screensaver change: %s", e)
            applied = False
        if applied:
            logger.debug("Verified %s on %d leaves", module.name, len(leaves))
            return

        logger.warning("Screensaver %s did not stick, restoring the previous configuration", module.name)
        self.store.restore()
        raise WriteError(f"{self.store.path} (the agent did not keep {module.name}, rolled back)")

    def _apply_screensaver(self, strategy: SchemaStrategy, module: ScreensaverModule, target: Target, skip_restart: bool) -> List[Leaf]:
        leaves = strategy.set_screensaver(module, target)
        if self._after_write(strategy, skip_restart):
            self._verify_screensaver(strategy, module, leaves)
        return leaves

    def _module(self, module: Union[str, ScreensaverModule]) -> ScreensaverModule:
        if isinstance(module, ScreensaverModule):
            return module
        return self.catalog.find(module)

    def _modern_strategy(self) -> ModernStrategy:
        strategy = self._strategy()
        if not strategy.is_modern:
            raise ModernFeatureRequired()
        return strategy

    # --- Screensavers ---

    def list_screensavers(self) -> List[ScreensaverModule]:
        return self.catalog.list_modules()

    def get_active_screensaver(self, display_uuid: Optional[str] = None, space_uuid: Optional[str] = None) -> Optional[ScreensaverInfo]:
        return self._strategy().get_screensaver(self._read_target(display_uuid, space_uuid))

    def get_active_screensavers(self) -> List[str]:
        """Names of every screensaver configured on any known space."""
        strategy = self._strategy()
        if not strategy.is_modern:
            info = strategy.get_screensaver(Target.everywhere())
            return [info.name] if info else []

        tree = strategy.store.load()
        names = set()
        for space in strategy.index.spaces(include_historical=False):
            display_uuid = strategy.index.resolve_display_uuid(space.display_identifier)
            resolved = ModernStrategy.resolve(tree, SECTION_IDLE, space.uuid, display_uuid)
            if resolved is None:
                continue
            choice = resolved[0].first
            if is_wallpaper_provider(choice.provider):
                names.add(AUTOMATIC_SCREENSAVER_NAME)
                continue
            name, screensaver_type = PayloadCodec.decode_screensaver(choice.configuration, choice.provider)
            names.add(name or screensaver_type.display_name)
        return sorted(names)

    def set_screensaver(
        self,
        module: Union[str, ScreensaverModule],
        display_number: Optional[int] = None,
        space_number: Optional[int] = None,
        space_uuid: Optional[str] = None,
        skip_restart: bool = False,
    ) -> List[Leaf]:
        """
        Assign a screensaver. Without a target it applies everywhere; a display
        number narrows it to one display, adding a space number (or UUID)
        narrows it to that space on that display.
        """
        module = self._module(module)
        strategy = self._strategy()
        target = self._write_target(strategy, display_number, space_number, space_uuid)
        return self._apply_screensaver(strategy, module, target, skip_restart)

    def set_screensaver_for_space_id(self, module: Union[str, ScreensaverModule], space_id: int, skip_restart: bool = False) -> List[Leaf]:
        module = self._module(module)
        strategy = self._modern_strategy()
        space = strategy.index.space_by_id(space_id)
        return self._apply_screensaver(strategy, module, Target.space(space.uuid), skip_restart)

    def set_screensaver_for_screen(self, module: Union[str, ScreensaverModule], screen_id: int, skip_restart: bool = False) -> List[Leaf]:
        module = self._module(module)
        strategy = self._modern_strategy()
        display = strategy.index.display_by_screen(screen_id)
        return self._apply_screensaver(strategy, module, Target.display(display.uuid), skip_restart)

    # --- Wallpapers ---

    def get_wallpaper(self, display_uuid: Optional[str] = None, space_uuid: Optional[str] = None) -> Optional[WallpaperInfo]:
        return self._strategy().get_wallpaper(self._read_target(display_uuid, space_uuid))

    def set_wallpaper(
        self,
        image_path: str,
        options: Optional[WallpaperOptions] = None,
        display_number: Optional[int] = None,
        space_number: Optional[int] = None,
        space_uuid: Optional[str] = None,
        skip_restart: bool = False,
    ) -> List[Leaf]:
        image_path = validate_wallpaper_image(image_path)
        strategy = self._strategy()
        target = self._write_target(strategy, display_number, space_number, space_uuid)
        leaves = strategy.set_wallpaper(image_path, options or WallpaperOptions(), target)
        self._after_write(strategy, skip_restart)
        return leaves

    # --- Idle time ---

    def get_idle_time(self) -> int:
        return lookup(self.screensaver_domain.read(), IDLE_TIME_KEY, kind=int) or 0

    def set_idle_time(self, seconds: int):
        if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds < 0:
            raise InvalidConfiguration(f"idle time must be a non-negative number of seconds, got {seconds!r}")
        self.screensaver_domain.set(IDLE_TIME_KEY, seconds)
        logger.info("Set screensaver idle time to %d seconds", seconds)

    # --- Spaces and displays ---

    def list_spaces(self, include_historical: bool = True) -> List[SpaceDescriptor]:
        return self.index_provider().spaces(include_historical)

    def list_displays(self) -> List[DisplayDescriptor]:
        return self.index_provider().displays()

    def get_active_space(self) -> Optional[SpaceDescriptor]:
        current = self.index_provider().current_spaces()
        return current[0] if current else None

    # --- Store maintenance ---

    def backup(self) -> str:
        return self.store.backup()

    def restore(self, backup_path: Optional[str] = None):
        self.store.restore(backup_path)

    def checksum(self) -> str:
        return self.store.checksum()
