import os
import logging

from PIL import Image, UnidentifiedImageError
from pathlib import Path
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import ScreensaverNotFound
from .payload_codec import ScreensaverType, infer_screensaver_type
from ..utils.definitions import (
    EXTENSIONKIT_DIRECTORY,
    KNOWN_APPEX_SCREENSAVERS,
    SCREENSAVER_DIRECTORIES,
    SCREENSAVER_EXTENSIONS,
    SKIPPED_SCREENSAVERS,
    THUMBNAIL_NAMES,
)

logger = logging.getLogger(__name__)


@dataclass
class ScreensaverModule:
    name: str
    identifier: str
    path: str
    type: ScreensaverType
    is_system: bool = False
    thumbnail: Optional[str] = None


@dataclass
class ScreensaverInfo:
    name: str
    identifier: str
    type: ScreensaverType
    module_path: Optional[str] = None
    display_uuid: Optional[str] = None
    space_uuid: Optional[str] = None


def _thumbnail_for(bundle: Path) -> Optional[str]:
    resources = bundle / "Contents" / "Resources"
    for name in THUMBNAIL_NAMES:
        candidate = resources / name
        if not candidate.is_file():
            continue
        try:
            with Image.open(candidate) as img:
                img.verify()
            return str(candidate)
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            logger.debug("Ignoring unreadable thumbnail %s: %s", candidate, e)
    return None


class ScreensaverCatalog:
    """
    Lists the screensaver bundles installed in the standard locations.
    Bundles are directories; the scan never descends into them.
    """

    def __init__(self, directories: Optional[Iterable[str]] = None, known_extensions: Optional[Iterable[str]] = None):
        self.directories = [os.path.expanduser(d) for d in (directories or SCREENSAVER_DIRECTORIES)]
        self.known_extensions = set(known_extensions or KNOWN_APPEX_SCREENSAVERS)

    def _scan(self, directory: str) -> List[ScreensaverModule]:
        root = Path(directory)
        if not root.is_dir():
            return []

        modules = []
        try:
            entries = sorted(root.iterdir())
        except PermissionError as e:
            logger.warning("Cannot list %s: %s", directory, e)
            return []

        for entry in entries:
            suffix = entry.suffix.lower()
            if suffix not in SCREENSAVER_EXTENSIONS or entry.stem in SKIPPED_SCREENSAVERS:
                continue
            # ExtensionKit hosts every system extension, only some are screensavers
            if suffix == ".appex" and os.path.normpath(directory) == EXTENSIONKIT_DIRECTORY:
                if entry.stem not in self.known_extensions:
                    continue
            modules.append(
                ScreensaverModule(
                    name=entry.stem,
                    identifier=entry.stem,
                    path=str(entry),
                    type=infer_screensaver_type(str(entry)),
                    is_system=str(entry).startswith("/System/"),
                    thumbnail=_thumbnail_for(entry),
                )
            )
        return modules

    def list_modules(self) -> List[ScreensaverModule]:
        modules = []
        seen = set()
        for directory in self.directories:
            for module in self._scan(directory):
                if module.name in seen:
                    continue
                seen.add(module.name)
                modules.append(module)
        return sorted(modules, key=lambda m: m.name.lower())

    def find(self, name: str) -> ScreensaverModule:
        """Module matching ``name``, or the bundle at ``name`` when it is a path."""
        candidate = Path(os.path.expanduser(name))
        if candidate.suffix.lower() in SCREENSAVER_EXTENSIONS and candidate.exists():
            return ScreensaverModule(
                name=candidate.stem,
                identifier=candidate.stem,
                path=str(candidate.resolve()),
                type=infer_screensaver_type(str(candidate)),
                is_system=str(candidate.resolve()).startswith("/System/"),
            )

        wanted = name.lower()
        for module in self.list_modules():
            if module.name.lower() == wanted or module.identifier.lower() == wanted:
                return module
        raise ScreensaverNotFound(name)
