import os
import shutil
import hashlib
import plistlib
import logging

from pathlib import Path
from xml.parsers.expat import ExpatError
from typing import Optional

from .errors import NotFound, ParseError, PermissionDenied, WriteError
from ..utils.definitions import BACKUP_SUFFIX, WALLPAPER_STORE_PATH

logger = logging.getLogger(__name__)


def backup_path_for(path) -> str:
    return f"{path}{BACKUP_SUFFIX}"


class ConfigStore:
    """
    Reads and writes the binary property list holding the wallpaper and
    screensaver configuration tree.

    The file is owned by the OS agent, which may rewrite it at any time. There
    is no locking; the only safety net is the copy taken before every write.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = str(path or WALLPAPER_STORE_PATH)

    def _resolve(self, path) -> str:
        return os.path.expanduser(str(path or self.path))

    def load(self, path: Optional[str] = None) -> dict:
        path = self._resolve(path)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError as e:
            raise NotFound(path) from e
        except PermissionError as e:
            raise PermissionDenied(f"cannot read {path}") from e

        try:
            tree = plistlib.loads(data)
        except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError, OverflowError) as e:
            raise ParseError(f"{path} ({e})") from e

        if not isinstance(tree, dict):
            raise ParseError(f"{path} (root is {type(tree).__name__}, expected dictionary)")
        logger.debug("Loaded configuration tree from %s", path)
        return tree

    def save(self, tree: dict, path: Optional[str] = None):
        path = self._resolve(path)

        if os.path.exists(path):
            try:
                shutil.copy2(path, backup_path_for(path))
            except OSError as e:
                logger.warning("Could not back up %s before writing: %s", path, e)

        try:
            data = plistlib.dumps(tree, fmt=plistlib.FMT_BINARY)
        except (TypeError, ValueError, OverflowError) as e:
            raise WriteError(f"{path} ({e})") from e

        try:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise WriteError(f"{path} ({e})") from e
        logger.info("Wrote configuration tree to %s", path)

    def backup(self, path: Optional[str] = None) -> str:
        path = self._resolve(path)
        if not os.path.exists(path):
            raise NotFound(path)
        destination = backup_path_for(path)
        try:
            shutil.copy2(path, destination)
        except PermissionError as e:
            raise PermissionDenied(f"cannot write {destination}") from e
        except OSError as e:
            raise WriteError(f"{destination} ({e})") from e
        logger.info("Backed up %s to %s", path, destination)
        return destination

    def restore(self, backup_path: Optional[str] = None, original_path: Optional[str] = None):
        original_path = self._resolve(original_path)
        backup_path = os.path.expanduser(str(backup_path or backup_path_for(original_path)))
        if not os.path.exists(backup_path):
            raise NotFound(backup_path)
        try:
            if os.path.exists(original_path):
                os.remove(original_path)
            Path(original_path).parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(backup_path, original_path)
        except PermissionError as e:
            raise PermissionDenied(f"cannot restore {original_path}") from e
        except OSError as e:
            raise WriteError(f"{original_path} ({e})") from e
        logger.info("Restored %s from %s", original_path, backup_path)

    def checksum(self, path: Optional[str] = None) -> str:
        path = self._resolve(path)
        try:
            with open(path, "rb") as f:
                return hashlib.sha256(f.read()).hexdigest()
        except FileNotFoundError as e:
            raise NotFound(path) from e
        except PermissionError as e:
            raise PermissionDenied(f"cannot read {path}") from e
