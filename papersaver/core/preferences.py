import plistlib
import logging
import subprocess

from typing import Any, Dict, List
from xml.parsers.expat import ExpatError

from .errors import NotFound, ParseError, WriteError
from ..utils.definitions import DEFAULTS_BIN

logger = logging.getLogger(__name__)


class PreferenceDomain:
    """
    A user preference domain read and written through the ``defaults`` tool.

    Going through ``defaults`` instead of the files under ~/Library/Preferences
    keeps cfprefsd's cache coherent with what is written.
    """

    def __init__(self, domain: str, current_host: bool = False, defaults_bin: str = DEFAULTS_BIN):
        self.domain = domain
        self.current_host = current_host
        self.defaults_bin = defaults_bin

    def __repr__(self):
        host = ", current_host=True" if self.current_host else ""
        return f"PreferenceDomain({self.domain!r}{host})"

    def _command(self, action: str) -> List[str]:
        command = [self.defaults_bin]
        if self.current_host:
            command.append("-currentHost")
        return command + [action, self.domain, "-"]

    def read(self) -> Dict[str, Any]:
        try:
            result = subprocess.run(
                self._command("export"),
                check=True,
                capture_output=True,
            )
        except FileNotFoundError as e:
            raise NotFound(self.defaults_bin) from e
        except subprocess.CalledProcessError as e:
            raise ParseError(f"defaults export {self.domain} failed: {e.stderr!r}") from e

        if not result.stdout.strip():
            return {}
        try:
            values = plistlib.loads(result.stdout)
        except (plistlib.InvalidFileException, ExpatError, ValueError) as e:
            raise ParseError(f"{self.domain} ({e})") from e
        if not isinstance(values, dict):
            raise ParseError(f"{self.domain} (root is {type(values).__name__}, expected dictionary)")
        return values

    def write(self, values: Dict[str, Any]):
        try:
            subprocess.run(
                self._command("import"),
                input=plistlib.dumps(values, fmt=plistlib.FMT_XML),
                check=True,
                capture_output=True,
            )
        except FileNotFoundError as e:
            raise NotFound(self.defaults_bin) from e
        except subprocess.CalledProcessError as e:
            raise WriteError(f"defaults import {self.domain} failed: {e.stderr!r}") from e
        logger.info("Updated preference domain %s", self.domain)

    def get(self, key: str, default: Any = None) -> Any:
        return self.read().get(key, default)

    def set(self, key: str, value: Any):
        values = self.read()
        values[key] = value
        self.write(values)
