"""
Encoding and decoding of the provider blobs stored in ``Choice.Configuration``
and ``EncodedOptionValues``.

Every blob is itself a binary property list. The screensaver payloads form a
closed set of variants; decoding tries them in a fixed order and the first one
whose structure matches wins.
"""

import os
import plistlib
import logging

from enum import Enum
from pathlib import Path
from xml.parsers.expat import ExpatError
from dataclasses import dataclass
from urllib.parse import unquote, urlparse
from typing import Optional, Tuple

from .errors import ParseError
from .tree import lookup
from ..utils.definitions import (
    PROVIDER_APP_EXTENSION,
    PROVIDER_DEFAULT,
    PROVIDER_MACINTOSH,
    PROVIDER_SCREEN_SAVER,
    PROVIDER_SEQUOIA,
)

logger = logging.getLogger(__name__)


class ScreensaverType(Enum):
    TRADITIONAL = "traditional"
    APP_EXTENSION = "appExtension"
    SEQUOIA_VIDEO = "sequoiaVideo"
    BUILT_IN_MAC = "builtInMac"
    DEFAULT_SCREEN = "defaultScreen"

    @property
    def provider_identifier(self) -> str:
        return _TYPE_PROVIDERS[self]

    @property
    def display_name(self) -> str:
        return _TYPE_NAMES[self]

    @classmethod
    def from_provider(cls, provider: Optional[str]) -> Optional["ScreensaverType"]:
        for screensaver_type, identifier in _TYPE_PROVIDERS.items():
            if identifier == provider:
                return screensaver_type
        return None


_TYPE_PROVIDERS = {
    ScreensaverType.TRADITIONAL: PROVIDER_SCREEN_SAVER,
    ScreensaverType.APP_EXTENSION: PROVIDER_APP_EXTENSION,
    ScreensaverType.SEQUOIA_VIDEO: PROVIDER_SEQUOIA,
    ScreensaverType.BUILT_IN_MAC: PROVIDER_MACINTOSH,
    ScreensaverType.DEFAULT_SCREEN: PROVIDER_DEFAULT,
}
_TYPE_NAMES = {
    ScreensaverType.TRADITIONAL: "Screen Saver",
    ScreensaverType.APP_EXTENSION: "App Extension",
    ScreensaverType.SEQUOIA_VIDEO: "Video Screensaver",
    ScreensaverType.BUILT_IN_MAC: "Classic Mac",
    ScreensaverType.DEFAULT_SCREEN: "Default",
}


class WallpaperStyle(Enum):
    FILL = "fill"
    FIT = "fit"
    STRETCH = "stretch"
    CENTER = "center"
    TILE = "tile"
    DYNAMIC = "dynamic"


def infer_screensaver_type(path: str) -> ScreensaverType:
    suffix = Path(str(path).rstrip("/")).suffix.lower()
    if suffix == ".appex":
        return ScreensaverType.APP_EXTENSION
    # .saver, .qtz and anything unrecognised are handled by the legacy engine
    return ScreensaverType.TRADITIONAL


def file_url(path: str) -> str:
    """Absolute file URL for ``path`` with any trailing slash removed."""
    url = Path(os.path.abspath(os.path.expanduser(str(path)))).as_uri()
    return url.rstrip("/")


def url_to_path(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme in ("", "file"):
        return unquote(parsed.path)
    return url


# --- Screensaver payload variants ---


@dataclass(frozen=True)
class TraditionalPayload:
    module_url: str

    screensaver_type = ScreensaverType.TRADITIONAL

    @property
    def name(self) -> str:
        return Path(url_to_path(self.module_url)).stem

    @property
    def detected_type(self) -> ScreensaverType:
        return infer_screensaver_type(url_to_path(self.module_url))

    def to_plist(self) -> dict:
        return {"module": {"relative": self.module_url}}

    @classmethod
    def match(cls, root: dict) -> Optional["TraditionalPayload"]:
        module = root.get("module")
        relative = module.get("relative") if isinstance(module, dict) else None
        if isinstance(relative, str) and relative:
            return cls(relative)
        return None


@dataclass(frozen=True)
class AppExtensionPayload:
    generation_count: int = 4
    style: str = "dynamic"
    picker_id: int = 0

    screensaver_type = ScreensaverType.APP_EXTENSION

    @property
    def name(self) -> str:
        return "Neptune Extension"

    @property
    def detected_type(self) -> ScreensaverType:
        return self.screensaver_type

    def to_plist(self) -> dict:
        return {
            "values": {
                "legacyScreenSaverGenerationCount": self.generation_count,
                "style": self.style,
            },
            "picker": {"id": self.picker_id},
        }

    @classmethod
    def match(cls, root: dict) -> Optional["AppExtensionPayload"]:
        values = root.get("values")
        if not isinstance(values, dict) or "legacyScreenSaverGenerationCount" not in values:
            return None
        count = values["legacyScreenSaverGenerationCount"]
        style = values.get("style", "dynamic")
        picker = root.get("picker")
        picker_id = picker.get("id", 0) if isinstance(picker, dict) else 0
        return cls(count if isinstance(count, int) else 4, str(style), picker_id)


@dataclass(frozen=True)
class SequoiaVideoPayload:
    appearance: str = "automatic"
    picker_id: int = 0

    screensaver_type = ScreensaverType.SEQUOIA_VIDEO

    @property
    def name(self) -> str:
        return f"Sequoia Video ({self.appearance})"

    @property
    def detected_type(self) -> ScreensaverType:
        return self.screensaver_type

    def to_plist(self) -> dict:
        return {"values": {"appearance": self.appearance, "picker": {"id": self.picker_id}}}

    @classmethod
    def match(cls, root: dict) -> Optional["SequoiaVideoPayload"]:
        values = root.get("values")
        if not isinstance(values, dict) or "appearance" not in values:
            return None
        picker = values.get("picker")
        picker_id = picker.get("id", 0) if isinstance(picker, dict) else 0
        return cls(str(values["appearance"]), picker_id)


@dataclass(frozen=True)
class BuiltInMacPayload:
    screensaver_type = ScreensaverType.BUILT_IN_MAC

    def to_bytes(self) -> bytes:
        return b""


@dataclass(frozen=True)
class DefaultScreenPayload:
    screensaver_type = ScreensaverType.DEFAULT_SCREEN

    def to_bytes(self) -> bytes:
        return b""


# Decode order matters: the first structural match wins.
SCREENSAVER_PAYLOADS = (TraditionalPayload, AppExtensionPayload, SequoiaVideoPayload)


def _dump(value: dict) -> bytes:
    return plistlib.dumps(value, fmt=plistlib.FMT_BINARY, sort_keys=True)


def _load(blob: bytes) -> dict:
    try:
        root = plistlib.loads(blob)
    except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError, OverflowError) as e:
        raise ParseError(f"malformed payload ({e})") from e
    if not isinstance(root, dict):
        raise ParseError(f"payload root is {type(root).__name__}, expected dictionary")
    return root


class PayloadCodec:
    """
    Stateless translator between structured values and provider blobs.
    """

    @staticmethod
    def screensaver_payload(module_path: str, screensaver_type: Optional[ScreensaverType] = None):
        screensaver_type = screensaver_type or infer_screensaver_type(module_path)
        if screensaver_type == ScreensaverType.TRADITIONAL:
            return TraditionalPayload(file_url(module_path))
        if screensaver_type == ScreensaverType.APP_EXTENSION:
            return AppExtensionPayload()
        if screensaver_type == ScreensaverType.SEQUOIA_VIDEO:
            return SequoiaVideoPayload()
        if screensaver_type == ScreensaverType.BUILT_IN_MAC:
            return BuiltInMacPayload()
        return DefaultScreenPayload()

    @staticmethod
    def encode_screensaver(module_path: str, screensaver_type: Optional[ScreensaverType] = None) -> bytes:
        payload = PayloadCodec.screensaver_payload(module_path, screensaver_type)
        if isinstance(payload, (BuiltInMacPayload, DefaultScreenPayload)):
            return payload.to_bytes()
        return _dump(payload.to_plist())

    @staticmethod
    def decode_screensaver(blob: bytes, provider: Optional[str] = None) -> Tuple[Optional[str], ScreensaverType]:
        """
        Returns ``(name, type)``. An empty blob carries no name, its type comes
        from the provider when that names a built-in screen.
        """
        if not blob:
            provider_type = ScreensaverType.from_provider(provider)
            if provider_type in (ScreensaverType.BUILT_IN_MAC, ScreensaverType.DEFAULT_SCREEN):
                return None, provider_type
            return None, ScreensaverType.TRADITIONAL

        root = _load(blob)
        for payload_cls in SCREENSAVER_PAYLOADS:
            payload = payload_cls.match(root)
            if payload is not None:
                return payload.name, payload.detected_type

        logger.debug("Screensaver payload matched no known structure: %s", sorted(root))
        return None, ScreensaverType.TRADITIONAL

    @staticmethod
    def decode_screensaver_url(blob: bytes) -> Optional[str]:
        """The module URL of a traditional payload, None for any other variant."""
        if not blob:
            return None
        payload = TraditionalPayload.match(_load(blob))
        return payload.module_url if payload else None

    @staticmethod
    def encode_wallpaper_image(image_path: str) -> bytes:
        return _dump({"type": "imageFile", "url": {"relative": file_url(image_path)}})

    @staticmethod
    def decode_wallpaper_image(blob: bytes) -> Optional[str]:
        if not blob:
            return None
        relative = lookup(_load(blob), "url", "relative")
        return relative if isinstance(relative, str) else None

    @staticmethod
    def encode_wallpaper_options(style: WallpaperStyle) -> bytes:
        return _dump({"values": {"style": {"picker": {"_0": {"id": style.value}}}}})

    @staticmethod
    def decode_wallpaper_options(blob: Optional[bytes]) -> Optional[WallpaperStyle]:
        if not blob:
            return None
        style_id = lookup(_load(blob), "values", "style", "picker", "_0", "id")
        try:
            return WallpaperStyle(style_id)
        except ValueError:
            logger.debug("Unknown wallpaper style id: %r", style_id)
            return None
