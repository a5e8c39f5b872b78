import os
import logging

from PIL import Image, UnidentifiedImageError
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidConfiguration, NotFound
from .payload_codec import WallpaperStyle, url_to_path
from ..utils.definitions import SUPPORTED_IMG_FORMATS

logger = logging.getLogger(__name__)


@dataclass
class WallpaperOptions:
    style: WallpaperStyle = WallpaperStyle.FILL

    @classmethod
    def from_name(cls, name: Optional[str]) -> "WallpaperOptions":
        if not name:
            return cls()
        try:
            return cls(WallpaperStyle(name.lower()))
        except ValueError as e:
            raise InvalidConfiguration(f"unknown wallpaper style '{name}'") from e


@dataclass
class WallpaperInfo:
    image_url: str
    style: Optional[WallpaperStyle] = None
    display_uuid: Optional[str] = None
    space_uuid: Optional[str] = None

    @property
    def image_path(self) -> str:
        return url_to_path(self.image_url)

    @property
    def image_name(self) -> str:
        return Path(self.image_path).name


def validate_wallpaper_image(image_path: str) -> str:
    """
    Check that ``image_path`` exists and, for raster formats Pillow reads, that
    it actually decodes. Returns the absolute path.
    """
    resolved = os.path.abspath(os.path.expanduser(str(image_path)))
    if not os.path.isfile(resolved):
        raise NotFound(resolved)

    if Path(resolved).suffix.lower().lstrip(".") in SUPPORTED_IMG_FORMATS:
        try:
            with Image.open(resolved) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise InvalidConfiguration(f"'{resolved}' is not a readable image ({e})") from e
    else:
        logger.debug("Skipping image verification for %s", resolved)
    return resolved
