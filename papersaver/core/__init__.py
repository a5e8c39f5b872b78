from .catalog import ScreensaverCatalog, ScreensaverInfo, ScreensaverModule
from .config_store import ConfigStore
from .displays import DisplayDescriptor
from .payload_codec import PayloadCodec, ScreensaverType, WallpaperStyle
from .spaces import SpaceDescriptor, SpaceDisplayIndex
from .strategy import LegacyStrategy, ModernStrategy, Scope, Target
from .wallpaper import WallpaperInfo, WallpaperOptions
from .paper_saver import PaperSaver
