import os

from pathlib import Path
from dotenv import load_dotenv, find_dotenv


# --- Environment ---
# A .env file found from the working directory may override any path below.
load_dotenv(find_dotenv(usecwd=True))

HOME_DIR = Path.home()

# --- Store Paths ---
BASE_WALLPAPER_STORE_PATH = os.path.join(
    HOME_DIR, "Library", "Application Support", "com.apple.wallpaper", "Store", "Index.plist"
)
WALLPAPER_STORE_PATH = os.getenv("PAPERSAVER_STORE_PATH", BASE_WALLPAPER_STORE_PATH)
BACKUP_SUFFIX = ".backup"

# --- Preference Domains ---
DEFAULTS_BIN = os.getenv("PAPERSAVER_DEFAULTS_BIN", "/usr/bin/defaults")
SCREENSAVER_DOMAIN = "com.apple.screensaver"
DESKTOP_DOMAIN = "com.apple.desktop"
SPACES_DOMAIN = "com.apple.spaces"
WINDOWSERVER_DOMAIN = "com.apple.windowserver.displays"

SCREENSAVER_MODULE_KEY = "moduleDict"
IDLE_TIME_KEY = "idleTime"
DESKTOP_BACKGROUND_KEY = "Background"
SPACES_CONFIGURATION_KEY = "SpacesDisplayConfiguration"
DISPLAY_SETS_KEY = "DisplaySets"

# --- Screensaver Locations ---
BASE_SCREENSAVER_DIRECTORIES = [
    "/System/Library/Screen Savers",
    "/Library/Screen Savers",
    "/System/Library/ExtensionKit/Extensions",
    os.path.join(HOME_DIR, "Library", "Screen Savers"),
]
_env_dirs = os.getenv("PAPERSAVER_SCREENSAVER_DIRS")
SCREENSAVER_DIRECTORIES = (
    [d for d in _env_dirs.split(os.pathsep) if d] if _env_dirs else BASE_SCREENSAVER_DIRECTORIES
)
EXTENSIONKIT_DIRECTORY = "/System/Library/ExtensionKit/Extensions"
SCREENSAVER_EXTENSIONS = {".saver", ".qtz", ".appex"}
SKIPPED_SCREENSAVERS = {"Default Collections"}
KNOWN_APPEX_SCREENSAVERS = [
    "Album Artwork",
    "Arabesque",
    "Computer Name",
    "Drift",
    "Flurry",
    "Hello",
    "iLifeSlideshows",
    "Monterey",
    "Shell",
    "Ventura",
    "Word of the Day",
]
THUMBNAIL_NAMES = ["thumbnail@2x.png", "thumbnail.png"]

# --- Providers ---
PROVIDER_SCREEN_SAVER = "com.apple.wallpaper.choice.screen-saver"
PROVIDER_APP_EXTENSION = "com.apple.NeptuneOneExtension"
PROVIDER_SEQUOIA = "com.apple.wallpaper.choice.sequoia"
PROVIDER_MACINTOSH = "com.apple.wallpaper.choice.macintosh"
PROVIDER_DEFAULT = "default"
PROVIDER_IMAGE = "com.apple.wallpaper.choice.image"

# --- Schema ---
MODERN_SCHEMA_MAJOR_VERSION = 14
DISPLAY_ENTRY_TYPE = "individual"
SECTION_IDLE = "Idle"
SECTION_DESKTOP = "Desktop"
SECTION_LINKED = "Linked"
ALL_SPACES_KEY = "AllSpacesAndDisplays"
SYSTEM_DEFAULT_KEY = "SystemDefault"
ALL_SPACES_ENTRY_TYPE = "idle"
WALLPAPER_PROVIDER_PREFIX = "com.apple.wallpaper.choice."
AUTOMATIC_SCREENSAVER_NAME = "Automatic"

# --- Constants ---
SUPPORTED_IMG_FORMATS = ['webp', 'png', 'jpg', 'jpeg', 'bmp', 'gif', 'tiff']
WALLPAPER_STYLES = ["fill", "fit", "stretch", "center", "tile", "dynamic"]
WALLPAPER_AGENT = "WallpaperAgent"
AGENT_SETTLE_SECONDS = 3.0
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
LOG_LEVEL = os.getenv("PAPERSAVER_LOG_LEVEL", "WARNING").upper()
