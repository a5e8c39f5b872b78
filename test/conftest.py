import os
import sys
import copy
import datetime
import plistlib
import pytest

from PIL import Image
from unittest.mock import MagicMock

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from papersaver.core.catalog import ScreensaverCatalog
from papersaver.core.displays import DisplayDescriptor
from papersaver.core.paper_saver import PaperSaver
from papersaver.core.spaces import SpaceDescriptor, SpaceDisplayIndex


DISPLAY_A = "37D8832A-2D66-02CA-B9F7-8F30A301B230"
DISPLAY_B = "9E1A0C55-4F0B-4C8B-8A7E-2B1C3D4E5F60"
SPACE_1 = "0A1B2C3D-0000-4000-8000-000000000001"
SPACE_2 = "0A1B2C3D-0000-4000-8000-000000000002"
SPACE_3 = "0A1B2C3D-0000-4000-8000-000000000003"
FIXED_NOW = datetime.datetime(2024, 5, 1, 12, 0, 0)


class FakePreferenceDomain:
    """In-memory stand-in for a ``defaults`` backed preference domain."""

    def __init__(self, values=None):
        self.values = copy.deepcopy(values or {})
        self.writes = 0

    def read(self):
        return copy.deepcopy(self.values)

    def write(self, values):
        self.values = copy.deepcopy(values)
        self.writes += 1

    def get(self, key, default=None):
        return self.read().get(key, default)

    def set(self, key, value):
        values = self.read()
        values[key] = value
        self.write(values)


def make_index():
    displays = [
        DisplayDescriptor(uuid=DISPLAY_A, display_id=1, number=1, is_main=True, is_connected=True,
                          resolution=(3008, 1692), refresh_rate=60, scale=2, origin=(0, 0)),
        DisplayDescriptor(uuid=DISPLAY_B, display_id=2, number=2, is_connected=True,
                          resolution=(1920, 1080), refresh_rate=60, scale=1, origin=(3008, 0)),
    ]
    spaces = [
        SpaceDescriptor(space_id=1, uuid=SPACE_1, display_identifier="Main", is_current=True),
        SpaceDescriptor(space_id=2, uuid=SPACE_2, display_identifier="Main"),
        SpaceDescriptor(space_id=3, uuid=SPACE_3, display_identifier=DISPLAY_B, is_current=True),
        SpaceDescriptor(space_id=9, uuid="", display_identifier=DISPLAY_B, is_collapsed=True, is_auto_created=True),
    ]
    return SpaceDisplayIndex(spaces, displays)


def sample_tree():
    return {
        "AllSpacesAndDisplays": {"Type": "idle", "Linked": {"Type": "linked"}},
        "SystemDefault": {"Type": "individual"},
        "Displays": {},
        "Spaces": {},
    }


def write_plist(path, tree):
    with open(path, "wb") as f:
        plistlib.dump(tree, f, fmt=plistlib.FMT_BINARY)


@pytest.fixture
def index():
    return make_index()


@pytest.fixture
def store_path(tmp_path):
    path = tmp_path / "Store" / "Index.plist"
    path.parent.mkdir(parents=True)
    write_plist(path, sample_tree())
    return str(path)


@pytest.fixture
def saver_dir(tmp_path):
    """A screensaver directory holding two legacy bundles and one extension."""
    root = tmp_path / "Screen Savers"
    for name in ("Flurry.saver", "Aerial.saver", "Drift.appex", "Default Collections.saver"):
        (root / name / "Contents" / "Resources").mkdir(parents=True)
    (root / "notes.txt").write_text("not a bundle")
    Image.new("RGB", (4, 4), color="blue").save(root / "Flurry.saver" / "Contents" / "Resources" / "thumbnail.png")
    return root


@pytest.fixture
def catalog(saver_dir):
    return ScreensaverCatalog(directories=[str(saver_dir)])


@pytest.fixture
def sample_image(tmp_path):
    path = tmp_path / "wall.png"
    Image.new("RGB", (16, 9), color="red").save(path)
    return str(path)


@pytest.fixture
def make_saver(store_path, catalog):
    """Factory for a PaperSaver wired to temporary, in-memory collaborators."""

    def _make(version="14.2.1", screensaver_values=None, desktop_values=None, index=None, global_values=None):
        return PaperSaver(
            store_path=store_path,
            version_probe=lambda: version,
            index_provider=lambda: index or make_index(),
            catalog=catalog,
            screensaver_domain=FakePreferenceDomain(screensaver_values),
            desktop_domain=FakePreferenceDomain(desktop_values),
            agent_restarter=MagicMock(),
            clock=lambda: FIXED_NOW,
            global_screensaver_domain=FakePreferenceDomain(global_values),
            settle=MagicMock(),
        )

    return _make
