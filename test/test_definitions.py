import os
import importlib
import pytest

import papersaver.utils.definitions as definitions


@pytest.fixture
def reload_definitions(monkeypatch):
    yield lambda: importlib.reload(definitions)
    monkeypatch.undo()
    importlib.reload(definitions)


class TestDefinitions:
    def test_defaults(self, monkeypatch, reload_definitions):
        for name in ("PAPERSAVER_STORE_PATH", "PAPERSAVER_SCREENSAVER_DIRS", "PAPERSAVER_DEFAULTS_BIN", "PAPERSAVER_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        module = reload_definitions()
        assert module.WALLPAPER_STORE_PATH.endswith(os.path.join("com.apple.wallpaper", "Store", "Index.plist"))
        assert module.SCREENSAVER_DIRECTORIES == module.BASE_SCREENSAVER_DIRECTORIES
        assert module.DEFAULTS_BIN == "/usr/bin/defaults"
        assert module.LOG_LEVEL == "WARNING"

    def test_environment_overrides(self, monkeypatch, tmp_path, reload_definitions):
        dirs = os.pathsep.join([str(tmp_path / "a"), str(tmp_path / "b")])
        monkeypatch.setenv("PAPERSAVER_STORE_PATH", str(tmp_path / "Index.plist"))
        monkeypatch.setenv("PAPERSAVER_SCREENSAVER_DIRS", dirs)
        monkeypatch.setenv("PAPERSAVER_DEFAULTS_BIN", "/opt/bin/defaults")
        monkeypatch.setenv("PAPERSAVER_LOG_LEVEL", "debug")
        module = reload_definitions()
        assert module.WALLPAPER_STORE_PATH == str(tmp_path / "Index.plist")
        assert module.SCREENSAVER_DIRECTORIES == [str(tmp_path / "a"), str(tmp_path / "b")]
        assert module.DEFAULTS_BIN == "/opt/bin/defaults"
        assert module.LOG_LEVEL == "DEBUG"

    def test_styles_match_enum(self):
        from papersaver.core.payload_codec import WallpaperStyle

        assert definitions.WALLPAPER_STYLES == [s.value for s in WallpaperStyle]
