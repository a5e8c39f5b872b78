import pytest

from screeninfo import Monitor, ScreenInfoError
from unittest.mock import MagicMock

from papersaver.core.displays import (
    DisplayDescriptor,
    attach_monitors,
    enumerate_displays,
    parse_display_sets,
)
from papersaver.core.errors import ParseError

from conftest import DISPLAY_A, DISPLAY_B, FakePreferenceDomain

OLD_DISPLAY = "11111111-2222-3333-4444-555555555555"


def display_sets():
    return {
        "Configs": [
            {
                "ConfigVersion": 1,
                "DisplayConfig": [
                    {"UUID": DISPLAY_B, "CurrentInfo": {"Wide": 1920, "High": 1080, "Hz": 60, "Scale": 1, "Depth": 8, "OriginX": "3008", "OriginY": 0}},
                    {"UUID": DISPLAY_A, "CurrentInfo": {"Wide": 3008, "High": 1692, "Hz": 60, "Scale": 2, "Depth": 8, "OriginX": 0, "OriginY": 0}},
                ],
            },
            {
                "ConfigVersion": 3,
                "DisplayConfig": [
                    {"UUID": DISPLAY_A, "CurrentInfo": {"Wide": 1512, "High": 982, "Hz": 120, "Scale": 2, "Depth": 8}},
                    {"UUID": OLD_DISPLAY, "CurrentInfo": {"Wide": 2560, "High": 1440, "Hz": 75, "Scale": 1, "Depth": 8}},
                    {"UUID": "broken", "CurrentInfo": {"Wide": "wide"}},
                ],
            },
        ]
    }


class TestParseDisplaySets:
    def test_current_displays_first_then_by_uuid(self):
        displays = parse_display_sets(display_sets())
        assert [d.uuid for d in displays] == [DISPLAY_A, DISPLAY_B, OLD_DISPLAY]
        assert [d.is_connected for d in displays] == [True, True, False]

    def test_current_config_entry_wins(self):
        display = parse_display_sets(display_sets())[0]
        assert display.resolution == (3008, 1692)
        assert display.config_version == 1

    def test_string_origins_are_parsed(self):
        by_uuid = {d.uuid: d for d in parse_display_sets(display_sets())}
        assert by_uuid[DISPLAY_B].origin == (3008, 0)

    def test_missing_and_mistyped(self):
        assert parse_display_sets(None) == []
        assert parse_display_sets({}) == []
        with pytest.raises(ParseError):
            parse_display_sets({"Configs": "nope"})


class TestDisplayDescriptor:
    def test_description(self):
        assert DisplayDescriptor(DISPLAY_A, resolution=(3008, 1692), refresh_rate=60, scale=2).description == "3008x1692 @ 60Hz @ 2x"
        assert DisplayDescriptor(DISPLAY_A, resolution=(1920, 1080), refresh_rate=60, scale=1).description == "1920x1080 @ 60Hz"
        assert DisplayDescriptor(DISPLAY_A).description == "Unknown resolution"

    def test_friendly_name(self):
        assert DisplayDescriptor(DISPLAY_A, is_main=True).friendly_name == "Main Display 37D8832A..."
        assert DisplayDescriptor(DISPLAY_B, is_connected=True).friendly_name == "Display 9E1A0C55..."
        assert DisplayDescriptor(OLD_DISPLAY, config_version=3).friendly_name == "Display 11111111... (last seen: Config 3)"
        assert DisplayDescriptor(DISPLAY_A, name="Studio", is_main=True, is_connected=True).friendly_name == "Studio (Main)"


class TestMonitorCorrelation:
    def test_monitors_matched_by_origin(self):
        monitors = [
            Monitor(x=3008, y=0, width=1920, height=1080, name="DELL U2419H", is_primary=False),
            Monitor(x=0, y=0, width=1504, height=846, name="Built-in Retina Display", is_primary=True),
        ]
        displays = attach_monitors(parse_display_sets(display_sets()), monitors)
        by_uuid = {d.uuid: d for d in displays}

        assert by_uuid[DISPLAY_A].is_main and by_uuid[DISPLAY_A].number == 1
        assert by_uuid[DISPLAY_A].name == "Built-in Retina Display"
        assert by_uuid[DISPLAY_B].number == 2 and not by_uuid[DISPLAY_B].is_main
        assert by_uuid[OLD_DISPLAY].number is None

    def test_without_monitors_origin_decides_main(self):
        displays = attach_monitors(parse_display_sets(display_sets()), [])
        by_uuid = {d.uuid: d for d in displays}
        assert by_uuid[DISPLAY_A].is_main and by_uuid[DISPLAY_A].number == 1
        assert by_uuid[DISPLAY_B].number == 2

    def test_input_descriptors_are_left_untouched(self):
        originals = [
            DisplayDescriptor(DISPLAY_B, is_connected=True, origin=(3008, 0)),
            DisplayDescriptor(DISPLAY_A, is_connected=True, origin=(0, 0)),
            DisplayDescriptor(OLD_DISPLAY),
        ]

        displays = attach_monitors(originals, [])

        assert [d.number for d in originals] == [None, None, None]
        assert not any(d.is_main for d in originals)
        assert all(a is not b for a, b in zip(displays, originals))
        assert [d.number for d in displays] == [2, 1, None]

    def test_enumerate_tolerates_screeninfo_errors(self):
        domain = FakePreferenceDomain({"DisplaySets": display_sets()})
        source = MagicMock(side_effect=ScreenInfoError("no enumerators"))

        displays = enumerate_displays(domain, source)

        assert [d.number for d in displays] == [1, 2, None]
