import pytest

from unittest.mock import MagicMock

from papersaver.core.errors import (
    DisplayNotFound,
    InvalidScreenIdentifier,
    ParseError,
    SpaceNotFound,
    SpaceNotFoundOnDisplay,
)
from papersaver.core.spaces import SpaceDisplayIndex, parse_spaces

from conftest import DISPLAY_A, DISPLAY_B, SPACE_1, SPACE_2, SPACE_3, FakePreferenceDomain


def spaces_configuration():
    return {
        "Management Data": {
            "Monitors": [
                {
                    "Display Identifier": "Main",
                    "Current Space": {"uuid": SPACE_2, "ManagedSpaceID": 4},
                    "Spaces": [
                        {"ManagedSpaceID": 4, "uuid": SPACE_2},
                        {"ManagedSpaceID": 1, "uuid": SPACE_1},
                    ],
                },
                {
                    "Display Identifier": DISPLAY_B,
                    "Current Space": {"uuid": SPACE_3},
                    "Spaces": [{"ManagedSpaceID": 7, "uuid": SPACE_3}],
                    "Collapsed Space": {"ManagedSpaceID": 12, "uuid": "COLLAPSED", "AutoCreated": 1},
                },
            ]
        }
    }


class TestParseSpaces:
    def test_spaces_are_sorted_by_id(self):
        spaces = parse_spaces(spaces_configuration())
        assert [s.space_id for s in spaces] == [1, 4, 7, 12]

    def test_current_and_historical_flags(self):
        by_id = {s.space_id: s for s in parse_spaces(spaces_configuration())}
        assert by_id[4].is_current and not by_id[1].is_current
        assert by_id[12].is_collapsed and by_id[12].is_auto_created and by_id[12].is_historical
        assert not by_id[7].is_historical
        assert by_id[7].display_identifier == DISPLAY_B

    def test_missing_configuration_yields_nothing(self):
        assert parse_spaces(None) == []
        assert parse_spaces({}) == []
        assert parse_spaces({"Management Data": {}}) == []

    def test_wrongly_typed_monitors(self):
        with pytest.raises(ParseError) as excinfo:
            parse_spaces({"Management Data": {"Monitors": {"not": "a list"}}})
        assert excinfo.value.key_path == "SpacesDisplayConfiguration/Management Data/Monitors"

    def test_wrongly_typed_space_id(self):
        config = {"Management Data": {"Monitors": [{"Spaces": [{"ManagedSpaceID": "one", "uuid": SPACE_1}]}]}}
        with pytest.raises(ParseError) as excinfo:
            parse_spaces(config)
        assert excinfo.value.key_path.endswith("Spaces/0/ManagedSpaceID")


class TestSpaceDisplayIndex:
    def test_display_lookup_by_number_and_uuid(self, index):
        assert index.display_by_number(2).uuid == DISPLAY_B
        assert index.display_by_uuid(DISPLAY_A.lower()).number == 1
        with pytest.raises(DisplayNotFound) as excinfo:
            index.display_by_number(5)
        assert str(excinfo.value) == "Display 5 not found"

    def test_main_identifier_maps_to_main_display(self, index):
        assert index.resolve_display_uuid("Main") == DISPLAY_A
        assert [s.uuid for s in index.spaces_for_display(DISPLAY_A)] == [SPACE_1, SPACE_2]

    def test_space_numbers_are_per_display(self, index):
        assert index.space_uuid(1, 2) == SPACE_2
        assert index.space_uuid(2, 1) == SPACE_3
        with pytest.raises(SpaceNotFoundOnDisplay) as excinfo:
            index.space_uuid(2, 2)
        assert str(excinfo.value) == "Space 2 not found on Display 2"
        with pytest.raises(SpaceNotFoundOnDisplay):
            index.space_uuid(7, 1)

    def test_space_lookup(self, index):
        assert index.space_by_id(3).uuid == SPACE_3
        with pytest.raises(SpaceNotFound):
            index.space_by_id(42)
        with pytest.raises(SpaceNotFound):
            index.space_by_uuid("nope")

    def test_known_uuids_skip_historical(self, index):
        assert index.space_uuids() == [SPACE_1, SPACE_2, SPACE_3]
        assert index.display_uuids() == [DISPLAY_A, DISPLAY_B]
        assert len(index.spaces()) == 4
        assert len(index.spaces(include_historical=False)) == 3

    def test_current_target(self, index):
        assert index.current_target() == (SPACE_1, DISPLAY_A)
        assert SpaceDisplayIndex([], []).current_target() is None

    def test_current_space_for_display(self, index):
        assert index.current_space_for_display(DISPLAY_A).uuid == SPACE_1
        assert index.current_space_for_display(DISPLAY_B.lower()).uuid == SPACE_3
        assert index.current_space_for_display("00000000-0000-0000-0000-000000000000") is None

    @pytest.mark.parametrize("screen_id", [0, -3, "1", True, None])
    def test_invalid_screen_identifier(self, index, screen_id):
        with pytest.raises(InvalidScreenIdentifier):
            index.display_by_screen(screen_id)

    def test_screen_identifier_lookup(self, index):
        assert index.display_by_screen(2).uuid == DISPLAY_B
        with pytest.raises(DisplayNotFound):
            index.display_by_screen(99)

    def test_from_system_reads_preferences(self):
        spaces_domain = FakePreferenceDomain({"SpacesDisplayConfiguration": spaces_configuration()})
        displays_domain = FakePreferenceDomain({})
        monitors = MagicMock(return_value=[])

        index = SpaceDisplayIndex.from_system(spaces_domain, displays_domain, monitors)

        assert [s.space_id for s in index.spaces()] == [1, 4, 7, 12]
        assert index.displays() == []
        monitors.assert_called_once()
