import pytest

from papersaver.core.errors import ParseError
from papersaver.core.tree import (
    Choice,
    ChoiceList,
    build_section,
    child_mapping,
    display_entry,
    display_keys,
    is_valid_display_key,
    lookup,
    read_section,
    require,
)

from conftest import DISPLAY_A, FIXED_NOW


class TestAccessors:
    def test_lookup_returns_none_for_absent_keys(self):
        assert lookup({"a": {"b": 1}}, "a", "c") is None
        assert lookup({}, "a", "b", "c") is None

    def test_lookup_walks_lists(self):
        assert lookup({"a": [{"b": 2}]}, "a", 0, "b", kind=int) == 2
        assert lookup({"a": []}, "a", 0) is None

    def test_lookup_names_the_mistyped_key(self):
        with pytest.raises(ParseError) as excinfo:
            lookup({"Spaces": {"X": "oops"}}, "Spaces", "X", "Displays")
        assert excinfo.value.key_path == "Spaces/X"

    def test_lookup_checks_final_kind(self):
        with pytest.raises(ParseError) as excinfo:
            lookup({"idleTime": "300"}, "idleTime", kind=int)
        assert excinfo.value.key_path == "idleTime"

    def test_bool_is_not_an_int(self):
        with pytest.raises(ParseError):
            lookup({"n": True}, "n", kind=int)

    def test_require_names_first_missing_key(self):
        with pytest.raises(ParseError) as excinfo:
            require({"Content": {}}, "Content", "Choices", kind=list)
        assert excinfo.value.key_path == "Content/Choices"
        assert "missing key" in str(excinfo.value)

    def test_child_mapping_creates_and_rejects(self):
        tree = {"Spaces": []}
        created = child_mapping(tree, "Displays")
        assert created == {} and tree["Displays"] is created
        with pytest.raises(ParseError):
            child_mapping(tree, "Spaces")

    def test_new_display_entries_are_individual(self):
        displays = {"existing": {"Type": "linked"}}
        assert display_entry(displays, DISPLAY_A) == {"Type": "individual"}
        assert display_entry(displays, "existing") == {"Type": "linked"}


class TestDisplayKeys:
    def test_uuid_validation(self):
        assert is_valid_display_key(DISPLAY_A)
        assert is_valid_display_key(DISPLAY_A.lower())
        assert not is_valid_display_key("Main")
        assert not is_valid_display_key(1)

    def test_display_keys_skip_non_uuids(self):
        assert display_keys({"Main": {}, DISPLAY_A: {}, "2": {}}) == [DISPLAY_A]
        assert display_keys(None) == []


class TestSections:
    def test_section_shape(self):
        section = build_section(ChoiceList([Choice("p", b"blob")]), FIXED_NOW)
        assert section == {
            "Content": {"Choices": [{"Configuration": b"blob", "Files": [], "Provider": "p"}]},
            "LastSet": FIXED_NOW,
            "LastUse": FIXED_NOW,
        }

    def test_options_and_shuffle_are_kept(self):
        choice_list = ChoiceList([Choice("p")], encoded_option_values=b"opts", shuffle="$null")
        content = choice_list.to_plist()
        assert content["EncodedOptionValues"] == b"opts"
        assert ChoiceList.from_plist(content) == choice_list

    def test_read_section_absent_or_empty(self):
        assert read_section(None, "Idle") is None
        assert read_section({"Desktop": {}}, "Idle") is None
        assert read_section({"Idle": {"Content": {"Choices": []}}}, "Idle") is None

    def test_read_section_reports_bad_choice(self):
        entry = {"Idle": {"Content": {"Choices": [{"Configuration": b""}]}}}
        with pytest.raises(ParseError) as excinfo:
            read_section(entry, "Idle", "Displays/X")
        assert excinfo.value.key_path == "Displays/X/Idle/Content/Choices/0/Provider"
