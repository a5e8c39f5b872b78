"""
Typed access to the configuration tree.

The tree is kept in plistlib's native types. Every read goes through
``lookup``/``require`` so a wrongly typed node surfaces as a ParseError naming
the first offending key instead of an AttributeError deep inside a caller.
"""

import re
import datetime

from dataclasses import dataclass, field
from typing import Any, List, Mapping, MutableMapping, Optional, Tuple, Type, Union

from .errors import ParseError
from ..utils.definitions import DISPLAY_ENTRY_TYPE

UUID_PATTERN = re.compile(
    r"^[0-9A-F]{8}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{12}$", re.IGNORECASE
)

Kind = Union[Type, Tuple[Type, ...]]


def _kind_name(kind: Kind) -> str:
    if isinstance(kind, tuple):
        return " or ".join(k.__name__ for k in kind)
    return kind.__name__


def _matches(value: Any, kind: Kind) -> bool:
    # bool is an int subclass, a flag must not pass as a number
    if isinstance(value, bool) and kind in (int, float, (int, float)):
        return False
    return isinstance(value, kind)


def join_path(*segments) -> str:
    return "/".join(str(s) for s in segments if s is not None and s != "")


def lookup(node: Any, *keys, kind: Optional[Kind] = None, path: str = "") -> Any:
    """
    Walk ``keys`` down from ``node``.

    Returns None as soon as a key is absent. Raises ParseError when an
    intermediate node is not a mapping (or list, for integer keys) or when the
    final value is not of ``kind``.
    """
    current = node
    walked = path
    for key in keys:
        if isinstance(key, int):
            if not isinstance(current, list):
                raise ParseError(f"expected array, found {type(current).__name__}", walked or "<root>")
            walked = join_path(walked, key)
            if key >= len(current):
                return None
            current = current[key]
        else:
            if not isinstance(current, Mapping):
                raise ParseError(f"expected dictionary, found {type(current).__name__}", walked or "<root>")
            walked = join_path(walked, key)
            if key not in current:
                return None
            current = current[key]

    if kind is not None and current is not None and not _matches(current, kind):
        raise ParseError(f"expected {_kind_name(kind)}, found {type(current).__name__}", walked)
    return current


def require(node: Any, *keys, kind: Optional[Kind] = None, path: str = "") -> Any:
    """Like ``lookup`` but a missing key is a ParseError as well."""
    current = node
    walked = path
    for key in keys:
        value = lookup(current, key, path=walked)
        walked = join_path(walked, key)
        if value is None:
            raise ParseError("missing key", walked)
        current = value

    if kind is not None and not _matches(current, kind):
        raise ParseError(f"expected {_kind_name(kind)}, found {type(current).__name__}", walked)
    return current


def child_mapping(parent: MutableMapping, key: str, path: str = "") -> MutableMapping:
    """Return ``parent[key]``, creating an empty mapping when absent."""
    existing = parent.get(key)
    if existing is None:
        existing = {}
        parent[key] = existing
    elif not isinstance(existing, MutableMapping):
        raise ParseError(f"expected dictionary, found {type(existing).__name__}", join_path(path, key))
    return existing


def display_entry(parent: MutableMapping, key: str, path: str = "") -> MutableMapping:
    """Get or create a display entry, new entries are tagged as individual."""
    created = key not in parent
    entry = child_mapping(parent, key, path)
    if created:
        entry["Type"] = DISPLAY_ENTRY_TYPE
    return entry


def is_valid_display_key(key: Any) -> bool:
    return isinstance(key, str) and bool(UUID_PATTERN.match(key))


def display_keys(mapping: Optional[Mapping]) -> List[str]:
    """UUID-shaped keys of a Displays mapping, other keys such as 'Main' are skipped."""
    if not mapping:
        return []
    return sorted(k for k in mapping if is_valid_display_key(k))


@dataclass
class Choice:
    provider: str
    configuration: bytes = b""
    files: list = field(default_factory=list)

    @classmethod
    def from_plist(cls, node: Any, path: str = "") -> "Choice":
        provider = require(node, "Provider", kind=str, path=path)
        configuration = lookup(node, "Configuration", kind=bytes, path=path)
        files = lookup(node, "Files", kind=list, path=path)
        return cls(provider, configuration or b"", list(files or []))

    def to_plist(self) -> dict:
        return {
            "Configuration": self.configuration,
            "Files": list(self.files),
            "Provider": self.provider,
        }


@dataclass
class ChoiceList:
    choices: List[Choice]
    encoded_option_values: Optional[bytes] = None
    shuffle: Any = None

    @property
    def first(self) -> Optional[Choice]:
        return self.choices[0] if self.choices else None

    @classmethod
    def from_plist(cls, node: Any, path: str = "") -> "ChoiceList":
        raw_choices = require(node, "Choices", kind=list, path=path)
        choices_path = join_path(path, "Choices")
        choices = [
            Choice.from_plist(raw, join_path(choices_path, i))
            for i, raw in enumerate(raw_choices)
        ]
        options = lookup(node, "EncodedOptionValues", kind=bytes, path=path)
        return cls(choices, options, lookup(node, "Shuffle", path=path))

    def to_plist(self) -> dict:
        content = {"Choices": [c.to_plist() for c in self.choices]}
        if self.encoded_option_values is not None:
            content["EncodedOptionValues"] = self.encoded_option_values
        if self.shuffle is not None:
            content["Shuffle"] = self.shuffle
        return content


def build_section(choice_list: ChoiceList, now: datetime.datetime) -> dict:
    return {
        "Content": choice_list.to_plist(),
        "LastSet": now,
        "LastUse": now,
    }


def read_section(entry: Any, section: str, path: str = "") -> Optional[ChoiceList]:
    """The ChoiceList stored under ``entry[section]``, None when absent or empty."""
    if entry is None:
        return None
    node = lookup(entry, section, kind=dict, path=path)
    if node is None:
        return None
    content = lookup(node, "Content", kind=dict, path=join_path(path, section))
    if content is None:
        return None
    choice_list = ChoiceList.from_plist(content, join_path(path, section, "Content"))
    return choice_list if choice_list.choices else None
