"""Hierarchical service configuration loaded from TOML or JSON files."""

from __future__ import annotations

import json
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

_MISSING = object()

_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "nanosecond": 1e-9,
    "nanoseconds": 1e-9,
    "us": 1e-6,
    "microsecond": 1e-6,
    "microseconds": 1e-6,
    "": 1e-3,
    "ms": 1e-3,
    "millisecond": 1e-3,
    "milliseconds": 1e-3,
    "s": 1.0,
    "second": 1.0,
    "seconds": 1.0,
    "m": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
    "d": 86400.0,
    "day": 86400.0,
    "days": 86400.0,
}

_DURATION_PART = re.compile(r"\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)")
_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}


def _parse_duration(value: Any) -> float:
    """Return a duration in seconds; bare numbers are milliseconds."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return value / 1000.0
    text = str(value).strip()
    if not text:
        raise ValueError("invalid duration: empty value")
    total = 0.0
    position = 0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if match is None or match.end() == position:
            raise ValueError(f"invalid duration: {value!r}")
        number, unit = match.groups()
        factor = _DURATION_UNITS.get(unit.lower())
        if factor is None:
            raise ValueError(f"invalid duration unit {unit!r} in {value!r}")
        total += float(number) * factor
        position = match.end()
        while position < len(text) and text[position].isspace():
            position += 1
    return total


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"invalid boolean: {value!r}")


class Configuration:
    """A read-only view of nested settings addressed by dotted keys."""

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def __repr__(self) -> str:
        return f"Configuration({self._data!r})"

    def __contains__(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def _lookup(self, key: str) -> Any:
        if key in self._data:
            return self._data[key]
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return _MISSING
            node = node[part]
        return node

    def get_config(self, key: str) -> Configuration | None:
        """Return the section at ``key``, or None when there is none."""
        value = self._lookup(key)
        if isinstance(value, Mapping):
            return Configuration(value)
        return None

    def get_string(self, key: str, default: str = "") -> str:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def get_boolean(self, key: str, default: bool = False) -> bool:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        return _parse_bool(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        if isinstance(value, bool):
            return int(value)
        return int(value)

    def get_duration(self, key: str, default: float = 0.0) -> float:
        """Return the duration at ``key`` in seconds."""
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        return _parse_duration(value)

    def get_string_list(self, key: str) -> list[str]:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        return [str(value)]

    def keys(self) -> list[str]:
        """Return the top-level keys in file order."""
        return list(self._data)


def load_config(path: str | Path) -> Configuration:
    """Load a configuration file: JSON for ``.json`` files, TOML otherwise."""
    file_path = Path(path)
    if file_path.suffix.lower() == ".json":
        with file_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"configuration {file_path} must hold an object")
        return Configuration(data)
    with file_path.open("rb") as handle:
        return Configuration(tomllib.load(handle))