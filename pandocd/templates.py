"""Helper functions available to response templates."""

from __future__ import annotations

import base64
import binascii
import dataclasses
import hashlib
import html
import json
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import jinja2

_HTML_ESCAPES = str.maketrans(
    {"<": "&lt;", ">": "&gt;", "&": "&amp;", "'": "&#39;", '"': "&#34;"}
)
_JSON_ESCAPES = str.maketrans(
    {"<": "\\u003c", ">": "\\u003e", "&": "\\u0026", "\u2028": "\\u2028", "\u2029": "\\u2029"}
)


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, Exception):
        return str(value)
    raise TypeError(f"unable to cast {value!r} of type {type(value).__name__} to string")


def to_bytes(content: Any) -> bytes:
    """Return ``content`` as bytes, converting scalars to their text first."""
    if isinstance(content, (bytes, bytearray)):
        return bytes(content)
    if isinstance(content, str):
        return content.encode()
    return _to_string(content).encode()


def base64_encode(content: Any) -> str:
    """Standard base64 encoding of the text form of ``content``."""
    return base64.b64encode(_to_string(content).encode()).decode("ascii")


def base64_decode(content: Any) -> str:
    """Decode standard base64 text; raises ValueError on malformed input."""
    try:
        decoded = base64.b64decode(_to_string(content), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"illegal base64 data: {exc}") from exc
    return decoded.decode("utf-8", errors="replace")


def md5_string(text: str | bytes) -> str:
    """Hexadecimal MD5 digest of ``text``."""
    data = text if isinstance(text, (bytes, bytearray)) else str(text).encode()
    return hashlib.md5(data).hexdigest()


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            item.metadata.get("json", item.name): _plain(getattr(value, item.name))
            for item in dataclasses.fields(value)
        }
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in sorted(value.items(), key=lambda kv: str(kv[0]))}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    raise TypeError(f"json: unsupported type: {type(value).__name__}")


def jsonify(value: Any) -> str:
    """Compact JSON with map keys sorted, bytes as base64 and HTML characters escaped."""
    try:
        text = json.dumps(
            _plain(value), separators=(",", ":"), ensure_ascii=False, allow_nan=False
        )
    except ValueError as exc:
        raise ValueError(f"json: unsupported value: {exc}") from exc
    return text.translate(_JSON_ESCAPES)


def html_escape(value: Any) -> str:
    """Escape ``<``, ``>``, ``&``, ``'`` and ``"``."""
    return _to_string(value).translate(_HTML_ESCAPES)


def html_unescape(value: Any) -> str:
    """Turn HTML entities back into characters."""
    return html.unescape(_to_string(value))


_HELPERS = {
    "base64Encode": base64_encode,
    "base64Decode": base64_decode,
    "jsonify": jsonify,
    "md5": md5_string,
    "toBytes": to_bytes,
    "htmlEscape": html_escape,
    "htmlUnescape": html_unescape,
}


def make_environment() -> jinja2.Environment:
    """A template environment with the helpers available as filters and functions."""
    env = jinja2.Environment(autoescape=False, keep_trailing_newline=True)
    env.filters.update(_HELPERS)
    env.globals.update(_HELPERS)
    return env