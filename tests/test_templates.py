import base64
import json
from dataclasses import dataclass

import pytest

from pandocd.templates import (
    base64_decode,
    base64_encode,
    html_escape,
    html_unescape,
    jsonify,
    make_environment,
    md5_string,
    to_bytes,
)


@dataclass
class _Payload:
    data: bytes
    label: str


def test_to_bytes_passthrough_and_text():
    raw = b"\x00\xff"
    assert to_bytes(raw) == raw
    assert to_bytes("abc") == b"abc"
    assert to_bytes(42) == b"42"


def test_to_bytes_rejects_objects():
    with pytest.raises(TypeError):
        to_bytes(object())


def test_base64_encode_known_value():
    assert base64_encode("hello") == "aGVsbG8="


@pytest.mark.parametrize("text", ["", "hello", "ünïcode text", "a" * 100])
def test_base64_round_trip(text):
    assert base64_decode(base64_encode(text)) == text


def test_base64_decode_invalid():
    with pytest.raises(ValueError):
        base64_decode("not base64!!")


def test_md5_of_empty_string():
    assert md5_string("") == "d41d8cd98f00b204e9800998ecf8427e"


def test_md5_shape_and_bytes_agree():
    digest = md5_string("document")
    assert len(digest) == 32
    assert digest == md5_string(b"document")
    assert digest != md5_string("Document")


def test_html_escape_known_value():
    assert html_escape('<a href="x">') == "&lt;a href=&#34;x&#34;&gt;"


@pytest.mark.parametrize("text", ["plain", "<b>&amp;</b>", "it's \"quoted\""])
def test_html_round_trip(text):
    assert html_unescape(html_escape(text)) == text


def test_html_escape_all_special_characters():
    assert html_escape("<script>'&'\"") == "&lt;script&gt;&#39;&amp;&#39;&#34;"


def test_jsonify_is_compact_and_sorted():
    text = jsonify({"b": 1, "a": [True, None]})
    assert " " not in text
    assert list(json.loads(text)) == ["a", "b"]
    assert json.loads(text) == {"a": [True, None], "b": 1}


def test_jsonify_escapes_html_characters():
    text = jsonify("<&>")
    assert not set("<&>") & set(text)
    assert json.loads(text) == "<&>"


def test_jsonify_dataclass_with_bytes():
    payload = _Payload(data=b"converted output", label="x")
    decoded = json.loads(jsonify(payload))
    assert list(decoded) == ["data", "label"]
    assert base64.b64decode(decoded["data"]) == b"converted output"


def test_jsonify_rejects_nan_and_objects():
    with pytest.raises(ValueError):
        jsonify(float("nan"))
    with pytest.raises(TypeError):
        jsonify(object())


def test_environment_filters_and_functions():
    env = make_environment()
    rendered = env.from_string("{{ 'hi' | base64Encode }}|{{ md5('hi') }}").render()
    assert rendered == f"{base64_encode('hi')}|{md5_string('hi')}"


def test_environment_jsonify_in_template():
    env = make_environment()
    rendered = env.from_string('{"result":{{ value | jsonify }}}').render(value={"k": "v"})
    assert json.loads(rendered) == {"result": {"k": "v"}}