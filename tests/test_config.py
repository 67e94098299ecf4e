import json

import pytest

from pandocd.config import Configuration, load_config


@pytest.fixture
def conf():
    return Configuration(
        {
            "service": {
                "path": "/",
                "http": {"address": ":8080", "enabled": True},
                "cors": {"allowed-origins": ["a.example.com", "b.example.com"]},
            },
            "pandoc": {"timeout": "3s", "verbose": "on", "trace": "false"},
            "workers": 4,
        }
    )


def test_dotted_lookup(conf):
    assert conf.get_string("service.http.address") == ":8080"


def test_missing_string_gives_default(conf):
    assert conf.get_string("service.https.address", ":443") == ":443"
    assert conf.get_string("nothing") == ""


def test_get_config_returns_section(conf):
    section = conf.get_config("service")
    assert section is not None
    assert section.keys() == ["path", "http", "cors"]
    assert section.get_boolean("http.enabled") is True


def test_get_config_missing_or_scalar(conf):
    assert conf.get_config("absent") is None
    assert conf.get_config("workers") is None


def test_boolean_from_words(conf):
    assert conf.get_boolean("pandoc.verbose") is True
    assert conf.get_boolean("pandoc.trace") is False
    assert conf.get_boolean("pandoc.missing", True) is True


def test_invalid_boolean_raises():
    with pytest.raises(ValueError):
        Configuration({"flag": "maybe"}).get_boolean("flag")


def test_int_and_default(conf):
    assert conf.get_int("workers") == 4
    assert conf.get_int("absent", 7) == 7


def test_duration_units(conf):
    assert conf.get_duration("pandoc.timeout") == pytest.approx(3.0)
    assert Configuration({"t": "1h30m"}).get_duration("t") == pytest.approx(5400.0)


def test_duration_bare_number_is_milliseconds():
    assert Configuration({"t": 250}).get_duration("t") == pytest.approx(0.25)


def test_duration_default_and_error():
    assert Configuration({}).get_duration("t", 300.0) == 300.0
    with pytest.raises(ValueError):
        Configuration({"t": "soon"}).get_duration("t")


def test_string_list(conf):
    assert conf.get_string_list("service.cors.allowed-origins") == [
        "a.example.com",
        "b.example.com",
    ]
    assert conf.get_string_list("service.cors.allowed-methods") == []


def test_contains(conf):
    assert "service.http.address" in conf
    assert "service.http.port" not in conf


def test_load_toml(tmp_path):
    path = tmp_path / "app.conf"
    path.write_text('[service]\npath = "/api"\n[service.http]\naddress = ":9000"\n')
    loaded = load_config(path)
    assert loaded.get_string("service.path") == "/api"
    assert loaded.get_string("service.http.address") == ":9000"


def test_load_json(tmp_path):
    path = tmp_path / "app.json"
    path.write_text(json.dumps({"pandoc": {"safe-dir": "/srv"}}))
    assert load_config(path).get_string("pandoc.safe-dir") == "/srv"


def test_load_json_rejects_non_object(tmp_path):
    path = tmp_path / "app.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_config(path)