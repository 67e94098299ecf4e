"""Fetchers that obtain the document to be converted."""

from __future__ import annotations

import base64
import binascii
import json
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from .config import Configuration


class FetchError(Exception):
    """Raised when a fetcher cannot be created or cannot fetch."""


class Fetcher(ABC):
    """Something that turns request parameters into document bytes."""

    @abstractmethod
    def fetch(self, params: Any) -> bytes:
        """Return the document described by ``params``."""


FetcherFactory = Callable[[Configuration | None], Fetcher]

_factories: dict[str, FetcherFactory] = {}


def parse_params(raw: Any) -> dict[str, Any]:
    """Decode fetcher parameters given as JSON text, bytes or a mapping."""
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        value = json.loads(raw)
    except (ValueError, TypeError) as exc:
        raise FetchError(f"parse param failure, error is {exc}") from exc
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise FetchError("parse param failure, error is params must be a JSON object")
    return value


def _bytes_field(params: Mapping[str, Any], key: str) -> bytes:
    value = params.get(key)
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise FetchError(f"parse param failure, error is {key} must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise FetchError(f"parse param failure, error is {exc}") from exc


def _str_field(params: Mapping[str, Any], key: str) -> str:
    value = params.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise FetchError(f"parse param failure, error is {key} must be a string")
    return value


def _str_map_field(params: Mapping[str, Any], key: str) -> dict[str, str]:
    value = params.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping) or not all(
        isinstance(item, str) for item in value.values()
    ):
        raise FetchError(f"parse param failure, error is {key} must map strings to strings")
    return dict(value)


def register_fetcher(name: str, factory: FetcherFactory) -> None:
    """Make a fetcher driver available under ``name``."""
    if not name:
        raise FetchError("fetcher driver name is empty")
    if factory is None:
        raise FetchError(f"the fetcher driver of {name}'s new func is nil")
    if name in _factories:
        raise FetchError(f"driver of {name} already exist")
    _factories[name] = factory


def new_fetcher(name: str, conf: Configuration | None) -> Fetcher:
    """Create a fetcher using the driver registered as ``name``."""
    factory = _factories.get(name)
    if factory is None:
        raise FetchError(f"fetcher driver of {name} not exist")
    return factory(conf)


class DataFetcher(Fetcher):
    """Takes the document inline, base64-encoded in the ``data`` parameter."""

    def __init__(self, conf: Configuration | None = None) -> None:
        self.conf = conf

    def fetch(self, params: Any) -> bytes:
        data = _bytes_field(parse_params(params), "data")
        if not data:
            raise FetchError("[fetcher-data]: params of data is empty")
        return data


class HttpFetcher(Fetcher):
    """Downloads the document with a GET or POST request."""

    def __init__(self, conf: Configuration | None = None, timeout: float | None = None) -> None:
        self.conf = conf
        self.timeout = timeout
        self._opener = urllib.request.build_opener()

    def fetch(self, params: Any) -> bytes:
        fields = parse_params(params)
        url = _str_field(fields, "url")
        method = _str_field(fields, "method").upper()
        headers = _str_map_field(fields, "headers")
        body = _bytes_field(fields, "data")
        replace = _str_map_field(fields, "replace")

        if not url:
            raise FetchError("[fetcher-http]: params of url is empty")
        if not method:
            method = "GET"
        if method not in ("GET", "POST"):
            raise FetchError(f"[fetcher-http]: method {method} not support")

        data = self._send(method, url, headers, body)
        for old, new in replace.items():
            data = data.replace(old.encode(), new.encode())
        return data

    def _send(self, method: str, url: str, headers: dict[str, str], body: bytes) -> bytes:
        payload = body if body or method == "POST" else None
        try:
            request = urllib.request.Request(url, data=payload, method=method)
        except ValueError as exc:
            raise FetchError(str(exc)) from exc
        for key, value in headers.items():
            request.add_header(key, value)

        status_error = (
            f"[fetcher-http]: fetch url by {method} failure <{url}>, status code is {{}}"
        )
        try:
            kwargs = {} if self.timeout is None else {"timeout": self.timeout}
            response = self._opener.open(request, **kwargs)
        except urllib.error.HTTPError as exc:
            exc.close()
            raise FetchError(status_error.format(exc.code)) from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise FetchError(str(exc)) from exc

        with response:
            if response.status != 200:
                raise FetchError(status_error.format(response.status))
            try:
                return response.read()
            except OSError as exc:
                raise FetchError(str(exc)) from exc


register_fetcher("data", DataFetcher)
register_fetcher("http", HttpFetcher)