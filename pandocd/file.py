"""Resolving file references (local paths, http URLs, data URLs) to local files."""

from __future__ import annotations

import base64
import binascii
import mimetypes
import os
import re
import tempfile
import threading
import urllib.error
import urllib.request
import uuid
from dataclasses import dataclass, field
from urllib.parse import unquote, urlsplit

_DATA_URL = re.compile(r"data:(.*?);(.*?),(.*)")


class FileError(Exception):
    """Raised when a file reference cannot be turned into a local file."""


def _base_name(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _extension(name: str) -> str:
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def url_to_file_name(file_url: str, content_type: str) -> str:
    """Derive a local file name from a URL, adding an extension from the content type."""
    try:
        path = unquote(urlsplit(file_url).path)
    except ValueError as exc:
        raise FileError(f"parse url of {file_url} failure, error: {exc}") from exc

    filename = _base_name(path) if path else str(uuid.uuid4())

    if not _extension(filename) and content_type:
        media_type = content_type.split(";", 1)[0].strip().lower()
        ext = mimetypes.guess_extension(media_type) if media_type else None
        if ext:
            filename += ext
    return filename


def parse_data_url(url: str) -> tuple[str, bytes]:
    """Split a ``data:content-type;encoding,base64`` URL into its type and bytes."""
    match = _DATA_URL.search(url)
    if match is None:
        raise FileError(
            "base64 data format error, the format should be: "
            "data:content-type;encoding,base64string"
        )
    content_type, _encoding, payload = match.groups()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise FileError(f"parse base64 data failure: {exc}") from exc
    return content_type, data


@dataclass
class RemoteFile:
    """A file given by URL, made available at a local path on first use."""

    url: str
    safe_dir: str = ""
    temp_dir_prefix: str = ""
    _path: str = field(default="", init=False, repr=False)
    _error: FileError | None = field(default=None, init=False, repr=False)
    _resolved: bool = field(default=False, init=False, repr=False)
    _should_cleanup: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def __enter__(self) -> RemoteFile:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    def path(self) -> str:
        """Return the local path, fetching or decoding the file the first time."""
        with self._lock:
            if not self._resolved:
                self._resolved = True
                try:
                    self._path = self._resolve()
                except FileError as exc:
                    self._error = exc
        if self._error is not None:
            raise self._error
        return self._path

    def cleanup(self) -> None:
        """Remove the file if it was created here."""
        if self._should_cleanup and self._error is None and self._path:
            try:
                os.remove(self._path)
            except OSError:
                pass

    def _resolve(self) -> str:
        if not self.url:
            return ""
        try:
            parts = urlsplit(self.url)
        except ValueError as exc:
            raise FileError(f"parse url of {self.url} failure, error: {exc}") from exc

        scheme = parts.scheme
        if scheme in ("http", "https"):
            self._should_cleanup = True
            return self._download()
        if scheme == "data":
            self._should_cleanup = True
            content_type, data = parse_data_url(self.url)
            return self._write_temp(url_to_file_name(str(uuid.uuid4()), content_type), data)
        if scheme in ("file", ""):
            path = unquote(parts.path)
            if not path.startswith(self.safe_dir):
                raise FileError("file path is not in safe dir")
            return path
        raise FileError(f"unknown path schema, {scheme}")

    def _download(self) -> str:
        opener = urllib.request.build_opener()
        try:
            response = opener.open(self.url)
        except urllib.error.HTTPError as exc:
            response = exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise FileError(f"download file failure for url {self.url}, error: {exc}") from exc

        try:
            content_type = response.headers.get("Content-Type", "") or ""
            filename = url_to_file_name(self.url, content_type)
            try:
                data = response.read()
            except OSError as exc:
                raise FileError(f"read body from {self.url}, error: {exc}") from exc
        finally:
            response.close()
        return self._write_temp(filename, data)

    def _write_temp(self, filename: str, data: bytes) -> str:
        directory = os.path.join(tempfile.gettempdir(), self.temp_dir_prefix)
        try:
            os.makedirs(directory, mode=0o755, exist_ok=True)
        except OSError as exc:
            raise FileError(f"make temp dir failure: {directory}, error: {exc}") from exc
        target = os.path.join(directory, filename)
        try:
            with open(target, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            raise FileError(f"write file {target} failure") from exc
        return target