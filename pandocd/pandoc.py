"""The conversion service: fetch a document, run pandoc on it, return the result."""

from __future__ import annotations

import dataclasses
import os
import tempfile
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .command import run_command
from .config import Configuration
from .fetchers import Fetcher, new_fetcher
from .options import TEMP_DIR_PREFIX, ConvertOptions

DEFAULT_TIMEOUT = 300.0


class ConversionError(Exception):
    """Raised when a conversion request cannot be carried out."""


@dataclass
class FetcherOptions:
    """Which fetcher supplies the input document, and its parameters."""

    name: str = ""
    params: Any = None


def fetcher_options_from_dict(data: Mapping[str, Any]) -> FetcherOptions:
    """Build fetcher options from decoded JSON."""
    if not isinstance(data, Mapping):
        raise ValueError("fetcher options must be a JSON object")
    name = data.get("name")
    if name is None:
        name = ""
    if not isinstance(name, str):
        raise ValueError(f"invalid value for fetcher option 'name': {name!r}")
    return FetcherOptions(name=name, params=data.get("params"))


@dataclass
class Pandoc:
    """Converts documents by running the pandoc program."""

    timeout: float = DEFAULT_TIMEOUT
    fetchers: dict[str, Fetcher] = field(default_factory=dict)
    verbose: bool = False
    trace: bool = False
    dump_args: bool = False
    ignore_args: bool = False
    enable_filter: bool = False
    enable_lua_filter: bool = False
    safe_dir: str = ""
    command: str = "pandoc"

    def convert(self, fetcher_opts: FetcherOptions, convert_opts: ConvertOptions) -> bytes:
        """Fetch the input, convert it and return the bytes pandoc produced.

        Errors from fetchers, file references and the pandoc run propagate as
        raised; problems with the request itself raise ConversionError.
        """
        if convert_opts.data_dir and not convert_opts.data_dir.startswith(self.safe_dir):
            raise ConversionError(
                f"DataDir: '{convert_opts.data_dir}' is not in safe dir: '{self.safe_dir}'"
            )
        if not fetcher_opts.name:
            raise ConversionError(
                "non input method, please check your fetcher options or uri param"
            )

        data = self._fetch(fetcher_opts)

        options = dataclasses.replace(
            convert_opts,
            verbose=self.verbose,
            trace=self.trace,
            dump_args=self.dump_args,
            ignore_args=self.ignore_args,
        )

        with tempfile.TemporaryDirectory(prefix=TEMP_DIR_PREFIX) as work_dir:
            input_path = os.path.join(work_dir, str(uuid.uuid4())) + "." + options.from_
            output_path = os.path.join(work_dir, str(uuid.uuid4())) + "." + options.to
            with open(input_path, "wb") as handle:
                handle.write(data)

            args, cleanups = options.to_command_args(
                self.safe_dir, self.enable_filter, self.enable_lua_filter
            )
            try:
                args += ["--quiet", input_path, "--output", output_path]
                run_command(self.timeout, self.command, *args)
                try:
                    with open(output_path, "rb") as handle:
                        return handle.read()
                except OSError as exc:
                    raise ConversionError(f"read output failure: {exc}") from exc
            finally:
                for cleanup in cleanups:
                    cleanup()

    def _fetch(self, fetcher_opts: FetcherOptions) -> bytes:
        fetcher = self.fetchers.get(fetcher_opts.name)
        if fetcher is None:
            raise ConversionError(f"fetcher {fetcher_opts.name} not exist")
        return fetcher.fetch(fetcher_opts.params)


def create_pandoc(conf: Configuration | None) -> Pandoc:
    """Build a converter from the ``pandoc`` section of the configuration."""
    conf = conf if conf is not None else Configuration()
    pandoc = Pandoc(timeout=conf.get_duration("timeout", DEFAULT_TIMEOUT))

    fetchers_conf = conf.get_config("fetchers")
    if fetchers_conf is None or not fetchers_conf.keys():
        return pandoc

    for name in fetchers_conf.keys():
        if not name or name == "default":
            raise ConversionError("fetcher name could not be '' or 'default'")
        if name in pandoc.fetchers:
            raise ConversionError(f"fetcher of {name} already exist")

        fetcher_conf = fetchers_conf.get_config(name) or Configuration()
        driver = fetcher_conf.get_string("driver")
        if not driver:
            raise ConversionError(f"the fetcher of {name}'s driver is empty")

        pandoc.fetchers[name] = new_fetcher(driver, fetcher_conf.get_config("options"))

    pandoc.verbose = conf.get_boolean("verbose")
    pandoc.trace = conf.get_boolean("trace")
    pandoc.dump_args = conf.get_boolean("dump-args")
    pandoc.ignore_args = conf.get_boolean("ignore-args")
    pandoc.enable_filter = conf.get_boolean("enable-filter")
    pandoc.enable_lua_filter = conf.get_boolean("enable-lua-filter")
    pandoc.safe_dir = conf.get_string("safe-dir", os.getcwd())
    return pandoc