"""Conversion options and their translation into pandoc command-line arguments."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from .file import FileError, RemoteFile

TEMP_DIR_PREFIX = "pandocd"
DEFAULT_PDF_ENGINE = "xelatex"

Cleanup = Callable[[], None]

# Boolean switches, in the order they appear on the command line.
_SWITCHES: tuple[tuple[str, str], ...] = (
    ("strip_empty_paragraphs", "--strip-empty-paragraphs"),
    ("preserve_tabs", "--preserve-tabs"),
    ("file_scope", "--file-scope"),
    ("standalone", "--standalone"),
    ("strip_comments", "--strip-comments"),
    ("toc", "--toc"),
    ("no_highlight", "--no-highlight"),
    ("self_contained", "--self-contained"),
    ("html_q_tags", "--html-q-tags"),
    ("ascii", "--ascii"),
    ("reference_links", "--reference-links"),
    ("atx_headers", "--atx-headers"),
    ("number_sections", "--number-sections"),
    ("listings", "--listings"),
    ("incremental", "--incremental"),
    ("section_divs", "--section-divs"),
    ("natbib", "--natbib"),
    ("biblatex", "--biblatex"),
    ("mathml", "--mathml"),
    ("gladtex", "--gladtex"),
    ("fail_if_warnings", "--fail-if-warnings"),
)

# Options taking a value, in command-line order. Kinds:
#   value      - emitted when set (non-empty string or non-zero number)
#   to         - like value, but omitted for PDF output
#   filter     - emitted only when filters are enabled
#   lua_filter - emitted only when Lua filters are enabled
#   safe_file  - a file reference that must lie in the safe directory
#   file       - a file reference with no directory restriction
#   pdf_engine - always emitted, defaulting to xelatex
_VALUED: tuple[tuple[str, str, str], ...] = (
    ("value", "from_", "--from"),
    ("to", "to", "--to"),
    ("value", "data_dir", "--data-dir"),
    ("value", "base_header_level", "--base-header-level"),
    ("value", "indented_code_classes", "--indented-code-classes"),
    ("filter", "filter", "--filter"),
    ("lua_filter", "lua_filter", "--lua-filter"),
    ("value", "tab_stop", "--tab-stop"),
    ("value", "track_changes", "--track-changes"),
    ("value", "extract_media", "--extract-media"),
    ("safe_file", "template", "--template"),
    ("value", "print_default_template", "--print-default-template"),
    ("value", "print_default_data_file", "--print-default-data-file"),
    ("value", "print_highlight_style", "--print-highlight-style"),
    ("value", "dpi", "--dpi"),
    ("value", "eol", "--eol"),
    ("value", "wrap", "--wrap"),
    ("value", "columns", "--columns"),
    ("value", "toc_depth", "--toc-depth"),
    ("value", "highlight_style", "--highlight-style"),
    ("safe_file", "syntax_definition", "--syntax-definition"),
    ("safe_file", "include_in_header", "--include-in-header"),
    ("safe_file", "include_before_body", "--include-before-body"),
    ("safe_file", "include_after_body", "--include-after-body"),
    ("value", "resource_path", "--resource-path"),
    ("value", "reference_location", "--reference-location"),
    ("value", "top_level_division", "--top-level-division"),
    ("value", "number_offset", "--number-offset"),
    ("value", "slide_level", "--slide-level"),
    ("value", "default_image_extension", "--default-image-extension"),
    ("value", "email_obfuscation", "--email-obfuscation"),
    ("value", "id_prefix", "--id-prefix"),
    ("value", "title_prefix", "--title-prefix"),
    ("value", "css", "--css"),
    ("file", "reference_doc", "--reference-doc"),
    ("value", "epub_subdirectory", "--epub-subdirectory"),
    ("file", "epub_cover_image", "--epub-cover-image"),
    ("file", "epub_metadata", "--epub-metadata"),
    ("file", "epub_embed_font", "--epub-embed-font"),
    ("value", "epub_chapter_level", "--epub-chapter-level"),
    ("pdf_engine", "pdf_engine", "--pdf-engine"),
    ("value", "pdf_engine_opt", "--pdf-engine-opt"),
    ("file", "bibliography", "--bibliography"),
    ("file", "csl", "--csl"),
    ("file", "citation_abbreviations", "--citation-abbreviations"),
    ("value", "webtex", "--webtex"),
    ("value", "mathjax", "--mathjax"),
    ("value", "katex", "--katex"),
    ("value", "latexmathml", "--latexmathml"),
    ("value", "mimetex", "--mimetex"),
    ("value", "jsmath", "--jsmath"),
    ("file", "abbreviations", "--abbreviations"),
)

# Service-level switches appended last.
_SERVICE_SWITCHES: tuple[tuple[str, str], ...] = (
    ("verbose", "--verbose"),
    ("dump_args", "--dump-args"),
    ("ignore_args", "--ignore-args"),
    ("trace", "--trace"),
)

# Field names that are not read from request data.
_INTERNAL = frozenset(name for name, _ in _SERVICE_SWITCHES)


@dataclass
class ConvertOptions:
    """Everything a conversion request may ask of pandoc."""

    from_: str = ""
    to: str = ""
    data_dir: str = ""
    base_header_level: int = 0
    strip_empty_paragraphs: bool = False
    indented_code_classes: str = ""
    filter: str = ""
    lua_filter: str = ""
    preserve_tabs: bool = False
    tab_stop: int = 0
    track_changes: str = ""
    file_scope: bool = False
    extract_media: str = ""
    standalone: bool = False
    template: str = ""
    metadata: dict[str, list[str]] = field(default_factory=dict)
    metadata_file: str = ""
    variable: dict[str, str] = field(default_factory=dict)
    print_default_template: str = ""
    print_default_data_file: str = ""
    print_highlight_style: str = ""
    dpi: int = 0
    eol: str = ""
    wrap: str = ""
    columns: int = 0
    strip_comments: bool = False
    toc: bool = False
    toc_depth: int = 0
    no_highlight: bool = False
    highlight_style: str = ""
    syntax_definition: str = ""
    include_in_header: str = ""
    include_before_body: str = ""
    include_after_body: str = ""
    resource_path: str = ""
    request_header: dict[str, str] = field(default_factory=dict)
    self_contained: bool = False
    html_q_tags: bool = False
    ascii: bool = False
    reference_links: bool = False
    reference_location: str = ""
    atx_headers: bool = False
    top_level_division: str = ""
    number_sections: bool = False
    number_offset: int = 0
    listings: bool = False
    incremental: bool = False
    slide_level: int = 0
    section_divs: bool = False
    default_image_extension: str = ""
    email_obfuscation: str = ""
    id_prefix: str = ""
    title_prefix: str = ""
    css: str = ""
    reference_doc: str = ""
    epub_subdirectory: str = ""
    epub_cover_image: str = ""
    epub_metadata: str = ""
    epub_embed_font: str = ""
    epub_chapter_level: int = 0
    pdf_engine: str = ""
    pdf_engine_opt: str = ""
    bibliography: str = ""
    csl: str = ""
    citation_abbreviations: str = ""
    natbib: bool = False
    biblatex: bool = False
    mathml: bool = False
    webtex: str = ""
    mathjax: str = ""
    katex: str = ""
    latexmathml: str = ""
    mimetex: str = ""
    jsmath: str = ""
    gladtex: bool = False
    abbreviations: str = ""
    fail_if_warnings: bool = False

    verbose: bool = field(default=False, repr=False)
    trace: bool = field(default=False, repr=False)
    dump_args: bool = field(default=False, repr=False)
    ignore_args: bool = field(default=False, repr=False)

    def to_command_args(
        self, safe_dir: str, enable_filter: bool, enable_lua_filter: bool
    ) -> tuple[list[str], list[Cleanup]]:
        """Build pandoc arguments and the cleanups for any temporary files made.

        File references are resolved to local files along the way; if one fails,
        files already created are removed and the error is raised.
        """
        args: list[str] = []
        cleanups: list[Cleanup] = []
        try:
            args.extend(option for name, option in _SWITCHES if getattr(self, name))

            for key, value in self.variable.items():
                args += ["--variable", f"{key}={value}"]
            for key, values in self.metadata.items():
                for value in values:
                    args += ["--metadata", f"{key}={value}"]

            if self.metadata_file:
                self._add_file(args, cleanups, "--metadata-file", self.metadata_file, safe_dir)

            for key, value in self.request_header.items():
                args += ["--request-header", f"{key}={value}"]

            for kind, name, option in _VALUED:
                value = getattr(self, name)
                if kind == "pdf_engine":
                    args += [option, value or DEFAULT_PDF_ENGINE]
                elif not value:
                    continue
                elif kind == "value":
                    args += [option, str(value)]
                elif kind == "to":
                    if value.upper() != "PDF":
                        args += [option, value]
                elif kind == "filter":
                    if enable_filter:
                        args += [option, value]
                elif kind == "lua_filter":
                    if enable_lua_filter:
                        args += [option, value]
                elif kind == "safe_file":
                    self._add_file(args, cleanups, option, value, safe_dir)
                else:
                    self._add_file(args, cleanups, option, value, "")

            args.extend(option for name, option in _SERVICE_SWITCHES if getattr(self, name))
        except BaseException:
            for cleanup in cleanups:
                cleanup()
            raise
        return args, cleanups

    @staticmethod
    def _add_file(
        args: list[str], cleanups: list[Cleanup], option: str, url: str, safe_dir: str
    ) -> None:
        file_arguments, cleanup = file_args(option, url, safe_dir)
        if file_arguments[1]:
            args.extend(file_arguments)
            cleanups.append(cleanup)


def file_args(key: str, url: str, safe_dir: str) -> tuple[list[str], Cleanup]:
    """Resolve ``url`` to a local file and return ``[key, path]`` with its cleanup."""
    remote = RemoteFile(url=url, safe_dir=safe_dir, temp_dir_prefix=TEMP_DIR_PREFIX)
    path = remote.path()
    return [key, path], remote.cleanup


_JSON_NAMES: dict[str, str] = {"from": "from_"}


def _field_kinds() -> dict[str, str]:
    kinds: dict[str, str] = {}
    defaults = ConvertOptions()
    for item in fields(ConvertOptions):
        if item.name in _INTERNAL:
            continue
        default = getattr(defaults, item.name)
        if isinstance(default, bool):
            kinds[item.name] = "bool"
        elif isinstance(default, int):
            kinds[item.name] = "int"
        elif isinstance(default, str):
            kinds[item.name] = "str"
        elif item.name == "metadata":
            kinds[item.name] = "list_map"
        else:
            kinds[item.name] = "str_map"
    return kinds


_FIELD_KINDS = _field_kinds()


def _convert(name: str, kind: str, value: Any) -> Any:
    def fail() -> ValueError:
        return ValueError(f"invalid value for converter option {name!r}: {value!r}")

    if kind == "bool":
        if not isinstance(value, bool):
            raise fail()
        return value
    if kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise fail()
        return value
    if kind == "str":
        if not isinstance(value, str):
            raise fail()
        return value
    if not isinstance(value, Mapping):
        raise fail()
    if kind == "str_map":
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in value.items()):
            raise fail()
        return dict(value)
    result: dict[str, list[str]] = {}
    for key, items in value.items():
        if items is None:
            result[key] = []
            continue
        if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
            raise fail()
        result[key] = list(items)
    return result


def convert_options_from_dict(data: Mapping[str, Any]) -> ConvertOptions:
    """Build options from decoded JSON; unknown keys are ignored, nulls keep defaults."""
    if not isinstance(data, Mapping):
        raise ValueError("converter options must be a JSON object")
    values: dict[str, Any] = {}
    for key, value in data.items():
        name = _JSON_NAMES.get(key, key)
        kind = _FIELD_KINDS.get(name)
        if kind is None or name == "from_" and key != "from" or value is None:
            continue
        values[name] = _convert(key, kind, value)
    return ConvertOptions(**values)


__all__ = [
    "ConvertOptions",
    "FileError",
    "convert_options_from_dict",
    "file_args",
]