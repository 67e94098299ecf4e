import os
import tempfile

import pytest

from pandocd.file import FileError
from pandocd.options import (
    DEFAULT_PDF_ENGINE,
    TEMP_DIR_PREFIX,
    ConvertOptions,
    convert_options_from_dict,
    file_args,
)

DATA_URL = "data:text/plain;base64,aGVsbG8="


def _temp_listing():
    directory = os.path.join(tempfile.gettempdir(), TEMP_DIR_PREFIX)
    os.makedirs(directory, exist_ok=True)
    return set(os.listdir(directory))


def test_empty_options_only_name_pdf_engine():
    args, cleanups = ConvertOptions().to_command_args("/", False, False)
    assert args == ["--pdf-engine", "xelatex"]
    assert cleanups == []
    assert DEFAULT_PDF_ENGINE == "xelatex"


def test_switches_keep_source_order():
    opts = ConvertOptions(toc=True, standalone=True, fail_if_warnings=True)
    args, _ = opts.to_command_args("/", False, False)
    assert args[:3] == ["--standalone", "--toc", "--fail-if-warnings"]


def test_value_options_and_numbers():
    opts = ConvertOptions(from_="markdown", to="html", toc_depth=2, pdf_engine="lualatex")
    args, _ = opts.to_command_args("/", False, False)
    assert args[args.index("--from") + 1] == "markdown"
    assert args[args.index("--to") + 1] == "html"
    assert args[args.index("--toc-depth") + 1] == "2"
    assert args[args.index("--pdf-engine") + 1] == "lualatex"
    assert args.index("--from") < args.index("--to") < args.index("--toc-depth")


@pytest.mark.parametrize("target", ["pdf", "PDF", "Pdf"])
def test_pdf_target_is_not_passed(target):
    args, _ = ConvertOptions(to=target).to_command_args("/", False, False)
    assert "--to" not in args


def test_filters_need_enabling():
    opts = ConvertOptions(filter="pandoc-citeproc", lua_filter="x.lua")
    disabled, _ = opts.to_command_args("/", False, False)
    assert "--filter" not in disabled and "--lua-filter" not in disabled
    enabled, _ = opts.to_command_args("/", True, True)
    assert enabled[enabled.index("--filter") + 1] == "pandoc-citeproc"
    assert enabled[enabled.index("--lua-filter") + 1] == "x.lua"


def test_variables_metadata_and_headers():
    opts = ConvertOptions(
        variable={"lang": "en"},
        metadata={"author": ["a", "b"]},
        request_header={"User-Agent": "agent"},
    )
    args, _ = opts.to_command_args("/", False, False)
    assert args[:8] == [
        "--variable", "lang=en",
        "--metadata", "author=a",
        "--metadata", "author=b",
        "--request-header", "User-Agent=agent",
    ]


def test_service_switches_come_last():
    opts = ConvertOptions(verbose=True, trace=True, dump_args=True, ignore_args=True)
    args, _ = opts.to_command_args("/", False, False)
    assert args[-4:] == ["--verbose", "--dump-args", "--ignore-args", "--trace"]


def test_template_in_safe_dir(tmp_path):
    template = tmp_path / "t.tpl"
    template.write_text("$body$")
    opts = ConvertOptions(template=str(template))
    args, cleanups = opts.to_command_args(str(tmp_path), False, False)
    assert args[args.index("--template") + 1] == str(template)
    for cleanup in cleanups:
        cleanup()
    assert template.exists()


def test_template_outside_safe_dir_rejected(tmp_path):
    template = tmp_path / "t.tpl"
    template.write_text("$body$")
    opts = ConvertOptions(template=str(template))
    with pytest.raises(FileError, match="safe dir"):
        opts.to_command_args(str(tmp_path / "sub"), False, False)


def test_reference_doc_not_limited_to_safe_dir(tmp_path):
    doc = tmp_path / "ref.docx"
    doc.write_bytes(b"x")
    opts = ConvertOptions(reference_doc=str(doc))
    args, _ = opts.to_command_args(str(tmp_path / "elsewhere"), False, False)
    assert args[args.index("--reference-doc") + 1] == str(doc)


def test_data_url_file_is_written_and_cleaned():
    opts = ConvertOptions(metadata_file=DATA_URL)
    args, cleanups = opts.to_command_args("/", False, False)
    path = args[args.index("--metadata-file") + 1]
    with open(path, "rb") as handle:
        assert handle.read() == b"hello"
    assert len(cleanups) == 1
    cleanups[0]()
    assert not os.path.exists(path)


def test_failure_removes_files_already_made(tmp_path):
    before = _temp_listing()
    opts = ConvertOptions(metadata_file=DATA_URL, template=str(tmp_path / "t.tpl"))
    with pytest.raises(FileError):
        opts.to_command_args(str(tmp_path / "sub"), False, False)
    assert _temp_listing() == before


def test_file_args_local_path(tmp_path):
    target = tmp_path / "a.csl"
    target.write_text("x")
    args, cleanup = file_args("--csl", str(target), str(tmp_path))
    assert args == ["--csl", str(target)]
    cleanup()
    assert target.exists()


def test_file_args_unknown_scheme():
    with pytest.raises(FileError, match="unknown path schema"):
        file_args("--csl", "ftp://example.com/a.csl", "")


def test_from_dict_reads_json_names():
    opts = convert_options_from_dict(
        {
            "from": "markdown",
            "to": "docx",
            "toc": True,
            "toc_depth": 3,
            "metadata": {"title": ["T"]},
            "variable": {"k": "v"},
            "unknown": 1,
            "verbose": True,
            "pdf_engine": None,
        }
    )
    assert opts.from_ == "markdown"
    assert opts.to == "docx"
    assert opts.toc is True
    assert opts.toc_depth == 3
    assert opts.metadata == {"title": ["T"]}
    assert opts.variable == {"k": "v"}
    assert opts.verbose is False
    assert opts.pdf_engine == ""


def test_from_dict_empty_equals_defaults():
    assert convert_options_from_dict({}) == ConvertOptions()


@pytest.mark.parametrize(
    "data",
    [
        {"toc": "yes"},
        {"toc_depth": "3"},
        {"toc_depth": True},
        {"to": 5},
        {"variable": {"k": 1}},
        {"metadata": {"k": "v"}},
        {"request_header": ["a"]},
    ],
)
def test_from_dict_rejects_wrong_types(data):
    with pytest.raises(ValueError):
        convert_options_from_dict(data)


def test_from_dict_requires_mapping():
    with pytest.raises(ValueError):
        convert_options_from_dict(["to", "html"])