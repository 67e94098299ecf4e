# pandocd

`pandocd` is a small HTTP service that converts documents with the `pandoc`
program. A client posts a JSON request saying where the input comes from (a
*fetcher*) and how to convert it (the *converter* options). The service
fetches the input, writes it to a temporary file, runs `pandoc` with the
matching command-line flags and returns the output.

The `pandoc` executable must be installed and on `PATH`. A `--pdf-engine`
flag is always passed; it is `xelatex` unless the request names another
engine.

## Installation

```
pip install .
```

## Running the service

```
pandocd run --config app.conf
```

`--config` (short `-c`) names the configuration file and defaults to
`app.conf`; `do` is an alias for `run`. `pandocd run cwd` prints the working
directory and exits without starting anything, which helps to see where
relative paths and the default safe directory point. `pandocd --version`
prints the version string.

The service runs until interrupted (Ctrl-C). It then waits up to the
graceful timeout for requests in flight before stopping each listener.

## Configuration

A file whose name ends in `.json` is read as JSON; any other file, including
the default `app.conf`, is read as TOML. Keys may be nested tables or dotted
names. Durations are strings such as `"300s"`, `"1m30s"` or `"500ms"`
(units `ns`, `us`, `ms`, `s`, `m`, `h`, `d`); a bare number is taken as
milliseconds. Booleans accept `true`/`false`, `yes`/`no`, `on`/`off`, `1`/`0`.

```toml
[pandoc]
timeout = "300s"
safe-dir = "/srv/documents"
enable-filter = false

[pandoc.fetchers.data]
driver = "data"

[pandoc.fetchers.web]
driver = "http"

[service]
path = "/"
gzip-enabled = true
http.address = ":8080"
graceful.timeout = "3s"
cors.allowed-origins = ["*"]

[service.templates.plain]
template = "templates/plain.j2"
```

### `pandoc` section

- `timeout` – how long one `pandoc` run may take (default 300 seconds). A
  run that takes longer is killed together with its process group and the
  request fails with `execute timeout`.
- `fetchers` – named input sources, each with a `driver` (`data` or `http`)
  and optional `options`. The names `default` and the empty name are
  rejected, as is an unknown driver.
- `verbose`, `trace`, `dump-args`, `ignore-args` – add the `pandoc` flags of
  the same name to every run.
- `enable-filter`, `enable-lua-filter` – let requests use `--filter` and
  `--lua-filter`. Both are off by default; when off, those request options
  are ignored.
- `safe-dir` – the directory that `data_dir`, `metadata_file`, `template`,
  `syntax_definition`, `include_in_header`, `include_before_body` and
  `include_after_body` must lie under when they are local paths. It
  defaults to the working directory.

The settings after `fetchers` are only read when at least one fetcher is
configured; with no fetchers every conversion fails anyway, because the
request's fetcher cannot be found.

### `service` section

- `path` – URL prefix of the endpoints (default `/`).
- `http.enabled`, `http.address` – the plain HTTP listener (on, `:8080`).
- `https.enabled`, `https.cert`, `https.key` – a TLS listener (off). Its
  address is also read from `http.address`, falling back to `:443` when
  that key is absent.
- `gzip-enabled` – gzip responses for clients that accept it (on).
- `graceful.timeout` – how long shutdown waits for running requests
  (3 seconds).
- `cors.allowed-origins`, `cors.allowed-methods`, `cors.allowed-headers`,
  `cors.exposed-headers`, `cors.allow-credentials`, `cors.max-age`,
  `cors.options-passthrough`, `cors.debug` – cross-origin handling. Empty
  lists allow any origin, the methods `GET`, `POST` and `HEAD`, and the
  headers `Accept`, `Content-Type`, `X-Requested-With` and `Origin`.
- `templates` – named response templates; each entry's `template` key is
  the path of a Jinja template file, loaded at start-up.

## Endpoints

`GET` or `HEAD` on `<path>/ping` answers `pong`.

`POST <path>/convert` takes a JSON body:

```json
{
  "fetcher": {
    "name": "data",
    "params": {"data": "IyBIZWxsbw=="}
  },
  "converter": {
    "from": "markdown",
    "to": "html",
    "standalone": true,
    "toc": true
  },
  "template": ""
}
```

Other methods on these paths get `405`; other paths get `404`.

### Fetchers

`fetcher.name` is the name of a fetcher from the configuration, and
`fetcher.params` is a JSON object (or a string holding one):

- `data` driver – `data` holds the document, base64-encoded. It must not be
  empty.
- `http` driver – `url` (required), `method` (`GET` or `POST`, default
  `GET`), `headers` (a string map), `data` (a base64 request body) and
  `replace` (a map of substrings to substitute in the downloaded body).
  Any status other than 200 is an error.

### Converter options

`converter` holds pandoc options named after pandoc's own flags with
underscores: `from`, `to`, `standalone`, `toc`, `toc_depth`,
`number_sections`, `highlight_style`, `pdf_engine`, `variable` (a string
map), `metadata` (a map of string lists), `request_header`, and so on.
Unknown keys are ignored; a value of the wrong type is an error. The input
file is named with the `from` value as its extension and the output with
the `to` value; `--to` is left out when `to` is `pdf`, so pandoc picks the
format from the output file name.

Options that name files – `metadata_file`, `template`, `syntax_definition`,
the three `include_*` options, `reference_doc`, `epub_cover_image`,
`epub_metadata`, `epub_embed_font`, `bibliography`, `csl`,
`citation_abbreviations` and `abbreviations` – accept a local path,
an `http(s)://` URL or a `data:content-type;encoding,base64` URL. Downloaded
and decoded files are written to a temporary directory and removed after
the run. Only the options listed under `safe-dir` above are restricted to
the safe directory.

### Responses

The default response body is

```json
{"code":0,"message":"","result":{"data":"<base64 output>"}}
```

On failure `code` is 400, `message` holds the error and there is no
`result`. The HTTP status is 200 either way unless a template changes it.

Setting `template` to the name of a configured template renders the
response with it instead; an unknown name falls back to the default.
Templates see `From`, `To`, `Code`, `Message`, `Result` and `Response`, and
may use `base64Encode`, `base64Decode`, `jsonify`, `md5`, `toBytes`,
`htmlEscape` and `htmlUnescape` as filters or functions. Through `Response`
a template can call `set_header(key, value)`, `write_header(code)` to set
the status, `write(data)` to write body bytes ahead of the rendered text,
and `hold(true)` to leave the rendered text out.

## Using it from Python

```python
from pandocd.config import load_config
from pandocd.options import convert_options_from_dict
from pandocd.pandoc import create_pandoc, fetcher_options_from_dict

conf = load_config("app.conf")
pandoc = create_pandoc(conf.get_config("pandoc"))
html = pandoc.convert(
    fetcher_options_from_dict({"name": "data", "params": {"data": "IyBIZWxsbw=="}}),
    convert_options_from_dict({"from": "markdown", "to": "html"}),
)
```

`pandocd.server.create_server` builds the whole service from a
configuration, and its `run()` method serves until interrupted.
`pandocd.server.ConvertApp` is a plain WSGI application and can be mounted
in any WSGI server. New input sources can be added with
`pandocd.fetchers.register_fetcher(name, factory)`, where the factory takes
the fetcher's `options` section and returns a `Fetcher`.

Errors are raised as `ConversionError` (`pandocd.pandoc`), `FetchError`
(`pandocd.fetchers`), `FileError` (`pandocd.file`) and `CommandError`
(`pandocd.command`); the HTTP endpoint turns them into 400 responses.

## Tests

```
pip install .[test]
pytest
```