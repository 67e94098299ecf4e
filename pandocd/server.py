"""HTTP front end: accepts conversion requests and renders templated responses."""

from __future__ import annotations

import gzip
import json
import logging
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import jinja2
from werkzeug.datastructures import Headers
from werkzeug.serving import make_server
from werkzeug.wrappers import Request, Response

from .config import Configuration
from .options import convert_options_from_dict
from .pandoc import Pandoc, create_pandoc, fetcher_options_from_dict
from .templates import make_environment, to_bytes

log = logging.getLogger(__name__)

DEFAULT_TEMPLATE = (
    '{"code":{{ Code }},"message":"{{ Message }}"'
    '{% if Result %},"result":{{ Result|jsonify }}{% endif %}}'
)

_TRUE_WORDS = {"1", "t", "true"}
_FALSE_WORDS = {"0", "f", "false"}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    word = to_bytes(value).decode("utf-8", errors="replace").strip().lower()
    if word in _TRUE_WORDS:
        return True
    return False


class ResponseHelper:
    """Lets a template set headers, status and body of its own response."""

    def __init__(self) -> None:
        self.status = 200
        self.headers = Headers()
        self.body = bytearray()
        self.holding = False

    def set_header(self, key: Any, value: Any) -> str:
        self.headers.set(to_bytes(key).decode(), to_bytes(value).decode())
        return ""

    def hold(self, value: Any) -> str:
        """When held, the rendered template text is not sent."""
        self.holding = _to_bool(value)
        return ""

    def write(self, data: Any) -> str:
        self.body += to_bytes(data)
        return ""

    def write_header(self, code: Any) -> str:
        if isinstance(code, bool):
            raise ValueError(f"unable to cast {code!r} to int")
        try:
            self.status = int(code)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"unable to cast {code!r} to int") from exc
        return ""


@dataclass
class CorsOptions:
    """Cross-origin settings; empty lists mean the permissive defaults."""

    allowed_origins: list[str] = field(default_factory=list)
    allowed_methods: list[str] = field(default_factory=list)
    allowed_headers: list[str] = field(default_factory=list)
    exposed_headers: list[str] = field(default_factory=list)
    allow_credentials: bool = False
    max_age: int = 0
    options_passthrough: bool = False
    debug: bool = False

    def _origin_allowed(self, origin: str) -> bool:
        origins = self.allowed_origins or ["*"]
        return "*" in origins or origin.lower() in (o.lower() for o in origins)

    def _all_origins(self) -> bool:
        return not self.allowed_origins or "*" in self.allowed_origins

    def _methods(self) -> list[str]:
        return [m.upper() for m in (self.allowed_methods or ["GET", "POST", "HEAD"])]

    def _headers(self) -> list[str]:
        return [h.lower() for h in (self.allowed_headers or
                                    ["Accept", "Content-Type", "X-Requested-With", "Origin"])]

    def _set_origin(self, headers: Headers, origin: str) -> None:
        headers.set("Access-Control-Allow-Origin", "*" if self._all_origins() else origin)
        if self.allow_credentials:
            headers.set("Access-Control-Allow-Credentials", "true")

    def preflight(self, request: Request) -> Headers:
        headers = Headers()
        headers.add("Vary", "Origin")
        headers.add("Vary", "Access-Control-Request-Method")
        headers.add("Vary", "Access-Control-Request-Headers")
        origin = request.headers.get("Origin", "")
        method = request.headers.get("Access-Control-Request-Method", "").upper()
        if not origin or not self._origin_allowed(origin) or method not in self._methods():
            return headers
        requested = [
            h.strip() for h in request.headers.get("Access-Control-Request-Headers", "").split(",")
            if h.strip()
        ]
        allowed = self._headers()
        if "*" not in allowed and any(h.lower() not in allowed for h in requested):
            return headers
        self._set_origin(headers, origin)
        headers.set("Access-Control-Allow-Methods", method)
        if requested:
            headers.set("Access-Control-Allow-Headers", ", ".join(requested))
        if self.max_age > 0:
            headers.set("Access-Control-Max-Age", str(self.max_age))
        return headers

    def actual(self, request: Request, headers: Headers) -> None:
        headers.add("Vary", "Origin")
        origin = request.headers.get("Origin", "")
        if not origin or not self._origin_allowed(origin):
            return
        if request.method.upper() not in self._methods() and request.method.upper() != "OPTIONS":
            return
        self._set_origin(headers, origin)
        if self.exposed_headers:
            headers.set("Access-Control-Expose-Headers", ", ".join(self.exposed_headers))


def load_templates(conf: Configuration | None) -> dict[str, jinja2.Template]:
    """Load each named template from the file given by its ``template`` key."""
    templates: dict[str, jinja2.Template] = {}
    if conf is None:
        return templates
    env = make_environment()
    for name in conf.keys():
        path = conf.get_string(f"{name}.template")
        with open(path, encoding="utf-8") as handle:
            templates[name] = env.from_string(handle.read())
    return templates


class ConvertApp:
    """WSGI application serving ``/convert`` and ``/ping`` under a path prefix."""

    def __init__(
        self,
        pandoc: Pandoc,
        templates: dict[str, jinja2.Template] | None = None,
        path_prefix: str = "/",
        cors: CorsOptions | None = None,
        gzip_enabled: bool = True,
    ) -> None:
        self.pandoc = pandoc
        self.templates = dict(templates or {})
        self.default_template = make_environment().from_string(DEFAULT_TEMPLATE)
        base = path_prefix.rstrip("/")
        self.convert_path = base + "/convert"
        self.ping_path = base + "/ping"
        self.cors = cors or CorsOptions()
        self.gzip_enabled = gzip_enabled
        self._active = 0
        self._lock = threading.Lock()

    @property
    def active(self) -> int:
        """Number of requests being served right now."""
        return self._active

    def __call__(self, environ: dict, start_response: Any) -> Iterable[bytes]:
        with self._lock:
            self._active += 1
        try:
            request = Request(environ)
            started = time.monotonic()
            try:
                response = self._dispatch(request)
            except Exception:
                log.exception("panic while serving %s", request.path)
                response = Response(b"", status=500)
            log.info("%s %s %s %.3fs", request.method, request.path,
                     response.status_code, time.monotonic() - started)
            return response(environ, start_response)
        finally:
            with self._lock:
                self._active -= 1

    def _dispatch(self, request: Request) -> Response:
        method = request.method.upper()
        if method == "OPTIONS" and request.headers.get("Access-Control-Request-Method"):
            headers = self.cors.preflight(request)
            if not self.cors.options_passthrough:
                return Response(b"", status=204, headers=headers)
            response = self._route(request)
            response.headers.extend(headers)
            return response
        response = self._route(request)
        self.cors.actual(request, response.headers)
        return self._compress(request, response)

    def _route(self, request: Request) -> Response:
        method = request.method.upper()
        if request.path == self.convert_path:
            if method != "POST":
                return Response(b"", status=405)
            return self._convert(request)
        if request.path == self.ping_path:
            if method not in ("GET", "HEAD"):
                return Response(b"", status=405)
            return Response(b"pong", headers={"Content-Type": "text/plain; charset=utf-8"})
        return Response(b"404 page not found\n", status=404,
                        headers={"Content-Type": "text/plain; charset=utf-8"})

    def _compress(self, request: Request, response: Response) -> Response:
        if not self.gzip_enabled or "gzip" not in request.headers.get("Accept-Encoding", ""):
            return response
        if response.headers.get("Content-Encoding"):
            return response
        response.set_data(gzip.compress(response.get_data()))
        response.headers.set("Content-Encoding", "gzip")
        response.headers.add("Vary", "Accept-Encoding")
        return response

    def _convert(self, request: Request) -> Response:
        template_name = ""
        converter = None
        try:
            payload = json.loads(request.get_data() or b"")
            if not isinstance(payload, dict):
                raise ValueError("request body must be a JSON object")
            template_name = payload.get("template") or ""
            if not isinstance(template_name, str):
                raise ValueError("template must be a string")
            raw_converter = payload.get("converter")
            raw_fetcher = payload.get("fetcher")
            converter = None if raw_converter is None else convert_options_from_dict(raw_converter)
            fetcher = None if raw_fetcher is None else fetcher_options_from_dict(raw_fetcher)
        except ValueError as exc:
            return self._respond(template_name, converter, 400, str(exc), None)
        if converter is None:
            return self._respond(template_name, None, 400, "converter options is nil", None)
        if fetcher is None:
            return self._respond(template_name, converter, 400, "fetcher options is nil", None)
        try:
            data = self.pandoc.convert(fetcher, converter)
        except Exception as exc:
            return self._respond(template_name, converter, 400, str(exc), None)
        return self._respond(template_name, converter, 0, "", {"data": data})

    def _respond(self, template_name: str, converter: Any, code: int,
                 message: str, result: Any) -> Response:
        template = self.templates.get(template_name, self.default_template)
        helper = ResponseHelper()
        context = {
            "From": converter.from_ if converter is not None else "",
            "To": converter.to if converter is not None else "",
            "Code": code,
            "Message": message,
            "Result": result,
            "Response": helper,
        }
        try:
            rendered = template.render(context).encode()
        except Exception as exc:
            log.error("%s", exc)
            rendered = b""
        body = bytes(helper.body)
        if not helper.holding:
            body += rendered
        headers = helper.headers
        if "Content-Type" not in headers:
            headers.set("Content-Type", "text/plain; charset=utf-8")
        return Response(body, status=helper.status, headers=headers)


@dataclass
class _Listener:
    address: str
    app: ConvertApp
    timeout: float
    tls: bool = False
    cert_file: str = ""
    key_file: str = ""

    @property
    def schema(self) -> str:
        return "HTTPS" if self.tls else "HTTP"

    def make(self) -> Any:
        host, _, port = self.address.rpartition(":")
        ssl_context = (self.cert_file, self.key_file) if self.tls else None
        return make_server(host or "0.0.0.0", int(port), self.app,
                           threaded=True, ssl_context=ssl_context)


class PandocServer:
    """One or more listeners (HTTP and/or HTTPS) sharing one application."""

    def __init__(self, conf: Configuration, app: ConvertApp, listeners: list[_Listener]) -> None:
        self.conf = conf
        self.app = app
        self.listeners = listeners

    def run(self) -> None:
        """Serve until interrupted, then wait for requests in flight."""
        running = []
        for listener in self.listeners:
            server = listener.make()
            log.info("[%s] Listening on %s", listener.schema, listener.address)
            thread = threading.Thread(target=server.serve_forever, daemon=True)
            thread.start()
            running.append((listener, server, thread))
        try:
            for _, _, thread in running:
                while thread.is_alive():
                    thread.join(0.5)
        except KeyboardInterrupt:
            pass
        finally:
            for listener, server, thread in running:
                deadline = time.monotonic() + listener.timeout
                while self.app.active > 0 and time.monotonic() < deadline:
                    time.sleep(0.1)
                server.shutdown()
                thread.join()
                log.info("[%s] Shutdown finished, Address: %s", listener.schema, listener.address)


def create_server(conf: Configuration) -> PandocServer:
    """Build the server from the ``service`` and ``pandoc`` configuration sections."""
    service = conf.get_config("service") or Configuration()
    pandoc = create_pandoc(conf.get_config("pandoc"))
    templates = load_templates(service.get_config("templates"))
    cors = CorsOptions(
        allowed_origins=service.get_string_list("cors.allowed-origins"),
        allowed_methods=service.get_string_list("cors.allowed-methods"),
        allowed_headers=service.get_string_list("cors.allowed-headers"),
        exposed_headers=service.get_string_list("cors.exposed-headers"),
        allow_credentials=service.get_boolean("cors.allow-credentials"),
        max_age=service.get_int("cors.max-age"),
        options_passthrough=service.get_boolean("cors.options-passthrough"),
        debug=service.get_boolean("cors.debug"),
    )
    app = ConvertApp(
        pandoc,
        templates,
        path_prefix=service.get_string("path", "/"),
        cors=cors,
        gzip_enabled=service.get_boolean("gzip-enabled", True),
    )
    timeout = service.get_duration("graceful.timeout", 3.0)
    listeners: list[_Listener] = []
    if service.get_boolean("http.enabled", True):
        listeners.append(_Listener(service.get_string("http.address", ":8080"), app, timeout))
    if service.get_boolean("https.enabled", False):
        listeners.append(_Listener(
            service.get_string("http.address", ":443"), app, timeout, tls=True,
            cert_file=service.get_string("https.cert"),
            key_file=service.get_string("https.key"),
        ))
    return PandocServer(conf, app, listeners)