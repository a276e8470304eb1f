"""Small HTTP client for REST calls built on the standard library.

Transport failures never raise: they are reported in the returned
``Response`` with a non-zero ``transport_code``, as the HTTP status code
is then meaningless.
"""

from __future__ import annotations

import enum
import functools
import gzip
import http.client
import socket
import ssl
import urllib.error
import urllib.request
import zlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from edhighway.strutils import to_lower, trim

__all__ = [
    "Response",
    "RestClient",
    "urlencode",
    "encode_post_parameters",
    "parse_header_line",
]

DEFAULT_USER_AGENT = "ed_highway"
_FAILED_BODY = b"REQUEST FAILED, code is transport-fail-code."
_UNRESERVED = frozenset(
    b"0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ-_.!~*'()"
)
_MAX_CONNECT_TIMEOUT = 20
_KEEPALIVE_IDLE = 120
_KEEPALIVE_INTERVAL = 60


class _TransportCode(enum.IntEnum):
    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    OPERATION_TIMEDOUT = 28
    SSL_CONNECT_ERROR = 35
    GOT_NOTHING = 52
    RECV_ERROR = 56
    BAD_CONTENT_ENCODING = 61


@dataclass
class Response:
    """Outcome of one request.

    ``code`` is the HTTP status on success, otherwise the transport code.
    """

    code: int = 0
    transport_code: int = 0
    method: str = ""
    body: bytes = b""
    error: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """The body decoded as UTF-8."""
        return self.body.decode("utf-8", errors="replace")


def urlencode(text: str) -> str:
    """Percent-encode ``text`` for form data; spaces become ``+``."""
    parts: list[str] = []
    for byte in text.encode("utf-8"):
        if byte in _UNRESERVED:
            parts.append(chr(byte))
        elif byte == 0x20:
            parts.append("+")
        else:
            parts.append(f"%{byte:02x}")
    return "".join(parts)


def encode_post_parameters(params: Mapping[str, str]) -> str:
    """Encode parameters as ``k=v`` pairs joined by ``&``, ordered by key."""
    return "&".join(f"{urlencode(k)}={urlencode(v)}" for k, v in sorted(params.items()))


def parse_header_line(headers: dict[str, str], line: str) -> None:
    """Add one raw header line to ``headers``.

    Lines without a colon are stored with the value ``"present"``; blank
    lines are ignored; repeated Set-Cookie headers are joined with ``"; "``.
    """
    sep = line.find(":")
    if sep < 0:
        name = trim(line)
        if name:
            headers[name] = "present"
        return
    key = trim(line[:sep])
    value = trim(line[sep + 1 :])
    if to_lower(key) == "set-cookie" and key in headers:
        headers[key] += "; " + value
    else:
        headers[key] = value


@dataclass(frozen=True)
class _ConnectionSettings:
    connect_timeout: float
    source_host: str | None
    keepalive: bool


class _ConnectionMixin:
    def __init__(self, *args: Any, settings: _ConnectionSettings, **kwargs: Any) -> None:
        self._settings = settings
        if settings.source_host:
            kwargs.setdefault("source_address", (settings.source_host, 0))
        super().__init__(*args, **kwargs)

    def connect(self) -> None:
        read_timeout = self.timeout
        self.timeout = self._settings.connect_timeout
        try:
            super().connect()
        finally:
            self.timeout = read_timeout
        self.sock.settimeout(read_timeout)
        if self._settings.keepalive:
            self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            if hasattr(socket, "TCP_KEEPIDLE"):
                self.sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, _KEEPALIVE_IDLE)
            if hasattr(socket, "TCP_KEEPINTVL"):
                self.sock.setsockopt(
                    socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, _KEEPALIVE_INTERVAL
                )


class _HTTPConnection(_ConnectionMixin, http.client.HTTPConnection):
    pass


class _HTTPSConnection(_ConnectionMixin, http.client.HTTPSConnection):
    pass


class _HTTPHandler(urllib.request.HTTPHandler):
    def __init__(self, settings: _ConnectionSettings) -> None:
        super().__init__()
        self._settings = settings

    def http_open(self, req: urllib.request.Request) -> http.client.HTTPResponse:
        return self.do_open(functools.partial(_HTTPConnection, settings=self._settings), req)


class _HTTPSHandler(urllib.request.HTTPSHandler):
    def __init__(self, settings: _ConnectionSettings, context: ssl.SSLContext) -> None:
        super().__init__(context=context)
        self._settings = settings
        self._ssl_context = context

    def https_open(self, req: urllib.request.Request) -> http.client.HTTPResponse:
        return self.do_open(
            functools.partial(_HTTPSConnection, settings=self._settings),
            req,
            context=self._ssl_context,
        )


class _NoRedirectHandler(urllib.request.HTTPRedirectHandler):
    def redirect_request(self, *args: Any, **kwargs: Any) -> None:
        return None


def _unverified_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _transport_code(exc: BaseException) -> _TransportCode:
    if isinstance(exc, urllib.error.URLError):
        reason = exc.reason
        if isinstance(reason, BaseException):
            exc = reason
        elif "unknown url type" in str(reason):
            return _TransportCode.UNSUPPORTED_PROTOCOL
        else:
            return _TransportCode.COULDNT_CONNECT
    if isinstance(exc, TimeoutError):
        return _TransportCode.OPERATION_TIMEDOUT
    if isinstance(exc, socket.gaierror):
        return _TransportCode.COULDNT_RESOLVE_HOST
    if isinstance(exc, ssl.SSLError):
        return _TransportCode.SSL_CONNECT_ERROR
    if isinstance(exc, http.client.RemoteDisconnected):
        return _TransportCode.GOT_NOTHING
    if isinstance(exc, (ConnectionResetError, http.client.HTTPException)):
        return _TransportCode.RECV_ERROR
    if isinstance(exc, ValueError):
        return _TransportCode.URL_MALFORMAT
    return _TransportCode.COULDNT_CONNECT


def _decode_body(body: bytes, encoding: str) -> bytes:
    enc = encoding.strip().lower()
    if enc in ("gzip", "x-gzip"):
        return gzip.decompress(body)
    if enc == "deflate":
        try:
            return zlib.decompress(body)
        except zlib.error:
            return zlib.decompress(body, -zlib.MAX_WBITS)
    return body


class RestClient:
    """HTTP client with a fixed user agent and optional local bind address.

    ``interface`` is the local address outgoing connections are bound to;
    an empty string lets the system choose. Certificates are not verified.
    Timeouts are in seconds, 0 meaning no limit; connecting is limited to
    ``min(20, timeout + 1)`` seconds.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, interface: str = "") -> None:
        self.user_agent = user_agent
        self.interface = interface
        self.auth = ""

    def set_auth(self, user: str, password: str) -> None:
        """Remember ``user:password`` credentials."""
        self.auth = f"{user}:{password}"

    def clear_auth(self) -> None:
        """Forget stored credentials."""
        self.auth = ""

    def set_interface(self, value: str) -> None:
        """Set the local address to bind to; empty for the default."""
        self.interface = value

    def request(
        self,
        method: str,
        url: str,
        data: str | bytes | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: int = 0,
        follow_redirects: bool = False,
    ) -> Response:
        """Send one request and return its ``Response``."""
        return self._perform(method, url, data, headers, timeout, follow_redirects, False)

    def get(self, url: str, headers: Mapping[str, str] | None = None, timeout: int = 0) -> Response:
        """GET ``url``, following redirects."""
        return self.request("GET", url, None, headers, timeout, True)

    def post(
        self, url: str, data: str | bytes, headers: Mapping[str, str] | None = None, timeout: int = 0
    ) -> Response:
        """POST ``data`` to ``url``."""
        return self.request("POST", url, data, headers, timeout, False)

    def patch(
        self, url: str, data: str | bytes, headers: Mapping[str, str] | None = None, timeout: int = 0
    ) -> Response:
        """PATCH ``url`` with ``data``."""
        return self.request("PATCH", url, data, headers, timeout, False)

    def put(
        self, url: str, data: str | bytes, headers: Mapping[str, str] | None = None, timeout: int = 0
    ) -> Response:
        """PUT ``data`` to ``url``."""
        return self.request("PUT", url, data, headers, timeout, False)

    def delete_with_body(
        self, url: str, data: str | bytes, headers: Mapping[str, str] | None = None, timeout: int = 0
    ) -> Response:
        """DELETE ``url`` sending ``data`` as the request body."""
        return self.request("DELETE", url, data, headers, timeout, False)

    def delete(
        self, url: str, headers: Mapping[str, str] | None = None, timeout: int = 0
    ) -> Response:
        """DELETE ``url`` without a body."""
        return self.custom_method("DELETE", url, headers, timeout)

    def options(
        self, url: str, headers: Mapping[str, str] | None = None, timeout: int = 0
    ) -> Response:
        """Send an OPTIONS request."""
        return self.custom_method("OPTIONS", url, headers, timeout)

    def custom_method(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        timeout: int = 0,
        keepalive: bool = False,
    ) -> Response:
        """Send a body-less request with any method, optionally with TCP keep-alive."""
        return self._perform(method, url, None, headers, timeout, False, keepalive)

    def _opener(
        self, timeout: int, follow_redirects: bool, keepalive: bool
    ) -> urllib.request.OpenerDirector:
        settings = _ConnectionSettings(
            connect_timeout=min(_MAX_CONNECT_TIMEOUT, timeout + 1),
            source_host=self.interface or None,
            keepalive=keepalive,
        )
        redirect = (
            urllib.request.HTTPRedirectHandler() if follow_redirects else _NoRedirectHandler()
        )
        return urllib.request.build_opener(
            _HTTPHandler(settings), _HTTPSHandler(settings, _unverified_context()), redirect
        )

    @staticmethod
    def _failure(method: str, code: int, exc: BaseException) -> Response:
        return Response(
            code=int(code),
            transport_code=int(code),
            method=method,
            body=_FAILED_BODY,
            error=str(exc) or type(exc).__name__,
        )

    def _perform(
        self,
        method: str,
        url: str,
        data: str | bytes | None,
        headers: Mapping[str, str] | None,
        timeout: int,
        follow_redirects: bool,
        keepalive: bool,
    ) -> Response:
        body = data.encode("utf-8") if isinstance(data, str) else data
        try:
            req = urllib.request.Request(url, data=body, method=method)
        except ValueError as exc:
            return self._failure(method, _TransportCode.URL_MALFORMAT, exc)

        req.add_header("User-Agent", self.user_agent)
        extra = dict(sorted((headers or {}).items()))
        if not any(k.lower() == "accept-encoding" for k in extra):
            req.add_header("Accept-Encoding", "gzip, deflate")
        for key, value in extra.items():
            req.add_header(key, value)

        opener = self._opener(timeout, follow_redirects, keepalive)
        try:
            try:
                with opener.open(req, timeout=timeout or None) as resp:
                    status, reason = resp.status, resp.reason
                    version = getattr(resp, "version", 11)
                    message = resp.headers
                    raw = resp.read()
            except urllib.error.HTTPError as err:
                try:
                    status, reason = err.code, err.reason
                    version = getattr(err.fp, "version", 11)
                    message = err.headers
                    raw = err.read() if err.fp is not None else b""
                finally:
                    err.close()
        except (OSError, http.client.HTTPException, ValueError) as exc:
            return self._failure(method, _transport_code(exc), exc)

        received: dict[str, str] = {}
        parse_header_line(received, f"HTTP/{version // 10}.{version % 10} {status} {reason}\r\n")
        for key, value in message.items():
            parse_header_line(received, f"{key}: {value}\r\n")

        try:
            raw = _decode_body(raw, message.get("Content-Encoding", ""))
        except (OSError, EOFError, zlib.error) as exc:
            return self._failure(method, _TransportCode.BAD_CONTENT_ENCODING, exc)

        return Response(
            code=int(status),
            transport_code=int(_TransportCode.OK),
            method=method,
            body=raw,
            error="",
            headers=received,
        )