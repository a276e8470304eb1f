import gzip
import socket
import threading
import time
import urllib.parse
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from edhighway.restclient import (
    Response,
    RestClient,
    encode_post_parameters,
    parse_header_line,
    urlencode,
)


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, *args):
        pass

    def _reply(self, code, body, extra=()):
        try:
            self.send_response(code)
            for key, value in extra:
                self.send_header(key, value)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        except OSError:
            pass

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length)
        path = self.path
        if path == "/missing":
            self._reply(404, b"nope")
        elif path == "/redirect":
            self._reply(302, b"", [("Location", "/echo")])
        elif path == "/gzip":
            self._reply(200, gzip.compress(b"zipped payload"), [("Content-Encoding", "gzip")])
        elif path == "/cookies":
            self._reply(200, b"", [("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")])
        elif path == "/slow":
            time.sleep(2)
            self._reply(200, b"late")
        else:
            self._reply(
                200,
                self.command.encode() + b"|" + body,
                [
                    ("X-Agent", self.headers.get("User-Agent", "")),
                    ("X-Client", self.client_address[0]),
                    ("X-Custom", self.headers.get("X-Custom", "")),
                ],
            )

    do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = do_OPTIONS = do_PURGE = _handle


@pytest.fixture(scope="module")
def base_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


@pytest.fixture
def client():
    return RestClient()


# --- encoding -------------------------------------------------------------


def test_urlencode_keeps_unreserved_characters():
    text = "AZaz09-_.!~*'()"
    assert urlencode(text) == text


def test_urlencode_space_and_slash():
    assert urlencode("a b/c") == "a+b%2fc"


@pytest.mark.parametrize("text", ["hello world", "é ü", "a&b=c", "100%", "x/y?z#w"])
def test_urlencode_round_trip(text):
    encoded = urlencode(text)
    assert urllib.parse.unquote_plus(encoded) == text
    assert " " not in encoded


def test_urlencode_uses_lowercase_hex():
    encoded = urlencode("é")
    assert encoded == encoded.lower()
    assert encoded.startswith("%")


def test_encode_post_parameters_sorted_and_decodable():
    params = {"b": "two words", "a": "x&y", "c": ""}
    encoded = encode_post_parameters(params)
    pairs = urllib.parse.parse_qsl(encoded, keep_blank_values=True)
    assert pairs == sorted(params.items())


def test_encode_post_parameters_empty():
    assert encode_post_parameters({}) == ""


# --- header parsing -------------------------------------------------------


def test_parse_header_line_trims_key_and_value():
    headers = {}
    parse_header_line(headers, "  Content-Type :  text/html \r\n")
    assert headers == {"Content-Type": "text/html"}


def test_parse_header_line_without_colon_is_present():
    headers = {}
    parse_header_line(headers, "HTTP/1.1 200 OK\r\n")
    assert headers == {"HTTP/1.1 200 OK": "present"}


def test_parse_header_line_blank_is_ignored():
    headers = {}
    parse_header_line(headers, "\r\n")
    assert headers == {}


def test_parse_header_line_joins_set_cookie():
    headers = {}
    parse_header_line(headers, "Set-Cookie: a=1\r\n")
    parse_header_line(headers, "Set-Cookie: b=2\r\n")
    assert headers["Set-Cookie"] == "a=1; b=2"


def test_parse_header_line_other_headers_overwrite():
    headers = {}
    parse_header_line(headers, "X-Thing: one")
    parse_header_line(headers, "X-Thing: two")
    assert headers["X-Thing"] == "two"


def test_parse_header_line_cookie_join_needs_same_key():
    headers = {}
    parse_header_line(headers, "set-cookie: a=1")
    parse_header_line(headers, "Set-Cookie: b=2")
    assert headers == {"set-cookie": "a=1", "Set-Cookie": "b=2"}


def test_parse_header_line_value_with_colon():
    headers = {}
    parse_header_line(headers, "Location: http://localhost:8080/x")
    assert headers["Location"] == "http://localhost:8080/x"


# --- client state ---------------------------------------------------------


def test_auth_set_and_clear(client):
    password = "password"
    client.set_auth("user", password)
    assert client.auth == "user:" + password
    client.clear_auth()
    assert client.auth == ""


def test_response_text_property():
    response = Response(code=200, body="héllo".encode())
    assert response.text == "héllo"


# --- requests against a local server -------------------------------------


def test_get(client, base_url):
    response = client.get(base_url + "/echo")
    assert response.code == 200
    assert response.transport_code == 0
    assert response.method == "GET"
    assert response.body == b"GET|"
    assert response.error == ""
    assert response.headers["X-Agent"] == "ed_highway"
    assert any(k.startswith("HTTP/") and v == "present" for k, v in response.headers.items())


def test_custom_user_agent(base_url):
    response = RestClient(user_agent="tester").get(base_url + "/echo")
    assert response.headers["X-Agent"] == "tester"


def test_extra_headers_are_sent(client, base_url):
    response = client.get(base_url + "/echo", {"X-Custom": "value"})
    assert response.headers["X-Custom"] == "value"


@pytest.mark.parametrize(
    "name, method",
    [
        ("post", "POST"),
        ("put", "PUT"),
        ("patch", "PATCH"),
        ("delete_with_body", "DELETE"),
    ],
)
def test_methods_with_body(client, base_url, name, method):
    send = getattr(client, name)
    response = send(base_url + "/echo", "payload")
    assert response.code == 200
    assert response.method == method
    assert response.body == method.encode() + b"|payload"


def test_delete_without_body(client, base_url):
    response = client.delete(base_url + "/echo")
    assert response.code == 200
    assert response.method == "DELETE"
    assert response.body == b"DELETE|"


def test_options_without_body(client, base_url):
    response = client.options(base_url + "/echo")
    assert response.code == 200
    assert response.method == "OPTIONS"
    assert response.body == b"OPTIONS|"


def test_custom_method_without_body(client, base_url):
    response = client.custom_method("PURGE", base_url + "/echo", None, 0, True)
    assert response.code == 200
    assert response.method == "PURGE"
    assert response.body == b"PURGE|"


def test_http_error_is_a_response(client, base_url):
    response = client.get(base_url + "/missing")
    assert response.code == 404
    assert response.transport_code == 0
    assert response.body == b"nope"


def test_get_follows_redirect(client, base_url):
    response = client.get(base_url + "/redirect")
    assert response.code == 200
    assert response.body == b"GET|"


def test_post_does_not_follow_redirect(client, base_url):
    response = client.post(base_url + "/redirect", "data")
    assert response.code == 302
    assert response.headers["Location"] == "/echo"


def test_gzip_body_is_decoded(client, base_url):
    response = client.get(base_url + "/gzip")
    assert response.code == 200
    assert response.body == b"zipped payload"


def test_repeated_set_cookie_headers_joined(client, base_url):
    response = client.get(base_url + "/cookies")
    assert response.headers["Set-Cookie"] == "a=1; b=2"


def test_interface_binds_local_address(base_url):
    client = RestClient(interface="127.0.0.1")
    response = client.get(base_url + "/echo")
    assert response.code == 200
    assert response.headers["X-Client"] == "127.0.0.1"


def test_set_interface(client, base_url):
    client.set_interface("127.0.0.1")
    assert client.interface == "127.0.0.1"
    assert client.get(base_url + "/echo").headers["X-Client"] == "127.0.0.1"


# --- failures ---------------------------------------------------------------


def _closed_port():
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def test_connection_refused(client):
    response = client.get(f"http://127.0.0.1:{_closed_port()}/echo")
    assert response.code == 7
    assert response.transport_code == response.code
    assert response.body == b"REQUEST FAILED, code is transport-fail-code."
    assert response.error


def test_timeout(client, base_url):
    response = client.get(base_url + "/slow", timeout=1)
    assert response.code == 28
    assert response.transport_code == response.code
    assert response.body == b"REQUEST FAILED, code is transport-fail-code."


def test_malformed_url(client):
    response = client.get("not a url")
    assert response.transport_code > 0
    assert response.code == response.transport_code
    assert response.method == "GET"


def test_unsupported_scheme_differs_from_malformed(client):
    unsupported = client.get("gopher://localhost/")
    malformed = client.get("not a url")
    assert unsupported.transport_code > 0
    assert unsupported.transport_code < malformed.transport_code