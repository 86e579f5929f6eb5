import asyncio
import json
import os
import socket
import threading
import time
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import urlparse

import pytest

import jsonhttp
from jsonhttp import Client, collect_json
from jsonhttp.connection import Connection
from jsonhttp.errors import ArgumentError, HTTPStatusError, NetworkError, ParseError, RequestError, StreamError

HOST = "127.0.0.1"


class TestHandler(BaseHTTPRequestHandler):

    def _send_json(self, status, payload):
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _echo(self):
        path = urlparse(self.path).path
        length = int(self.headers.get("Content-Length", 0))
        raw = self.rfile.read(length) if length else b""

        if path == "/empty":
            self.send_response(200)
            self.send_header("Content-Length", "0")
            self.end_headers()

        elif path == "/truncated":
            self.send_response(200)
            self.send_header("Content-Length", "100")
            self.end_headers()
            self.wfile.write(b'{"cut": ')

        elif path == "/nocontent":
            self.send_response(204)
            self.end_headers()

        elif path == "/stall":
            self.send_response(200)
            self.send_header("Content-Length", "100")
            self.end_headers()
            self.wfile.write(b'{"slow": ')
            time.sleep(1.0)

        elif path == "/slow":
            time.sleep(1.0)
            try:
                self._send_json(200, {"late": True})
            except OSError:
                pass

        elif path == "/notfound":
            self._send_json(404, {"error": "not found"})

        else:
            self._send_json(200, {
                "method": self.command,
                "path": self.path,
                "headers": {k.lower(): v for k, v in self.headers.items()},
                "body": raw.decode("utf-8"),
                "length": len(raw),
            })

    do_GET = _echo
    do_POST = _echo
    do_PUT = _echo
    do_DELETE = _echo

    def log_message(self, format, *args):  # pragma: no cover
        return


@contextmanager
def run_server():
    server = HTTPServer((HOST, 0), TestHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server.server_address[1]
    finally:
        server.shutdown()
        thread.join()


@pytest.fixture
def port():
    with run_server() as p:
        yield p


@pytest.fixture
def client(port):
    return Client(port=port, use_ssl=False)


def unused_port():
    with socket.socket() as sock:
        sock.bind((HOST, 0))
        return sock.getsockname()[1]


# Argument checks


@pytest.fixture
def no_network(monkeypatch):
    async def fail_send(*args, **kwargs):
        raise AssertionError("network must not be touched")

    monkeypatch.setattr("jsonhttp.client.send", fail_send)


@pytest.mark.parametrize("path", ["", None])
@pytest.mark.parametrize("verb", ["get", "delete"])
def test_missing_path_raises_before_network(no_network, verb, path):
    with pytest.raises(ArgumentError) as info:
        getattr(Client(), verb)("example.com", path)
    assert info.value.argument == "path"


@pytest.mark.parametrize("path", ["", None])
@pytest.mark.parametrize("verb", ["post", "put"])
def test_missing_path_with_body_raises(no_network, verb, path):
    with pytest.raises(ArgumentError) as info:
        getattr(Client(), verb)("example.com", path, '{"a": 1}')
    assert info.value.argument == "path"


@pytest.mark.parametrize("body", ["", None])
@pytest.mark.parametrize("verb", ["post", "put"])
def test_missing_body_raises(no_network, verb, body):
    with pytest.raises(ArgumentError) as info:
        getattr(Client(), verb)("example.com", "/posts", body)
    assert info.value.argument == "body"
    assert 'Argument "body" not specified' in str(info.value)


@pytest.mark.parametrize("verb, args", [
    (jsonhttp.get, ("example.com", "")),
    (jsonhttp.post, ("example.com", "/posts", "")),
    (jsonhttp.put, ("example.com", None, "{}")),
    (jsonhttp.delete, ("example.com", None)),
])
def test_module_functions_validate(no_network, verb, args):
    with pytest.raises(ArgumentError):
        verb(*args)


def test_argument_error_is_value_error():
    assert issubclass(ArgumentError, ValueError)


# Exchanges against a local server


@pytest.mark.asyncio
async def test_get_sends_json_headers(client, port):
    resp = await client.get(HOST, "/posts/1")
    assert resp.status_code == 200
    assert resp.ok
    echo = await collect_json(resp)
    assert echo["method"] == "GET"
    assert echo["path"] == "/posts/1"
    assert echo["headers"] == {
        "host": f"{HOST}:{port}",
        "accept": "application/json",
        "content-type": "application/json; charset=utf8",
    }
    assert echo["length"] == 0


@pytest.mark.asyncio
async def test_path_without_leading_slash(client):
    resp = await client.get(HOST, "posts/1")
    echo = await resp.json()
    assert echo["path"] == "/posts/1"


@pytest.mark.asyncio
async def test_post_sends_body_with_byte_length(client):
    body = json.dumps({"title": "façade 世界"}, ensure_ascii=False)
    resp = await client.post(HOST, "/posts", body)
    echo = await collect_json(resp)
    assert echo["method"] == "POST"
    assert echo["body"] == body
    assert echo["headers"]["content-length"] == str(len(body.encode("utf-8")))
    assert echo["length"] == len(body.encode("utf-8"))


@pytest.mark.asyncio
async def test_put_and_delete(client):
    resp = await client.put(HOST, "/posts/1", '{"id": 1}')
    assert (await resp.json())["method"] == "PUT"

    resp = await client.delete(HOST, "/posts/1")
    echo = await resp.json()
    assert echo["method"] == "DELETE"
    assert "content-length" not in echo["headers"]


@pytest.mark.asyncio
async def test_empty_response_body_is_parse_error(client):
    resp = await client.get(HOST, "/empty")
    assert resp.status_code == 200
    with pytest.raises(ParseError):
        await collect_json(resp)


@pytest.mark.asyncio
async def test_truncated_body_is_stream_error(client):
    resp = await client.get(HOST, "/truncated")
    with pytest.raises(StreamError):
        await collect_json(resp)
    assert resp.connection.closed


@pytest.mark.asyncio
async def test_error_status_still_resolves(client):
    resp = await client.get(HOST, "/notfound")
    assert resp.status_code == 404
    assert not resp.ok
    with pytest.raises(HTTPStatusError):
        resp.raise_for_status()
    assert await resp.json() == {"error": "not found"}


@pytest.mark.asyncio
async def test_abandoned_response_closes_connection(client):
    async with await client.get(HOST, "/posts/1") as resp:
        assert resp.status_code == 200
    assert resp.connection.closed


@pytest.mark.asyncio
async def test_connection_refused_is_network_error():
    client = Client(port=unused_port(), use_ssl=False)
    with pytest.raises(NetworkError):
        await client.get(HOST, "/posts/1")


@pytest.mark.asyncio
async def test_timeout_is_opt_in(port):
    client = Client(port=port, use_ssl=False, timeout=0.2)
    with pytest.raises(NetworkError):
        await client.get(HOST, "/slow")


@pytest.mark.asyncio
async def test_per_request_timeout_override(client):
    with pytest.raises(NetworkError):
        await client.request("GET", HOST, "/slow", timeout=0.2)


@pytest.mark.asyncio
async def test_no_content_response_has_no_body(client):
    resp = await client.get(HOST, "/nocontent")
    assert resp.status_code == 204
    assert not resp.has_body
    assert resp.connection.closed
    assert await collect_json(resp) is None


@pytest.mark.asyncio
async def test_body_read_timeout_is_stream_error(port):
    client = Client(port=port, use_ssl=False, timeout=0.2)
    resp = await client.get(HOST, "/stall")
    assert resp.status_code == 200
    with pytest.raises(StreamError):
        await collect_json(resp)
    assert resp.connection.closed


@pytest.fixture
def connections(monkeypatch):
    created = []

    class RecordingConnection(Connection):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            created.append(self)

    monkeypatch.setattr("jsonhttp.connection.Connection", RecordingConnection)
    return created


@pytest.mark.asyncio
async def test_cancelled_request_closes_connection(client, connections):
    task = asyncio.ensure_future(client.get(HOST, "/slow"))
    await asyncio.sleep(0.2)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(connections) == 1
    assert connections[0].closed


@pytest.mark.asyncio
async def test_non_ascii_host_is_request_error(port, connections):
    client = Client(port=port, use_ssl=False)
    with pytest.raises(RequestError) as info:
        await client.get("bücher.invalid", "/posts/1")
    assert not isinstance(info.value, NetworkError)
    assert connections[0].closed


@pytest.mark.parametrize("addr, use_ssl, expected", [
    (("::1", 8080), False, "[::1]:8080"),
    (("::1", 443), True, "[::1]"),
    (("127.0.0.1", 8080), False, "127.0.0.1:8080"),
    (("example.com", 443), True, "example.com"),
])
def test_host_header(addr, use_ssl, expected):
    assert Connection(addr, use_ssl=use_ssl)._host_header() == expected


# Live scenario


live = pytest.mark.skipif(
    not os.environ.get("JSONHTTP_LIVE_TESTS"),
    reason="set JSONHTTP_LIVE_TESTS=1 to hit jsonplaceholder.typicode.com",
)


@live
@pytest.mark.asyncio
async def test_simple_get_request():
    resp = await jsonhttp.get("jsonplaceholder.typicode.com", "/posts/1")
    assert resp.status_code == 200
    data = await collect_json(resp)
    assert data["id"] == 1
