"""Shared fixtures: a local stand-in for the image endpoint."""

import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest

from thumbprobe.config import HarnessConfig

MAX_DIMENSION = 1500


def fake_timthumb(query, config):
    """
    Behaves like a well-hardened endpoint: only the two known images are
    served, WebShot is off, dimensions are capped.
    """
    src = query.get("src", [""])[0]
    if "webshot" in query:
        return 400
    if src not in (config.local_image, config.external_image):
        return 400
    try:
        w = int(query.get("w", ["0"])[0])
        h = int(query.get("h", ["0"])[0])
    except ValueError:
        return 400
    if not (0 < w <= MAX_DIMENSION and 0 < h <= MAX_DIMENSION):
        return 400
    return 200


class EndpointServer:
    """Threaded HTTP server whose answers come from ``self.responder``."""

    def __init__(self):
        self.requests = []
        self.responder = lambda query: 200
        self.delay = 0.0

        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                parts = urlsplit(self.path)
                query = parse_qs(parts.query, keep_blank_values=True)
                server.requests.append({"path": parts.path, "query": query,
                                        "user_agent": self.headers.get("User-Agent")})
                if server.delay:
                    time.sleep(server.delay)
                status = server.responder(query)
                body = b"ok" if status < 400 else b"rejected"
                try:
                    self.send_response(status)
                    self.send_header("Content-Type", "text/plain")
                    self.send_header("Content-Length", str(len(body)))
                    self.end_headers()
                    self.wfile.write(body)
                except (BrokenPipeError, ConnectionResetError):
                    pass

            def log_message(self, format, *args):
                pass

        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    @property
    def base_url(self):
        host, port = self.httpd.server_address[:2]
        return f"http://{host}:{port}/timthumb.php"

    def start(self):
        self.thread.start()

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()


@pytest.fixture()
def endpoint():
    srv = EndpointServer()
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture()
def closed_port_url():
    """URL on a local port nothing listens on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}/timthumb.php"


@pytest.fixture()
def config(tmp_path):
    return HarnessConfig(
        log_path=str(tmp_path / "results.log"),
        timeout=2.0,
        color=False,
    )


@pytest.fixture()
def hardened_endpoint(endpoint, config):
    """Endpoint that answers every built-in scenario the way the table expects."""
    config.base_url = endpoint.base_url
    endpoint.responder = lambda query: fake_timthumb(query, config)
    return endpoint
