"""Shared fixtures: a small document root and a live server on an ephemeral port."""

import io
import time
import http.client

import pytest

from staticserver.audit import AuditLogger
from staticserver.config import ServerSettings
from staticserver.server import WebServer

INDEX_HTML = b"<html><body>home</body></html>\n"
NOT_FOUND_HTML = b"<html><body>custom not found</body></html>\n"
FORBIDDEN_HTML = b"<html><body>custom forbidden</body></html>\n"
STYLE_CSS = b"body { color: red; }\n"
APP_JS = b"console.log('hi');\n"
DATA_BIN = bytes(range(256)) * 4


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def site(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "404.html").write_bytes(NOT_FOUND_HTML)
    (root / "403.html").write_bytes(FORBIDDEN_HTML)
    (root / "style.css").write_bytes(STYLE_CSS)
    (root / "app.js").write_bytes(APP_JS)
    (root / "data.bin").write_bytes(DATA_BIN)
    (root / "notes.txt").write_bytes(b"plain notes\n")
    docs = root / "docs"
    docs.mkdir()
    (docs / "a.txt").write_bytes(b"a\n")
    (docs / "sub").mkdir()
    return root


@pytest.fixture
def settings(site):
    return ServerSettings(
        bind_address="127.0.0.1",
        bind_port="0",
        root_directory=str(site),
        index_files=["index.htm", "index.html"],
        not_found_page="/404.html",
        forbidden_page="/403.html",
    )


@pytest.fixture
def audit_logger(tmp_path):
    return AuditLogger(port="8080", log_file=str(tmp_path / "latest.log"), stream=io.StringIO())


def audit_lines(audit_logger):
    return [line for line in audit_logger.stream.getvalue().splitlines() if line]


@pytest.fixture
def server(settings, audit_logger):
    web_server = WebServer(settings, audit_logger=audit_logger)
    web_server.start()
    yield web_server
    web_server.shutdown()


@pytest.fixture
def connect(server):
    host, port = server.server_address

    def _connect():
        return http.client.HTTPConnection(host, port, timeout=5)

    return _connect


@pytest.fixture
def get(connect):
    def _get(path, headers=None, method="GET"):
        conn = connect()
        try:
            conn.request(method, path, headers=headers or {})
            response = conn.getresponse()
            body = response.read()
            return response, body
        finally:
            conn.close()

    return _get
