#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
HTTP Request Handler Module for the Static File Server
------------------------------------------------------
Parses HTTP/1.x requests from a client connection, resolves them against
the document root and writes the response.

The static serving primitives live here as well:
- serve_file: serve a path on disk (error pages, directories)
- serve_content: stream an open file with conditional and Range support
"""

import io
import os
import html
import time
import socket
import logging
import secrets
import urllib.parse
from datetime import datetime

from . import __version__
from .resolver import (
    Directory,
    FileReady,
    Forbidden,
    NotFound,
    join_root,
    resolve,
)
from .utils import (
    clean_url_path,
    format_http_date,
    get_mime_type,
    human_readable_size,
    parse_http_date,
    parse_range,
)

logger = logging.getLogger(__name__)

READ_TIMEOUT = 10
WRITE_TIMEOUT = 10
IDLE_TIMEOUT = 15
MAX_HEADER_BYTES = 1 << 20
CHUNK_SIZE = 64 * 1024
DRAIN_TIMEOUT = 0.5

SERVER_NAME = f"staticserver/{__version__}"

# HTTP status codes with descriptions
HTTP_STATUS = {
    200: 'OK',
    206: 'Partial Content',
    301: 'Moved Permanently',
    304: 'Not Modified',
    400: 'Bad Request',
    403: 'Forbidden',
    404: 'Not Found',
    405: 'Method Not Allowed',
    412: 'Precondition Failed',
    416: 'Requested Range Not Satisfiable',
    431: 'Request Header Fields Too Large',
    500: 'Internal Server Error',
}

# Content-Type overrides by file suffix; other files use the default lookup
CONTENT_TYPE_OVERRIDES = (
    ('.html', 'text/html'),
    ('.css', 'text/css'),
    ('.js', 'application/javascript'),
)

DIRECTORY_LISTING_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Index of {path}</title>
    <style>
        body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; margin: 20px; color: #333; }}
        table {{ border-collapse: collapse; }}
        th, td {{ padding: 4px 15px; text-align: left; }}
        a {{ color: #3498db; text-decoration: none; }}
    </style>
</head>
<body>
    <h1>Index of {path}</h1>
    <table>
        <thead><tr><th>Name</th><th>Size</th><th>Last Modified</th></tr></thead>
        <tbody>
{rows}
        </tbody>
    </table>
</body>
</html>
"""


class BadRequest(Exception):
    """A request that cannot be parsed; answered with ``status`` and closed."""

    def __init__(self, status, message):
        super().__init__(message)
        self.status = status
        self.message = message


def content_type_override(path):
    """Return the forced Content-Type for a URL path, or None."""
    for suffix, content_type in CONTENT_TYPE_OVERRIDES:
        if path.endswith(suffix):
            return content_type
    return None


class DeadlineReader(socket.SocketIO):
    """
    Raw socket reader whose reads all count against one deadline.

    While ``deadline`` is set, each receive gets only the time left until
    it, so a client trickling bytes cannot stretch a request past the read
    timeout. With no deadline the socket's own timeout applies.
    """

    def __init__(self, client_socket):
        super().__init__(client_socket, 'rb')
        self.deadline = None

    def readinto(self, b):
        if self.deadline is not None:
            remaining = self.deadline - time.monotonic()
            if remaining <= 0:
                raise socket.timeout("read deadline exceeded")
            self._sock.settimeout(remaining)
        return super().readinto(b)


class ResponseWriter:
    """
    Accumulates response headers and writes the response to a socket.

    Headers may be set freely until the status line is written; after that
    only the body can be written. Bodies are dropped for HEAD requests.
    """

    def __init__(self, client_socket, send_body=True):
        self.socket = client_socket
        self.send_body = send_body
        self.headers = {}
        self.status = None
        self.headers_sent = False

    def write_header(self, status_code):
        if self.headers_sent:
            return
        self.status = status_code
        self.headers.setdefault('Date', format_http_date())
        self.headers.setdefault('Server', SERVER_NAME)

        status_message = HTTP_STATUS.get(status_code, 'Unknown')
        lines = [f"HTTP/1.1 {status_code} {status_message}"]
        lines.extend(f"{key}: {value}" for key, value in self.headers.items())
        head = "\r\n".join(lines) + "\r\n\r\n"

        self.headers_sent = True
        self.socket.sendall(head.encode('latin-1'))

    def write(self, data):
        if not self.headers_sent:
            self.write_header(200)
        if self.send_body and data:
            self.socket.sendall(data)

    def send_text(self, status_code, message):
        """Send a short plain-text response."""
        body = (message + "\n").encode('utf-8')
        self.headers.pop('Last-Modified', None)
        self.headers['Content-Type'] = 'text/plain; charset=utf-8'
        self.headers['X-Content-Type-Options'] = 'nosniff'
        self.headers['Content-Length'] = str(len(body))
        self.write_header(status_code)
        self.write(body)

    def send_html(self, status_code, body):
        body = body.encode('utf-8')
        self.headers['Content-Type'] = 'text/html; charset=utf-8'
        self.headers['Content-Length'] = str(len(body))
        self.write_header(status_code)
        self.write(body)

    def redirect(self, location, status_code=301):
        self.headers['Location'] = location
        self.send_html(status_code, f'<a href="{html.escape(location)}">{HTTP_STATUS[status_code]}</a>.\n')


class RequestHandler:
    """
    Handles client connections: parses each request, resolves it against the
    document root and dispatches the outcome to a response.

    One instance is shared by all connection threads; it holds no per-request
    state.
    """

    def __init__(self, settings, audit_logger):
        """
        Initialize the request handler.

        Args:
            settings: ServerSettings shared by every request
            audit_logger: AuditLogger receiving one record per served file
        """
        self.settings = settings
        self.audit_logger = audit_logger
        self.logger = logger

    def handle_connection(self, connection, is_closing=lambda: False):
        """
        Serve requests on a connection until it closes.

        Args:
            connection: Connection with ``socket``, ``address`` and ``idle``
            is_closing: Callable returning True once the server shuts down
        """
        client_socket = connection.socket
        reader = DeadlineReader(client_socket)
        rfile = io.BufferedReader(reader)
        # the first request must arrive in full within READ_TIMEOUT of accept
        reader.deadline = time.monotonic() + READ_TIMEOUT
        first_request = True
        try:
            while not is_closing():
                connection.idle = True
                if not first_request:
                    reader.deadline = None
                    client_socket.settimeout(IDLE_TIMEOUT)
                if not rfile.peek(1):
                    break
                connection.idle = False

                if not first_request:
                    reader.deadline = time.monotonic() + READ_TIMEOUT
                keep_alive = self.handle_request(client_socket, rfile, connection.address)
                first_request = False
                if not keep_alive:
                    break
        except socket.timeout:
            self.logger.debug(f"Connection from {connection.address[0]}:{connection.address[1]} timed out")
        except (ConnectionError, OSError) as e:
            self.logger.debug(f"Connection error from {connection.address[0]}:{connection.address[1]}: {e}")
        finally:
            connection.idle = False
            rfile.close()

    def handle_request(self, client_socket, rfile, client_address):
        """
        Read one request from the connection and answer it.

        Returns:
            bool: True if the connection may be reused
        """
        try:
            request = self._parse_request(rfile)
        except BadRequest as e:
            rfile.raw.deadline = None
            writer = ResponseWriter(client_socket)
            writer.headers['Connection'] = 'close'
            client_socket.settimeout(WRITE_TIMEOUT)
            writer.send_text(e.status, f"{e.status} {e.message}")
            self.logger.warning(f"{client_address[0]}:{client_address[1]} - {e.status} {e.message}")
            self._close_write_and_drain(client_socket, rfile)
            return False

        rfile.raw.deadline = None
        if request is None:
            return False

        request['client_address'] = client_address
        keep_alive = self._wants_keep_alive(request)

        writer = ResponseWriter(client_socket, send_body=request['method'] != 'HEAD')
        if not keep_alive:
            writer.headers['Connection'] = 'close'
        elif request['http_version'] == 'HTTP/1.0':
            writer.headers['Connection'] = 'keep-alive'

        client_socket.settimeout(WRITE_TIMEOUT)
        try:
            self.route(request, writer)
        except (ConnectionError, socket.timeout):
            raise
        except Exception as e:
            self.logger.error(f"Error handling request {request['method']} {request['path']}: {e}", exc_info=True)
            if writer.headers_sent:
                return False
            writer.headers = {'Connection': 'close'}
            writer.send_text(500, "500 Internal Server Error")
            keep_alive = False

        self.logger.info(
            f"{client_address[0]}:{client_address[1]} - {request['method']} {request['path']} {writer.status}"
        )
        return keep_alive

    def _close_write_and_drain(self, client_socket, rfile, limit=256 * 1024):
        """Half-close the connection and discard pending request bytes."""
        client_socket.shutdown(socket.SHUT_WR)
        client_socket.settimeout(DRAIN_TIMEOUT)
        drained = 0
        try:
            while drained < limit:
                chunk = rfile.read1(CHUNK_SIZE)
                if not chunk:
                    break
                drained += len(chunk)
        except socket.timeout:
            pass

    def _parse_request(self, rfile):
        """
        Parse the request line and headers.

        Returns:
            dict: Parsed request, or None if the client closed the connection

        Raises:
            BadRequest: The request is malformed or its header block is too large
        """
        total = 0

        def read_line():
            nonlocal total
            line = rfile.readline(MAX_HEADER_BYTES + 1 - total)
            total += len(line)
            if total > MAX_HEADER_BYTES:
                raise BadRequest(431, "Request Header Fields Too Large")
            return line

        line = read_line()
        if not line:
            return None

        parts = line.decode('latin-1').strip().split()
        if len(parts) != 3 or not parts[2].startswith('HTTP/'):
            raise BadRequest(400, "Bad Request")
        method, target, http_version = parts

        headers = {}
        while True:
            line = read_line()
            if not line:
                raise BadRequest(400, "Bad Request")
            if line in (b'\r\n', b'\n'):
                break
            header = line.decode('latin-1')
            if ':' not in header:
                continue
            key, value = header.split(':', 1)
            headers[key.strip().lower()] = value.strip()

        # Absolute-form targets (proxies) carry scheme and host
        if target.startswith(('http://', 'https://')):
            parts = urllib.parse.urlsplit(target)
            target = parts.path or '/'
            if parts.query:
                target += '?' + parts.query

        raw_path, _, query = target.partition('?')

        return {
            'method': method,
            'path': urllib.parse.unquote(raw_path),
            'query': query,
            'http_version': http_version,
            'headers': headers,
        }

    def _wants_keep_alive(self, request):
        headers = request['headers']
        connection = headers.get('connection', '').lower()

        # Bodies on GET/HEAD are not read; don't reuse the connection after one
        if headers.get('content-length', '0') not in ('', '0') or 'transfer-encoding' in headers:
            return False

        if request['http_version'] == 'HTTP/1.0':
            return connection == 'keep-alive'
        return connection != 'close'

    def route(self, request, writer):
        """
        Answer a parsed request.

        Non-canonical paths are redirected to their cleaned form, as a
        request multiplexer would, before anything touches the filesystem.
        """
        if request['method'] not in ('GET', 'HEAD'):
            writer.headers['Allow'] = 'GET, HEAD'
            writer.send_text(405, "405 Method Not Allowed")
            return

        path = request['path'] or '/'
        cleaned = clean_url_path(path)
        if cleaned != path:
            location = urllib.parse.quote(cleaned)
            if request['query']:
                location += '?' + request['query']
            writer.redirect(location)
            return

        outcome = resolve(path, self.settings)
        self.dispatch(request, writer, outcome)

    def dispatch(self, request, writer, outcome):
        """
        Write the response for a resolution outcome.

        Exactly one audit record is written for FileReady; error pages and
        directory responses are not audited.
        """
        root = self.settings.root_directory

        if isinstance(outcome, NotFound):
            self.serve_file(request, writer, join_root(root, self.settings.not_found_page))
        elif isinstance(outcome, Forbidden):
            self.serve_file(request, writer, join_root(root, self.settings.forbidden_page))
        elif isinstance(outcome, Directory):
            self.serve_file(request, writer, outcome.path)
        elif isinstance(outcome, FileReady):
            with outcome:
                content_type = content_type_override(outcome.path)
                if content_type:
                    writer.headers['Content-Type'] = content_type
                try:
                    self.serve_content(request, writer, os.path.basename(outcome.path),
                                       outcome.mtime, outcome.file, outcome.size)
                except (ConnectionError, socket.timeout):
                    # An aborted download is still recorded at full size
                    self._audit(request, outcome)
                    raise
            self._audit(request, outcome)
        else:
            raise TypeError(f"Unknown resolution outcome: {outcome!r}")

    def _audit(self, request, outcome):
        self.audit_logger.log(request['client_address'][0], outcome.path, outcome.size)

    def serve_file(self, request, writer, fs_path):
        """
        Serve a file or directory by filesystem path.

        Missing files get a plain 404, unreadable ones a plain 403. A
        directory is redirected to its trailing-slash URL, answered with its
        index.html, or listed.
        """
        try:
            st = os.stat(fs_path)
        except (FileNotFoundError, NotADirectoryError):
            writer.send_text(404, "404 page not found")
            return
        except PermissionError:
            writer.send_text(403, "403 Forbidden")
            return
        except OSError as e:
            self.logger.error(f"Error reading {fs_path}: {e}")
            writer.send_text(500, "500 Internal Server Error")
            return

        if os.path.isdir(fs_path):
            url_path = request['path'] or '/'
            if not url_path.endswith('/'):
                location = urllib.parse.quote(url_path + '/')
                if request['query']:
                    location += '?' + request['query']
                writer.redirect(location)
                return

            index_path = os.path.join(fs_path, 'index.html')
            if os.path.isfile(index_path):
                self.serve_file(request, writer, index_path)
                return

            self.send_directory_listing(request, writer, fs_path, url_path)
            return

        try:
            f = open(fs_path, 'rb')
        except PermissionError:
            writer.send_text(403, "403 Forbidden")
            return
        except OSError as e:
            self.logger.error(f"Error opening {fs_path}: {e}")
            writer.send_text(500, "500 Internal Server Error")
            return

        with f:
            self.serve_content(request, writer, os.path.basename(fs_path), st.st_mtime, f, st.st_size)

    def serve_content(self, request, writer, name, mtime, f, size):
        """
        Stream an open file, honouring conditional and Range requests.

        Args:
            request: Parsed request
            writer: ResponseWriter; a Content-Type already set is kept
            name: File name used to guess the Content-Type
            mtime: Modification time (UNIX timestamp)
            f: Open binary file positioned anywhere
            size: File size in bytes
        """
        headers = request['headers']
        modified = int(mtime)

        if_unmodified_since = parse_http_date(headers.get('if-unmodified-since', ''))
        if if_unmodified_since is not None and modified > if_unmodified_since:
            writer.send_text(412, "412 Precondition Failed")
            return

        if_modified_since = parse_http_date(headers.get('if-modified-since', ''))
        if if_modified_since is not None and modified <= if_modified_since:
            writer.headers.pop('Content-Type', None)
            writer.headers['Last-Modified'] = format_http_date(mtime)
            writer.write_header(304)
            return

        writer.headers['Last-Modified'] = format_http_date(mtime)
        content_type = writer.headers.get('Content-Type') or get_mime_type(name)
        writer.headers['Content-Type'] = content_type
        writer.headers['Accept-Ranges'] = 'bytes'

        range_header = headers.get('range', '')
        if range_header and 'if-range' in headers:
            if_range = parse_http_date(headers['if-range'])
            if if_range is None or if_range != modified:
                range_header = ''

        try:
            ranges = parse_range(range_header, size)
        except ValueError as e:
            if size == 0:
                ranges = []
            else:
                writer.headers['Content-Range'] = f"bytes */{size}"
                writer.send_text(416, str(e))
                return

        # Ranges that add up to more than the file are ignored
        if sum(length for _, length in ranges) > size:
            ranges = []

        if len(ranges) == 1:
            start, length = ranges[0]
            writer.headers['Content-Range'] = f"bytes {start}-{start + length - 1}/{size}"
            writer.headers['Content-Length'] = str(length)
            writer.write_header(206)
            if writer.send_body:
                self._copy(writer, f, start, length)
        elif ranges:
            self._send_multipart(writer, f, ranges, size, content_type)
        else:
            writer.headers['Content-Length'] = str(size)
            writer.write_header(200)
            if writer.send_body:
                self._copy(writer, f, 0, size)

    def _send_multipart(self, writer, f, ranges, size, content_type):
        boundary = secrets.token_hex(15)
        part_headers = []
        for i, (start, length) in enumerate(ranges):
            part_headers.append(
                ("\r\n" if i else "")
                + f"--{boundary}\r\n"
                + f"Content-Type: {content_type}\r\n"
                + f"Content-Range: bytes {start}-{start + length - 1}/{size}\r\n\r\n"
            )
        closing = f"\r\n--{boundary}--\r\n"

        total = sum(len(h) for h in part_headers) + sum(length for _, length in ranges) + len(closing)
        writer.headers['Content-Type'] = f"multipart/byteranges; boundary={boundary}"
        writer.headers['Content-Length'] = str(total)
        writer.write_header(206)
        if not writer.send_body:
            return

        for part_header, (start, length) in zip(part_headers, ranges):
            writer.write(part_header.encode('latin-1'))
            self._copy(writer, f, start, length)
        writer.write(closing.encode('latin-1'))

    def _copy(self, writer, f, start, length):
        f.seek(start)
        remaining = length
        while remaining > 0:
            chunk = f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            writer.write(chunk)
            remaining -= len(chunk)

    def send_directory_listing(self, request, writer, dir_path, url_path):
        """
        Send an HTML listing of a directory.

        Args:
            request: Parsed request
            writer: ResponseWriter
            dir_path: Directory path on disk
            url_path: Request path (ends with '/')
        """
        try:
            entries = sorted(os.listdir(dir_path))
        except PermissionError:
            writer.send_text(403, "403 Forbidden")
            return
        except OSError as e:
            self.logger.error(f"Error reading directory {dir_path}: {e}")
            writer.send_text(500, "500 Internal Server Error")
            return

        rows = []
        for entry in entries:
            entry_path = os.path.join(dir_path, entry)
            try:
                st = os.stat(entry_path)
            except OSError:
                continue

            is_dir = os.path.isdir(entry_path)
            name = entry + "/" if is_dir else entry
            size = "-" if is_dir else human_readable_size(st.st_size)
            last_modified = datetime.fromtimestamp(st.st_mtime).strftime('%Y-%m-%d %H:%M:%S')
            rows.append(
                f'            <tr><td><a href="{urllib.parse.quote(name)}">{html.escape(name)}</a></td>'
                f'<td>{size}</td><td>{last_modified}</td></tr>'
            )

        page = DIRECTORY_LISTING_TEMPLATE.format(path=html.escape(url_path), rows="\n".join(rows))
        writer.headers['Last-Modified'] = format_http_date(os.path.getmtime(dir_path))
        writer.send_html(200, page)
