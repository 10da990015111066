#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Static File Server Main Module
------------------------------
Binds the listener, accepts connections on a background thread and runs
each connection on its own thread. Shutdown stops accepting, closes idle
keep-alive connections and gives in-flight requests a bounded grace window.
"""

import os
import sys
import time
import signal
import socket
import logging
import threading

from colorama import Fore, Style

from .audit import AuditLogger
from .errors import ServerStartError, ShutdownTimeoutError
from .handler import RequestHandler

SHUTDOWN_TIMEOUT = 5
SHUTDOWN_POLL_INTERVAL = 0.05
CONNECTION_QUEUE = 128


class Connection:
    """A client connection tracked by the server."""

    def __init__(self, client_socket, address):
        self.socket = client_socket
        self.address = address
        self.idle = True

    def close(self):
        """Shut the socket down so any thread blocked on it returns."""
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.socket.close()


class WebServer:
    """
    Web server class that accepts incoming connections and hands each one
    to the shared request handler on its own thread.
    """

    def __init__(self, settings, audit_logger=None):
        """
        Initialize the web server.

        Args:
            settings: ServerSettings
            audit_logger: AuditLogger (default: one writing latest.log)
        """
        self.settings = settings
        self.logger = logging.getLogger(__name__)

        if audit_logger is None:
            audit_logger = AuditLogger(port=settings.bind_port)
        self.request_handler = RequestHandler(settings, audit_logger)

        # Server state
        self.server_socket = None
        self.is_running = False
        self.accept_thread = None
        self.shutdown_event = threading.Event()

        # Active connections tracking
        self.connections = set()
        self.connections_lock = threading.Lock()
        self.connections_done = threading.Condition(self.connections_lock)

    @property
    def server_address(self):
        """The (host, port) the listener is bound to."""
        if self.server_socket is None:
            return None
        return self.server_socket.getsockname()[:2]

    def start(self):
        """
        Bind the listener and start the accept loop.

        Raises:
            ServerStartError: The address cannot be bound
        """
        if self.is_running:
            self.logger.warning("Server is already running")
            return

        host = self.settings.bind_address
        family = socket.AF_INET6 if ":" in host else socket.AF_INET

        try:
            port = int(self.settings.bind_port)
            self.server_socket = socket.socket(family, socket.SOCK_STREAM)
            self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.server_socket.bind((host, port))
            self.server_socket.listen(CONNECTION_QUEUE)
        except (OSError, ValueError, OverflowError) as e:
            if self.server_socket:
                self.server_socket.close()
                self.server_socket = None
            raise ServerStartError(f"Error starting server: {e}") from e

        self.is_running = True

        print(f"Server running at http://{self.settings.listen_address}")
        print(f"PID: {os.getpid()}")
        self.logger.info(f"Serving files from {self.settings.root_directory}")

        self.accept_thread = threading.Thread(
            target=self._accept_connections,
            name="WebServerAccept",
            daemon=True
        )
        self.accept_thread.start()

    def _accept_connections(self):
        """
        Accept incoming connections until the listener is closed.
        """
        server_socket = self.server_socket
        while self.is_running:
            try:
                client_socket, client_address = server_socket.accept()
            except OSError as e:
                if self.is_running:
                    self.logger.error(f"Error accepting connection: {e}")
                    # Sleep a bit to prevent CPU spinning on repeated errors
                    time.sleep(0.1)
                continue

            connection = Connection(client_socket, client_address)
            with self.connections_lock:
                if not self.is_running:
                    connection.close()
                    break
                self.connections.add(connection)

            threading.Thread(
                target=self._handle_client,
                args=(connection,),
                name=f"WebServerWorker-{client_address[0]}:{client_address[1]}",
                daemon=True
            ).start()

    def _handle_client(self, connection):
        """
        Handle client connection.

        Args:
            connection: Connection to serve
        """
        try:
            self.request_handler.handle_connection(connection, is_closing=lambda: not self.is_running)
        except Exception as e:
            self.logger.error(f"Error handling client {connection.address}: {e}", exc_info=True)
        finally:
            connection.close()
            with self.connections_lock:
                self.connections.discard(connection)
                self.connections_done.notify_all()

    def _close_idle_connections(self):
        with self.connections_lock:
            for connection in list(self.connections):
                if connection.idle:
                    connection.close()

    def shutdown(self, timeout=SHUTDOWN_TIMEOUT):
        """
        Shut down the web server gracefully.

        New connections are refused at once. In-flight requests get up to
        ``timeout`` seconds to finish; whatever is still open after that is
        closed forcibly.

        Raises:
            ShutdownTimeoutError: Requests were still running at the deadline
        """
        if not self.is_running:
            return

        self.logger.info("Shutting down server...")
        self.is_running = False

        if self.server_socket:
            # shutdown() wakes the accept loop; close() alone may not
            try:
                self.server_socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self.server_socket.close()
            self.server_socket = None

        deadline = time.monotonic() + timeout
        while True:
            self._close_idle_connections()
            with self.connections_lock:
                if not self.connections:
                    break
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    stuck = list(self.connections)
                    for connection in stuck:
                        connection.close()
                    raise ShutdownTimeoutError(
                        f"Error shutting down server: {len(stuck)} connection(s) still active after {timeout}s"
                    )
                self.connections_done.wait(min(remaining, SHUTDOWN_POLL_INTERVAL))

        self.logger.info("Server shutdown complete")

    def _signal_handler(self, sig, frame):
        """
        Handle termination signals.

        Args:
            sig: Signal number
            frame: Current stack frame
        """
        self.logger.debug(f"Received signal {sig}")
        self.shutdown_event.set()

    def install_signal_handlers(self):
        """Route SIGINT and SIGTERM to a graceful shutdown."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def wait_for_shutdown(self):
        """
        Block until a shutdown signal arrives, then shut down.

        Raises:
            ShutdownTimeoutError: In-flight requests outlived the grace window
        """
        while not self.shutdown_event.wait(0.5):
            pass

        sys.stdout.write(Fore.GREEN + Style.BRIGHT + "Server exiting..." + Style.RESET_ALL + "\n")
        sys.stdout.flush()
        self.shutdown()
