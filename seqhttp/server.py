"""
HTTP server that answers each request with the next scripted response.

Every request, whatever its method or path, claims one catalog entry. The
request that claims the last entry triggers a graceful shutdown; requests
arriving after that get their connection closed without any response.
"""

from __future__ import annotations

import logging
import socket
import ssl
import threading
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional, Sequence, Set, Tuple

from .catalog import ScriptedResponse, build_catalog
from .dispenser import Dispenser
from .shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)
request_logger = logging.getLogger("seqhttp.requests")

# Statuses that never carry a body or a Content-Length.
BODYLESS_STATUSES = frozenset({101, 204, 304})


class ScriptedRequestHandler(BaseHTTPRequestHandler):
    """Serves one scripted response per request from `self.server.dispenser`."""

    protocol_version = "HTTP/1.1"
    _expect_continue = False

    def __getattr__(self, name: str):
        # Every method is served from the script, including unknown ones.
        if name.startswith("do_"):
            return self._serve
        raise AttributeError(name)

    def setup(self):
        if isinstance(self.request, ssl.SSLSocket):
            self.request.do_handshake()
        super().setup()

    def handle_expect_100(self):
        # The interim 100 is sent only once a response has been claimed.
        self._expect_continue = True
        return True

    def _serve(self):
        expect_continue, self._expect_continue = self._expect_continue, False
        with self.server.busy(self.connection):
            dispensed = self.server.dispenser.dispense()
            if dispensed is None:
                self._abort()
                return

            if expect_continue:
                self.send_response_only(100)
                self.end_headers()
            body = self._read_body()

            response, is_last = dispensed
            if is_last:
                self.server.coordinator.trigger()

            self._dump_request(body)
            try:
                self._write_response(response, is_last)
            except OSError as e:
                logger.debug(f"Failed to write response to {self.address_string()}: {e}")
                self.close_connection = True

        # Handlers finishing after the last dispense must not wait for another request.
        if self.server.dispenser.exhausted:
            self.close_connection = True

    def _abort(self):
        """Drop the connection without writing a single byte."""
        self.close_connection = True

    def _read_body(self) -> bytes:
        if "chunked" in self.headers.get("Transfer-Encoding", "").lower():
            return self._read_chunked_body()

        length = self.headers.get("Content-Length")
        if not length:
            return b""
        try:
            size = int(length)
        except ValueError:
            logger.debug(f"Invalid Content-Length {length!r} from {self.address_string()}")
            self.close_connection = True
            return b""
        return self.rfile.read(size) if size > 0 else b""

    def _read_chunked_body(self) -> bytes:
        chunks = []
        while True:
            line = self.rfile.readline()
            try:
                size = int(line.split(b";", 1)[0].strip(), 16)
            except ValueError:
                self.close_connection = True
                break
            if size == 0:
                # trailers
                while self.rfile.readline() not in (b"\r\n", b"\n", b""):
                    pass
                break
            chunks.append(self.rfile.read(size))
            self.rfile.readline()
        return b"".join(chunks)

    def _dump_request(self, body: bytes):
        lines = [f"{self.command} {self.path} {self.request_version}"]
        lines.extend(f"{name}: {value}" for name, value in self.headers.items())
        dump = "\r\n".join(lines) + "\r\n\r\n" + body.decode("utf-8", errors="replace")
        request_logger.info(dump)

    def _send_headers(self, headers):
        for name, values in headers.items():
            for value in values:
                self.send_header(name, value)

    def _write_response(self, response: ScriptedResponse, is_last: bool):
        headers = response.headers
        status = response.status_code
        if 100 <= status < 200 and status not in BODYLESS_STATUSES:
            # Informational status: sent as an interim response, the body
            # follows under an implicit 200.
            self.send_response_only(status)
            self._send_headers(headers)
            self.end_headers()
            status = 200
        send_body = self.command != "HEAD" and status not in BODYLESS_STATUSES

        self.log_request(status)
        self.send_response_only(status)
        self._send_headers(headers)
        if "Date" not in headers:
            self.send_header("Date", self.date_time_string())
        if (
            status not in BODYLESS_STATUSES
            and "Content-Length" not in headers
            and "Transfer-Encoding" not in headers
        ):
            self.send_header("Content-Length", str(len(response.body)))
        if is_last and "Connection" not in headers:
            self.send_header("Connection", "close")
        self.end_headers()

        if send_body and response.body:
            self.wfile.write(response.body)
        if is_last:
            self.close_connection = True

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


class ScriptedHTTPServer(ThreadingHTTPServer):
    """
    Threading HTTP server over a fixed response catalog.

    The server owns one Dispenser and one ShutdownCoordinator. Call
    `serve_forever()` and then `wait_for_shutdown()`, or
    `serve_until_exhausted()` for both.
    """

    # In-flight responses are joined on close.
    daemon_threads = False
    block_on_close = True
    request_queue_size = 128

    def __init__(
        self,
        server_address: Tuple[str, int],
        catalog: Sequence[ScriptedResponse],
        handler_class=ScriptedRequestHandler,
        bind_and_activate: bool = True,
    ):
        self.dispenser = Dispenser(catalog)
        self.coordinator = ShutdownCoordinator(self._shutdown_routine)
        self._connections: Set[socket.socket] = set()
        self._busy: Set[socket.socket] = set()
        self._connections_lock = threading.Lock()
        super().__init__(server_address, handler_class, bind_and_activate)

    @classmethod
    def from_config(cls, config, handler_class=ScriptedRequestHandler) -> "ScriptedHTTPServer":
        """
        Build the catalog from a ServerConfig and bind the server.

        Raises:
            ConfigurationError: If the script is empty or the TLS files
                cannot be loaded
            OSError: If the address cannot be bound
        """
        catalog = build_catalog(config.script(), config.headers)
        tls_context = config.tls.context() if config.tls else None
        server = cls(config.address, catalog, handler_class)
        if tls_context is not None:
            server.enable_tls(tls_context)
        return server

    @property
    def url(self) -> str:
        scheme = "https" if isinstance(self.socket, ssl.SSLSocket) else "http"
        host, port = self.server_address[:2]
        if host in ("", "0.0.0.0", "::"):
            host = "127.0.0.1"
        return f"{scheme}://{host}:{port}"

    def enable_tls(self, context: ssl.SSLContext):
        """Wrap the listening socket; handshakes happen on the handler threads."""
        self.socket = context.wrap_socket(self.socket, server_side=True, do_handshake_on_connect=False)

    def serve_until_exhausted(self, poll_interval: float = 0.5):
        """Serve until the last scripted response went out and shutdown finished."""
        self.serve_forever(poll_interval)
        self.wait_for_shutdown()

    def wait_for_shutdown(self, timeout: Optional[float] = None):
        """
        Block until the shutdown triggered by the last response completed.

        Raises:
            TransportShutdownError: If closing the listener failed
        """
        self.coordinator.wait(timeout)

    def close(self):
        """Close without waiting for the script to finish (e.g. on Ctrl-C)."""
        self.close_idle_connections()
        self.server_close()

    def _shutdown_routine(self):
        self.shutdown()
        self.close_idle_connections()
        self.server_close()

    def close_idle_connections(self):
        """Shut down connections that are waiting for their next request."""
        with self._connections_lock:
            idle = [conn for conn in self._connections if conn not in self._busy]
        for conn in idle:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                # already closed by the peer
                pass

    @contextmanager
    def busy(self, conn: socket.socket):
        with self._connections_lock:
            self._busy.add(conn)
        try:
            yield
        finally:
            with self._connections_lock:
                self._busy.discard(conn)

    def process_request(self, request, client_address):
        with self._connections_lock:
            self._connections.add(request)
        super().process_request(request, client_address)

    def shutdown_request(self, request):
        with self._connections_lock:
            self._connections.discard(request)
            self._busy.discard(request)
        super().shutdown_request(request)

    def handle_error(self, request, client_address):
        logger.debug(f"Error while handling connection from {client_address}", exc_info=True)
