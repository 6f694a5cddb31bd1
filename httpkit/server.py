"""WSGI server with middleware and graceful, time-bounded shutdown."""

from __future__ import annotations

import queue
import socketserver
import threading
import time
from typing import Any, Callable, Iterable, Sequence
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer

WSGIApp = Callable[..., Iterable[bytes]]
Middleware = Callable[[WSGIApp], WSGIApp]

DEFAULT_ADDR = ":8080"
_POLL_INTERVAL = 0.05


def default_addr() -> str:
    """Return the address a server listens on when none is given."""
    return DEFAULT_ADDR


class ServerClosed(Exception):
    """The server was shut down and no longer serves."""

    def __init__(self, message: str = "http: Server closed") -> None:
        super().__init__(message)


class ShutdownError(Exception):
    """Active requests did not finish within the shutdown timeout."""


class _RequestHandler(WSGIRequestHandler):
    def setup(self) -> None:
        self.timeout = self.server.owner.read_timeout
        super().setup()

    def parse_request(self) -> bool:
        ok = super().parse_request()
        self.connection.settimeout(self.server.owner.write_timeout)
        return ok

    def log_message(self, format: str, *args: Any) -> None:
        pass


class _ThreadingWSGIServer(socketserver.ThreadingMixIn, WSGIServer):
    daemon_threads = True
    block_on_close = False

    def __init__(self, owner: Server) -> None:
        self.owner = owner
        host, _, port = owner.addr().rpartition(":")
        super().__init__((host, int(port or 0)), _RequestHandler)

    def process_request(self, request: Any, client_address: Any) -> None:
        with self.owner._idle:
            self.owner._active += 1
        super().process_request(request, client_address)

    def process_request_thread(self, request: Any, client_address: Any) -> None:
        try:
            super().process_request_thread(request, client_address)
        finally:
            with self.owner._idle:
                self.owner._active -= 1
                self.owner._idle.notify_all()


class Server:
    """Serves a WSGI application until stopped, then drains active requests.

    Timeouts are in seconds; a read or write timeout of ``0`` disables it.
    Middlewares wrap the application in order, so the last one is outermost.
    """

    def __init__(
        self,
        app: WSGIApp,
        addr: str = DEFAULT_ADDR,
        read_timeout: float | None = 5.0,
        write_timeout: float | None = 5.0,
        shutdown_timeout: float = 3.0,
        middlewares: Sequence[Middleware] = (),
    ) -> None:
        for middleware in middlewares:
            app = middleware(app)
        self.app = app
        self.read_timeout = read_timeout or None
        self.write_timeout = write_timeout or None
        self.shutdown_timeout = shutdown_timeout
        self._addr = addr
        self._closed = False
        self._httpd: _ThreadingWSGIServer | None = None
        self._active = 0
        self._idle = threading.Condition()

    def addr(self) -> str:
        """Return the configured listening address."""
        return self._addr

    def start(self, stop: threading.Event | None = None) -> None:
        """Serve until ``stop`` is set, then shut down gracefully.

        Raises :class:`ShutdownError` if draining timed out, the listen error if
        binding failed, or :class:`ServerClosed` after a direct :meth:`shutdown`.
        """
        stop = stop or threading.Event()
        results: queue.Queue[BaseException] = queue.Queue(maxsize=1)
        threading.Thread(target=self._serve, args=(results,), daemon=True).start()
        while not stop.is_set():
            try:
                serve_error = results.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            if stop.is_set() and isinstance(serve_error, ServerClosed):
                return
            raise serve_error

        try:
            self.shutdown()
        finally:
            serve_error = results.get()
        if not isinstance(serve_error, ServerClosed):
            raise serve_error

    def shutdown(self) -> None:
        """Stop accepting connections and wait for active requests to finish."""
        deadline = time.monotonic() + self.shutdown_timeout
        with self._idle:
            self._closed = True
            httpd = self._httpd
        if httpd is not None:
            httpd.shutdown()
            httpd.server_close()
        with self._idle:
            drained = self._idle.wait_for(
                lambda: self._active == 0, max(0.0, deadline - time.monotonic())
            )
        if not drained:
            raise ShutdownError(
                "failed to shutdown server: context deadline exceeded"
            ) from TimeoutError("context deadline exceeded")

    def _serve(self, results: queue.Queue[BaseException]) -> None:
        try:
            if self._closed:
                raise ServerClosed()
            httpd = _ThreadingWSGIServer(self)
            httpd.set_app(self.app)
            with self._idle:
                if self._closed:
                    httpd.server_close()
                    raise ServerClosed()
                self._httpd = httpd
            httpd.serve_forever(poll_interval=_POLL_INTERVAL)
            raise ServerClosed()
        except Exception as exc:
            results.put(exc)