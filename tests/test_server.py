import socket
import threading
import time
import urllib.request
from wsgiref.util import setup_testing_defaults

import pytest

from httpkit.server import Server, ServerClosed, ShutdownError, default_addr


def free_addr():
    with socket.socket() as sock:
        sock.bind(("", 0))
        port = sock.getsockname()[1]
    return f":{port}"


def url_for(addr, path="/"):
    return f"http://127.0.0.1{addr}{path}"


def wait_listening(addr, timeout=2.0):
    port = int(addr.rsplit(":", 1)[1])
    end = time.monotonic() + timeout
    while time.monotonic() < end:
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=0.1):
                return True
        except OSError:
            time.sleep(0.01)
    return False


def run_in_background(server, stop):
    outcome = {}

    def target():
        try:
            outcome["result"] = server.start(stop)
        except BaseException as exc:
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    return thread, outcome


def ok_app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [b"ok"]


def test_addr_default():
    server = Server(ok_app)
    assert server.addr() == ":8080"


def test_with_addr_option():
    addr = free_addr()
    assert Server(ok_app, addr=addr).addr() == addr


def test_shutdown_before_start():
    server = Server(ok_app)
    assert server.shutdown() is None
    with pytest.raises(ServerClosed):
        server.start(threading.Event())


def test_start_immediate_cancel():
    calls = []

    def app(environ, start_response):
        calls.append(1)
        start_response("500 Internal Server Error", [])
        return [b""]

    server = Server(app, addr=free_addr())
    stop = threading.Event()
    stop.set()
    assert server.start(stop) is None
    assert calls == []


def test_start_handles_requests_and_shutdown():
    calls = []

    def app(environ, start_response):
        calls.append(environ["PATH_INFO"])
        start_response("200 OK", [])
        return [b""]

    addr = free_addr()
    server = Server(app, addr=addr)
    stop = threading.Event()
    thread, outcome = run_in_background(server, stop)
    assert wait_listening(addr)

    with urllib.request.urlopen(url_for(addr, "/test"), timeout=2) as response:
        assert response.status == 200

    stop.set()
    thread.join(2)
    assert not thread.is_alive()
    assert outcome == {"result": None}
    assert calls == ["/test"]


def test_new_server_with_options():
    addr = free_addr()
    server = Server(
        ok_app, addr=addr, read_timeout=10, write_timeout=11, shutdown_timeout=7
    )
    assert server.addr() == addr
    assert (server.read_timeout, server.write_timeout, server.shutdown_timeout) == (10, 11, 7)

    defaults = Server(ok_app)
    assert defaults.addr() == default_addr()
    assert (defaults.read_timeout, defaults.write_timeout, defaults.shutdown_timeout) == (
        5.0,
        5.0,
        3.0,
    )


def test_start_listen_error():
    addr = free_addr()
    port = int(addr[1:])
    with socket.socket() as blocker:
        blocker.bind(("", port))
        blocker.listen()
        server = Server(ok_app, addr=addr)
        with pytest.raises(OSError):
            server.start(threading.Event())


def test_graceful_shutdown_with_long_request():
    started = threading.Event()

    def slow_app(environ, start_response):
        started.set()
        time.sleep(0.2)
        start_response("200 OK", [("Content-Type", "text/plain")])
        return [b"done"]

    addr = free_addr()
    server = Server(slow_app, addr=addr, shutdown_timeout=0.5)
    stop = threading.Event()
    thread, outcome = run_in_background(server, stop)
    assert wait_listening(addr)

    client_result = {}

    def fetch():
        try:
            with urllib.request.urlopen(url_for(addr, "/long"), timeout=2) as response:
                client_result["status"] = response.status
                client_result["body"] = response.read()
        except Exception as exc:
            client_result["error"] = exc

    client = threading.Thread(target=fetch, daemon=True)
    client.start()
    assert started.wait(1)
    stop.set()

    client.join(1)
    assert client_result == {"status": 200, "body": b"done"}
    thread.join(1)
    assert outcome == {"result": None}


def test_shutdown_timeout_exceeded():
    started = threading.Event()
    release = threading.Event()

    def hanging_app(environ, start_response):
        started.set()
        release.wait(0.2)
        start_response("200 OK", [])
        return [b""]

    addr = free_addr()
    server = Server(hanging_app, addr=addr, shutdown_timeout=0.05)
    stop = threading.Event()
    thread, outcome = run_in_background(server, stop)
    assert wait_listening(addr)

    def fetch():
        try:
            urllib.request.urlopen(url_for(addr, "/hang"), timeout=2).close()
        except Exception:
            pass

    threading.Thread(target=fetch, daemon=True).start()
    try:
        assert started.wait(1)
        stop.set()
        thread.join(1)
    finally:
        release.set()

    error = outcome["error"]
    assert isinstance(error, ShutdownError)
    assert "failed to shutdown server" in str(error)
    assert isinstance(error.__cause__, TimeoutError)


def test_start_and_manual_shutdown():
    addr = free_addr()
    server = Server(ok_app, addr=addr)
    thread, outcome = run_in_background(server, threading.Event())
    assert wait_listening(addr)

    with urllib.request.urlopen(url_for(addr), timeout=2) as response:
        assert response.status == 200

    assert server.shutdown() is None
    thread.join(2)
    assert isinstance(outcome["error"], ServerClosed)


def test_middlewares_wrap_in_order():
    order = []

    def named(name):
        def middleware(app):
            def wrapped(environ, start_response):
                order.append(name)
                return app(environ, start_response)

            return wrapped

        return middleware

    def app(environ, start_response):
        order.append("app")
        return ok_app(environ, start_response)

    server = Server(app, middlewares=[named("first"), named("second")])
    environ = {}
    setup_testing_defaults(environ)
    statuses = []
    body = server.app(environ, lambda status, headers: statuses.append(status))
    assert list(body) == [b"ok"]
    assert statuses == ["200 OK"]
    assert order == ["second", "first", "app"]