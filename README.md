# httpkit

A small HTTP toolkit with two parts:

- `httpkit.client.Client`: a JSON client that retries on server errors and
  network failures, adds default headers and honours an overall deadline.
- `httpkit.server.Server`: a WSGI server that runs until told to stop, then
  shuts down gracefully within a time limit.

It uses only the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Client

```python
import time
from httpkit.client import Client, StatusError

client = Client(
    timeout=10.0,                       # socket timeout per attempt, seconds; 0 or None disables it
    retries=3,                          # extra attempts after a 5xx answer or a network error
    backoff=lambda attempt: 0.5 * attempt,
    headers={"X-Custom-Header": "default"},
)

data = client.get_json("http://localhost:8080/items")
created = client.post_json("http://localhost:8080/items", {"name": "widget"})
```

`get_json` and `post_json` return the decoded JSON value of the answer
(the first JSON value in the body; anything after it is ignored).

By default the timeout is 30 seconds, there are 3 retries, and the wait
before a retry is `attempt * 0.5` seconds, where `attempt` counts from 0
(see `default_backoff`).

Every request sends `Accept: application/json`. A request with a body also
sends `Content-Type: application/json`. Default headers are added unless a
header of the same name is already set on the request.

The optional `deadline` is an absolute `time.monotonic()` value. Each attempt's
socket timeout is cut down to the time left, and a wait between retries that
would run past the deadline ends the call:

```python
try:
    client.get_json("http://localhost:8080/missing", deadline=time.monotonic() + 2.0)
except StatusError as exc:
    print(exc.status, exc.body)   # str(exc) is "unexpected status 404: ..."
```

The errors all derive from `ClientError`:

| Error              | Raised when                                                       |
|--------------------|-------------------------------------------------------------------|
| `EncodeError`      | the body cannot be encoded as JSON                                |
| `RequestError`     | the request cannot be built, or still fails after every retry     |
| `StatusError`      | the final answer has a status of 300 or above (including a 5xx that persisted through every retry) |
| `DecodeError`      | the answer body is not valid JSON                                 |
| `DeadlineExceeded` | the deadline passes before the call is done; also a `TimeoutError` |

## Server

```python
import threading
from httpkit.server import Server, default_addr

def app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [b"hello"]

def logging_middleware(inner):
    def wrapped(environ, start_response):
        print(environ["REQUEST_METHOD"], environ["PATH_INFO"])
        return inner(environ, start_response)
    return wrapped

server = Server(
    app,
    addr=":8080",            # the default, also given by default_addr(); empty host means all interfaces
    read_timeout=5.0,        # seconds; 0 or None disables it
    write_timeout=5.0,       # seconds; 0 or None disables it
    shutdown_timeout=3.0,
    middlewares=[logging_middleware],
)

stop = threading.Event()
# server.start(stop) blocks until `stop` is set, then shuts down gracefully.
threading.Thread(target=server.start, args=(stop,)).start()
...
stop.set()
```

Middlewares are applied in the order given, each one wrapping the result of
the one before, so the last middleware is the outermost.

Each request is handled in its own thread; request logging is silent.

`start(stop)` returns normally after a graceful stop. If the server cannot
bind its address, that error (an `OSError`) is raised. If in-flight requests
do not finish within `shutdown_timeout`, `ShutdownError` is raised. Calling
`shutdown()` directly while `start` is running makes `start` raise
`ServerClosed`; with no `stop` event given, that is the only way to end it.
`shutdown()` is safe to call before the server has started, and a server shut
down before `start` never serves. `addr()` returns the configured address
as given, not the port chosen by the system for `":0"`.

## What it does not do

There is no command-line program; both parts are used from Python code.
The server speaks plain HTTP only, with no TLS, and does no routing of its
own: the WSGI application decides what each path does.