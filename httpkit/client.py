"""JSON-over-HTTP client that retries on server errors."""

from __future__ import annotations

import http.client
import json
import time
import urllib.error
import urllib.request
from typing import Any, Callable, Mapping

Backoff = Callable[[int], float]


def default_backoff(attempt: int) -> float:
    """Return the wait in seconds before the next try: half a second per attempt."""
    return attempt * 0.5


class ClientError(Exception):
    """Base class for every error raised by :class:`Client`."""


class EncodeError(ClientError):
    """The request body could not be encoded as JSON."""


class RequestError(ClientError):
    """The request could not be built or sent."""


class StatusError(ClientError):
    """The server answered with a status of 300 or above."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"unexpected status {status}: {body}")
        self.status = status
        self.body = body


class DecodeError(ClientError):
    """The response body was not valid JSON."""


class DeadlineExceeded(ClientError, TimeoutError):
    """The caller's deadline passed before the request completed."""

    def __init__(self, message: str = "context deadline exceeded") -> None:
        super().__init__(message)


class Client:
    """HTTP client with JSON helpers, default headers and retries on 5xx answers.

    ``timeout`` is in seconds; ``0`` or ``None`` disables it. ``backoff`` maps the
    zero-based attempt number to a wait in seconds. Deadlines are absolute
    :func:`time.monotonic` values.
    """

    def __init__(
        self,
        timeout: float | None = 30.0,
        retries: int = 3,
        backoff: Backoff = default_backoff,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.timeout = timeout or None
        self.retries = retries
        self.backoff = backoff
        self.headers = dict(headers or {})

    def get_json(self, url: str, deadline: float | None = None) -> Any:
        """GET ``url`` and return the decoded JSON answer."""
        return self._do_json("GET", url, None, deadline)

    def post_json(self, url: str, body: Any, deadline: float | None = None) -> Any:
        """POST ``body`` as JSON to ``url`` and return the decoded JSON answer."""
        return self._do_json("POST", url, body, deadline)

    def _do_json(self, method: str, url: str, body: Any, deadline: float | None) -> Any:
        data = None
        if body is not None:
            try:
                data = json.dumps(body).encode("utf-8")
            except (TypeError, ValueError) as exc:
                raise EncodeError(f"marshal request body: {exc}") from exc

        try:
            request = urllib.request.Request(url, data=data, method=method)
        except ValueError as exc:
            raise RequestError(f"create request: {exc}") from exc
        request.add_header("Accept", "application/json")
        for name, value in self.headers.items():
            if not request.has_header(name.capitalize()):
                request.add_header(name, value)
        if data is not None:
            request.add_header("Content-Type", "application/json")

        status, payload, error = 0, b"", None
        for attempt in range(self.retries + 1):
            try:
                status, payload = self._send(request, deadline)
                error = None
                if status < 500:
                    break
            except DeadlineExceeded:
                raise
            except (OSError, http.client.HTTPException) as exc:
                error = exc
            self._pause(self.backoff(attempt), deadline)

        if error is not None:
            raise RequestError(f"request failed: {error}") from error
        if status >= 300:
            raise StatusError(status, payload.decode("utf-8", "replace"))
        try:
            value, _ = json.JSONDecoder().raw_decode(payload.decode("utf-8").lstrip())
        except ValueError as exc:
            raise DecodeError(f"decode JSON: {exc}") from exc
        return value

    def _send(self, request: urllib.request.Request, deadline: float | None) -> tuple[int, bytes]:
        timeout = self.timeout
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise DeadlineExceeded()
            timeout = remaining if timeout is None else min(timeout, remaining)
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                return response.status, response.read()
        except urllib.error.HTTPError as exc:
            with exc:
                return exc.code, exc.read()

    @staticmethod
    def _pause(wait: float, deadline: float | None) -> None:
        wait = max(wait, 0.0)
        if deadline is not None and wait >= deadline - time.monotonic():
            time.sleep(max(deadline - time.monotonic(), 0.0))
            raise DeadlineExceeded()
        time.sleep(wait)