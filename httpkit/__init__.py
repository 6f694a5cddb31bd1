"""A JSON HTTP client with retries and a WSGI server with graceful shutdown."""

__version__ = "0.1.0"
__all__ = ["client", "server"]