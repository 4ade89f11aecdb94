"""
Request timing middleware.

Stamps every request with an id (the caller's X-Request-ID when present),
measures its duration, and returns both as response headers:

    X-Request-ID, X-Request-Duration-Ms

Board writes are logged at INFO with their outcome; reads only at DEBUG.
Requests slower than SLOW_REQUEST_MS are logged at WARNING.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
DEFAULT_SLOW_REQUEST_MS = 1000


def init_request_timing(app: Flask):
    """Register before/after hooks for request ids and timing."""
    threshold = app.config.get("SLOW_REQUEST_MS", DEFAULT_SLOW_REQUEST_MS)

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = g.request_id

        if request.path.startswith("/api/v1/health"):
            return response

        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "remote_addr": request.remote_addr,
        }
        msg = "%s %s → %d"
        args = (request.method, request.path, response.status_code)
        if duration_ms > threshold:
            logger.warning("Slow request: " + msg, *args, extra=extra)
        elif response.status_code >= 500:
            logger.error(msg, *args, extra=extra)
        elif request.method in _WRITE_METHODS:
            logger.info(msg, *args, extra=extra)
        else:
            logger.debug(msg, *args, extra=extra)
        return response
