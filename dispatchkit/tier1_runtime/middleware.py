"""
dispatchkit.tier1_runtime.middleware
─────────────────────────────────────
WSGI hosting for dispatchkit handlers. ``DispatchApp`` is a WSGI
application that binds per-request log context, builds a Request, runs the
Dispatcher against a ResponseWriter backed by ``start_response``, and logs
request completion.

Usage (any WSGI server)::

    from dispatchkit import DispatchApp, require_permission

    app = DispatchApp(require_permission("write", save_entry))
"""
from __future__ import annotations

import time
import uuid
from typing import Any, Callable, Iterable
from wsgiref.headers import Headers

from dispatchkit.tier0_core.config import DispatchConfig
from dispatchkit.tier0_core.http import HTTP, status_line
from dispatchkit.tier0_core.logging import bind_context, clear_context, get_logger
from dispatchkit.tier1_runtime.dispatch import Dispatcher, Handler
from dispatchkit.tier1_runtime.request import Request


# ── Response writer ────────────────────────────────────────────────────────

class WSGIResponseWriter:
    """
    ResponseWriter over a WSGI ``start_response``. The status is committed
    once, on the first write_header or write; later status writes are logged
    and ignored.
    """

    def __init__(self, start_response: Callable) -> None:
        self._start_response = start_response
        self._headers = Headers([])
        self._status_code = 0
        self._chunks: list[bytes] = []

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def status_code(self) -> int:
        return self._status_code

    def write_header(self, status_code: int) -> None:
        if self._status_code:
            get_logger(__name__).warning(
                "response.superfluous_write_header",
                status_code=status_code,
                committed=self._status_code,
            )
            return
        self._status_code = status_code
        self._start_response(status_line(status_code), self._headers.items())

    def write(self, data: bytes) -> int:
        if not self._status_code:
            self.write_header(HTTP.OK)
        self._chunks.append(bytes(data))
        return len(data)

    def finish(self) -> Iterable[bytes]:
        """Commit an implicit 200 if nothing was written and return the body."""
        if not self._status_code:
            self.write_header(HTTP.OK)
        return self._chunks


# ── WSGI application ───────────────────────────────────────────────────────

class DispatchApp:
    """WSGI application serving one handler through the Dispatcher."""

    def __init__(
        self,
        handler: Handler,
        config: DispatchConfig | None = None,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        self.handler = handler
        self.dispatcher = dispatcher or Dispatcher(config)

    def __call__(self, environ: dict, start_response: Callable) -> Any:
        request_id = (
            environ.get("HTTP_X_REQUEST_ID")
            or environ.get("HTTP_X_CORRELATION_ID")
            or str(uuid.uuid4())
        )
        bind_context(request_id=request_id)

        request = Request.from_environ(environ)
        writer = WSGIResponseWriter(start_response)
        start = time.perf_counter()
        try:
            self.dispatcher.dispatch(self.handler, request, writer)
            return writer.finish()
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            get_logger(__name__).info(
                "request_completed",
                duration_ms=round(duration_ms, 2),
                method=request.method,
                path=request.path,
                status_code=writer.status_code,
            )
            clear_context()


__all__ = ["WSGIResponseWriter", "DispatchApp"]
