"""
dispatchkit.tier1_runtime.tracker
──────────────────────────────────
Response sink protocol and an observation decorator over it. The tracker
forwards every call unchanged and only records what went through, so the
dispatcher can tell whether a handler already started its response.
"""
from __future__ import annotations

from typing import MutableMapping, Protocol, runtime_checkable


# ── Protocol ──────────────────────────────────────────────────────────────────

@runtime_checkable
class ResponseWriter(Protocol):
    """Outbound response sink: headers, a status written once, body bytes."""

    @property
    def headers(self) -> MutableMapping[str, str]: ...

    def write_header(self, status_code: int) -> None: ...

    def write(self, data: bytes) -> int: ...


# ── Tracker ───────────────────────────────────────────────────────────────────

class ResponseTracker:
    """
    ResponseWriter that records the status code and byte count of the
    writer it wraps.

    ``status_code`` is 0 until the handler writes a status, or 200 once it
    writes body bytes without one (the implicit status every sink applies).
    """

    def __init__(self, writer: ResponseWriter) -> None:
        self._writer = writer
        self._status_code = 0
        self._bytes_written = 0

    @property
    def writer(self) -> ResponseWriter:
        return self._writer

    @property
    def headers(self) -> MutableMapping[str, str]:
        return self._writer.headers

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def wrote(self) -> bool:
        """True once a status or any body bytes reached the sink."""
        return self._status_code != 0 or self._bytes_written > 0

    def write_header(self, status_code: int) -> None:
        if self._status_code == 0:
            self._status_code = status_code
        self._writer.write_header(status_code)

    def write(self, data: bytes) -> int:
        if self._status_code == 0:
            self._status_code = 200
        n = self._writer.write(data)
        self._bytes_written += n
        return n


__all__ = ["ResponseWriter", "ResponseTracker"]
