"""
dispatchkit test configuration.

All tests run against in-memory fakes — no WSGI server or network required.
Override settings by exporting DISPATCH_* variables before running pytest.
"""
from __future__ import annotations

import io
import os
from wsgiref.headers import Headers

import pytest

# ── Test defaults ──────────────────────────────────────────────────────────
# These must be set before any dispatchkit config is built.

os.environ.setdefault("DISPATCH_PERMISSIONS", "true")
os.environ.setdefault("DISPATCH_LOG_LEVEL", "DEBUG")
os.environ.setdefault("DISPATCH_LOG_FORMAT", "console")


# ── Fakes ──────────────────────────────────────────────────────────────────

class RecordingWriter:
    """ResponseWriter that records every call instead of sending anything."""

    def __init__(self) -> None:
        self.headers = Headers([])
        self.status_calls: list[int] = []
        self.chunks: list[bytes] = []

    def write_header(self, status_code: int) -> None:
        self.status_calls.append(status_code)

    def write(self, data: bytes) -> int:
        self.chunks.append(bytes(data))
        return len(data)

    @property
    def status(self) -> int:
        if self.status_calls:
            return self.status_calls[0]
        return 200 if self.chunks else 0

    @property
    def body(self) -> str:
        return b"".join(self.chunks).decode("utf-8")


class CountingHandler:
    """Handler that counts calls and optionally writes a fixed body."""

    def __init__(self, body: bytes = b"ok") -> None:
        self.calls = 0
        self.body = body

    def __call__(self, writer, request):
        self.calls += 1
        writer.write(self.body)
        return None


def multipart_body(boundary: str, fields=(), files=()) -> bytes:
    out = b""
    for name, value in fields:
        out += (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
            f"{value}\r\n"
        ).encode()
    for name, filename, data in files:
        out += (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            "Content-Type: application/octet-stream\r\n\r\n"
        ).encode() + data + b"\r\n"
    return out + f"--{boundary}--\r\n".encode()


def make_request(method="POST", path="/", body=b"", content_type=None, headers=None):
    from dispatchkit.tier1_runtime.request import Request

    all_headers = dict(headers or {})
    if content_type is not None:
        all_headers["Content-Type"] = content_type
    if body:
        all_headers["Content-Length"] = str(len(body))
    return Request(method=method, path=path, headers=all_headers, body=io.BytesIO(body))


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure structlog once so capture_logs() can swap processors later."""
    from dispatchkit.tier0_core.logging import get_logger
    get_logger("dispatchkit.tests")


@pytest.fixture(autouse=True)
def reset_config():
    """Each test sees a config built from the current environment."""
    from dispatchkit.tier0_core.config import _reset_config
    _reset_config()
    yield
    _reset_config()


@pytest.fixture
def writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def counting_handler() -> CountingHandler:
    return CountingHandler()


@pytest.fixture
def config():
    from dispatchkit.tier0_core.config import DispatchConfig
    return DispatchConfig(enforce_permissions=True, max_form_memory=1024)
