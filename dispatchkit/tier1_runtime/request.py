"""
dispatchkit.tier1_runtime.request
──────────────────────────────────
Inbound request model. Borrowed by the dispatcher for one dispatch; the
form parser fills in ``form`` from the query string and url-encoded or
multipart bodies, and ``files`` from multipart bodies.
"""
from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any, BinaryIO


@dataclass
class UploadedFile:
    """A file part of a multipart body, in memory or spilled to a temp file."""
    field_name: str
    filename: str | None
    size: int
    file: BinaryIO
    path: str | None = None

    @property
    def in_memory(self) -> bool:
        return self.path is None

    def read(self) -> bytes:
        self.file.seek(0)
        return self.file.read()


@dataclass
class Request:
    """All request data the dispatch layer and handlers look at."""
    method: str = "GET"
    path: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    body: BinaryIO = field(default_factory=io.BytesIO)
    query_string: str = ""
    content_length: int | None = None
    form: dict[str, list[str]] = field(default_factory=dict)
    files: dict[str, list[UploadedFile]] = field(default_factory=dict)
    environ: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> str:
        return self.header("Content-Type")

    def form_value(self, name: str, default: str = "") -> str:
        """Return the first value of a form field."""
        values = self.form.get(name)
        return values[0] if values else default

    @classmethod
    def from_environ(cls, environ: dict[str, Any]) -> Request:
        headers: dict[str, str] = {}
        for key, value in environ.items():
            if key.startswith("HTTP_"):
                headers[key[5:].replace("_", "-")] = value
        for key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            if environ.get(key):
                headers[key.replace("_", "-")] = environ[key]

        content_length: int | None = None
        raw_length = environ.get("CONTENT_LENGTH")
        if raw_length:
            try:
                content_length = int(raw_length)
            except ValueError:
                content_length = None

        return cls(
            method=environ.get("REQUEST_METHOD", "GET"),
            path=environ.get("PATH_INFO", "") or "/",
            headers=headers,
            body=environ.get("wsgi.input") or io.BytesIO(),
            query_string=environ.get("QUERY_STRING", ""),
            content_length=content_length,
            environ=environ,
        )


__all__ = ["Request", "UploadedFile"]
