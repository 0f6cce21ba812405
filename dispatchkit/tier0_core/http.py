"""
dispatchkit.tier0_core.http
────────────────────────────
HTTP primitives: status codes, fixed wire messages, and the two response
helpers every terminal outcome goes through (plain-text error, redirect).
"""
from __future__ import annotations

import html
from http import HTTPStatus
from typing import TYPE_CHECKING
from urllib.parse import urljoin, urlsplit

if TYPE_CHECKING:
    from dispatchkit.tier1_runtime.request import Request
    from dispatchkit.tier1_runtime.tracker import ResponseWriter


# ── Status code constants ──────────────────────────────────────────────────

class HTTP:
    """HTTP status codes used by the dispatch layer."""

    # 2xx
    OK = 200
    NO_CONTENT = 204

    # 3xx
    MOVED_PERMANENTLY = 301
    FOUND = 302
    SEE_OTHER = 303
    TEMPORARY_REDIRECT = 307

    # 4xx
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    UNPROCESSABLE_ENTITY = 422

    # 5xx
    INTERNAL_SERVER_ERROR = 500


FORBIDDEN_MESSAGE = "Forbidden"
FORM_PARSE_MESSAGE = "could not parse form"
INTERNAL_ERROR_MESSAGE = "internal server error; check logs"


def status_line(status_code: int) -> str:
    """Return a WSGI status line such as ``"404 Not Found"``."""
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        phrase = "Unknown"
    return f"{status_code} {phrase}"


# ── Response helpers ───────────────────────────────────────────────────────

def http_error(writer: ResponseWriter, message: str, status_code: int) -> None:
    """Reply with a plain-text error message and status code."""
    writer.headers["Content-Type"] = "text/plain; charset=utf-8"
    writer.headers["X-Content-Type-Options"] = "nosniff"
    writer.write_header(status_code)
    writer.write(message.encode("utf-8"))


def redirect(writer: ResponseWriter, request: Request, url: str, status_code: int) -> None:
    """
    Reply with a redirect to url. Relative targets are resolved against the
    request path. GET and HEAD replies are typed as HTML; only GET gets the
    short body pointing at the target.
    """
    if not urlsplit(url).scheme and not url.startswith("/"):
        url = urljoin(request.path or "/", url)

    writer.headers["Location"] = url
    if request.method in ("GET", "HEAD"):
        writer.headers["Content-Type"] = "text/html; charset=utf-8"
    writer.write_header(status_code)

    if request.method == "GET":
        body = f'<a href="{html.escape(url)}">{status_line(status_code)[4:]}</a>.\n'
        writer.write(body.encode("utf-8"))


__all__ = [
    "HTTP",
    "FORBIDDEN_MESSAGE",
    "FORM_PARSE_MESSAGE",
    "INTERNAL_ERROR_MESSAGE",
    "status_line",
    "http_error",
    "redirect",
]
