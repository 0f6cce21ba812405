"""
dispatchkit.tier1_runtime.form
───────────────────────────────
Scoped form parsing. Query parameters and url-encoded bodies land in
``request.form``; multipart bodies also fill ``request.files``, spilling
large files into a per-request upload directory. Parsing yields a cleanup
action that removes that directory; the caller runs it once the handler is
done, on every exit path.

Stack: python-multipart (streaming multipart parser, tempfile spilling)
"""
from __future__ import annotations

import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from typing import Callable, Iterator
from urllib.parse import parse_qsl

from python_multipart import FormParser
from python_multipart.exceptions import FormParserError
from python_multipart.multipart import parse_options_header

from dispatchkit.tier0_core.errors import FormParseError
from dispatchkit.tier0_core.logging import get_logger
from dispatchkit.tier1_runtime.request import Request, UploadedFile

_CHUNK_SIZE = 64 * 1024
_MAX_URLENCODED = 10 << 20
_MULTIPART = b"multipart/form-data"
_URLENCODED = b"application/x-www-form-urlencoded"
_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class Cleanup:
    """Release action that runs its body at most once, however often called."""

    def __init__(self, release: Callable[[], None] | None = None) -> None:
        self._release = release
        self._lock = threading.Lock()
        self._done = False

    def __call__(self) -> None:
        with self._lock:
            if self._done:
                return
            self._done = True
        if self._release is not None:
            self._release()

    @property
    def done(self) -> bool:
        return self._done


def _decode(value: bytes | None) -> str | None:
    if value is None:
        return None
    return value.decode("utf-8", errors="replace")


def _merge(form: dict[str, list[str]], pairs) -> None:
    for name, value in pairs:
        form.setdefault(name, []).append(value)


def _query_pairs(request: Request) -> list[tuple[str, str]]:
    return parse_qsl(request.query_string, keep_blank_values=True)


def _release_uploads(upload_dir: str, files: dict[str, list[UploadedFile]]) -> None:
    """Close every upload and delete the upload directory. Failures are logged."""
    for uploads in files.values():
        for upload in uploads:
            upload.file.close()
    try:
        shutil.rmtree(upload_dir)
    except OSError as exc:
        get_logger(__name__).error("form.cleanup_failed", error=str(exc), dir=upload_dir)


def _content_length(request: Request) -> int | None:
    raw = request.header("Content-Length")
    if not raw:
        return None
    try:
        length = int(raw)
    except ValueError:
        raise FormParseError(f"invalid Content-Length {raw!r}") from None
    if length < 0:
        raise FormParseError(f"invalid Content-Length {raw!r}")
    return length


def _read_chunks(request: Request, length: int | None) -> Iterator[bytes]:
    remaining = length
    while remaining is None or remaining > 0:
        size = _CHUNK_SIZE if remaining is None else min(_CHUNK_SIZE, remaining)
        chunk = request.body.read(size)
        if not chunk:
            break
        if remaining is not None:
            remaining -= len(chunk)
        yield chunk
    if remaining:
        raise FormParseError(f"unexpected end of body, {remaining} bytes missing")


def _parse_urlencoded(request: Request) -> None:
    length = _content_length(request)
    if length is not None and length > _MAX_URLENCODED:
        raise FormParseError(f"url-encoded body of {length} bytes is too large")
    body = bytearray()
    for chunk in _read_chunks(request, length):
        body += chunk
        if len(body) > _MAX_URLENCODED:
            raise FormParseError("url-encoded body is too large")
    form: dict[str, list[str]] = {}
    _merge(form, parse_qsl(_decode(bytes(body)), keep_blank_values=True))
    _merge(form, _query_pairs(request))
    request.form = form


def _parse_multipart(request: Request, boundary: bytes, max_memory: int, upload_dir: str) -> None:
    length = _content_length(request)
    fields: dict[str, list[str]] = {}
    files: dict[str, list[UploadedFile]] = {}
    finished = False

    def on_field(f) -> None:
        fields.setdefault(_decode(f.field_name) or "", []).append(_decode(f.value) or "")

    def on_file(f) -> None:
        f.file_object.seek(0)
        name = _decode(f.field_name) or ""
        files.setdefault(name, []).append(
            UploadedFile(
                field_name=name,
                filename=_decode(f.file_name),
                size=f.size,
                file=f.file_object,
                path=None if f.in_memory else os.fsdecode(f.actual_file_name),
            )
        )

    def on_end() -> None:
        nonlocal finished
        finished = True

    parser = FormParser(
        "multipart/form-data",
        on_field,
        on_file,
        on_end=on_end,
        boundary=boundary,
        config={
            "MAX_MEMORY_FILE_SIZE": max_memory,
            "UPLOAD_DIR": upload_dir,
            "UPLOAD_DELETE_TMP": False,
        },
    )
    # Files are attached before parsing so a failed parse still closes them.
    request.files = files
    for chunk in _read_chunks(request, length):
        parser.write(chunk)
    parser.finalize()
    if not finished:
        raise FormParseError("multipart body ended before the closing boundary")

    form: dict[str, list[str]] = {}
    _merge(form, _query_pairs(request))
    for name, values in fields.items():
        _merge(form, ((name, v) for v in values))
    request.form = form


def parse_multipart_form(request: Request, max_memory: int) -> Cleanup:
    """
    Parse the request's form. Query parameters are always parsed; POST, PUT
    and PATCH bodies are parsed when url-encoded or multipart. Multipart
    files larger than max_memory bytes spill to a temporary directory that
    the returned cleanup removes.

    Anything other than a multipart body yields a cleanup that does nothing.
    A malformed body raises FormParseError.
    """
    content_type, params = parse_options_header(request.content_type)
    has_body = request.method in _BODY_METHODS

    if has_body and content_type == _URLENCODED:
        try:
            _parse_urlencoded(request)
        except FormParseError:
            raise
        except Exception as exc:
            raise FormParseError("url-encoded parse") from exc
        return Cleanup()

    if content_type != _MULTIPART:
        request.form = {}
        _merge(request.form, _query_pairs(request))
        return Cleanup()

    boundary = params.get(b"boundary")
    if not boundary:
        raise FormParseError("multipart body has no boundary")

    upload_dir = tempfile.mkdtemp(prefix="dispatchkit-")
    try:
        _parse_multipart(request, boundary, max_memory, upload_dir)
    except FormParseError:
        _release_uploads(upload_dir, request.files)
        raise
    except FormParserError as exc:
        _release_uploads(upload_dir, request.files)
        raise FormParseError("multipart parse") from exc
    except Exception as exc:
        _release_uploads(upload_dir, request.files)
        raise FormParseError("reading multipart body") from exc
    except BaseException:
        _release_uploads(upload_dir, request.files)
        raise

    files = request.files
    return Cleanup(lambda: _release_uploads(upload_dir, files))


@contextmanager
def scoped_form(request: Request, max_memory: int) -> Iterator[Request]:
    """
    Parse the request's form and release it when the block exits.

    Usage:
        with scoped_form(request, config.max_form_memory) as req:
            handle(req.files["upload"][0].read())
    """
    cleanup = parse_multipart_form(request, max_memory)
    try:
        yield request
    finally:
        cleanup()


__all__ = ["Cleanup", "parse_multipart_form", "scoped_form"]
