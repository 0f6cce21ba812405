"""
dispatchkit.tier0_core.errors
──────────────────────────────
Error taxonomy for request handlers. Every handler failure carries:
- detail: internal context for the server log, never shown to callers
- user_message: safe to surface to the caller (None = internal error)
- status_code: explicit HTTP status override (None = default policy)
- redirect: navigational outcome, exclusive of any error body

Handlers raise these (or any other exception) or return an ErrorDescriptor.
"""
from __future__ import annotations

from dataclasses import dataclass


# ── Value types ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Redirect:
    """Redirect target attached to a handler failure."""
    status_code: int
    url: str

    def __post_init__(self) -> None:
        if not 300 <= self.status_code < 400:
            raise ValueError(f"redirect status must be 3xx, got {self.status_code}")
        if not self.url:
            raise ValueError("redirect url must not be empty")


@dataclass(frozen=True)
class ErrorDescriptor:
    """Structured failure information produced by a handler."""
    log_message: str
    user_message: str | None = None
    status_code: int | None = None
    redirect: Redirect | None = None

    @property
    def is_client_error(self) -> bool:
        return bool(self.user_message)


# ── Base error ────────────────────────────────────────────────────────────────

class DispatchError(Exception):
    """
    Base class for handler errors that carry response hints.

    Class-level ``status_code`` and ``user_message`` act as defaults for
    subclasses; constructor arguments override them.
    """

    status_code: int | None = None
    user_message: str | None = None

    def __init__(
        self,
        detail: str,
        user_message: str | None = None,
        status_code: int | None = None,
        redirect: Redirect | None = None,
    ) -> None:
        self.detail = detail
        if user_message is not None:
            self.user_message = user_message
        if status_code is not None:
            self.status_code = status_code
        self.redirect = redirect
        super().__init__(detail)


# ── Typed error classes ───────────────────────────────────────────────────────

class UserError(DispatchError):
    """Failure whose message is safe to show to the caller."""

    def __init__(
        self,
        user_message: str,
        detail: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(detail or user_message, user_message, status_code)


class NotFoundError(UserError):
    """Requested resource does not exist."""
    status_code = 404

    def __init__(self, user_message: str = "not found", detail: str | None = None) -> None:
        super().__init__(user_message, detail)


class ConflictError(UserError):
    """Resource state conflict (e.g., duplicate creation)."""
    status_code = 409


class ForbiddenError(UserError):
    """Caller is not allowed to perform this action."""
    status_code = 403

    def __init__(self, user_message: str = "Forbidden", detail: str | None = None) -> None:
        super().__init__(user_message, detail)


class RedirectError(DispatchError):
    """Navigational outcome, e.g. sending an anonymous user to a login page."""

    def __init__(self, url: str, status_code: int = 302, detail: str | None = None) -> None:
        super().__init__(
            detail or f"redirect to {url}",
            redirect=Redirect(status_code, url),
        )


class FormParseError(DispatchError):
    """Request body claimed to be multipart but could not be parsed."""
    status_code = 400
    user_message = "could not parse form"


class ConfigurationError(Exception):
    """Misconfiguration detected at construction time."""


# ── Hint extraction ───────────────────────────────────────────────────────────

def _cause_chain(exc: BaseException):
    seen: set[int] = set()
    cur: BaseException | None = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        yield cur
        cur = cur.__cause__


def user_error_message(exc: BaseException) -> str | None:
    """Return the first user-safe message found along the cause chain."""
    for e in _cause_chain(exc):
        if isinstance(e, DispatchError) and e.user_message:
            return e.user_message
    return None


def error_status_code(exc: BaseException) -> int | None:
    """Return the first explicit status code found along the cause chain."""
    for e in _cause_chain(exc):
        if isinstance(e, DispatchError) and e.status_code is not None:
            return e.status_code
    return None


def error_redirect(exc: BaseException) -> Redirect | None:
    """Return the first redirect found along the cause chain."""
    for e in _cause_chain(exc):
        if isinstance(e, DispatchError) and e.redirect is not None:
            return e.redirect
    return None


def describe_error(exc: BaseException) -> ErrorDescriptor:
    """
    Collapse an exception (and anything it was raised ``from``) into an
    ErrorDescriptor. The outermost exception wins for each field, so a
    wrapper can override the status or message of the error it wraps.

    Usage:
        try:
            store.save(entry)
        except KeyError as exc:
            raise ConflictError("entry already exists") from exc
    """
    if isinstance(exc, DispatchError):
        log_message = exc.detail
    else:
        log_message = f"{type(exc).__name__}: {exc}"
    causes = [str(e) for e in list(_cause_chain(exc))[1:] if str(e)]
    if causes:
        log_message = ": ".join([log_message, *causes])
    return ErrorDescriptor(
        log_message=log_message,
        user_message=user_error_message(exc),
        status_code=error_status_code(exc),
        redirect=error_redirect(exc),
    )


__all__ = [
    "Redirect",
    "ErrorDescriptor",
    "DispatchError",
    "UserError",
    "NotFoundError",
    "ConflictError",
    "ForbiddenError",
    "RedirectError",
    "FormParseError",
    "ConfigurationError",
    "user_error_message",
    "error_status_code",
    "error_redirect",
    "describe_error",
]
