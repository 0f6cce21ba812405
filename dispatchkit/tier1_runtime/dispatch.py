"""
dispatchkit.tier1_runtime.dispatch
───────────────────────────────────
Runs a handler and turns its outcome into exactly one HTTP response.

Per request, in order:
  1. parse a multipart body (malformed → 400, handler never runs)
  2. wrap the response writer in a ResponseTracker
  3. call the handler
  4. on failure: log it, then redirect, or write an error response if the
     handler has not written a status yet
  5. release the form cleanup, whatever happened above

Handler failures are logged once here and never propagate or get retried.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from dispatchkit.tier0_core.config import DispatchConfig, get_config
from dispatchkit.tier0_core.errors import ErrorDescriptor, describe_error
from dispatchkit.tier0_core.http import (
    FORM_PARSE_MESSAGE,
    HTTP,
    INTERNAL_ERROR_MESSAGE,
    http_error,
    redirect,
)
from dispatchkit.tier0_core.logging import get_logger
from dispatchkit.tier1_runtime.form import Cleanup, parse_multipart_form
from dispatchkit.tier1_runtime.request import Request
from dispatchkit.tier1_runtime.tracker import ResponseTracker, ResponseWriter

Handler = Callable[[ResponseWriter, Request], Optional[ErrorDescriptor]]
FormParser = Callable[[Request, int], Cleanup]


# ── Classification ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Outcome:
    """Response decision for a failed handler."""
    redirect_url: str | None
    status_code: int
    body: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.redirect_url is not None


def default_status(descriptor: ErrorDescriptor) -> int:
    """
    Status for a failure without a redirect:
    explicit code → as given; user message → 400; otherwise → 500.
    """
    if descriptor.status_code is not None:
        return descriptor.status_code
    if descriptor.user_message:
        return HTTP.BAD_REQUEST
    return HTTP.INTERNAL_SERVER_ERROR


def classify(descriptor: ErrorDescriptor) -> Outcome:
    """Map a failure to its response. A redirect excludes any error body."""
    if descriptor.redirect is not None:
        return Outcome(
            redirect_url=descriptor.redirect.url,
            status_code=descriptor.redirect.status_code,
        )
    return Outcome(
        redirect_url=None,
        status_code=default_status(descriptor),
        body=descriptor.user_message or INTERNAL_ERROR_MESSAGE,
    )


# ── Dispatcher ────────────────────────────────────────────────────────────────

class Dispatcher:
    """
    Dispatches requests to handlers under a fixed configuration.

    Usage:
        dispatcher = Dispatcher(DispatchConfig(max_form_memory=1 << 20))
        dispatcher.dispatch(show_entry, request, writer)
    """

    def __init__(
        self,
        config: DispatchConfig | None = None,
        parse_form: FormParser = parse_multipart_form,
    ) -> None:
        self.config = config or get_config()
        self._parse_form = parse_form

    def dispatch(self, handler: Handler, request: Request, writer: ResponseWriter) -> None:
        log = get_logger(__name__).bind(method=request.method, path=request.path)

        try:
            cleanup = self._parse_form(request, self.config.max_form_memory)
        except Exception as exc:
            log.warning("form.parse_failed", error=describe_error(exc).log_message)
            http_error(writer, FORM_PARSE_MESSAGE, HTTP.BAD_REQUEST)
            return

        try:
            tracker = ResponseTracker(writer)
            raised: Exception | None = None
            try:
                result = handler(tracker, request)
            except Exception as exc:
                raised = exc
                result = describe_error(exc)

            if isinstance(result, BaseException):
                raised = result
                result = describe_error(result)
            if isinstance(result, ErrorDescriptor):
                self._fail(result, tracker, request, log, raised)
        finally:
            cleanup()

    __call__ = dispatch

    def _fail(
        self,
        descriptor: ErrorDescriptor,
        tracker: ResponseTracker,
        request: Request,
        log,
        raised: BaseException | None,
    ) -> None:
        if descriptor.is_client_error:
            log.warning(
                "request.client_error",
                error=descriptor.log_message,
                user_message=descriptor.user_message,
                status_code=descriptor.status_code,
            )
        else:
            extra = {"exc_info": raised} if raised is not None else {}
            log.error(
                "request.server_error",
                error=descriptor.log_message,
                status_code=descriptor.status_code,
                **extra,
            )

        outcome = classify(descriptor)
        if outcome.is_redirect:
            redirect(tracker, request, outcome.redirect_url, outcome.status_code)
            return
        if tracker.status_code == 0:
            http_error(tracker, outcome.body, outcome.status_code)


def dispatch(
    handler: Handler,
    request: Request,
    writer: ResponseWriter,
    config: DispatchConfig | None = None,
) -> None:
    """Dispatch one request with the given (or process) configuration."""
    Dispatcher(config).dispatch(handler, request, writer)


__all__ = [
    "Handler",
    "Outcome",
    "default_status",
    "classify",
    "Dispatcher",
    "dispatch",
]
