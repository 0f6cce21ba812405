"""
dispatchkit.tier0_core.logging
───────────────────────────────
One structlog pipeline for the dispatch layer. Every record carries the
bound request fields (request_id from the WSGI adapter, method and path
from the dispatcher), an ISO timestamp and, for server errors, the
rendered traceback. Header and credential values are masked before output.

Output goes to stdout through the stdlib root logger so a WSGI server's own
records share the same renderer.
Configure via: DISPATCH_LOG_LEVEL, DISPATCH_LOG_FORMAT=json|console
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_MASKED_FIELDS = frozenset({
    "authorization", "cookie", "set-cookie", "x-sandstorm-permissions",
    "password", "passwd", "secret", "token", "api_key", "session",
    "access_token", "refresh_token", "client_secret", "credential",
})

_MASK = "[REDACTED]"

_configured = False


def _mask_fields(logger: Any, method: str, event_dict: dict) -> dict:
    for key in event_dict:
        if key.lower() in _MASKED_FIELDS:
            event_dict[key] = _MASK
    return event_dict


def _setup() -> None:
    from dispatchkit.tier0_core.config import get_config

    config = get_config()
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _mask_fields,
    ]
    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.log_format == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.addHandler(stream)
    root.setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Logger for name; the pipeline is set up on the first call.

    The dispatcher takes a fresh logger per request and binds method/path:
        log = get_logger(__name__).bind(method="POST", path="/entries")
        log.warning("request.client_error", error="invalid password")
    """
    global _configured
    if not _configured:
        _setup()
        _configured = True
    return structlog.get_logger(name or __name__)


def bind_context(**kwargs: Any) -> None:
    """Attach fields to every record logged by the current request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = ["get_logger", "bind_context", "clear_context"]
