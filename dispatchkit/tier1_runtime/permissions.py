"""
dispatchkit.tier1_runtime.permissions
──────────────────────────────────────
Permission gate: wraps a handler so it only runs when the caller holds a
named permission. The permission source is pluggable; the default one reads
a comma-separated permission list from a request header, the way a
Sandstorm grain receives ``X-Sandstorm-Permissions``.

Configure via: DISPATCH_PERMISSIONS=true|false, DISPATCH_PERMISSIONS_HEADER
"""
from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Iterable, Mapping, Protocol, runtime_checkable

from dispatchkit.tier0_core.config import DispatchConfig, get_config
from dispatchkit.tier0_core.http import FORBIDDEN_MESSAGE, HTTP, http_error
from dispatchkit.tier0_core.logging import get_logger

if TYPE_CHECKING:
    from dispatchkit.tier1_runtime.dispatch import Handler


# ── Protocol ──────────────────────────────────────────────────────────────────

@runtime_checkable
class PermissionChecker(Protocol):
    def has_permission(self, headers: Mapping[str, str], permission: str) -> bool: ...


# ── Header-based source ───────────────────────────────────────────────────────

class HeaderPermissionChecker:
    """Permissions listed in a request header, e.g. ``read,write``."""

    def __init__(self, header: str = "X-Sandstorm-Permissions") -> None:
        self.header = header.lower()

    def has_permission(self, headers: Mapping[str, str], permission: str) -> bool:
        value = ""
        for key, v in headers.items():
            if key.lower() == self.header:
                value = v
                break
        return permission in {p.strip() for p in value.split(",") if p.strip()}


class MockPermissionChecker:
    """Fixed grant set for tests. Records every check it answers."""

    def __init__(self, granted: Iterable[str] = ()) -> None:
        self.granted = set(granted)
        self.checks: list[str] = []

    def has_permission(self, headers: Mapping[str, str], permission: str) -> bool:
        self.checks.append(permission)
        return permission in self.granted


# ── Gate ──────────────────────────────────────────────────────────────────────

def require_permission(
    permission: str,
    handler: Handler,
    config: DispatchConfig | None = None,
    checker: PermissionChecker | None = None,
) -> Handler:
    """
    Wrap handler so it only runs if the request carries permission.

    With enforcement disabled the handler is returned as-is. Otherwise a
    denied (or failed) check writes 403 "Forbidden" and the handler is never
    called.

    Usage:
        app = DispatchApp(require_permission("write", save_entry))
    """
    config = config or get_config()
    if not config.enforce_permissions:
        return handler
    checker = checker or HeaderPermissionChecker(config.permissions_header)

    @functools.wraps(handler)
    def gated(writer, request):
        try:
            allowed = checker.has_permission(request.headers, permission)
        except Exception:
            get_logger(__name__).error(
                "permission.check_failed",
                permission=permission,
                method=request.method,
                path=request.path,
                exc_info=True,
            )
            allowed = False
        if not allowed:
            http_error(writer, FORBIDDEN_MESSAGE, HTTP.FORBIDDEN)
            return None
        return handler(writer, request)

    return gated


__all__ = [
    "PermissionChecker",
    "HeaderPermissionChecker",
    "MockPermissionChecker",
    "require_permission",
]
