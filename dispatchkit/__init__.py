"""
dispatchkit
───────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from dispatchkit.tier0_core.logging import get_logger
from dispatchkit.tier0_core.errors import (
    DispatchError,
    UserError,
    NotFoundError,
    ConflictError,
    ForbiddenError,
    RedirectError,
    FormParseError,
    ConfigurationError,
    ErrorDescriptor,
    Redirect,
    describe_error,
)
from dispatchkit.tier0_core.config import get_config, DispatchConfig
from dispatchkit.tier0_core.http import HTTP, http_error, redirect

from dispatchkit.tier1_runtime.request import Request, UploadedFile
from dispatchkit.tier1_runtime.form import Cleanup, parse_multipart_form, scoped_form
from dispatchkit.tier1_runtime.tracker import ResponseWriter, ResponseTracker
from dispatchkit.tier1_runtime.permissions import (
    PermissionChecker,
    HeaderPermissionChecker,
    MockPermissionChecker,
    require_permission,
)
from dispatchkit.tier1_runtime.dispatch import Handler, Dispatcher, classify, dispatch
from dispatchkit.tier1_runtime.middleware import DispatchApp, WSGIResponseWriter

__version__ = "0.1.0"
__all__ = [
    # logging
    "get_logger",
    # errors
    "DispatchError", "UserError", "NotFoundError", "ConflictError",
    "ForbiddenError", "RedirectError", "FormParseError", "ConfigurationError",
    "ErrorDescriptor", "Redirect", "describe_error",
    # config
    "get_config", "DispatchConfig",
    # http
    "HTTP", "http_error", "redirect",
    # request
    "Request", "UploadedFile",
    # form
    "Cleanup", "parse_multipart_form", "scoped_form",
    # tracker
    "ResponseWriter", "ResponseTracker",
    # permissions
    "PermissionChecker", "HeaderPermissionChecker", "MockPermissionChecker",
    "require_permission",
    # dispatch
    "Handler", "Dispatcher", "classify", "dispatch",
    # middleware
    "DispatchApp", "WSGIResponseWriter",
]
