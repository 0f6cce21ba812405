"""Tests for tier0_core modules."""
from __future__ import annotations

import pytest

from dispatchkit.tier0_core.errors import (
    ConflictError,
    DispatchError,
    ErrorDescriptor,
    FormParseError,
    NotFoundError,
    Redirect,
    RedirectError,
    UserError,
    describe_error,
)
from dispatchkit.tier0_core.http import (
    HTTP,
    INTERNAL_ERROR_MESSAGE,
    http_error,
    redirect,
    status_line,
)

from conftest import RecordingWriter, make_request


# ── errors ─────────────────────────────────────────────────────────────────

class TestErrors:
    def test_user_error_carries_message_without_status(self):
        e = UserError("invalid password")
        assert e.user_message == "invalid password"
        assert e.status_code is None
        assert str(e) == "invalid password"

    def test_user_error_detail_is_separate_from_message(self):
        e = UserError("invalid password", detail="bcrypt mismatch for u_123")
        d = describe_error(e)
        assert d.user_message == "invalid password"
        assert d.log_message == "bcrypt mismatch for u_123"

    def test_typed_errors_have_class_status(self):
        assert NotFoundError().status_code == 404
        assert ConflictError("already exists").status_code == 409
        assert FormParseError("bad body").status_code == 400

    def test_redirect_error(self):
        e = RedirectError("/login")
        assert e.redirect == Redirect(302, "/login")
        assert e.user_message is None

    def test_redirect_requires_3xx(self):
        with pytest.raises(ValueError, match="3xx"):
            Redirect(200, "/login")

    def test_plain_exception_is_server_error(self):
        d = describe_error(ValueError("boom"))
        assert d == ErrorDescriptor(log_message="ValueError: boom")
        assert d.is_client_error is False

    def test_describe_walks_cause_chain(self):
        try:
            try:
                raise KeyError("entry-1")
            except KeyError as exc:
                raise ConflictError("entry already exists") from exc
        except ConflictError as exc:
            d = describe_error(exc)
        assert d.user_message == "entry already exists"
        assert d.status_code == 409
        assert "entry-1" in d.log_message

    def test_outer_error_overrides_inner_status(self):
        inner = UserError("bad input")
        outer = DispatchError("saving entry", status_code=503)
        outer.__cause__ = inner
        d = describe_error(outer)
        assert d.user_message == "bad input"
        assert d.status_code == 503
        assert d.log_message == "saving entry: bad input"

    def test_redirect_found_in_wrapped_cause(self):
        outer = DispatchError("session expired")
        outer.__cause__ = RedirectError("/login", status_code=303)
        assert describe_error(outer).redirect == Redirect(303, "/login")


# ── http ───────────────────────────────────────────────────────────────────

class TestHttp:
    def test_http_status_codes(self):
        assert HTTP.OK == 200
        assert HTTP.FOUND == 302
        assert HTTP.FORBIDDEN == 403
        assert HTTP.INTERNAL_SERVER_ERROR == 500

    def test_status_line(self):
        assert status_line(404) == "404 Not Found"
        assert status_line(599) == "599 Unknown"

    def test_http_error_writes_plain_text(self):
        w = RecordingWriter()
        http_error(w, INTERNAL_ERROR_MESSAGE, 500)
        assert w.status_calls == [500]
        assert w.body == "internal server error; check logs"
        assert w.headers["Content-Type"] == "text/plain; charset=utf-8"
        assert w.headers["X-Content-Type-Options"] == "nosniff"

    def test_redirect_get_has_link_body(self):
        w = RecordingWriter()
        redirect(w, make_request("GET", "/entries"), "/login", 302)
        assert w.status_calls == [302]
        assert w.headers["Location"] == "/login"
        assert '<a href="/login">Found</a>' in w.body

    def test_redirect_post_has_no_body(self):
        w = RecordingWriter()
        redirect(w, make_request("POST", "/entries"), "/login", 303)
        assert w.status_calls == [303]
        assert w.body == ""

    def test_redirect_head_is_typed_html_without_body(self):
        w = RecordingWriter()
        redirect(w, make_request("HEAD", "/entries"), "/login", 302)
        assert w.status_calls == [302]
        assert w.headers["Content-Type"] == "text/html; charset=utf-8"
        assert w.body == ""

    def test_redirect_resolves_relative_target(self):
        w = RecordingWriter()
        redirect(w, make_request("GET", "/entries/new"), "list", 302)
        assert w.headers["Location"] == "/entries/list"

    def test_redirect_keeps_absolute_url(self):
        w = RecordingWriter()
        redirect(w, make_request("GET", "/"), "https://example.com/x", 301)
        assert w.headers["Location"] == "https://example.com/x"


# ── config ─────────────────────────────────────────────────────────────────

class TestConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DISPATCH_MAX_FORM_MEMORY", raising=False)
        monkeypatch.delenv("DISPATCH_PERMISSIONS", raising=False)
        from dispatchkit.tier0_core.config import get_config
        cfg = get_config()
        assert cfg.enforce_permissions is True
        assert cfg.max_form_memory == 512 * 1024
        assert cfg.permissions_header == "X-Sandstorm-Permissions"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("DISPATCH_PERMISSIONS", "false")
        monkeypatch.setenv("DISPATCH_MAX_FORM_MEMORY", "2048")
        from dispatchkit.tier0_core.config import get_config
        cfg = get_config()
        assert cfg.enforce_permissions is False
        assert cfg.max_form_memory == 2048

    def test_config_is_cached(self):
        from dispatchkit.tier0_core.config import get_config
        assert get_config() is get_config()

    def test_fields_by_name(self):
        from dispatchkit.tier0_core.config import DispatchConfig
        cfg = DispatchConfig(enforce_permissions=False, max_form_memory=16)
        assert cfg.enforce_permissions is False
        assert cfg.max_form_memory == 16

    def test_config_is_read_only(self):
        from pydantic import ValidationError
        from dispatchkit.tier0_core.config import DispatchConfig
        cfg = DispatchConfig()
        with pytest.raises(ValidationError):
            cfg.enforce_permissions = False

    def test_negative_memory_raises_configuration_error(self, monkeypatch):
        monkeypatch.setenv("DISPATCH_MAX_FORM_MEMORY", "-1")
        from dispatchkit.tier0_core.config import get_config
        from dispatchkit.tier0_core.errors import ConfigurationError
        with pytest.raises(ConfigurationError):
            get_config()

    def test_unknown_log_format_rejected(self):
        from pydantic import ValidationError
        from dispatchkit.tier0_core.config import DispatchConfig
        with pytest.raises(ValidationError):
            DispatchConfig(log_format="xml")


# ── logging ────────────────────────────────────────────────────────────────

class TestLogging:
    def test_redacts_sensitive_keys(self):
        from dispatchkit.tier0_core.logging import _mask_fields
        event = _mask_fields(None, "info", {"event": "x", "Authorization": "Bearer t", "path": "/"})
        assert event["Authorization"] == "[REDACTED]"
        assert event["path"] == "/"

    def test_get_logger_returns_bindable_logger(self):
        from dispatchkit.tier0_core.logging import get_logger
        log = get_logger("dispatchkit.tests").bind(path="/")
        assert log is not None
