# backend/tests/unit/test_observability.py
from starlette.requests import Request
from structlog.contextvars import merge_contextvars

from ledgerbot.config.settings import settings
from ledgerbot.utils.logging import mask_user_key, redact_user_keys, user_log_context
from ledgerbot.utils.rate_limiter import USER_KEY_HEADER, get_rate_limit_key


def make_request(headers=None, client=("10.0.0.5", 5123)):
    return Request({
        "type": "http",
        "method": "POST",
        "path": "/api/v1/webhooks/messages",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    })


def test_rate_limit_key_prefers_the_user_header():
    assert get_rate_limit_key(make_request({USER_KEY_HEADER: "+51999000111"})) == "user:+51999000111"


def test_rate_limit_key_falls_back_to_client_address():
    assert get_rate_limit_key(make_request()) == "ip:10.0.0.5"
    forwarded = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert get_rate_limit_key(forwarded) == "ip:203.0.113.7"
    assert get_rate_limit_key(make_request(client=None)) == "ip:127.0.0.1"


def test_mask_user_key():
    assert mask_user_key("+51999000111") == "***0111"
    assert mask_user_key("bob") == "bob"


def test_user_keys_are_masked_outside_development(monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")
    assert redact_user_keys(None, "info", {"user_key": "+51999000111"})["user_key"] == "***0111"

    monkeypatch.setattr(settings, "environment", "development")
    assert redact_user_keys(None, "info", {"user_key": "+51999000111"})["user_key"] == "+51999000111"


def test_user_log_context_is_bound_only_inside_the_block():
    with user_log_context("alice", "text"):
        event = merge_contextvars(None, "info", {"event": "routing"})
    assert event == {"event": "routing", "user_key": "alice", "event_kind": "text"}

    assert merge_contextvars(None, "info", {"event": "after"}) == {"event": "after"}
