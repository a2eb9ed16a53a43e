"""
tests/test_config.py -- Settings secret policy and derived values.
"""

from __future__ import annotations

import pytest

from core.config import Settings

_SECRET = "s" * 32


def test_debug_mode_generates_missing_secrets() -> None:
    s = Settings(debug=True, access_token_secret="", refresh_token_secret="", crypto_secret_key="")
    assert len(s.access_token_secret) >= 32
    assert len(s.refresh_token_secret) >= 32
    assert s.access_token_secret != s.refresh_token_secret


def test_production_mode_requires_secrets() -> None:
    with pytest.raises(ValueError, match="ACCESS_TOKEN_SECRET is required"):
        Settings(debug=False, access_token_secret="", refresh_token_secret=_SECRET, crypto_secret_key=_SECRET)


def test_short_secret_rejected() -> None:
    with pytest.raises(ValueError, match="at least 32 characters"):
        Settings(debug=True, access_token_secret="short", refresh_token_secret=_SECRET, crypto_secret_key=_SECRET)


@pytest.mark.parametrize(
    "environment, access, refresh",
    [
        ("development", 8 * 3600, 24 * 3600),
        ("production", 7 * 86400, 10 * 86400),
    ],
)
def test_default_ttls_follow_environment(environment: str, access: int, refresh: int) -> None:
    s = Settings(debug=True, environment=environment)
    assert s.access_token_ttl == access
    assert s.refresh_token_ttl == refresh


def test_explicit_ttl_overrides_default() -> None:
    s = Settings(debug=True, access_token_expire_seconds=120)
    assert s.access_token_ttl == 120


def test_frontend_base_url_per_environment() -> None:
    dev = Settings(debug=True, environment="development", frontend_url_dev="http://localhost:5173/")
    assert dev.frontend_base_url == "http://localhost:5173"

    prod = Settings(debug=True, environment="production", frontend_url="https://app.example.com/")
    assert prod.frontend_base_url == "https://app.example.com"


def test_cors_origins_deduplicated() -> None:
    s = Settings(debug=True, frontend_url="http://localhost:5173", frontend_url_dev="http://localhost:5173")
    assert s.cors_origins.count("http://localhost:5173") == 1
