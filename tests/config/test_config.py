from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from reviewsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    env_int,
    get_database_config,
    get_oauth_config,
    get_storage_config,
    get_sync_config,
    get_xero_config,
    optional_env,
    require_env_vars,
)
from reviewsync.config.http_resilience import cache_from_env
from reviewsync.config.xero import DEFAULT_XERO_SCOPES, XERO_API_BASE_URL


def test_require_env_vars_returns_stripped_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  value ")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_optional_env_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLANK_VAR", " ")

    assert optional_env("BLANK_VAR", "fallback") == "fallback"


def test_env_int_rejects_non_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAGES", "many")

    with pytest.raises(ConfigurationError):
        env_int("PAGES", 3)


def test_sync_config_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REVIEWSYNC_MAX_PAGES", "7")
    monkeypatch.delenv("REVIEWSYNC_CONTACT_BATCH_SIZE", raising=False)

    config = get_sync_config()

    assert config.max_pages == 7
    assert config.contact_batch_size == 100
    assert config.token_skew == timedelta(seconds=60)
    assert config.good_star_threshold == 3


def test_database_config_prefers_database_uri(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("REVIEWSYNC_SQL_ECHO", "true")

    config = get_database_config()

    assert config.uri == "sqlite+pysqlite:///:memory:"
    assert config.echo is True


def test_database_config_falls_back_to_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("REVIEWSYNC_DATA_DIR", str(tmp_path / "data"))

    config = get_database_config(storage=get_storage_config())

    assert config.uri.endswith("reviewsync.db")
    assert (tmp_path / "data").is_dir()


def test_xero_config_uses_default_scopes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XERO_CLIENT_ID", "client")
    monkeypatch.setenv("XERO_CLIENT_SECRET", "secret")
    monkeypatch.delenv("XERO_SCOPES", raising=False)

    config = get_xero_config()

    assert config.scopes == DEFAULT_XERO_SCOPES
    assert config.resilience.base_url == XERO_API_BASE_URL
    assert "POST" not in config.resilience.retry.allowed_methods


def test_oauth_config_requires_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OAUTH_STATE_SECRET", raising=False)

    with pytest.raises(MissingConfigurationError):
        get_oauth_config()


def test_oauth_config_builds_callback_uri(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OAUTH_STATE_SECRET", "s3cret")
    monkeypatch.setenv("OAUTH_REDIRECT_BASE", "https://app.example.com/")

    config = get_oauth_config()

    assert config.redirect_uri("xero") == "https://app.example.com/api/xero/callback"


def test_response_cache_is_off_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REVIEWSYNC_HTTP_CACHE", raising=False)

    assert cache_from_env() is None
