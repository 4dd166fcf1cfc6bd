from __future__ import annotations

import pytest

from reelreview.migration.config import HTTP_TIMEOUT_DEFAULT, load_settings


def test_defaults_without_env() -> None:
    settings = load_settings()

    assert settings.legacy_api_url is None
    assert settings.http_timeout == HTTP_TIMEOUT_DEFAULT
    assert settings.notify_users is True
    assert settings.reset_redirect_url is None


@pytest.mark.parametrize("raw", ["", "abc", "0", "-5"])
def test_invalid_timeout_falls_back_to_default(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("MIGRATION_HTTP_TIMEOUT", raw)
    assert load_settings().http_timeout == HTTP_TIMEOUT_DEFAULT


def test_env_values_are_trimmed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "  https://xyz.supabase.co  ")
    monkeypatch.setenv("PASSWORD_RESET_REDIRECT_URL", "https://app/reset")

    settings = load_settings()

    assert settings.supabase_url == "https://xyz.supabase.co"
    assert settings.reset_redirect_url == "https://app/reset"


def test_explicit_values_win_over_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEGACY_API_KEY", "env-key")
    monkeypatch.setenv("MIGRATION_NOTIFY_USERS", "true")

    settings = load_settings(legacy_api_key="cli-key", notify_users=False, http_timeout=2.5)

    assert settings.legacy_api_key == "cli-key"
    assert settings.notify_users is False
    assert settings.http_timeout == 2.5


def test_missing_lists_required_settings() -> None:
    settings = load_settings(legacy_api_url="http://legacy")

    assert settings.missing() == ["LEGACY_API_KEY", "SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"]
    assert settings.missing(dry_run=True) == ["LEGACY_API_KEY"]
