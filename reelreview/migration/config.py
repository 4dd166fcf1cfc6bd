"""
Centralized configuration for the legacy migration.

Behavior:
    - `load_settings()` reads the environment; explicit keyword overrides
      (typically CLI options) win over environment values.
    - `MigrationSettings.missing()` lists required settings that are unset so
      the caller can report them together.

Env:
    LEGACY_API_URL, LEGACY_API_KEY – legacy read API and bearer token.
    SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY – destination project; the service
        role key is required because RLS would otherwise block the inserts.
    MIGRATION_HTTP_TIMEOUT – seconds per HTTP call (default 30).
    MIGRATION_NOTIFY_USERS – "true"/"false", send password-reset mails (default true).
    PASSWORD_RESET_REDIRECT_URL – optional redirect for the reset link.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


HTTP_TIMEOUT_DEFAULT = 30.0


def _env_flag(name: str, default: str = "true") -> bool:
    return (os.getenv(name, default) or "").strip().lower() == "true"


def _parse_float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    return value


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class MigrationSettings:
    legacy_api_url: str | None
    legacy_api_key: str | None
    supabase_url: str | None
    service_role_key: str | None
    http_timeout: float = HTTP_TIMEOUT_DEFAULT
    notify_users: bool = True
    reset_redirect_url: str | None = None

    def missing(self, *, dry_run: bool = False) -> list[str]:
        """Return the env names of unset required settings.

        A dry run never talks to Supabase, so its credentials are optional then.
        """
        required = [
            ("LEGACY_API_URL", self.legacy_api_url),
            ("LEGACY_API_KEY", self.legacy_api_key),
        ]
        if not dry_run:
            required += [
                ("SUPABASE_URL", self.supabase_url),
                ("SUPABASE_SERVICE_ROLE_KEY", self.service_role_key),
            ]
        return [name for name, value in required if not value]


def load_settings(
    *,
    legacy_api_url: str | None = None,
    legacy_api_key: str | None = None,
    supabase_url: str | None = None,
    service_role_key: str | None = None,
    http_timeout: float | None = None,
    notify_users: bool | None = None,
    reset_redirect_url: str | None = None,
) -> MigrationSettings:
    timeout = http_timeout if http_timeout and http_timeout > 0 else _parse_float_env(
        "MIGRATION_HTTP_TIMEOUT", HTTP_TIMEOUT_DEFAULT
    )
    return MigrationSettings(
        legacy_api_url=_clean(legacy_api_url) or _clean(os.getenv("LEGACY_API_URL")),
        legacy_api_key=_clean(legacy_api_key) or _clean(os.getenv("LEGACY_API_KEY")),
        supabase_url=_clean(supabase_url) or _clean(os.getenv("SUPABASE_URL")),
        service_role_key=_clean(service_role_key) or _clean(os.getenv("SUPABASE_SERVICE_ROLE_KEY")),
        http_timeout=timeout,
        notify_users=notify_users if notify_users is not None else _env_flag("MIGRATION_NOTIFY_USERS"),
        reset_redirect_url=_clean(reset_redirect_url) or _clean(os.getenv("PASSWORD_RESET_REDIRECT_URL")),
    )


__all__ = [
    "HTTP_TIMEOUT_DEFAULT",
    "MigrationSettings",
    "load_settings",
]
