"""
Destination writers for the legacy migration.

`SupabaseSink` talks to the new backend through a supabase client initialized
with the Service Role key (RLS would otherwise block inserts). The client is
duck-typed so tests can pass a fake exposing:

- table(name).insert(row).execute() -> response with `.data` (list of rows)
- table(name).update(values).eq("id", id).execute()
- auth.admin.create_user({...}) -> response with `.user.id`
- auth.reset_password_for_email(email, options)

`DryRunSink` performs no writes and hands out synthetic IDs so a dry run walks
through the same mapping logic as a live run.
"""
from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, Protocol

from .errors import AuthProvisioningFailed, MigrationError, NotificationFailed, SinkWriteFailed

_log = logging.getLogger("reelreview.migration.sink")


class SinkProtocol(Protocol):
    """Protocol describing the destination writer used by the stages."""

    def insert(self, table: str, row: Dict[str, Any]) -> Any: ...

    def update(self, table: str, row_id: Any, values: Dict[str, Any]) -> None: ...

    def create_user(self, *, email: str, password: str, metadata: Dict[str, Any]) -> Any: ...

    def send_password_reset(self, email: str) -> None: ...


def _response_data(res: Any) -> Any:
    """Return the payload of a postgrest response across client versions."""
    if isinstance(res, dict):
        return res.get("data")
    return getattr(res, "data", None)


def _first_row_id(data: Any) -> Any:
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        return data.get("id")
    return None


def _auth_user_id(res: Any) -> Any:
    user = res.get("user") if isinstance(res, dict) else getattr(res, "user", None)
    if user is None:
        return None
    if isinstance(user, dict):
        return user.get("id")
    return getattr(user, "id", None)


def _error_text(exc: Exception) -> str:
    message = getattr(exc, "message", None) or str(exc)
    return f"{exc.__class__.__name__}: {message}"


class SupabaseSink:
    """Sink writing rows and auth users through a supabase client."""

    def __init__(self, client: Any, *, reset_redirect_url: str | None = None) -> None:
        self._client = client
        self._reset_redirect_url = reset_redirect_url

    @classmethod
    def from_credentials(cls, url: str, service_role_key: str, *, reset_redirect_url: str | None = None) -> "SupabaseSink":
        # Lazy import keeps the supabase package out of pure mapping code paths.
        from supabase import create_client  # type: ignore

        try:
            client = create_client(url, service_role_key)
        except Exception as exc:
            raise MigrationError(f"cannot create supabase client: {_error_text(exc)}") from exc
        return cls(client, reset_redirect_url=reset_redirect_url)

    # --- Rows ------------------------------------------------------------------

    def insert(self, table: str, row: Dict[str, Any]) -> Any:
        try:
            res = self._client.table(table).insert(row).execute()
        except Exception as exc:
            raise SinkWriteFailed(table, _error_text(exc)) from exc
        new_id = _first_row_id(_response_data(res))
        if new_id is None:
            raise SinkWriteFailed(table, "insert returned no row id")
        return new_id

    def update(self, table: str, row_id: Any, values: Dict[str, Any]) -> None:
        try:
            self._client.table(table).update(values).eq("id", row_id).execute()
        except Exception as exc:
            raise SinkWriteFailed(table, _error_text(exc)) from exc

    # --- Auth ------------------------------------------------------------------

    def create_user(self, *, email: str, password: str, metadata: Dict[str, Any]) -> Any:
        attributes = {
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": metadata,
        }
        try:
            res = self._client.auth.admin.create_user(attributes)
        except Exception as exc:
            raise AuthProvisioningFailed(_error_text(exc)) from exc
        user_id = _auth_user_id(res)
        if not user_id:
            raise AuthProvisioningFailed("User creation succeeded but no id was returned")
        return user_id

    def send_password_reset(self, email: str) -> None:
        options: Dict[str, Any] = {}
        if self._reset_redirect_url:
            options["redirect_to"] = self._reset_redirect_url
        try:
            self._client.auth.reset_password_for_email(email, options)
        except Exception as exc:
            raise NotificationFailed(_error_text(exc)) from exc


class DryRunSink:
    """Sink that records intended writes without touching the destination."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.inserts: list[tuple[str, Dict[str, Any]]] = []
        self.updates: list[tuple[str, Any, Dict[str, Any]]] = []
        self.users: list[str] = []

    def _next_id(self, kind: str) -> str:
        return f"dry-run:{kind}:{next(self._ids)}"

    def insert(self, table: str, row: Dict[str, Any]) -> Any:
        self.inserts.append((table, dict(row)))
        if "id" in row and row["id"] is not None:
            return row["id"]
        return self._next_id(table)

    def update(self, table: str, row_id: Any, values: Dict[str, Any]) -> None:
        self.updates.append((table, row_id, dict(values)))

    def create_user(self, *, email: str, password: str, metadata: Dict[str, Any]) -> Any:
        self.users.append(email)
        return self._next_id("auth_user")

    def send_password_reset(self, email: str) -> None:
        _log.debug("[dry-run] password reset not sent")


__all__ = ["SinkProtocol", "SupabaseSink", "DryRunSink"]
