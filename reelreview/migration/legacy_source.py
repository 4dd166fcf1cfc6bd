"""
Read-only client for the legacy backend's REST API.

Contract:
    `fetch_all(entity)` issues one `GET {base_url}/{entity}` and returns the
    full JSON array. Pagination is not handled; the legacy API returns every
    record in one response.

Failure:
    Transport errors, non-2xx responses and bodies that are not a JSON array
    raise `SourceUnavailable`. Callers treat this as fatal for the run.

Security:
    The bearer token lives in the session headers only and is never logged.
"""
from __future__ import annotations

import logging
from typing import Any

import requests

from .config import HTTP_TIMEOUT_DEFAULT
from .errors import SourceUnavailable

_log = logging.getLogger("reelreview.migration.legacy_source")


class LegacySourceReader:
    """Minimal legacy API client (sync, requests-based)."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        session: requests.Session | None = None,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def _url(self, entity: str) -> str:
        return f"{self.base_url}/{entity.strip('/')}"

    def fetch_all(self, entity: str) -> list[dict[str, Any]]:
        url = self._url(entity)
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise SourceUnavailable(entity, f"transport error: {type(exc).__name__}") from exc

        status = getattr(resp, "status_code", 0)
        if not 200 <= int(status or 0) < 300:
            raise SourceUnavailable(entity, f"HTTP {status}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise SourceUnavailable(entity, "response is not valid JSON") from exc
        if not isinstance(data, list):
            raise SourceUnavailable(entity, f"expected a JSON array, got {type(data).__name__}")

        records = [r for r in data if isinstance(r, dict)]
        if len(records) != len(data):
            _log.warning("Dropped %d non-object entries from '%s'", len(data) - len(records), entity)
        _log.debug("GET %s -> %d records", entity, len(records))
        return records


__all__ = ["LegacySourceReader"]
