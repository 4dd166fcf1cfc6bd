"""
Error taxonomy for the legacy migration.

Two severities exist:
- Stage-level: `SourceUnavailable` aborts the whole run.
- Record-level: everything else is contained to the offending record; the
  stage logs it, reports it and moves on.
"""
from __future__ import annotations

from typing import Any


class MigrationError(Exception):
    """Base class for all migration errors."""


class SourceUnavailable(MigrationError):
    """Bulk fetch of an entity type from the legacy API failed."""

    def __init__(self, entity: str, reason: str) -> None:
        super().__init__(f"legacy source unavailable for '{entity}': {reason}")
        self.entity = entity
        self.reason = reason


class MappingNotFound(MigrationError, KeyError):
    """No identity mapping entry for a legacy ID."""

    def __init__(self, entity: str, legacy_id: Any) -> None:
        super().__init__(f"no {entity} mapping for legacy id {legacy_id!r}")
        self.entity = entity
        self.legacy_id = legacy_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class ParentMappingNotFound(MappingNotFound):
    """A child record references a parent that was not migrated."""


class MappingConflict(MigrationError):
    """Attempt to overwrite an immutable identity mapping entry."""


class SinkWriteFailed(MigrationError):
    """A single insert/update on the destination failed."""

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(f"write to '{table}' failed: {reason}")
        self.table = table
        self.reason = reason


class AuthProvisioningFailed(MigrationError):
    """Creating the destination auth user failed."""


class NotificationFailed(MigrationError):
    """Triggering the password-reset notification failed."""


__all__ = [
    "MigrationError",
    "SourceUnavailable",
    "MappingNotFound",
    "ParentMappingNotFound",
    "MappingConflict",
    "SinkWriteFailed",
    "AuthProvisioningFailed",
    "NotificationFailed",
]
