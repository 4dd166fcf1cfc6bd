"""Legacy backend → Supabase migration pipeline."""
from __future__ import annotations

from .errors import (
    AuthProvisioningFailed,
    MappingConflict,
    MappingNotFound,
    MigrationError,
    NotificationFailed,
    ParentMappingNotFound,
    SinkWriteFailed,
    SourceUnavailable,
)
from .identity import DeferredReferences, IdentityMap, IdentityMapper, PendingReference
from .legacy_source import LegacySourceReader
from .pipeline import STAGE_ORDER, MigrationPipeline, run_migration
from .report import MigrationReport, RecordIssue, StageReport
from .sink import DryRunSink, SupabaseSink

__all__ = [
    "AuthProvisioningFailed",
    "MappingConflict",
    "MappingNotFound",
    "MigrationError",
    "NotificationFailed",
    "ParentMappingNotFound",
    "SinkWriteFailed",
    "SourceUnavailable",
    "DeferredReferences",
    "IdentityMap",
    "IdentityMapper",
    "PendingReference",
    "LegacySourceReader",
    "STAGE_ORDER",
    "MigrationPipeline",
    "run_migration",
    "MigrationReport",
    "RecordIssue",
    "StageReport",
    "DryRunSink",
    "SupabaseSink",
]
