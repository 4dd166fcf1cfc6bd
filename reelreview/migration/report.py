"""Structured outcome values returned by each stage and by the whole run."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable


# Reasons used in RecordIssue.reason
MISSING_LEGACY_ID = "missing_legacy_id"
DUPLICATE_LEGACY_ID = "duplicate_legacy_id"
MISSING_PARENT = "missing_parent"
WRITE_FAILED = "write_failed"
AUTH_FAILED = "auth_failed"
NOTIFICATION_FAILED = "notification_failed"
UNRESOLVED_REFERENCE = "unresolved_reference"
REFERENCE_WRITE_FAILED = "reference_write_failed"
UNMAPPED_SCOPE = "unmapped_scope"
MAPPING_CONFLICT = "mapping_conflict"


@dataclass(frozen=True)
class RecordIssue:
    legacy_id: Hashable
    reason: str
    detail: str | None = None

    def as_dict(self) -> dict:
        return {"legacy_id": _jsonable(self.legacy_id), "reason": self.reason, "detail": self.detail}


@dataclass
class StageReport:
    """Counts and per-record issues of one stage.

    `skipped` holds records not attempted (e.g. missing parent mapping),
    `failed` holds records whose write failed, `warnings` holds issues that
    did not prevent the record from being migrated.
    """

    stage: str
    fetched: int = 0
    migrated: int = 0
    skipped: list[RecordIssue] = field(default_factory=list)
    failed: list[RecordIssue] = field(default_factory=list)
    warnings: list[RecordIssue] = field(default_factory=list)
    references_resolved: int = 0

    def skip(self, legacy_id: Hashable, reason: str, detail: str | None = None) -> None:
        self.skipped.append(RecordIssue(legacy_id, reason, detail))

    def fail(self, legacy_id: Hashable, reason: str, detail: str | None = None) -> None:
        self.failed.append(RecordIssue(legacy_id, reason, detail))

    def warn(self, legacy_id: Hashable, reason: str, detail: str | None = None) -> None:
        self.warnings.append(RecordIssue(legacy_id, reason, detail))

    def skipped_ids(self, reason: str | None = None) -> list[Hashable]:
        return [i.legacy_id for i in self.skipped if reason is None or i.reason == reason]

    def summary_line(self) -> str:
        line = (
            f"{self.stage}: migrated {self.migrated}/{self.fetched}, "
            f"skipped {len(self.skipped)}, failed {len(self.failed)}, warnings {len(self.warnings)}"
        )
        if self.references_resolved:
            line += f", back-references resolved {self.references_resolved}"
        return line

    def as_dict(self) -> dict:
        return {
            "stage": self.stage,
            "fetched": self.fetched,
            "migrated": self.migrated,
            "references_resolved": self.references_resolved,
            "skipped": [i.as_dict() for i in self.skipped],
            "failed": [i.as_dict() for i in self.failed],
            "warnings": [i.as_dict() for i in self.warnings],
        }


@dataclass
class MigrationReport:
    stages: list[StageReport] = field(default_factory=list)
    dry_run: bool = False
    mapper: Any = None

    def stage(self, name: str) -> StageReport:
        for report in self.stages:
            if report.stage == name:
                return report
        raise KeyError(name)

    @property
    def migrated(self) -> int:
        return sum(s.migrated for s in self.stages)

    @property
    def skipped(self) -> int:
        return sum(len(s.skipped) for s in self.stages)

    @property
    def failed(self) -> int:
        return sum(len(s.failed) for s in self.stages)

    def as_dict(self) -> dict:
        return {
            "dry_run": self.dry_run,
            "totals": {"migrated": self.migrated, "skipped": self.skipped, "failed": self.failed},
            "stages": [s.as_dict() for s in self.stages],
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


__all__ = [
    "MISSING_LEGACY_ID",
    "DUPLICATE_LEGACY_ID",
    "MISSING_PARENT",
    "WRITE_FAILED",
    "AUTH_FAILED",
    "NOTIFICATION_FAILED",
    "UNRESOLVED_REFERENCE",
    "REFERENCE_WRITE_FAILED",
    "UNMAPPED_SCOPE",
    "MAPPING_CONFLICT",
    "RecordIssue",
    "StageReport",
    "MigrationReport",
]
