"""
Stage orchestrator for the legacy → Supabase migration.

The stages run strictly in dependency order:

    users → projects → videos → video_versions → notes → approvals

Each stage reads the identity maps produced by the earlier ones. The run is
forward-only: no retry, no rollback, no resume. Re-running against a
non-empty destination duplicates rows because inserts carry no idempotency
key.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from . import stages
from .identity import DeferredReferences, IdentityMapper
from .report import MigrationReport, StageReport

_log = logging.getLogger("reelreview.migration.pipeline")


STAGE_ORDER = (
    stages.USERS_STAGE,
    stages.PROJECTS_STAGE,
    stages.VIDEOS_STAGE,
    stages.VIDEO_VERSIONS_STAGE,
    stages.NOTES_STAGE,
    stages.APPROVALS_STAGE,
)


class MigrationPipeline:
    """Runs all stages against one source and one sink.

    Parameters:
        source: object exposing `fetch_all(entity) -> list[dict]`.
        sink: object implementing `SinkProtocol`.
        notify_users: trigger password-reset mails for provisioned users.
        on_stage_complete: optional callback receiving each `StageReport`
            as soon as its stage finished (used by the CLI for progress).
    """

    def __init__(
        self,
        source: Any,
        sink: Any,
        *,
        notify_users: bool = True,
        dry_run: bool = False,
        on_stage_complete: Callable[[StageReport], None] | None = None,
    ) -> None:
        self.source = source
        self.sink = sink
        self.notify_users = notify_users and not dry_run
        self.dry_run = dry_run
        self.on_stage_complete = on_stage_complete
        self.mapper = IdentityMapper()
        self.pending = DeferredReferences()

    def _stage_runners(self) -> dict[str, Callable[[], StageReport]]:
        src, sink, mapper, pending = self.source, self.sink, self.mapper, self.pending
        return {
            stages.USERS_STAGE: lambda: stages.migrate_users(src, sink, mapper, notify_users=self.notify_users),
            stages.PROJECTS_STAGE: lambda: stages.migrate_projects(src, sink, mapper),
            stages.VIDEOS_STAGE: lambda: stages.migrate_videos(src, sink, mapper, pending),
            stages.VIDEO_VERSIONS_STAGE: lambda: stages.migrate_video_versions(src, sink, mapper, pending),
            stages.NOTES_STAGE: lambda: stages.migrate_notes(src, sink, mapper),
            stages.APPROVALS_STAGE: lambda: stages.migrate_approvals(src, sink, mapper),
        }

    def run(self) -> MigrationReport:
        result = MigrationReport(dry_run=self.dry_run, mapper=self.mapper)
        runners = self._stage_runners()
        _log.info("Starting migration (%s)", "DRY-RUN" if self.dry_run else "LIVE")
        for name in STAGE_ORDER:
            # SourceUnavailable propagates from here and ends the run.
            stage_report = runners[name]()
            result.stages.append(stage_report)
            _log.info(stage_report.summary_line())
            if self.on_stage_complete is not None:
                self.on_stage_complete(stage_report)
        _log.info("Migration completed: %d migrated, %d skipped, %d failed", result.migrated, result.skipped, result.failed)
        return result


def run_migration(source: Any, sink: Any, **kwargs: Any) -> MigrationReport:
    """Convenience wrapper: build a pipeline and run it once."""
    return MigrationPipeline(source, sink, **kwargs).run()


__all__ = ["STAGE_ORDER", "MigrationPipeline", "run_migration"]
