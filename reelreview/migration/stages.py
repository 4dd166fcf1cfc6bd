"""
Per-entity migration stages.

Each stage fetches every legacy record of one entity type, inserts the
records one at a time in source order and records the identity mapping of
every row it created. Stages never retry:

- `SourceUnavailable` from the bulk fetch propagates and aborts the run.
- A missing parent mapping skips the record (`report.skipped`).
- A failed write skips the record (`report.failed`); the stage continues.
- A destination ID that is already mapped fails only that record.
"""
from __future__ import annotations

import logging
from typing import Any, Hashable, Mapping

from . import identity
from . import report as r
from . import rows
from .errors import (
    AuthProvisioningFailed,
    MappingConflict,
    MappingNotFound,
    NotificationFailed,
    ParentMappingNotFound,
    SinkWriteFailed,
)
from .identity import DeferredReferences, IdentityMapper, PendingReference
from .report import StageReport

_log = logging.getLogger("reelreview.migration.stages")


USERS_STAGE = "users"
PROJECTS_STAGE = "projects"
VIDEOS_STAGE = "videos"
VIDEO_VERSIONS_STAGE = "video_versions"
NOTES_STAGE = "notes"
APPROVALS_STAGE = "approvals"


def _fetch(source: Any, stage: str) -> tuple[list[Mapping[str, Any]], StageReport]:
    records = source.fetch_all(stage)
    _log.info("Phase %s: %d items", stage, len(records))
    return records, StageReport(stage=stage, fetched=len(records))


def _checked_legacy_id(record: Mapping[str, Any], entity: str, mapper: IdentityMapper, report: StageReport) -> Hashable | None:
    """Return the record's legacy ID, or None when it cannot be mapped."""
    legacy_id = rows.legacy_id_of(record)
    if legacy_id is None:
        _log.warning("Skip %s without legacy id", entity)
        report.skip(None, r.MISSING_LEGACY_ID)
        return None
    if legacy_id in mapper.table(entity):
        _log.warning("Skip %s %s – legacy id already migrated in this run", entity, legacy_id)
        report.skip(legacy_id, r.DUPLICATE_LEGACY_ID)
        return None
    return legacy_id


def _parent(mapper: IdentityMapper, entity: str, legacy_parent: Any) -> Any:
    try:
        return mapper.resolve(entity, legacy_parent)
    except MappingNotFound:
        raise ParentMappingNotFound(entity, legacy_parent) from None


def _skip_missing_parent(report: StageReport, child: str, legacy_id: Hashable, exc: ParentMappingNotFound) -> None:
    _log.warning("%s not found for %s %s, skipping", exc.entity, child, legacy_id)
    report.skip(legacy_id, r.MISSING_PARENT, f"{exc.entity}:{exc.legacy_id}")


def _fail_write(report: StageReport, child: str, legacy_id: Hashable, exc: SinkWriteFailed) -> None:
    _log.error("Error migrating %s %s: %s", child, legacy_id, exc)
    report.fail(legacy_id, r.WRITE_FAILED, str(exc))


def _record(mapper: IdentityMapper, report: StageReport, entity: str, legacy_id: Hashable, new_id: Any) -> bool:
    """Record the mapping of a created row; a conflicting entry fails only this record."""
    try:
        mapper.record(entity, legacy_id, new_id)
    except MappingConflict as exc:
        _log.error("Cannot map %s %s: %s", entity, legacy_id, exc)
        report.fail(legacy_id, r.MAPPING_CONFLICT, str(exc))
        return False
    report.migrated += 1
    return True


# --- Users -----------------------------------------------------------------------


def migrate_users(source: Any, sink: Any, mapper: IdentityMapper, *, notify_users: bool = True) -> StageReport:
    """Provision an auth user plus profile row per legacy user.

    Every user receives a random temporary password. When `notify_users` is
    set, a password-reset mail is triggered right after provisioning so the
    user can choose their own password; a failed notification is reported as
    a warning and does not undo the migration of that user.
    """
    records, report = _fetch(source, USERS_STAGE)
    for user in records:
        legacy_id = _checked_legacy_id(user, identity.USER, mapper, report)
        if legacy_id is None:
            continue
        email = user.get("email")
        email = email.strip() if isinstance(email, str) else ""
        if not email:
            _log.error("Error creating auth user for %s: missing email", legacy_id)
            report.fail(legacy_id, r.AUTH_FAILED, "missing email")
            continue
        try:
            user_id = sink.create_user(
                email=email,
                password=rows.generate_temporary_password(),
                metadata=rows.build_user_metadata(user),
            )
        except AuthProvisioningFailed as exc:
            _log.error("Error creating auth user for %s (%s): %s", rows.mask_email(email), legacy_id, exc)
            report.fail(legacy_id, r.AUTH_FAILED, str(exc))
            continue
        try:
            sink.insert(rows.PROFILES_TABLE, rows.build_profile_row({**user, "email": email}, user_id))
        except SinkWriteFailed as exc:
            _log.error("Error creating profile for %s (%s): %s", rows.mask_email(email), legacy_id, exc)
            report.fail(legacy_id, r.WRITE_FAILED, str(exc))
            continue
        if not _record(mapper, report, identity.USER, legacy_id, user_id):
            continue
        _log.info("Created user %s -> %s", rows.mask_email(email), user_id)
        if notify_users:
            try:
                sink.send_password_reset(email)
            except NotificationFailed as exc:
                _log.warning("Password reset for %s (%s) not sent: %s", rows.mask_email(email), legacy_id, exc)
                report.warn(legacy_id, r.NOTIFICATION_FAILED, str(exc))
    return report


# --- Projects ----------------------------------------------------------------------


def migrate_projects(source: Any, sink: Any, mapper: IdentityMapper) -> StageReport:
    records, report = _fetch(source, PROJECTS_STAGE)
    for project in records:
        legacy_id = _checked_legacy_id(project, identity.PROJECT, mapper, report)
        if legacy_id is None:
            continue
        try:
            user_id = _parent(mapper, identity.USER, project.get("user_id"))
        except ParentMappingNotFound as exc:
            _skip_missing_parent(report, "project", legacy_id, exc)
            continue
        try:
            new_id = sink.insert(rows.PROJECTS_TABLE, rows.build_project_row(project, user_id))
        except SinkWriteFailed as exc:
            _fail_write(report, "project", legacy_id, exc)
            continue
        _record(mapper, report, identity.PROJECT, legacy_id, new_id)
    return report


# --- Videos ------------------------------------------------------------------------


def migrate_videos(source: Any, sink: Any, mapper: IdentityMapper, pending: DeferredReferences) -> StageReport:
    """Insert videos and register their current-version back-references.

    The legacy `current_version_id` cannot be written yet; it is queued in
    `pending` and resolved by `migrate_video_versions`.
    """
    records, report = _fetch(source, VIDEOS_STAGE)
    for video in records:
        legacy_id = _checked_legacy_id(video, identity.VIDEO, mapper, report)
        if legacy_id is None:
            continue
        try:
            project_id = _parent(mapper, identity.PROJECT, video.get("project_id"))
        except ParentMappingNotFound as exc:
            _skip_missing_parent(report, "video", legacy_id, exc)
            continue
        try:
            new_id = sink.insert(rows.VIDEOS_TABLE, rows.build_video_row(video, project_id))
        except SinkWriteFailed as exc:
            _fail_write(report, "video", legacy_id, exc)
            continue
        if not _record(mapper, report, identity.VIDEO, legacy_id, new_id):
            continue
        current = video.get("current_version_id")
        if current:
            pending.add(
                PendingReference(
                    table=rows.VIDEOS_TABLE,
                    row_id=new_id,
                    column="current_version_id",
                    entity=identity.VIDEO_VERSION,
                    legacy_ref=current,
                    owner_legacy_id=legacy_id,
                )
            )
    return report


# --- Video versions --------------------------------------------------------------------


def migrate_video_versions(
    source: Any,
    sink: Any,
    mapper: IdentityMapper,
    pending: DeferredReferences,
) -> StageReport:
    """Insert versions, then set each video's current version (second pass)."""
    records, report = _fetch(source, VIDEO_VERSIONS_STAGE)
    owners: dict[Any, Any] = {}
    for version in records:
        legacy_id = _checked_legacy_id(version, identity.VIDEO_VERSION, mapper, report)
        if legacy_id is None:
            continue
        try:
            video_id = _parent(mapper, identity.VIDEO, version.get("video_id"))
        except ParentMappingNotFound as exc:
            _skip_missing_parent(report, "video version", legacy_id, exc)
            continue
        try:
            new_id = sink.insert(rows.VIDEO_VERSIONS_TABLE, rows.build_video_version_row(version, video_id))
        except SinkWriteFailed as exc:
            _fail_write(report, "video version", legacy_id, exc)
            continue
        if _record(mapper, report, identity.VIDEO_VERSION, legacy_id, new_id):
            owners[new_id] = video_id

    _log.info("Updating current version references…")
    outcome = pending.resolve(mapper, sink, entity=identity.VIDEO_VERSION, owners=owners)
    report.references_resolved = len(outcome.resolved)
    for ref in outcome.unresolved:
        _log.warning("Current version %s of video %s was not migrated for that video; leaving it unset", ref.legacy_ref, ref.owner_legacy_id)
        report.warn(ref.owner_legacy_id, r.UNRESOLVED_REFERENCE, f"{ref.column}:{ref.legacy_ref}")
    for ref, reason in outcome.failed:
        report.fail(ref.owner_legacy_id, r.REFERENCE_WRITE_FAILED, reason)
    return report


# --- Notes -----------------------------------------------------------------------------


def migrate_notes(source: Any, sink: Any, mapper: IdentityMapper) -> StageReport:
    records, report = _fetch(source, NOTES_STAGE)
    for note in records:
        legacy_id = _checked_legacy_id(note, identity.NOTE, mapper, report)
        if legacy_id is None:
            continue
        try:
            version_id = _parent(mapper, identity.VIDEO_VERSION, note.get("video_version_id"))
        except ParentMappingNotFound as exc:
            _skip_missing_parent(report, "note", legacy_id, exc)
            continue
        try:
            new_id = sink.insert(rows.NOTES_TABLE, rows.build_note_row(note, version_id))
        except SinkWriteFailed as exc:
            _fail_write(report, "note", legacy_id, exc)
            continue
        _record(mapper, report, identity.NOTE, legacy_id, new_id)
    return report


# --- Approvals -------------------------------------------------------------------------

_SCOPE_ENTITIES = {
    rows.ScopeKind.VIDEO: identity.VIDEO,
    rows.ScopeKind.PROJECT: identity.PROJECT,
}


def migrate_approvals(source: Any, sink: Any, mapper: IdentityMapper) -> StageReport:
    """Insert approvals, resolving the polymorphic scope.

    Video and project scopes are resolved through their identity maps and
    skipped when the target was not migrated. Unknown scope types keep their
    legacy `scope_id` and are reported as warnings.
    """
    records, report = _fetch(source, APPROVALS_STAGE)
    for approval in records:
        legacy_id = _checked_legacy_id(approval, identity.APPROVAL, mapper, report)
        if legacy_id is None:
            continue
        scope = rows.ApprovalScope.from_record(approval)
        scope_entity = _SCOPE_ENTITIES.get(scope.kind)
        if scope_entity is None:
            _log.warning("Approval %s has unmapped scope type %r; keeping legacy scope id", legacy_id, scope.raw_type)
            report.warn(legacy_id, r.UNMAPPED_SCOPE, str(scope.raw_type))
            scope_id = scope.legacy_id
        else:
            try:
                scope_id = _parent(mapper, scope_entity, scope.legacy_id)
            except ParentMappingNotFound as exc:
                _skip_missing_parent(report, "approval", legacy_id, exc)
                continue

        version_id = None
        legacy_version = approval.get("version_id")
        if legacy_version:
            version_id = mapper.table(identity.VIDEO_VERSION).get(legacy_version)
            if version_id is None:
                report.warn(legacy_id, r.UNRESOLVED_REFERENCE, f"version_id:{legacy_version}")

        try:
            new_id = sink.insert(rows.APPROVALS_TABLE, rows.build_approval_row(approval, scope_id, version_id))
        except SinkWriteFailed as exc:
            _fail_write(report, "approval", legacy_id, exc)
            continue
        _record(mapper, report, identity.APPROVAL, legacy_id, new_id)
    return report


__all__ = [
    "USERS_STAGE",
    "PROJECTS_STAGE",
    "VIDEOS_STAGE",
    "VIDEO_VERSIONS_STAGE",
    "NOTES_STAGE",
    "APPROVALS_STAGE",
    "migrate_users",
    "migrate_projects",
    "migrate_videos",
    "migrate_video_versions",
    "migrate_notes",
    "migrate_approvals",
]
