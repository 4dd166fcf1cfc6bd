"""End-to-end behaviour of the staged migration against in-memory fakes."""
from __future__ import annotations

import pytest

from reelreview.migration import identity, report as r
from reelreview.migration.errors import SourceUnavailable
from reelreview.migration.pipeline import STAGE_ORDER, MigrationPipeline, run_migration
from reelreview.migration.sink import DryRunSink
from reelreview.tests.utils.fake_backend import FakeSink, FakeSource


def test_stages_run_in_dependency_order(fake_source: FakeSource, fake_sink: FakeSink) -> None:
    result = run_migration(fake_source, fake_sink)

    assert fake_source.calls == ["users", "projects", "videos", "video_versions", "notes", "approvals"]
    assert [s.stage for s in result.stages] == list(STAGE_ORDER)


def test_end_to_end_scenario(fake_source: FakeSource, fake_sink: FakeSink) -> None:
    result = run_migration(fake_source, fake_sink)
    mapper = result.mapper

    assert len(fake_sink.auth_users) == 1
    assert fake_sink.auth_users[0]["email"] == "a@x.com"
    user_id = mapper.resolve(identity.USER, "u1")

    projects = fake_sink.rows("projects")
    assert len(projects) == 1
    assert projects[0]["user_id"] == user_id
    assert projects[0]["share_token"] == "tok-123"

    assert len(fake_sink.rows("videos")) == 2
    assert len(fake_sink.rows("video_versions")) == 3

    current_new = mapper.resolve(identity.VIDEO_VERSION, "vv2")
    first_video = fake_sink.row("videos", mapper.resolve(identity.VIDEO, "v1"))
    second_video = fake_sink.row("videos", mapper.resolve(identity.VIDEO, "v2"))
    assert first_video["current_version_id"] == current_new
    assert "current_version_id" not in second_video

    notes = fake_sink.rows("notes")
    assert len(notes) == 2
    assert all(n["video_version_id"] == current_new for n in notes)

    assert result.skipped == 0 and result.failed == 0
    assert result.migrated == 1 + 1 + 2 + 3 + 2


def test_every_inserted_row_is_recoverable_through_mapping(fake_source: FakeSource, fake_sink: FakeSink) -> None:
    result = run_migration(fake_source, fake_sink)
    mapper = result.mapper

    for table, entity in [
        ("projects", identity.PROJECT),
        ("videos", identity.VIDEO),
        ("video_versions", identity.VIDEO_VERSION),
        ("notes", identity.NOTE),
    ]:
        for row in fake_sink.rows(table):
            legacy_id = mapper.table(entity).legacy_for(row["id"])
            assert mapper.resolve(entity, legacy_id) == row["id"]
    for auth in fake_sink.auth_users:
        assert mapper.table(identity.USER).legacy_for(auth["id"]) == auth["metadata"]["legacy_id"]


def test_project_of_failed_user_is_skipped_with_its_videos(legacy_dataset, fake_sink: FakeSink) -> None:
    fake_sink.reject_emails.add("a@x.com")

    result = run_migration(FakeSource(records=legacy_dataset), fake_sink)

    assert result.stage("users").failed[0].reason == r.AUTH_FAILED
    projects = result.stage("projects")
    assert projects.skipped_ids(r.MISSING_PARENT) == ["p1"]
    assert "p1" not in result.mapper.table(identity.PROJECT)
    assert fake_sink.rows("projects") == []
    # Videos are never attempted: nothing inserted, all reported as missing parent.
    assert fake_sink.rows("videos") == []
    assert result.stage("videos").skipped_ids(r.MISSING_PARENT) == ["v1", "v2"]
    assert result.stage("notes").migrated == 0


def test_skipped_count_matches_unmapped_parents(legacy_dataset, fake_sink: FakeSink) -> None:
    legacy_dataset["notes"].append({"id": "n3", "video_version_id": "vv-unknown"})
    legacy_dataset["videos"].append({"id": "v3", "project_id": "p-unknown"})

    result = run_migration(FakeSource(records=legacy_dataset), fake_sink)

    assert result.stage("videos").skipped_ids(r.MISSING_PARENT) == ["v3"]
    assert result.stage("notes").skipped_ids(r.MISSING_PARENT) == ["n3"]
    assert len(fake_sink.rows("videos")) == 2
    assert len(fake_sink.rows("notes")) == 2


def test_source_failure_aborts_remaining_stages(legacy_dataset, fake_sink: FakeSink) -> None:
    source = FakeSource(records=legacy_dataset, failing={"videos"})
    completed = []

    with pytest.raises(SourceUnavailable):
        MigrationPipeline(source, fake_sink, on_stage_complete=completed.append).run()

    assert [s.stage for s in completed] == ["users", "projects"]
    assert source.calls == ["users", "projects", "videos"]
    assert fake_sink.rows("video_versions") == []


def test_rerun_duplicates_destination_rows(legacy_dataset, fake_sink: FakeSink) -> None:
    """Inserts carry no idempotency key; a second run inserts everything again."""
    run_migration(FakeSource(records=legacy_dataset), fake_sink)
    run_migration(FakeSource(records=legacy_dataset), fake_sink)

    assert len(fake_sink.auth_users) == 2
    assert len(fake_sink.rows("projects")) == 2
    assert len(fake_sink.rows("video_versions")) == 6


def test_notifications_sent_once_per_provisioned_user(fake_source: FakeSource, fake_sink: FakeSink) -> None:
    run_migration(fake_source, fake_sink)
    assert fake_sink.resets == ["a@x.com"]


def test_notifications_disabled(fake_source: FakeSource, fake_sink: FakeSink) -> None:
    run_migration(fake_source, fake_sink, notify_users=False)
    assert fake_sink.resets == []


def test_dry_run_maps_everything_without_notifications(fake_source: FakeSource) -> None:
    sink = DryRunSink()

    result = run_migration(fake_source, sink, dry_run=True)

    assert result.dry_run is True
    assert result.migrated == 9
    assert sink.users == ["a@x.com"]
    video_id = result.mapper.resolve(identity.VIDEO, "v1")
    assert sink.updates == [("videos", video_id, {"current_version_id": result.mapper.resolve(identity.VIDEO_VERSION, "vv2")})]


def test_report_is_json_friendly(fake_source: FakeSource, fake_sink: FakeSink) -> None:
    fake_source.records["notes"].append({"id": "n9", "video_version_id": "missing"})

    data = run_migration(fake_source, fake_sink).as_dict()

    assert data["totals"] == {"migrated": 9, "skipped": 1, "failed": 0}
    notes = next(s for s in data["stages"] if s["stage"] == "notes")
    assert notes["skipped"] == [{"legacy_id": "n9", "reason": "missing_parent", "detail": "video_version:missing"}]
