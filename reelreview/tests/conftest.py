"""
Pytest configuration for reelreview tests.

Why: Keep migration tests hermetic. Environment variables that configure the
real legacy API or Supabase project are removed so no test can reach a live
service by accident.
"""
import pytest

from reelreview.tests.utils.fake_backend import FakeSink, FakeSource


_LIVE_ENV = (
    "LEGACY_API_URL",
    "LEGACY_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "MIGRATION_HTTP_TIMEOUT",
    "MIGRATION_NOTIFY_USERS",
    "PASSWORD_RESET_REDIRECT_URL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _LIVE_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def legacy_dataset() -> dict[str, list[dict]]:
    """One user, one project, two videos, three versions (one current), two notes."""
    return {
        "users": [
            {"id": "u1", "email": "a@x.com", "full_name": "Ada Example", "display_name": "ada"},
        ],
        "projects": [
            {
                "id": "p1",
                "user_id": "u1",
                "name": "Launch film",
                "client_display_name": "ACME",
                "share_token": "tok-123",
                "created_at": "2024-01-02T10:00:00Z",
            },
        ],
        "videos": [
            {"id": "v1", "project_id": "p1", "title": "Cut A", "order_index": 0, "current_version_id": "vv2"},
            {"id": "v2", "project_id": "p1", "title": "Cut B", "order_index": 1},
        ],
        "video_versions": [
            {"id": "vv1", "video_id": "v1", "version_number": 1, "file_id": "f1"},
            {"id": "vv2", "video_id": "v1", "version_number": 2, "file_id": "f2"},
            {"id": "vv3", "video_id": "v1", "version_number": 3, "file_id": "f3"},
        ],
        "notes": [
            {"id": "n1", "video_version_id": "vv2", "note_text": "Trim intro", "timestamp_seconds": 4.5},
            {"id": "n2", "video_version_id": "vv2", "note_text": "Louder music", "timestamp_seconds": 31},
        ],
        "approvals": [],
    }


@pytest.fixture
def fake_source(legacy_dataset: dict[str, list[dict]]) -> FakeSource:
    return FakeSource(records=legacy_dataset)


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()
