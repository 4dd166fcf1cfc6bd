"""
Field-mapping rules: legacy record -> destination row.

Each builder takes the raw legacy dict plus the already resolved foreign keys
and returns the payload for the destination table. Builders are pure; ID
resolution and error handling live in the stages.
"""
from __future__ import annotations

import enum
import secrets
import string
from dataclasses import dataclass
from typing import Any, Hashable, Mapping


PROFILES_TABLE = "profiles"
PROJECTS_TABLE = "projects"
VIDEOS_TABLE = "videos"
VIDEO_VERSIONS_TABLE = "video_versions"
NOTES_TABLE = "notes"
APPROVALS_TABLE = "approvals"


def _or(record: Mapping[str, Any], key: str, default: Any) -> Any:
    """Return `record[key]` unless missing or falsy."""
    value = record.get(key)
    return value if value else default


def _updated_at(record: Mapping[str, Any]) -> Any:
    return record.get("updated_at") or record.get("created_at")


def legacy_id_of(record: Mapping[str, Any]) -> Hashable | None:
    value = record.get("id")
    if value is None or value == "":
        return None
    try:
        hash(value)
    except TypeError:
        return None
    return value


def generate_temporary_password(length: int = 16) -> str:
    """Random password containing lower, upper, digit and symbol characters."""
    length = max(length, 8)
    alphabet = string.ascii_letters + string.digits
    required = [
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice("!#$%&*+-=?@^_"),
    ]
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def mask_email(email: str | None) -> str:
    """Mask email for logs to reduce PII exposure."""
    if not email or "@" not in email:
        return "***"
    local, _, domain = email.partition("@")
    return f"{local[:2]}***@{domain}"


# --- Users ---------------------------------------------------------------------


def build_user_metadata(user: Mapping[str, Any]) -> dict:
    return {
        "full_name": user.get("full_name") or user.get("display_name"),
        "migrated": True,
        "legacy_id": legacy_id_of(user),
    }


def build_profile_row(user: Mapping[str, Any], user_id: Any) -> dict:
    return {
        "id": user_id,
        "email": user.get("email"),
        "full_name": user.get("full_name"),
        "display_name": user.get("display_name"),
        "plan_level": _or(user, "plan_level", "free"),
    }


# --- Projects / videos -----------------------------------------------------------


def build_project_row(project: Mapping[str, Any], user_id: Any) -> dict:
    return {
        "user_id": user_id,
        "name": project.get("name"),
        "client_display_name": project.get("client_display_name"),
        "status": _or(project, "status", "active"),
        "share_token": project.get("share_token"),
        "share_expires_at": project.get("share_expires_at"),
        "approved_videos_count": _or(project, "approved_videos_count", 0),
        "total_videos_count": _or(project, "total_videos_count", 0),
        "last_status_change_at": project.get("last_status_change_at") or project.get("created_at"),
        "created_at": project.get("created_at"),
        "updated_at": _updated_at(project),
    }


def build_video_row(video: Mapping[str, Any], project_id: Any) -> dict:
    # current_version_id is written in the versions stage's second pass.
    return {
        "project_id": project_id,
        "title": video.get("title"),
        "status": _or(video, "status", "pending_review"),
        "order_index": _or(video, "order_index", 0),
        "created_at": video.get("created_at"),
        "updated_at": _updated_at(video),
    }


def build_video_version_row(version: Mapping[str, Any], video_id: Any) -> dict:
    return {
        "video_id": video_id,
        "version_number": _or(version, "version_number", 1),
        "source_type": _or(version, "source_type", "drive"),
        "source_url": version.get("source_url"),
        "file_id": version.get("file_id"),
        "thumbnail_url": version.get("thumbnail_url"),
        "created_at": version.get("created_at"),
        "updated_at": _updated_at(version),
    }


# --- Feedback ------------------------------------------------------------------


def build_note_row(note: Mapping[str, Any], video_version_id: Any) -> dict:
    return {
        "video_version_id": video_version_id,
        "reviewer_name": note.get("reviewer_name"),
        "reviewer_email": note.get("reviewer_email"),
        "note_text": note.get("note_text"),
        "timestamp_seconds": note.get("timestamp_seconds"),
        "video_title": note.get("video_title"),
        "status": _or(note, "status", "open"),
        "created_at": note.get("created_at"),
        "updated_at": _updated_at(note),
    }


class ScopeKind(enum.Enum):
    VIDEO = "video"
    PROJECT = "project"
    OTHER = "other"


@dataclass(frozen=True)
class ApprovalScope:
    """Tagged approval target: which entity `scope_id` refers to."""

    kind: ScopeKind
    legacy_id: Any
    raw_type: Any = None

    @classmethod
    def from_record(cls, approval: Mapping[str, Any]) -> "ApprovalScope":
        raw_type = approval.get("scope_type")
        normalized = raw_type.strip().lower() if isinstance(raw_type, str) else None
        try:
            kind = ScopeKind(normalized)
        except ValueError:
            kind = ScopeKind.OTHER
        return cls(kind, approval.get("scope_id"), raw_type)


def build_approval_row(approval: Mapping[str, Any], scope_id: Any, version_id: Any) -> dict:
    return {
        "scope_type": approval.get("scope_type"),
        "scope_id": scope_id,
        "version_id": version_id,
        "approver_name": approval.get("approver_name"),
        "approver_email": approval.get("approver_email"),
        "created_at": approval.get("created_at"),
    }


__all__ = [
    "PROFILES_TABLE",
    "PROJECTS_TABLE",
    "VIDEOS_TABLE",
    "VIDEO_VERSIONS_TABLE",
    "NOTES_TABLE",
    "APPROVALS_TABLE",
    "legacy_id_of",
    "generate_temporary_password",
    "mask_email",
    "build_user_metadata",
    "build_profile_row",
    "build_project_row",
    "build_video_row",
    "build_video_version_row",
    "build_note_row",
    "ScopeKind",
    "ApprovalScope",
    "build_approval_row",
]
