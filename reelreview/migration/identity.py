"""
Identity mapping between legacy IDs and destination IDs.

Intent:
    The destination assigns new primary keys on insert, so every stage records
    `legacy_id -> new_id` for the rows it created. Later stages resolve their
    foreign keys through these maps.

Invariants:
    - One-to-one: a legacy ID maps to exactly one new ID and vice versa.
    - Append-only: entries are never updated or removed during a run.
    - Insertion order is preserved (iteration follows source order).
    - Maps live in memory for the duration of one run only.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterator, Mapping

from .errors import MappingConflict, MappingNotFound, SinkWriteFailed

_log = logging.getLogger("reelreview.migration.identity")


USER = "user"
PROJECT = "project"
VIDEO = "video"
VIDEO_VERSION = "video_version"
NOTE = "note"
APPROVAL = "approval"

ENTITY_TYPES = (USER, PROJECT, VIDEO, VIDEO_VERSION, NOTE, APPROVAL)


class IdentityMap:
    """Append-only, one-to-one map for a single entity type."""

    def __init__(self, entity: str) -> None:
        self.entity = entity
        self._forward: dict[Hashable, Any] = {}
        self._reverse: dict[Any, Hashable] = {}

    def record(self, legacy_id: Hashable, new_id: Any) -> None:
        if legacy_id in self._forward:
            raise MappingConflict(
                f"{self.entity} legacy id {legacy_id!r} already mapped to {self._forward[legacy_id]!r}"
            )
        if new_id in self._reverse:
            raise MappingConflict(
                f"{self.entity} new id {new_id!r} already assigned to legacy id {self._reverse[new_id]!r}"
            )
        self._forward[legacy_id] = new_id
        self._reverse[new_id] = legacy_id

    def resolve(self, legacy_id: Hashable) -> Any:
        try:
            return self._forward[legacy_id]
        except (KeyError, TypeError):
            raise MappingNotFound(self.entity, legacy_id) from None

    def get(self, legacy_id: Hashable, default: Any = None) -> Any:
        try:
            return self._forward.get(legacy_id, default)
        except TypeError:
            return default

    def legacy_for(self, new_id: Any) -> Hashable:
        """Recover the legacy ID of a destination row."""
        try:
            return self._reverse[new_id]
        except KeyError:
            raise MappingNotFound(self.entity, new_id) from None

    def items(self) -> Iterator[tuple[Hashable, Any]]:
        return iter(list(self._forward.items()))

    def __contains__(self, legacy_id: object) -> bool:
        try:
            return legacy_id in self._forward
        except TypeError:
            return False

    def __len__(self) -> int:
        return len(self._forward)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(list(self._forward))

    def __repr__(self) -> str:
        return f"IdentityMap(entity={self.entity!r}, size={len(self)})"


class IdentityMapper:
    """Holds one `IdentityMap` per entity type."""

    def __init__(self) -> None:
        self._maps: dict[str, IdentityMap] = {}

    def table(self, entity: str) -> IdentityMap:
        if entity not in self._maps:
            self._maps[entity] = IdentityMap(entity)
        return self._maps[entity]

    def record(self, entity: str, legacy_id: Hashable, new_id: Any) -> None:
        self.table(entity).record(legacy_id, new_id)

    def resolve(self, entity: str, legacy_id: Hashable) -> Any:
        return self.table(entity).resolve(legacy_id)

    def counts(self) -> dict[str, int]:
        return {name: len(m) for name, m in self._maps.items()}


# --- Deferred back-references ---------------------------------------------------


@dataclass(frozen=True)
class PendingReference:
    """A column on an already inserted row that points at a not-yet-migrated entity.

    Example: `videos.current_version_id` is known only after the video versions
    stage has inserted the version rows.
    """

    table: str
    row_id: Any
    column: str
    entity: str
    legacy_ref: Hashable
    owner_legacy_id: Hashable = None


@dataclass
class ResolutionOutcome:
    resolved: list[PendingReference] = field(default_factory=list)
    unresolved: list[PendingReference] = field(default_factory=list)
    failed: list[tuple[PendingReference, str]] = field(default_factory=list)


class DeferredReferences:
    """Collects pending back-references and resolves them in a second pass."""

    def __init__(self) -> None:
        self._pending: list[PendingReference] = []

    def add(self, ref: PendingReference) -> None:
        self._pending.append(ref)

    def __len__(self) -> int:
        return len(self._pending)

    def __iter__(self) -> Iterator[PendingReference]:
        return iter(list(self._pending))

    def for_entity(self, entity: str) -> list[PendingReference]:
        return [p for p in self._pending if p.entity == entity]

    def resolve(
        self,
        mapper: IdentityMapper,
        sink: Any,
        *,
        entity: str,
        owners: Mapping[Any, Any] | None = None,
    ) -> ResolutionOutcome:
        """Write every pending reference to `entity` whose target was migrated.

        `owners` maps a new target ID to the new ID of the row it belongs to.
        When given, a reference whose target belongs to another row is left
        unresolved.

        Resolved entries are removed from the pending set; unresolved ones are
        dropped as well since no later stage can produce the missing mapping.
        """
        outcome = ResolutionOutcome()
        targets = mapper.table(entity)
        remaining: list[PendingReference] = []
        for ref in self._pending:
            if ref.entity != entity:
                remaining.append(ref)
                continue
            new_ref = targets.get(ref.legacy_ref)
            if new_ref is None:
                outcome.unresolved.append(ref)
                continue
            if owners is not None and owners.get(new_ref) != ref.row_id:
                _log.warning(
                    "Back-reference %s.%s for row %s points at %s %s owned by another row",
                    ref.table, ref.column, ref.row_id, entity, ref.legacy_ref,
                )
                outcome.unresolved.append(ref)
                continue
            try:
                sink.update(ref.table, ref.row_id, {ref.column: new_ref})
            except SinkWriteFailed as exc:
                _log.error("Back-reference %s.%s for row %s failed: %s", ref.table, ref.column, ref.row_id, exc)
                outcome.failed.append((ref, str(exc)))
                continue
            outcome.resolved.append(ref)
        self._pending = remaining
        return outcome


__all__ = [
    "USER",
    "PROJECT",
    "VIDEO",
    "VIDEO_VERSION",
    "NOTE",
    "APPROVAL",
    "ENTITY_TYPES",
    "IdentityMap",
    "IdentityMapper",
    "PendingReference",
    "ResolutionOutcome",
    "DeferredReferences",
]
