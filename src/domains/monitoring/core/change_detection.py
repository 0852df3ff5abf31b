"""Snapshot change detection and difference scoring."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from difflib import SequenceMatcher, unified_diff
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.domains.extraction.core.snapshot_capture import ContentSnapshot


class ChangeKind(StrEnum):
    UNCHANGED = "unchanged"
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


# Max chars to compare to avoid excessive computation
MAX_COMPARISON_LENGTH = 50_000


def calculate_similarity(old_content: str, new_content: str) -> float:
    """Calculate similarity ratio between two content strings.

    For content > 50,000 characters, only the first 50k chars are compared.
    Returns float between 0.0 and 1.0.
    """
    old_trimmed = old_content[:MAX_COMPARISON_LENGTH]
    new_trimmed = new_content[:MAX_COMPARISON_LENGTH]
    return SequenceMatcher(None, old_trimmed, new_trimmed).ratio()


def canonical_value(value: Any) -> str:
    """Deterministic text form of a field value used for comparison."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class FieldDelta:
    """Change of one field between two snapshots."""

    name: str
    kind: ChangeKind
    old: Any = None
    new: Any = None

    @property
    def distance(self) -> float:
        """Contribution of this field to the overall difference, 0.0 to 1.0."""
        if self.kind == ChangeKind.UNCHANGED:
            return 0.0
        if self.kind in (ChangeKind.ADDED, ChangeKind.REMOVED):
            return 1.0
        similarity = calculate_similarity(canonical_value(self.old), canonical_value(self.new))
        # A changed field always counts for something even if the text is near-identical
        return max(1.0 - similarity, 1e-9)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.name, "kind": str(self.kind)}
        if self.kind in (ChangeKind.REMOVED, ChangeKind.CHANGED):
            data["old"] = self.old
        if self.kind in (ChangeKind.ADDED, ChangeKind.CHANGED):
            data["new"] = self.new
        return data


@dataclass(frozen=True)
class SnapshotDiff:
    """Structural delta over the field mappings of two snapshots."""

    deltas: tuple[FieldDelta, ...] = field(default_factory=tuple)

    @property
    def has_changes(self) -> bool:
        return any(delta.kind != ChangeKind.UNCHANGED for delta in self.deltas)

    def changed(self) -> list[FieldDelta]:
        return [delta for delta in self.deltas if delta.kind != ChangeKind.UNCHANGED]

    def by_kind(self, kind: ChangeKind) -> list[str]:
        return [delta.name for delta in self.deltas if delta.kind == kind]

    def to_json(self) -> str:
        """Serialize only the non-unchanged deltas, in field-name order."""
        return json.dumps(
            [delta.to_dict() for delta in self.changed()],
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, text: str | None) -> SnapshotDiff:
        if not text:
            return cls()
        deltas = tuple(
            FieldDelta(
                name=item["field"],
                kind=ChangeKind(item["kind"]),
                old=item.get("old"),
                new=item.get("new"),
            )
            for item in json.loads(text)
        )
        return cls(deltas=deltas)


def diff_fields(before: dict[str, Any], after: dict[str, Any]) -> SnapshotDiff:
    """Compute the per-field delta between two field mappings."""
    deltas = []
    for name in sorted(set(before) | set(after)):
        if name not in before:
            deltas.append(FieldDelta(name=name, kind=ChangeKind.ADDED, new=after[name]))
        elif name not in after:
            deltas.append(FieldDelta(name=name, kind=ChangeKind.REMOVED, old=before[name]))
        elif canonical_value(before[name]) == canonical_value(after[name]):
            deltas.append(FieldDelta(name=name, kind=ChangeKind.UNCHANGED))
        else:
            deltas.append(
                FieldDelta(name=name, kind=ChangeKind.CHANGED, old=before[name], new=after[name])
            )
    return SnapshotDiff(deltas=tuple(deltas))


def difference_percent(diff: SnapshotDiff) -> int:
    """Score a diff as an integer percentage from 0 to 100.

    The mean per-field distance over the union of fields, rounded up so any
    real change scores at least 1 and identical snapshots score 0. Adding
    changed fields or widening a field's change never lowers the score.
    """
    if not diff.deltas:
        return 0
    total = sum(delta.distance for delta in diff.deltas)
    percent = math.ceil(100 * total / len(diff.deltas))
    return max(0, min(100, percent))


def compare_snapshots(
    before: ContentSnapshot | None,
    after: ContentSnapshot,
) -> tuple[SnapshotDiff, int]:
    """Compare two snapshots, returning the diff and its difference percent.

    A missing ``before`` is treated as an empty snapshot.
    """
    before_fields = before.fields if before is not None else {}
    diff = diff_fields(before_fields, after.fields)
    return diff, difference_percent(diff)


def _lines(value: Any) -> list[str]:
    if isinstance(value, list):
        return [f"{canonical_value(item)}\n" for item in value]
    if value is None:
        return []
    return [f"{line}\n" for line in canonical_value(value).splitlines()]


def render_diff(diff: SnapshotDiff) -> str:
    """Render a diff as unified-diff text per changed field, for operators."""
    chunks: list[str] = []
    for delta in diff.changed():
        chunks.extend(
            unified_diff(
                _lines(delta.old),
                _lines(delta.new),
                fromfile=f"{delta.name} (before)",
                tofile=f"{delta.name} (after)",
                n=1,
            )
        )
    return "".join(chunks)
