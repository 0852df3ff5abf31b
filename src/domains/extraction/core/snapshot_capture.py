"""Apply a resolved template to raw content, producing a field-value snapshot."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from src.core.errors import ExtractionFailure

if TYPE_CHECKING:
    from src.domains.extraction.core.templates import ChannelTemplate

logger = structlog.get_logger(__name__)

ITEMS_KEY = "items"
COUNT_KEY = "count"


@dataclass(frozen=True)
class ContentSnapshot:
    """Structured field values captured from one source at one point in time.

    Field identity, not position, is the key. Serialization is deterministic
    so equal snapshots always produce equal JSON.
    """

    fields: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def __contains__(self, key: object) -> bool:
        return key in self.fields

    def __len__(self) -> int:
        return len(self.fields)

    def keys(self) -> list[str]:
        return sorted(self.fields)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    @property
    def count(self) -> int:
        """Number of list entries, or -1 for a snapshot without items."""
        return int(self.fields.get(COUNT_KEY, -1))

    def to_json(self, indent: int | None = None) -> str:
        separators = (",", ": ") if indent else (",", ":")
        return json.dumps(
            self.fields,
            sort_keys=True,
            separators=separators,
            ensure_ascii=False,
            indent=indent,
        )

    @classmethod
    def from_json(cls, text: str | None) -> ContentSnapshot:
        if not text:
            return cls()
        data = json.loads(text)
        if not isinstance(data, dict):
            msg = "snapshot JSON must be an object"
            raise ValueError(msg)
        return cls(fields=data)


def _sort_value(value: Any) -> str:
    if isinstance(value, list):
        return " ".join(str(item) for item in value)
    return "" if value is None else str(value)


def sort_and_cap(
    items: list[dict[str, Any]],
    sort: str = "",
    max_results: int = 0,
) -> list[dict[str, Any]]:
    """Order list entries by ``sort`` then keep at most ``max_results`` of them.

    ``sort`` is a field name, optionally prefixed with ``-`` for descending
    order; an empty sort keeps document order. ``max_results`` of 0 keeps all.
    """
    ordered = list(items)
    sort = (sort or "").strip()
    if sort:
        descending = sort.startswith("-")
        key = sort.lstrip("-+")
        ordered.sort(key=lambda item: _sort_value(item.get(key)), reverse=descending)
    if max_results and max_results > 0:
        ordered = ordered[:max_results]
    return ordered


def _extract_fields(template: ChannelTemplate, text: str) -> dict[str, Any]:
    return {name: definition.extract(text) for name, definition in template.fields.items()}


def capture(
    template: ChannelTemplate,
    raw_content: str | None,
    sort: str = "",
    max_results: int = 0,
) -> ContentSnapshot:
    """Extract every field of ``template`` from ``raw_content``.

    Templates with an ``items`` rule split the content into entries first and
    produce ``{"items": [...], "count": n}`` after sorting and capping.
    """
    if raw_content is None:
        msg = f"no content to extract for {template.name}"
        raise ExtractionFailure(msg, source=template.name)
    if not template.fields:
        msg = f"template {template.name} defines no fields"
        raise ExtractionFailure(msg, source=template.name)

    try:
        if template.items is not None:
            entries = [
                _extract_fields(template, chunk)
                for chunk in template.items.extract_all(raw_content)
            ]
            entries = sort_and_cap(entries, sort, max_results)
            snapshot = ContentSnapshot(fields={ITEMS_KEY: entries, COUNT_KEY: len(entries)})
        else:
            snapshot = ContentSnapshot(fields=_extract_fields(template, raw_content))
    except (re.error, IndexError) as exc:
        msg = f"extraction failed for {template.name}: {exc}"
        raise ExtractionFailure(msg, source=template.name) from exc

    missing = [
        name
        for name, definition in template.fields.items()
        if not definition.optional and template.items is None and not snapshot.get(name)
    ]
    if missing:
        logger.warning("required_fields_missing", template=template.name, fields=missing)

    return snapshot
