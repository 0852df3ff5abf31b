"""Field definitions: an extractor fallback chain plus an ordered filter list."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from src.core.errors import ConfigurationError
from src.domains.extraction.core.field_extractor import (
    FieldExtractor,
    MatchMode,
    parse_extractor,
)
from src.domains.extraction.core.field_filter import (
    FieldFilter,
    FieldValue,
    apply_filters,
    parse_filters,
)

# Keys that declare a single extractor inline on the field document
INLINE_EXTRACTOR_KEYS = frozenset({"expr", "format", "match", "validator"})

FIELD_KEYS = INLINE_EXTRACTOR_KEYS | {"extractor", "extractors", "filter", "filters", "optional"}


@dataclass(frozen=True)
class Field:
    """A named field: extractors tried in order, then filters applied in order."""

    name: str
    extractors: tuple[FieldExtractor, ...] = ()
    filters: tuple[FieldFilter, ...] = ()
    optional: bool = False

    @property
    def is_list(self) -> bool:
        return bool(self.extractors) and self.extractors[0].match == MatchMode.ALL

    def extract_raw(self, raw_text: str) -> FieldValue:
        """Run the extractor chain; the first non-empty result wins."""
        for extractor in self.extractors:
            value = extractor.extract(raw_text)
            if value:
                return value
        return [] if self.is_list else ""

    def extract(self, raw_text: str) -> FieldValue:
        """Extract and filter this field's value from raw_text."""
        return apply_filters(self.filters, self.extract_raw(raw_text))

    def with_filters(self, filters: tuple[FieldFilter, ...]) -> Field:
        return Field(
            name=self.name,
            extractors=self.extractors,
            filters=filters,
            optional=self.optional,
        )


def _parse_extractor_list(name: str, value: Any) -> tuple[FieldExtractor, ...]:
    if not isinstance(value, list):
        msg = "extractors must be a list"
        raise ConfigurationError(msg, template=name)
    return tuple(parse_extractor(name, item) for item in value)


def declares_filters(value: Any) -> bool:
    """True if a field document explicitly declares filters."""
    return isinstance(value, dict) and ("filter" in value or "filters" in value)


def parse_field(name: str, value: Any, base: Field | None = None) -> Field:
    """Parse a field document, optionally on top of an inherited field.

    Keys the document declares override the inherited field; keys it leaves
    out keep the inherited values.
    """
    inherited_extractors = base.extractors if base else ()
    inherited_filters = base.filters if base else ()
    inherited_optional = base.optional if base else False

    if isinstance(value, str):
        return Field(
            name=name,
            extractors=(parse_extractor(name, value),),
            filters=inherited_filters,
            optional=inherited_optional,
        )
    if value is None:
        return base or Field(name=name)
    if not isinstance(value, dict):
        msg = f"field must be a string or mapping, got {type(value).__name__}"
        raise ConfigurationError(msg, template=name)

    unknown = set(value) - FIELD_KEYS
    if unknown:
        msg = f"unknown field keys: {', '.join(sorted(unknown))}"
        raise ConfigurationError(msg, template=name)

    extractors: tuple[FieldExtractor, ...] = ()
    inline = {key: item for key, item in value.items() if key in INLINE_EXTRACTOR_KEYS}
    if inline:
        base_extractor = inherited_extractors[0] if inherited_extractors else None
        extractors += (parse_extractor(name, inline, base=base_extractor),)
    if "extractor" in value:
        extractors += (parse_extractor(name, value["extractor"]),)
    if "extractors" in value:
        extractors += _parse_extractor_list(name, value["extractors"])
    if not extractors:
        extractors = inherited_extractors

    filters = inherited_filters
    if declares_filters(value):
        filters = parse_filters(value.get("filter")) + parse_filters(value.get("filters"))

    optional = value.get("optional", inherited_optional)
    if not isinstance(optional, bool):
        msg = f"optional must be a boolean, got {optional!r}"
        raise ConfigurationError(msg, template=name)

    return Field(name=name, extractors=extractors, filters=filters, optional=optional)
