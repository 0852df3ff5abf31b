"""Extraction domain core -- pure template parsing, resolution and field extraction."""

from __future__ import annotations

from src.domains.extraction.core.field_extractor import (
    FieldExtractor,
    MatchMode,
    parse_extractor,
)
from src.domains.extraction.core.field_filter import (
    FILTER_KINDS,
    FieldFilter,
    apply_filters,
    parse_filter,
    parse_filters,
)
from src.domains.extraction.core.fields import Field, parse_field
from src.domains.extraction.core.snapshot_capture import ContentSnapshot, capture, sort_and_cap
from src.domains.extraction.core.templates import (
    ChannelTemplate,
    parse_template,
    resolve_channel,
    resolve_documents,
    resolve_template,
)

__all__ = [
    # field_extractor
    "FieldExtractor",
    "MatchMode",
    "parse_extractor",
    # field_filter
    "FILTER_KINDS",
    "FieldFilter",
    "apply_filters",
    "parse_filter",
    "parse_filters",
    # fields
    "Field",
    "parse_field",
    # snapshot_capture
    "ContentSnapshot",
    "capture",
    "sort_and_cap",
    # templates
    "ChannelTemplate",
    "parse_template",
    "resolve_channel",
    "resolve_documents",
    "resolve_template",
]
