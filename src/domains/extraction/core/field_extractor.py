"""Regex-based field extractors with group-substitution formats."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from src.core.errors import ConfigurationError

DEFAULT_FORMAT = "$1"

# $N or ${N}
_GROUP_REF = re.compile(r"\$(?:(\d+)|\{(\d+)\})")


class MatchMode(StrEnum):
    FIRST = "first"
    ALL = "all"

    @classmethod
    def parse(cls, value: Any) -> MatchMode:
        """Parse a match mode case-insensitively."""
        if isinstance(value, MatchMode):
            return value
        if not isinstance(value, str):
            msg = f"match must be 'first' or 'all', got {value!r}"
            raise ConfigurationError(msg)
        try:
            return cls(value.strip().lower())
        except ValueError:
            msg = f"match must be 'first' or 'all', got {value!r}"
            raise ConfigurationError(msg) from None


def compile_expression(expr: str, what: str = "expr") -> re.Pattern[str] | None:
    """Compile a DOTALL expression, or return None for an empty one."""
    if not expr:
        return None
    try:
        return re.compile(expr, re.DOTALL)
    except re.error as exc:
        msg = f"invalid {what} {expr!r}: {exc}"
        raise ConfigurationError(msg) from exc


def format_match(fmt: str, match: re.Match[str]) -> str:
    """Substitute $N / ${N} group references in fmt with the match's groups."""

    def _group(ref: re.Match[str]) -> str:
        index = int(ref.group(1) or ref.group(2))
        return match.group(index) or ""

    return _GROUP_REF.sub(_group, fmt)


def max_group_ref(fmt: str) -> int:
    """Highest group number referenced by fmt, or 0."""
    refs = [int(m.group(1) or m.group(2)) for m in _GROUP_REF.finditer(fmt)]
    return max(refs, default=0)


@dataclass(frozen=True)
class FieldExtractor:
    """A single named rule extracting a field value from raw text.

    An extractor with an empty expression is inert: it matches nothing and
    yields an empty result rather than raising.
    """

    name: str
    expr: str = ""
    format: str = DEFAULT_FORMAT
    match: MatchMode = MatchMode.FIRST
    validator: str = ""
    _pattern: re.Pattern[str] | None = field(init=False, repr=False, compare=False)
    _validator_pattern: re.Pattern[str] | None = field(init=False, repr=False, compare=False)
    _format: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        pattern = compile_expression(self.expr)
        validator_pattern = compile_expression(self.validator, what="validator")

        fmt = self.format if self.format else DEFAULT_FORMAT
        if pattern is not None:
            # A defaulted $1 on a group-less expression falls back to the whole match
            if pattern.groups == 0 and fmt == DEFAULT_FORMAT:
                fmt = "$0"
            if max_group_ref(fmt) > pattern.groups:
                msg = (
                    f"format {self.format!r} references a group the expression "
                    f"{self.expr!r} does not define"
                )
                raise ConfigurationError(msg, template=self.name)

        object.__setattr__(self, "_pattern", pattern)
        object.__setattr__(self, "_validator_pattern", validator_pattern)
        object.__setattr__(self, "_format", fmt)

    @property
    def is_inert(self) -> bool:
        return self._pattern is None

    def _accept(self, value: str) -> bool:
        if self._validator_pattern is None:
            return True
        return self._validator_pattern.fullmatch(value) is not None

    def extract(self, raw_text: str) -> str | list[str]:
        """Extract this field from raw_text.

        FIRST returns the formatted first match (or ""), ALL returns every
        non-overlapping match formatted in document order.
        """
        if self.match == MatchMode.ALL:
            return self.extract_all(raw_text)
        return self.extract_first(raw_text)

    def extract_first(self, raw_text: str) -> str:
        if self._pattern is None or not raw_text:
            return ""
        found = self._pattern.search(raw_text)
        if found is None:
            return ""
        value = format_match(self._format, found)
        return value if self._accept(value) else ""

    def extract_all(self, raw_text: str) -> list[str]:
        if self._pattern is None or not raw_text:
            return []
        values = (format_match(self._format, m) for m in self._pattern.finditer(raw_text))
        return [value for value in values if self._accept(value)]


def parse_extractor(name: str, value: Any, base: FieldExtractor | None = None) -> FieldExtractor:
    """Build an extractor from a configuration fragment.

    Accepts a bare expression string or a mapping with ``expr``, ``format``,
    ``match`` and ``validator`` keys. Keys absent from the mapping keep the
    values of ``base`` when one is given.
    """
    if isinstance(value, str):
        return FieldExtractor(name=name, expr=value)
    if not isinstance(value, dict):
        msg = f"extractor must be a string or mapping, got {type(value).__name__}"
        raise ConfigurationError(msg, template=name)

    expr = value.get("expr", base.expr if base else "")
    fmt = value.get("format", base.format if base else DEFAULT_FORMAT)
    match = value.get("match", base.match if base else MatchMode.FIRST)
    validator = value.get("validator", base.validator if base else "")

    for key, item in (("expr", expr), ("format", fmt), ("validator", validator)):
        if item is not None and not isinstance(item, str):
            msg = f"extractor {key} must be a string, got {item!r}"
            raise ConfigurationError(msg, template=name)

    return FieldExtractor(
        name=name,
        expr=expr or "",
        format=fmt or DEFAULT_FORMAT,
        match=MatchMode.parse(match),
        validator=validator or "",
    )
