"""Ordered post-processing filters applied to extracted field bodies."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.core.errors import ConfigurationError
from src.domains.extraction.core.field_extractor import (
    compile_expression,
    format_match,
    max_group_ref,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

FieldValue = str | list[str]

TEXT_CASES = ("none", "upper", "lower", "title", "capitalize")

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class FieldFilter:
    """A single named transformation from body to body."""

    kind: str
    expr: str = ""
    replacement: str = ""
    length: int = 0
    suffix: str = ""
    case: str = "none"
    _pattern: re.Pattern[str] | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        _check_kind(self.kind)
        pattern = compile_expression(self.expr, what=f"{self.kind} filter expr")
        if self.kind in ("replace", "remove", "exclude") and pattern is None:
            msg = f"{self.kind} filter requires an expr"
            raise ConfigurationError(msg)
        if (
            self.kind == "replace"
            and pattern is not None
            and max_group_ref(self.replacement) > pattern.groups
        ):
            msg = (
                f"replace filter with {self.replacement!r} references a group the "
                f"expression {self.expr!r} does not define"
            )
            raise ConfigurationError(msg)
        if self.kind == "truncate" and self.length <= 0:
            msg = f"truncate filter requires a positive length, got {self.length}"
            raise ConfigurationError(msg)
        if self.kind == "case" and self.case not in TEXT_CASES:
            msg = f"case filter must be one of {', '.join(TEXT_CASES)}, got {self.case!r}"
            raise ConfigurationError(msg)
        object.__setattr__(self, "_pattern", pattern)

    def apply(self, body: FieldValue) -> FieldValue:
        """Apply this filter to a string body, or element-wise to a list."""
        if isinstance(body, list):
            if self.kind == "exclude":
                return [item for item in body if not self._excluded(item)]
            return [self._apply_text(item) for item in body]
        return self._apply_text(body)

    def _excluded(self, text: str) -> bool:
        return self._pattern is not None and self._pattern.fullmatch(text) is not None

    def _apply_text(self, text: str) -> str:
        return FILTER_KINDS[self.kind](self, text)


def _required_pattern(flt: FieldFilter) -> re.Pattern[str]:
    if flt._pattern is None:
        msg = f"{flt.kind} filter requires an expr"
        raise ConfigurationError(msg)
    return flt._pattern


def _replace(flt: FieldFilter, text: str) -> str:
    return _required_pattern(flt).sub(lambda m: format_match(flt.replacement, m), text)


def _remove(flt: FieldFilter, text: str) -> str:
    return _required_pattern(flt).sub("", text)


def _exclude(flt: FieldFilter, text: str) -> str:
    return "" if flt._excluded(text) else text


def _truncate(flt: FieldFilter, text: str) -> str:
    if len(text) <= flt.length:
        return text
    return text[: flt.length] + flt.suffix


def _strip(flt: FieldFilter, text: str) -> str:
    return text.strip()


def _collapse(flt: FieldFilter, text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _case(flt: FieldFilter, text: str) -> str:
    if flt.case == "upper":
        return text.upper()
    if flt.case == "lower":
        return text.lower()
    if flt.case == "title":
        return text.title()
    if flt.case == "capitalize":
        return text.capitalize()
    return text


def _unescape(flt: FieldFilter, text: str) -> str:
    return html.unescape(text)


FILTER_KINDS: dict[str, Callable[[FieldFilter, str], str]] = {
    "replace": _replace,
    "remove": _remove,
    "exclude": _exclude,
    "truncate": _truncate,
    "strip": _strip,
    "collapse": _collapse,
    "case": _case,
    "unescape": _unescape,
}


def _check_kind(kind: Any) -> None:
    if not isinstance(kind, str) or kind not in FILTER_KINDS:
        msg = f"unknown filter kind {kind!r}"
        raise ConfigurationError(msg)


def _as_str(kind: str, value: Any) -> str:
    if not isinstance(value, str):
        msg = f"{kind} filter expects a string, got {value!r}"
        raise ConfigurationError(msg)
    return value


def _build(kind: Any, config: Any) -> FieldFilter:
    """Build a filter of the given kind from its configuration value."""
    _check_kind(kind)

    if kind == "replace":
        if not isinstance(config, dict):
            msg = "replace filter expects a mapping with 'expr' and 'with'"
            raise ConfigurationError(msg)
        return FieldFilter(
            kind=kind,
            expr=_as_str(kind, config.get("expr", "")),
            replacement=_as_str(kind, config.get("with", "")),
        )
    if kind in ("remove", "exclude"):
        expr = config.get("expr", "") if isinstance(config, dict) else config
        return FieldFilter(kind=kind, expr=_as_str(kind, expr))
    if kind == "truncate":
        length = config.get("length") if isinstance(config, dict) else config
        suffix = config.get("suffix", "") if isinstance(config, dict) else ""
        if not isinstance(length, int) or isinstance(length, bool):
            msg = f"truncate filter expects an integer length, got {length!r}"
            raise ConfigurationError(msg)
        return FieldFilter(kind=kind, length=length, suffix=_as_str(kind, suffix))
    if kind == "case":
        return FieldFilter(kind=kind, case=_as_str(kind, config).lower())
    # strip, collapse, unescape take a boolean switch
    if config is False:
        msg = f"{kind} filter cannot be declared as false"
        raise ConfigurationError(msg)
    return FieldFilter(kind=kind)


def parse_filter(value: Any) -> FieldFilter:
    """Parse one filter declaration.

    A declaration is either a single-key mapping ``{kind: config}``, a
    mapping with an explicit ``kind`` key, or a bare expression string
    (shorthand for an ``exclude`` filter).
    """
    if isinstance(value, str):
        return _build("exclude", value)
    if not isinstance(value, dict) or not value:
        msg = f"filter declaration must be a string or mapping, got {value!r}"
        raise ConfigurationError(msg)
    if "kind" in value:
        kind = value["kind"]
        config = {key: item for key, item in value.items() if key != "kind"}
        if kind == "case":
            return _build(kind, config.get("case", "none"))
        return _build(kind, config if config else True)
    if len(value) != 1:
        msg = f"filter declaration must have exactly one kind, got {sorted(value)}"
        raise ConfigurationError(msg)
    ((kind, config),) = value.items()
    return _build(kind, config)


def parse_filters(values: Any) -> tuple[FieldFilter, ...]:
    """Parse an ordered list of filter declarations."""
    if values is None:
        return ()
    if not isinstance(values, list):
        values = [values]
    return tuple(parse_filter(value) for value in values)


def apply_filters(filters: Sequence[FieldFilter], body: FieldValue) -> FieldValue:
    """Run body through every filter in declaration order."""
    for flt in filters:
        body = flt.apply(body)
    return body
