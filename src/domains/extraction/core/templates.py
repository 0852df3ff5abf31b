"""Extraction templates and provider-to-channel template resolution.

A channel template may name a provider template it inherits from. Resolution
is a pure function over frozen values:

1. the channel document is parsed on its own into a draft;
2. the provider's resolved template becomes the baseline;
3. the filters the channel declared are set aside;
4. the channel document is parsed again on top of the baseline so every
   attribute and field the channel declares wins;
5. the set-aside filters are re-attached verbatim to their fields.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.core.errors import ConfigurationError
from src.domains.extraction.core.field_extractor import (
    FieldExtractor,
    MatchMode,
    parse_extractor,
)
from src.domains.extraction.core.fields import Field, declares_filters, parse_field

if TYPE_CHECKING:
    from collections.abc import Mapping

    from src.domains.extraction.core.field_filter import FieldFilter

PROVIDER = "provider"
CHANNEL_ID = "channel-id"
URL = "url"
TITLE = "title"
SITES = "sites"
ITEMS = "items"
FIELDS = "fields"
TYPE = "type"

TEMPLATE_KEYS = frozenset(
    {PROVIDER, CHANNEL_ID, "channelId", URL, TITLE, TYPE, SITES, ITEMS, FIELDS}
)


@dataclass(frozen=True)
class ChannelTemplate:
    """A named extraction configuration for one content source."""

    name: str
    provider: str = ""
    channel_id: str = ""
    url: str = ""
    title: str = ""
    content_type: str = ""
    sites: tuple[str, ...] = ()
    items: FieldExtractor | None = None
    fields: dict[str, Field] = field(default_factory=dict)
    declared: frozenset[str] = frozenset()

    @property
    def has_provider(self) -> bool:
        return bool(self.provider)

    def source_url(self, channel_id: str | None = None) -> str:
        """Return the URL to fetch, substituting the channel ID into ``%s``."""
        channel = channel_id or self.channel_id
        if "%s" in self.url and channel:
            return self.url.replace("%s", channel, 1)
        return self.url

    def field_names(self) -> list[str]:
        return sorted(self.fields)


def _as_str(name: str, key: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str | int):
        msg = f"{key} must be a string, got {value!r}"
        raise ConfigurationError(msg, template=name)
    return str(value)


def _parse_sites(name: str, value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(site.strip() for site in value.split(",") if site.strip())
    if isinstance(value, list):
        return tuple(str(site) for site in value)
    msg = f"sites must be a list or comma-separated string, got {value!r}"
    raise ConfigurationError(msg, template=name)


def _parse_items(name: str, value: Any, base: FieldExtractor | None) -> FieldExtractor:
    extractor = parse_extractor(ITEMS, value, base=base)
    return dataclasses.replace(extractor, match=MatchMode.ALL)


def parse_template(
    name: str,
    document: Mapping[str, Any] | None,
    base: ChannelTemplate | None = None,
) -> ChannelTemplate:
    """Parse a template document, optionally on top of a baseline template."""
    if document is None:
        document = {}
    if not isinstance(document, dict):
        msg = f"template document must be a mapping, got {type(document).__name__}"
        raise ConfigurationError(msg, template=name)

    unknown = set(document) - TEMPLATE_KEYS
    if unknown:
        msg = f"unknown template keys: {', '.join(sorted(unknown))}"
        raise ConfigurationError(msg, template=name)

    current = base or ChannelTemplate(name=name)

    provider = current.provider
    if PROVIDER in document:
        provider = _as_str(name, PROVIDER, document[PROVIDER])

    channel_id = current.channel_id
    for key in (CHANNEL_ID, "channelId"):
        if key in document:
            channel_id = _as_str(name, key, document[key])

    url = _as_str(name, URL, document[URL]) if URL in document else current.url
    title = _as_str(name, TITLE, document[TITLE]) if TITLE in document else current.title
    content_type = (
        _as_str(name, TYPE, document[TYPE]) if TYPE in document else current.content_type
    )
    sites = _parse_sites(name, document[SITES]) if SITES in document else current.sites

    items = current.items
    if ITEMS in document:
        items = _parse_items(name, document[ITEMS], current.items)

    fields = dict(current.fields)
    field_docs = document.get(FIELDS) or {}
    if not isinstance(field_docs, dict):
        msg = "fields must be a mapping of field name to field document"
        raise ConfigurationError(msg, template=name)
    for field_name, field_doc in field_docs.items():
        try:
            fields[field_name] = parse_field(field_name, field_doc, base=fields.get(field_name))
        except ConfigurationError as exc:
            msg = f"field {field_name!r}: {exc}"
            raise ConfigurationError(msg, template=name) from exc

    return ChannelTemplate(
        name=name,
        provider=provider,
        channel_id=channel_id,
        url=url,
        title=title,
        content_type=content_type,
        sites=sites,
        items=items,
        fields=fields,
        declared=frozenset(document),
    )


def declared_filters(
    document: Mapping[str, Any],
    draft: ChannelTemplate,
) -> dict[str, tuple[FieldFilter, ...]]:
    """Return the filters the document itself declared, keyed by field name."""
    field_docs = document.get(FIELDS) or {}
    return {
        field_name: draft.fields[field_name].filters
        for field_name, field_doc in field_docs.items()
        if declares_filters(field_doc) and field_name in draft.fields
    }


def resolve_template(
    draft: ChannelTemplate,
    document: Mapping[str, Any],
    provider: ChannelTemplate | None,
) -> ChannelTemplate:
    """Resolve a channel draft against its provider's resolved template.

    Returns a new template; neither input is modified. Without a provider the
    draft is returned unchanged.
    """
    if provider is None:
        return draft

    original_filters = declared_filters(document, draft)

    # Provider values fill every attribute of the baseline
    baseline = dataclasses.replace(provider, name=draft.name)

    resolved = parse_template(draft.name, document, base=baseline)

    fields = {
        field_name: (
            value.with_filters(original_filters[field_name])
            if field_name in original_filters
            else value
        )
        for field_name, value in resolved.fields.items()
    }
    return dataclasses.replace(resolved, name=draft.name, fields=fields)


def resolve_documents(
    documents: Mapping[str, Mapping[str, Any]],
    providers: Mapping[str, ChannelTemplate] | None = None,
) -> tuple[dict[str, ChannelTemplate], dict[str, ConfigurationError]]:
    """Resolve a set of named template documents that may inherit from each other.

    Templates may reference one another or an already-resolved template in
    ``providers``. A failing template (bad document, provider cycle, failing
    provider) is reported in the error map and does not stop the others.
    """
    external = dict(providers or {})
    resolved: dict[str, ChannelTemplate] = {}
    errors: dict[str, ConfigurationError] = {}

    def _resolve(name: str, stack: tuple[str, ...]) -> ChannelTemplate | None:
        if name in resolved:
            return resolved[name]
        if name in errors:
            return None
        if name in stack:
            chain = " -> ".join((*stack, name))
            raise ConfigurationError(f"provider cycle: {chain}", template=name)

        document = documents[name]
        draft = parse_template(name, document)

        provider: ChannelTemplate | None = None
        if draft.provider:
            if draft.provider in documents:
                try:
                    provider = _resolve(draft.provider, (*stack, name))
                except ConfigurationError as exc:
                    errors.setdefault(draft.provider, exc)
                    raise ConfigurationError(str(exc), template=name) from exc
                if provider is None:
                    msg = f"provider {draft.provider!r} failed to load"
                    raise ConfigurationError(msg, template=name)
            else:
                provider = external.get(draft.provider)

        template = resolve_template(draft, document, provider)
        resolved[name] = template
        return template

    for name in documents:
        if name in resolved or name in errors:
            continue
        try:
            _resolve(name, ())
        except ConfigurationError as exc:
            errors[name] = exc

    return resolved, errors


def resolve_channel(
    name: str,
    document: Mapping[str, Any],
    providers: Mapping[str, ChannelTemplate],
) -> ChannelTemplate:
    """Parse and resolve one channel document against the known providers.

    An unknown provider name is not an error: the channel is used as parsed.
    """
    draft = parse_template(name, document)
    provider = providers.get(draft.provider) if draft.provider else None
    return resolve_template(draft, document, provider)
