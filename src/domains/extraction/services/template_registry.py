"""Registry of template documents with cached, hot-reloadable resolution."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
import yaml

from src.core.errors import ConfigurationError
from src.domains.extraction.core.templates import (
    ChannelTemplate,
    resolve_channel,
    resolve_documents,
)
from src.domains.monitoring.core.checksum import compute_content_checksum

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = structlog.get_logger(__name__)

PROVIDERS = "providers"
CHANNELS = "channels"
MONITOR = "monitor"

DOCUMENT_KEYS = frozenset({PROVIDERS, CHANNELS, MONITOR})

SHARED = "__shared__"


def named_entries(value: Any, section: str) -> dict[str, dict[str, Any]]:
    """Normalize a section to an ordered name -> document mapping.

    Sections may be written as a mapping or as a list of single-key mappings.
    """
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(name): doc for name, doc in value.items()}
    if isinstance(value, list):
        entries: dict[str, dict[str, Any]] = {}
        for entry in value:
            if not isinstance(entry, dict):
                msg = f"{section} entries must be mappings, got {entry!r}"
                raise ConfigurationError(msg)
            for name, doc in entry.items():
                entries[str(name)] = doc
        return entries
    msg = f"{section} must be a mapping or a list, got {type(value).__name__}"
    raise ConfigurationError(msg)


def document_checksum(document: Mapping[str, Any]) -> str:
    """Checksum of a document's canonical JSON form."""
    return compute_content_checksum(json.dumps(document, sort_keys=True, default=str))


def load_yaml_document(path: Path) -> dict[str, Any]:
    """Read one YAML template document from disk."""
    try:
        with path.open(encoding="utf-8") as handle:
            document = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        msg = f"invalid YAML: {exc}"
        raise ConfigurationError(msg, template=path.stem) from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        msg = "document root must be a mapping"
        raise ConfigurationError(msg, template=path.stem)
    return document


@dataclass(frozen=True)
class TemplateDocument:
    """One organisation's template document."""

    code: str
    providers: dict[str, dict[str, Any]] = field(default_factory=dict)
    channels: dict[str, dict[str, Any]] = field(default_factory=dict)
    monitor: dict[str, Any] = field(default_factory=dict)
    checksum: str = ""

    @classmethod
    def parse(cls, code: str, document: Mapping[str, Any]) -> TemplateDocument:
        if not isinstance(document, dict):
            msg = "document root must be a mapping"
            raise ConfigurationError(msg, template=code)
        unknown = set(document) - DOCUMENT_KEYS
        if unknown:
            msg = f"unknown document sections: {', '.join(sorted(unknown))}"
            raise ConfigurationError(msg, template=code)
        monitor = document.get(MONITOR) or {}
        if not isinstance(monitor, dict):
            msg = "monitor section must be a mapping"
            raise ConfigurationError(msg, template=code)
        return cls(
            code=code,
            providers=named_entries(document.get(PROVIDERS), PROVIDERS),
            channels=named_entries(document.get(CHANNELS), CHANNELS),
            monitor=monitor,
            checksum=document_checksum(document),
        )


class TemplateRegistry:
    """Holds provider and channel documents and caches resolved templates.

    Constructed once at startup and passed to consumers. Resolution runs
    outside the registry lock, so resolving different channels never blocks.
    Loading a changed document invalidates every cached resolution that
    depends on it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._documents: dict[str, TemplateDocument] = {}
        self._shared = TemplateDocument(code=SHARED)
        self._providers: dict[str, dict[str, ChannelTemplate]] = {}
        self._channels: dict[tuple[str, str], ChannelTemplate] = {}
        self.load_errors: dict[str, ConfigurationError] = {}

    # --- loading ---

    def load_shared_providers(self, document: Mapping[str, Any]) -> bool:
        """Load provider templates available to every organisation document."""
        parsed = TemplateDocument.parse(SHARED, {PROVIDERS: document.get(PROVIDERS, document)})
        with self._lock:
            if parsed.checksum == self._shared.checksum:
                return False
            self._shared = parsed
            self._providers.clear()
            self._channels.clear()
            self._clear_errors(SHARED)
        logger.info("shared_providers_loaded", providers=len(parsed.providers))
        self._validate_providers(SHARED)
        return True

    def load_document(self, code: str, document: Mapping[str, Any]) -> bool:
        """Load or replace one organisation's document.

        Returns False when the document is unchanged. Configuration errors are
        recorded in ``load_errors`` per template; other templates still load.
        """
        try:
            parsed = TemplateDocument.parse(code, document)
        except ConfigurationError as exc:
            self._record_error(code, exc)
            return False

        with self._lock:
            existing = self._documents.get(code)
            if existing is not None and existing.checksum == parsed.checksum:
                return False
            self._documents[code] = parsed
            self._invalidate(code)
            self._clear_errors(code)

        logger.info(
            "template_document_loaded",
            code=code,
            providers=len(parsed.providers),
            channels=len(parsed.channels),
        )
        self.validate(code)
        return True

    def remove_document(self, code: str) -> None:
        with self._lock:
            self._documents.pop(code, None)
            self._invalidate(code)
            self._clear_errors(code)

    def load_directory(
        self,
        directory: str | Path,
        providers_file: str | Path | None = None,
    ) -> dict[str, int]:
        """Load every ``*.yml`` / ``*.yaml`` document in a directory.

        The file stem is the organisation code. Documents whose files have
        disappeared since the previous load are dropped.
        """
        if providers_file:
            path = Path(providers_file)
            try:
                self.load_shared_providers(load_yaml_document(path))
            except ConfigurationError as exc:
                self._record_error(SHARED, exc)

        root = Path(directory)
        paths = sorted([*root.glob("*.yml"), *root.glob("*.yaml")]) if root.is_dir() else []
        seen: set[str] = set()
        changed = 0
        for path in paths:
            if providers_file and path.resolve() == Path(providers_file).resolve():
                continue
            code = path.stem
            seen.add(code)
            try:
                document = load_yaml_document(path)
            except ConfigurationError as exc:
                self._record_error(code, exc)
                continue
            if self.load_document(code, document):
                changed += 1

        with self._lock:
            removed = [code for code in self._documents if code not in seen]
        for code in removed:
            self.remove_document(code)

        return {
            "documents": len(seen),
            "changed": changed,
            "removed": len(removed),
            "errors": len(self.load_errors),
        }

    # --- lookup ---

    def codes(self) -> list[str]:
        with self._lock:
            return sorted(self._documents)

    def channel_names(self, code: str) -> list[str]:
        with self._lock:
            document = self._documents.get(code)
            return list(document.channels) if document else []

    def monitor_defaults(self, code: str) -> dict[str, Any]:
        with self._lock:
            document = self._documents.get(code)
            return dict(document.monitor) if document else {}

    def providers(self, code: str) -> dict[str, ChannelTemplate]:
        """Resolved providers visible to a document: its own, then shared ones."""
        with self._lock:
            cached = self._providers.get(code)
            if cached is not None:
                return cached
            document = self._documents.get(code)
            shared_doc = self._shared

        shared = self._resolve_shared(shared_doc)
        if code == SHARED or document is None:
            return shared

        local, errors = resolve_documents(document.providers, providers=shared)
        for name, exc in errors.items():
            self._record_error(f"{code}/{name}", exc)
        merged = {**shared, **local}

        with self._lock:
            if self._documents.get(code) is document and self._shared is shared_doc:
                self._providers[code] = merged
        return merged

    def resolve(self, code: str, channel: str) -> ChannelTemplate:
        """Return the resolved template for a channel, using the cache."""
        key = (code, channel)
        with self._lock:
            cached = self._channels.get(key)
            if cached is not None:
                return cached
            document = self._documents.get(code)
            shared_doc = self._shared

        if document is None:
            msg = f"no template document for {code!r}"
            raise ConfigurationError(msg, template=f"{code}/{channel}")
        channel_doc = document.channels.get(channel)
        if channel_doc is None:
            msg = f"unknown channel {channel!r}"
            raise ConfigurationError(msg, template=code)

        providers = self.providers(code)
        try:
            template = resolve_channel(channel, channel_doc, providers)
        except ConfigurationError as exc:
            self._record_error(f"{code}/{channel}", exc)
            raise

        if template.provider and template.provider not in providers:
            logger.warning(
                "provider_not_found", code=code, channel=channel, provider=template.provider
            )

        with self._lock:
            # Only cache if neither document was replaced meanwhile
            if self._documents.get(code) is document and self._shared is shared_doc:
                self._channels[key] = template
        return template

    def validate(self, code: str) -> dict[str, ConfigurationError]:
        """Resolve every provider and channel of a document, reporting failures."""
        with self._lock:
            document = self._documents.get(code)
        if document is None:
            return {}

        self.providers(code)
        for channel in document.channels:
            try:
                self.resolve(code, channel)
            except ConfigurationError:
                continue

        prefix = f"{code}/"
        with self._lock:
            return {
                name: exc
                for name, exc in self.load_errors.items()
                if name == code or name.startswith(prefix)
            }

    def validate_all(self) -> dict[str, ConfigurationError]:
        for code in self.codes():
            self.validate(code)
        with self._lock:
            return dict(self.load_errors)

    # --- internals ---

    def _resolve_shared(self, shared_doc: TemplateDocument) -> dict[str, ChannelTemplate]:
        with self._lock:
            cached = self._providers.get(SHARED)
        if cached is not None:
            return cached
        resolved, errors = resolve_documents(shared_doc.providers)
        for name, exc in errors.items():
            self._record_error(f"{SHARED}/{name}", exc)
        with self._lock:
            if self._shared is shared_doc:
                self._providers[SHARED] = resolved
        return resolved

    def _validate_providers(self, code: str) -> None:
        if code == SHARED:
            with self._lock:
                shared_doc = self._shared
            self._resolve_shared(shared_doc)

    def _invalidate(self, code: str) -> None:
        self._providers.pop(code, None)
        for key in [key for key in self._channels if key[0] == code]:
            del self._channels[key]

    def _clear_errors(self, code: str) -> None:
        prefix = f"{code}/"
        for name in [n for n in self.load_errors if n == code or n.startswith(prefix)]:
            del self.load_errors[name]

    def _record_error(self, name: str, exc: ConfigurationError) -> None:
        with self._lock:
            self.load_errors[name] = exc
        logger.error("template_load_failed", template=name, error=str(exc))
