"""Monitor constructors for each content type."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from src.core.errors import ConfigurationError
from src.models.content_monitor import ContentMonitor, ContentType

if TYPE_CHECKING:
    from collections.abc import Callable

    from src.domains.extraction.core.templates import ChannelTemplate


def _base_fields(code: str, template: ChannelTemplate, defaults: dict[str, Any]) -> dict[str, Any]:
    return {
        **defaults,
        "code": code,
        "name": template.name,
        "sites": list(template.sites),
    }


def build_video_monitor(
    code: str,
    template: ChannelTemplate,
    defaults: dict[str, Any],
) -> ContentMonitor:
    """Video monitors watch a channel listing identified by its channel ID."""
    if not template.channel_id:
        msg = "video monitors require a channel-id"
        raise ConfigurationError(msg, template=f"{code}/{template.name}")
    return ContentMonitor(
        **_base_fields(code, template, defaults),
        content_type=ContentType.VIDEO,
        channel_id=template.channel_id,
        url=template.source_url() or None,
    )


def _page_monitor(content_type: ContentType) -> Callable[..., ContentMonitor]:
    def build(code: str, template: ChannelTemplate, defaults: dict[str, Any]) -> ContentMonitor:
        url = template.source_url()
        if not url or "%s" in url:
            msg = f"{content_type.tag} monitors require a resolvable url"
            raise ConfigurationError(msg, template=f"{code}/{template.name}")
        return ContentMonitor(
            **_base_fields(code, template, defaults),
            content_type=content_type,
            channel_id=template.channel_id or None,
            url=url,
        )

    build.__name__ = f"build_{content_type.tag.replace('-', '_')}_monitor"
    return build


MONITOR_CONSTRUCTORS: dict[ContentType, Callable[..., ContentMonitor]] = {
    ContentType.VIDEO: build_video_monitor,
    ContentType.EVENT: _page_monitor(ContentType.EVENT),
    ContentType.ROUNDUP: _page_monitor(ContentType.ROUNDUP),
    ContentType.WHITE_PAPER: _page_monitor(ContentType.WHITE_PAPER),
    ContentType.EBOOK: _page_monitor(ContentType.EBOOK),
    ContentType.PODCAST: _page_monitor(ContentType.PODCAST),
}


def build_monitor(
    content_type: ContentType,
    code: str,
    template: ChannelTemplate,
    defaults: dict[str, Any] | None = None,
) -> ContentMonitor:
    """Build a monitor for a resolved template using the type's registered constructor."""
    constructor = MONITOR_CONSTRUCTORS[content_type]
    return constructor(code, template, defaults or {})


def infer_content_type(template: ChannelTemplate) -> ContentType:
    """Content type of a channel: declared explicitly, else video when it has a channel ID."""
    declared = template.content_type
    if declared:
        try:
            return ContentType.from_code(declared)
        except ValueError as exc:
            raise ConfigurationError(str(exc), template=template.name) from exc
    if template.channel_id:
        return ContentType.VIDEO
    return ContentType.ROUNDUP
