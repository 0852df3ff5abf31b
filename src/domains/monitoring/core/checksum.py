"""Content checksum computation."""

from __future__ import annotations

import hashlib


def compute_content_checksum(content: str) -> str:
    """Compute MD5 hex digest of content string.

    Returns lowercase 32-character hex string.
    """
    return hashlib.md5(content.encode("utf-8")).hexdigest()


def compute_snapshot_key(snapshot_before: str | None, snapshot_after: str) -> str:
    """Natural key of a before/after snapshot pair.

    The same pair always yields the same key, so re-recording a change for it
    is an update rather than a new row.
    """
    return compute_content_checksum(f"{snapshot_before or ''}\x00{snapshot_after}")
