"""Pydantic data models for the content change monitoring engine."""

from src.models.config import Config
from src.models.content_change import ChangeStatus, ContentChange
from src.models.content_monitor import ContentMonitor, ContentType, build_guid
from src.models.processing_error import ProcessingError

__all__ = [
    "ChangeStatus",
    "Config",
    "ContentChange",
    "ContentMonitor",
    "ContentType",
    "ProcessingError",
    "build_guid",
]
