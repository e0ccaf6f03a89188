"""Tracker adapters: where records come from and where resolutions go."""

from .base import TrackerAdapter, TrackerFactory
from .encoding import StatusEncoding, StatusKind, resolve_encoding
from .notion import NotionTracker

__all__ = [
    "NotionTracker",
    "StatusEncoding",
    "StatusKind",
    "TrackerAdapter",
    "TrackerFactory",
    "resolve_encoding",
]
