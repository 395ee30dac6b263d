"""WebSocket support for real-time status updates."""

from .events import EventType, StatusChangedEvent, StatusSnapshotEvent, WebSocketEvent
from .manager import ConnectionManager

__all__ = [
    "ConnectionManager",
    "EventType",
    "WebSocketEvent",
    "StatusChangedEvent",
    "StatusSnapshotEvent",
]
