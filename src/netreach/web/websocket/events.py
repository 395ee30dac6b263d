"""WebSocket event models and types."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field

from netreach.reachability.status import NetworkStatus


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class EventType(str, Enum):
    """WebSocket event types."""

    STATUS_SNAPSHOT = "status_snapshot"
    STATUS_CHANGED = "status_changed"


class WebSocketEvent(BaseModel):
    """Base WebSocket event."""

    type: EventType
    timestamp: str = Field(default_factory=_utc_timestamp)
    data: Dict[str, Any] = Field(default_factory=dict)


def _status_data(status: NetworkStatus) -> Dict[str, Any]:
    return {"status": status.value, "description": status.description}


class StatusChangedEvent(WebSocketEvent):
    """A status published by the monitor."""

    type: EventType = EventType.STATUS_CHANGED

    def __init__(self, status: NetworkStatus, **kwargs: Any):
        """Initialize status changed event.

        Args:
            status: Published status
            **kwargs: Additional fields
        """
        super().__init__(data=_status_data(status), **kwargs)


class StatusSnapshotEvent(WebSocketEvent):
    """Current status sent to a client when it connects."""

    type: EventType = EventType.STATUS_SNAPSHOT

    def __init__(self, status: NetworkStatus, **kwargs: Any):
        """Initialize status snapshot event.

        Args:
            status: Status read at connection time
            **kwargs: Additional fields
        """
        super().__init__(data=_status_data(status), **kwargs)
