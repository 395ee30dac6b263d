"""Pydantic models for web API responses."""

from typing import Optional

from pydantic import BaseModel


class StatusResponse(BaseModel):
    """Current reachability of the monitored target."""

    status: str
    description: str
    watching: bool
    target: Optional[str] = None


class WatchResponse(BaseModel):
    """Result of a start/stop watching request."""

    success: bool
    watching: bool
    message: str = ""
