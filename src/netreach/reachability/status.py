"""Semantic network status derived from reachability flags."""

from enum import Enum


class NetworkStatus(Enum):
    """How the device currently reaches a target."""

    NOT_REACHABLE = "not_reachable"
    UNKNOWN = "unknown"
    WIFI = "wifi"
    CELLULAR_2G = "cellular_2g"
    CELLULAR_3G = "cellular_3g"
    CELLULAR_4G = "cellular_4g"

    @property
    def description(self) -> str:
        """Human-readable label for display."""
        return _DESCRIPTIONS[self]

    @property
    def is_reachable(self) -> bool:
        """True for every status other than NOT_REACHABLE."""
        return self is not NetworkStatus.NOT_REACHABLE

    @property
    def is_cellular(self) -> bool:
        """True if the path is a known cellular generation."""
        return self in (
            NetworkStatus.CELLULAR_2G,
            NetworkStatus.CELLULAR_3G,
            NetworkStatus.CELLULAR_4G,
        )

    def __str__(self) -> str:
        return self.description


_DESCRIPTIONS = {
    NetworkStatus.NOT_REACHABLE: "No connection",
    NetworkStatus.UNKNOWN: "Unknown connection",
    NetworkStatus.WIFI: "WiFi network",
    NetworkStatus.CELLULAR_2G: "2G cellular network",
    NetworkStatus.CELLULAR_3G: "3G cellular network",
    NetworkStatus.CELLULAR_4G: "4G cellular network",
}
