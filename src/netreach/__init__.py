"""netreach: network reachability monitor."""

from netreach.reachability import NetworkStatus, Reachability

__version__ = "0.1.0"

__all__ = ["Reachability", "NetworkStatus", "__version__"]
