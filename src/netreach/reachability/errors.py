"""Exceptions raised by the reachability monitor."""

from typing import Union


class ReachabilityError(Exception):
    """Base class for reachability errors."""


class TargetCreationError(ReachabilityError):
    """Raised when the facility refuses to create a target."""


class AddressTargetError(TargetCreationError):
    """Raised when a target cannot be created from an address."""

    def __init__(self, address: Union[str, bytes]) -> None:
        self.address = address
        super().__init__(f"Failed to create target from address: {address!r}")


class HostnameTargetError(TargetCreationError):
    """Raised when a target cannot be created from a hostname."""

    def __init__(self, hostname: str) -> None:
        self.hostname = hostname
        super().__init__(f"Failed to create target from hostname: {hostname!r}")


class NotifierError(ReachabilityError):
    """Raised when change notifications cannot be started."""


class CallbackRegistrationError(NotifierError):
    """Raised when the change callback cannot be registered."""

    def __init__(self) -> None:
        super().__init__("Unable to register callback")


class DispatchQueueBindingError(NotifierError):
    """Raised when the worker queue cannot be bound to the target."""

    def __init__(self) -> None:
        super().__init__("Unable to bind delivery context")
