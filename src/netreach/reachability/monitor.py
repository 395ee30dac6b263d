"""Reachability monitor: on-demand status queries and change notifications."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from netreach.reachability.classifier import classify
from netreach.reachability.dispatch import DeliveryContext, DispatchQueue
from netreach.reachability.errors import AddressTargetError, HostnameTargetError
from netreach.reachability.facility import (
    DEFAULT_ROUTE_SOCKADDR,
    AddressInput,
    ReachabilityFacility,
    TargetHandle,
    get_facility,
)
from netreach.reachability.flags import ReachabilityFlags
from netreach.reachability.notifier import Notifier
from netreach.reachability.publisher import Observer, StatusPublisher, Subscription
from netreach.reachability.radio import RadioTechnologyProvider, detect_mobile_device
from netreach.reachability.status import NetworkStatus

logger = logging.getLogger(__name__)


class Reachability:
    """Monitors how one target (hostname, address or default route) is reached.

    Status can be queried at any time with current_status(). After
    start_watching(), every change reported by the facility is classified and
    published to subscribed observers on the delivery context.

    Example:
        with Reachability.default_route() as reachability:
            reachability.subscribe(print)
            reachability.start_watching()
    """

    # pylint: disable=too-many-positional-arguments
    def __init__(
        self,
        facility: ReachabilityFacility,
        handle: TargetHandle,
        is_mobile_device: Optional[bool] = None,
        radio: Optional[RadioTechnologyProvider] = None,
        delivery: Optional[DeliveryContext] = None,
    ) -> None:
        """Initialize the monitor with an existing target.

        Args:
            facility: Facility owning the target
            handle: Target to monitor; the monitor takes ownership
            is_mobile_device: Whether this device has a cellular radio
                (None = detect from the host's network interfaces)
            radio: Radio technology provider used for cellular paths
            delivery: Context on which observers are called
                (None = a dedicated delivery thread)
        """
        self._facility = facility
        self._handle: Optional[TargetHandle] = handle
        self._is_mobile_device = (
            detect_mobile_device() if is_mobile_device is None else is_mobile_device
        )
        self._radio = radio

        self._owns_delivery = delivery is None
        self._delivery: DeliveryContext = delivery or DispatchQueue("ReachabilityDelivery")
        self._publisher = StatusPublisher()
        self._notifier = Notifier(
            facility=facility,
            handle=handle,
            evaluate=self.current_status,
            publisher=self._publisher,
            delivery=self._delivery,
        )
        self._lock = threading.Lock()

        logger.debug(
            "Reachability initialized for %s (mobile_device=%s)",
            handle.description,
            self._is_mobile_device,
        )

    @classmethod
    def with_hostname(
        cls, hostname: str, facility: Optional[ReachabilityFacility] = None, **kwargs: Any
    ) -> Reachability:
        """Create a monitor for a hostname.

        Raises:
            HostnameTargetError: If the facility cannot create the target
        """
        facility = facility or get_facility(mock=False)
        handle = facility.create_with_name(hostname)
        if handle is None:
            raise HostnameTargetError(hostname)
        return cls(facility, handle, **kwargs)

    @classmethod
    def with_address(
        cls, address: AddressInput, facility: Optional[ReachabilityFacility] = None, **kwargs: Any
    ) -> Reachability:
        """Create a monitor for an IP address (text or raw socket address bytes).

        Raises:
            AddressTargetError: If the facility cannot create the target
        """
        facility = facility or get_facility(mock=False)
        handle = facility.create_with_address(address)
        if handle is None:
            raise AddressTargetError(address)
        return cls(facility, handle, **kwargs)

    @classmethod
    def default_route(
        cls, facility: Optional[ReachabilityFacility] = None, **kwargs: Any
    ) -> Reachability:
        """Create a monitor for the default route (zeroed wildcard address).

        Raises:
            AddressTargetError: If the facility cannot create the target
        """
        return cls.with_address(DEFAULT_ROUTE_SOCKADDR, facility=facility, **kwargs)

    @property
    def target(self) -> Optional[TargetHandle]:
        """Monitored target, or None once closed."""
        return self._handle

    @property
    def is_mobile_device(self) -> bool:
        """Whether cellular paths are refined by radio technology."""
        return self._is_mobile_device

    @property
    def is_watching(self) -> bool:
        """True while change notifications are active."""
        return self._notifier.is_running

    def current_flags(self) -> Optional[ReachabilityFlags]:
        """Read the raw flags now.

        Returns:
            Flag snapshot, or None if unreadable or closed
        """
        handle = self._handle
        if handle is None:
            return None
        return self._facility.get_flags(handle)

    def current_status(self) -> NetworkStatus:
        """Read the flags now and classify them.

        Returns:
            Current status; NOT_REACHABLE if the flags cannot be read
        """
        flags = self.current_flags()
        if flags is None:
            logger.debug("Flags unavailable, reporting %s", NetworkStatus.NOT_REACHABLE.name)
            return NetworkStatus.NOT_REACHABLE

        radio_lookup = self._radio.current_radio_technology if self._radio else None
        return classify(flags, self._is_mobile_device, radio_lookup)

    def start_watching(self) -> None:
        """Start publishing status changes. Does nothing if already watching.

        Raises:
            CallbackRegistrationError: If the callback cannot be registered
            DispatchQueueBindingError: If the worker queue cannot be bound
        """
        with self._lock:
            if self._handle is None:
                logger.warning("Cannot start watching: monitor is closed")
                return
            self._notifier.start()

    def stop_watching(self) -> None:
        """Stop publishing status changes. Always safe to call."""
        with self._lock:
            self._notifier.stop()

    def subscribe(self, observer: Observer) -> Subscription:
        """Register an observer for published statuses.

        Args:
            observer: Called with each NetworkStatus on the delivery context

        Returns:
            Subscription handle for unsubscribe()
        """
        return self._publisher.subscribe(observer)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove an observer. Calling it again with the same handle does nothing."""
        self._publisher.unsubscribe(subscription)

    def close(self) -> None:
        """Stop watching, then release the target. Safe to call more than once."""
        with self._lock:
            if self._handle is None:
                return
            handle = self._handle
            self._notifier.stop()
            self._handle = None
            self._facility.release(handle)

        if self._owns_delivery and isinstance(self._delivery, DispatchQueue):
            self._delivery.close()
        logger.info("Reachability closed for %s", handle.description)

    def __enter__(self) -> Reachability:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        target = self._handle.description if self._handle else "closed"
        return f"Reachability({target}, watching={self.is_watching})"
