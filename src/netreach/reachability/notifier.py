"""Change notifier for a reachability target.

The Notifier registers a change callback with the facility and binds a private
serial worker queue on which the facility invokes it. Each change is
re-classified on that worker and the resulting status is posted to the
delivery context, where the publisher broadcasts it to observers.
"""

import functools
import logging
import threading
from enum import Enum
from typing import Callable, Optional

from netreach.reachability.dispatch import DeliveryContext, DispatchQueue
from netreach.reachability.errors import CallbackRegistrationError, DispatchQueueBindingError
from netreach.reachability.facility import ReachabilityFacility, TargetHandle
from netreach.reachability.flags import ReachabilityFlags, describe_flags
from netreach.reachability.publisher import StatusPublisher
from netreach.reachability.status import NetworkStatus

logger = logging.getLogger(__name__)


class NotifierState(Enum):
    """Notifier lifecycle states."""

    IDLE = "idle"
    RUNNING = "running"


class Notifier:  # pylint: disable=too-many-instance-attributes
    """Manages the start/stop lifecycle of change notifications for one target.

    Every start begins a new run identified by a generation number. Callbacks
    and deliveries carry the generation they were issued under and are dropped
    once that run has been stopped, so nothing is published after stop().
    """

    # pylint: disable=too-many-positional-arguments
    def __init__(
        self,
        facility: ReachabilityFacility,
        handle: TargetHandle,
        evaluate: Callable[[], NetworkStatus],
        publisher: StatusPublisher,
        delivery: DeliveryContext,
        label: str = "ReachabilityWorker",
    ) -> None:
        """Initialize the notifier.

        Args:
            facility: Facility owning the target
            handle: Target to watch
            evaluate: Reads the current flags and classifies them
            publisher: Receives each status on the delivery context
            delivery: Context on which observers are called
            label: Name of the private worker thread
        """
        self._facility = facility
        self._handle = handle
        self._evaluate = evaluate
        self._publisher = publisher
        self._delivery = delivery
        self._label = label

        self._state = NotifierState.IDLE
        self._generation = 0
        self._queue: Optional[DispatchQueue] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> NotifierState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """True while change notifications are active."""
        return self._state is NotifierState.RUNNING

    def start(self) -> None:
        """Start change notifications. Does nothing if already running.

        Raises:
            CallbackRegistrationError: If the facility rejects the callback
            DispatchQueueBindingError: If the facility rejects the worker queue
        """
        with self._lock:
            if self._state is NotifierState.RUNNING:
                logger.debug("Notifier already running for %s", self._handle.description)
                return

            self._generation += 1
            callback = functools.partial(self._on_change, self._generation)
            self._queue = DispatchQueue(self._label)

            if not self._facility.set_callback(self._handle, callback):
                self._teardown()
                raise CallbackRegistrationError()

            if not self._facility.set_dispatch_queue(self._handle, self._queue):
                self._teardown()
                raise DispatchQueueBindingError()

            self._state = NotifierState.RUNNING
            logger.info("Notifier started for %s", self._handle.description)

    def stop(self) -> None:
        """Stop change notifications. Always safe; always ends IDLE."""
        with self._lock:
            if self._state is NotifierState.IDLE:
                logger.debug("Notifier not running for %s", self._handle.description)
                return
            self._teardown()
            logger.info("Notifier stopped for %s", self._handle.description)

    def _teardown(self) -> None:
        """Release the registration. Best-effort: failures are only logged."""
        self._generation += 1

        try:
            self._facility.clear_callback(self._handle)
        except Exception as e:
            logger.warning("Error clearing callback for %s: %s", self._handle.description, e)

        try:
            self._facility.clear_dispatch_queue(self._handle)
        except Exception as e:
            logger.warning("Error clearing dispatch queue for %s: %s", self._handle.description, e)

        if self._queue is not None:
            self._queue.close()
            self._queue = None

        self._state = NotifierState.IDLE

    def _on_change(self, generation: int, _handle: TargetHandle, flags: ReachabilityFlags) -> None:
        """Handle a flag change on the worker queue.

        Args:
            generation: Run the callback was registered under
            _handle: Target that changed
            flags: Flags reported with the event (re-read before classifying)
        """
        if generation != self._generation:
            return

        status = self._evaluate()
        logger.debug(
            "Reachability changed for %s: %s -> %s",
            self._handle.description,
            describe_flags(flags),
            status.name,
        )
        self._delivery.post(self._deliver, generation, status)

    def _deliver(self, generation: int, status: NetworkStatus) -> None:
        """Publish a status on the delivery context unless the run has ended."""
        if generation != self._generation:
            logger.debug("Dropping %s from a stopped notifier run", status.name)
            return
        self._publisher.publish(status)
