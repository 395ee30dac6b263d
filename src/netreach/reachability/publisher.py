"""Per-monitor broadcast of status changes to observers."""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from netreach.reachability.status import NetworkStatus

logger = logging.getLogger(__name__)

Observer = Callable[[NetworkStatus], None]

_ids = itertools.count(1)


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe(); pass it to unsubscribe()."""

    id: int = field(default_factory=lambda: next(_ids))


class StatusPublisher:
    """Thread-safe registry of observers receiving published statuses.

    Observers may subscribe or unsubscribe while a broadcast is in flight. An
    observer removed mid-broadcast is skipped; the remaining observers still
    receive the status.
    """

    def __init__(self) -> None:
        self._observers: Dict[Subscription, Observer] = {}
        self._lock = threading.Lock()

    def subscribe(self, observer: Observer) -> Subscription:
        """Register an observer.

        Args:
            observer: Called with each published NetworkStatus

        Returns:
            Subscription handle
        """
        subscription = Subscription()
        with self._lock:
            self._observers[subscription] = observer
            count = len(self._observers)
        logger.debug("Observer subscribed (id=%d, total=%d)", subscription.id, count)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove an observer. Unknown or already removed handles are ignored.

        Args:
            subscription: Handle returned by subscribe()

        Returns:
            True if an observer was removed
        """
        with self._lock:
            removed = self._observers.pop(subscription, None) is not None
        if removed:
            logger.debug("Observer unsubscribed (id=%d)", subscription.id)
        return removed

    def publish(self, status: NetworkStatus) -> None:
        """Deliver a status to every registered observer on the calling thread.

        Args:
            status: Status to deliver
        """
        with self._lock:
            entries: List[Subscription] = list(self._observers)

        logger.debug("Publishing %s to %d observers", status.name, len(entries))
        for subscription in entries:
            with self._lock:
                observer = self._observers.get(subscription)
            if observer is None:
                continue
            try:
                observer(status)
            except Exception as e:
                logger.error("Error in status observer %d: %s", subscription.id, e)

    @property
    def subscriber_count(self) -> int:
        """Number of registered observers."""
        with self._lock:
            return len(self._observers)
