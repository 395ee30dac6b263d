"""Execution contexts for change callbacks and status delivery.

A DispatchQueue is a private serial worker: tasks run one at a time, in the
order they were posted, on a dedicated thread. Delivery contexts decide where
observers receive published statuses: another DispatchQueue, a MainLoop drained
by the application's main thread, or an asyncio event loop.
"""

import asyncio
import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

Task = Tuple[Callable[..., Any], Tuple[Any, ...]]


class DeliveryContext(ABC):
    """Somewhere a callable can be scheduled to run later."""

    @abstractmethod
    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Schedule fn(*args) without waiting for it to run."""


def _run_task(label: str, fn: Callable[..., Any], args: Tuple[Any, ...]) -> None:
    try:
        fn(*args)
    except Exception as e:
        logger.error("Error in task on %s: %s", label, e)


class DispatchQueue(DeliveryContext):
    """Serial worker thread executing posted tasks in FIFO order."""

    def __init__(self, label: str) -> None:
        """Initialize the queue. The worker thread starts on first post.

        Args:
            label: Name of the worker thread, used in logs
        """
        self.label = label
        self._tasks: "queue.Queue[Optional[Task]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._closed = False
        self._lock = threading.Lock()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        with self._lock:
            if self._closed:
                logger.debug("Dropping task posted to closed queue %s", self.label)
                return
            if self._thread is None:
                self._thread = threading.Thread(target=self._worker, daemon=True, name=self.label)
                self._thread.start()
            self._tasks.put((fn, args))

    def close(self, timeout: float = 2.0) -> None:
        """Stop the worker after already-posted tasks have run.

        Safe to call more than once, and from the worker thread itself.

        Args:
            timeout: Seconds to wait for the worker to finish
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            thread = self._thread
            self._tasks.put(None)

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    @property
    def is_closed(self) -> bool:
        """True once close() has been called."""
        return self._closed

    def _worker(self) -> None:
        while True:
            task = self._tasks.get()
            if task is None:
                return
            fn, args = task
            _run_task(self.label, fn, args)


class MainLoop(DeliveryContext):
    """Delivery context drained explicitly by its owning thread."""

    def __init__(self) -> None:
        self._tasks: "queue.Queue[Task]" = queue.Queue()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        self._tasks.put((fn, args))

    def run_pending(self, timeout: float = 0.0) -> int:
        """Run every task currently queued.

        Args:
            timeout: Seconds to wait for the first task if none is queued

        Returns:
            Number of tasks run
        """
        count = 0
        try:
            fn, args = self._tasks.get(timeout=timeout) if timeout > 0 else self._tasks.get_nowait()
        except queue.Empty:
            return 0

        while True:
            _run_task("main loop", fn, args)
            count += 1
            try:
                fn, args = self._tasks.get_nowait()
            except queue.Empty:
                return count

    @property
    def pending(self) -> int:
        """Approximate number of queued tasks."""
        return self._tasks.qsize()


class AsyncioContext(DeliveryContext):
    """Delivery context that runs tasks on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        if self._loop.is_closed():
            logger.warning("Cannot deliver: event loop is closed")
            return
        self._loop.call_soon_threadsafe(_run_task, "event loop", fn, args)
