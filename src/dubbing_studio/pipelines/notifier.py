"""In-process fan-out of project status transitions to interested observers."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from queue import Empty, Queue

from ..models import StatusEvent
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

__all__ = ["ProgressNotifier", "StatusListener", "Subscription"]

StatusListener = Callable[[StatusEvent], None]


class Subscription:
    """A per-observer queue of status events for one project.

    Iterating yields events in publication order and stops after a terminal
    event (``completed`` or ``failed``), which also closes the subscription, or
    once the subscription is closed.
    """

    def __init__(self, notifier: ProgressNotifier, project_id: str) -> None:
        self.project_id = project_id
        self._notifier = notifier
        self._queue: Queue[StatusEvent | None] = Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def get(self, timeout: float | None = None) -> StatusEvent | None:
        """Return the next event, or None on timeout or after :meth:`close`."""
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._notifier.unsubscribe(self)
        self._queue.put(None)

    def _deliver(self, event: StatusEvent) -> None:
        if not self._closed.is_set():
            self._queue.put(event)

    def __iter__(self) -> Iterator[StatusEvent]:
        while True:
            event = self._queue.get()
            if event is None:
                return
            if event.is_terminal:
                self.close()
                yield event
                return
            yield event

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ProgressNotifier:
    """Registry of subscribers and listeners keyed by project id.

    Holds no business state: events are delivered to whoever is connected at
    publication time and are not replayed to later subscribers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._listeners: dict[str, list[StatusListener]] = {}

    def subscribe(self, project_id: str) -> Subscription:
        subscription = Subscription(self, project_id)
        with self._lock:
            self._subscriptions.setdefault(project_id, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            entries = self._subscriptions.get(subscription.project_id)
            if not entries:
                return
            try:
                entries.remove(subscription)
            except ValueError:
                return
            if not entries:
                del self._subscriptions[subscription.project_id]

    def add_listener(self, project_id: str, callback: StatusListener) -> None:
        with self._lock:
            self._listeners.setdefault(project_id, []).append(callback)

    def remove_listener(self, project_id: str, callback: StatusListener) -> None:
        with self._lock:
            entries = self._listeners.get(project_id)
            if entries and callback in entries:
                entries.remove(callback)
                if not entries:
                    del self._listeners[project_id]

    def subscriber_count(self, project_id: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(project_id, ()))

    def publish(self, event: StatusEvent) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions.get(event.project_id, ()))
            listeners = list(self._listeners.get(event.project_id, ()))

        for subscription in subscriptions:
            subscription._deliver(event)
        for callback in listeners:
            try:
                callback(event)
            except Exception:
                LOGGER.exception(
                    "Status listener failed for project %s (%s)",
                    event.project_id,
                    event.status.value,
                )
