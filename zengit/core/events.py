"""Push-model change notifications.

Subscribers receive tagged results: ``Ok(event)`` for a change in the
repository, ``Err(WatchError)`` when the working-tree watcher fails.
The engine publishes after its own mutations; an external file watcher
feeds filesystem changes in through ``EventHub.path_changed``.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BranchChanged:
    """HEAD now names a different branch (``None`` when detached)."""
    old: Optional[str]
    new: Optional[str]


@dataclass(frozen=True)
class HeadMoved:
    """HEAD resolves to a different commit."""
    old: Optional[str]
    new: Optional[str]


@dataclass(frozen=True)
class RefsChanged:
    """Branches or tags were created, moved or deleted."""
    refs: tuple


@dataclass(frozen=True)
class IndexChanged:
    pass


@dataclass(frozen=True)
class WorkTreeChanged:
    """A path in the working tree changed, as reported by a watcher."""
    path: str


Event = Union[BranchChanged, HeadMoved, RefsChanged, IndexChanged, WorkTreeChanged]


@dataclass(frozen=True)
class WatchError:
    """Failure reported by the working-tree watcher."""
    message: str
    path: Optional[str] = None


@dataclass(frozen=True)
class Ok:
    event: Event


@dataclass(frozen=True)
class Err:
    error: WatchError


Result = Union[Ok, Err]
Callback = Callable[[Result], None]


class Subscription:
    """Handle returned by ``EventHub.subscribe``; cancel to stop delivery."""

    def __init__(self, hub: 'EventHub', callback: Callback):
        self._hub = hub
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._hub._remove(self)

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class EventHub:
    """Fan-out of repository events to subscribers."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callback) -> Subscription:
        subscription = Subscription(self, callback)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def publish(self, result: Result) -> None:
        """
        Deliver a result to every subscriber.

        A subscriber that raises is logged and does not stop delivery to
        the others.
        """
        with self._lock:
            subscribers = list(self._subscriptions)
        for subscription in subscribers:
            try:
                subscription.callback(result)
            except Exception:
                logger.exception("Event subscriber %r failed", subscription.callback)

    def emit(self, event: Event) -> None:
        self.publish(Ok(event))

    def fail(self, error: WatchError) -> None:
        self.publish(Err(error))

    def path_changed(self, path: str) -> None:
        self.emit(WorkTreeChanged(path))

    def __len__(self) -> int:
        return len(self._subscriptions)
