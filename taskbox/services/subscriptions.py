"""
Realtime change subscriptions for TaskBox.

Listeners register a loader for a topic (for example the tasks of one
project) and a callback. Whenever a write to that topic commits, the
loader re-reads the authoritative snapshot and the callback receives it in
full; subscribers replace their local state with it rather than merging.
"""

from typing import Any, Awaitable, Callable, Dict, List

from taskbox.logging_config import get_logger

logger = get_logger(__name__)

SnapshotLoader = Callable[[], Awaitable[Any]]
SnapshotCallback = Callable[[Any], None]


def projects_topic(user_id: str) -> str:
    return f"projects:{user_id}"


def sections_topic(project_id: str) -> str:
    return f"sections:{project_id}"


def tasks_topic(project_id: str) -> str:
    return f"tasks:{project_id}"


class Subscription:
    """
    Handle for one listener.

    Owns its lifecycle: ``start()`` delivers the initial snapshot and begins
    listening, ``stop()`` detaches it. A stopped subscription never calls
    its callback again.
    """

    def __init__(
        self,
        notifier: "ChangeNotifier",
        topic: str,
        loader: SnapshotLoader,
        callback: SnapshotCallback
    ) -> None:
        self._notifier = notifier
        self.topic = topic
        self._loader = loader
        self._callback = callback
        self.active = False

    async def start(self) -> "Subscription":
        """Register with the notifier and deliver the current snapshot."""
        self.active = True
        self._notifier._register(self)
        await self.refresh()
        return self

    async def refresh(self) -> None:
        """Load the latest snapshot and hand it to the callback."""
        if not self.active:
            return
        snapshot = await self._loader()
        if self.active:
            self._callback(snapshot)

    def stop(self) -> None:
        """Stop listening. Safe to call more than once."""
        if self.active:
            self.active = False
            self._notifier._unregister(self)
            logger.debug(f"Subscription stopped: topic={self.topic}")


class ChangeNotifier:
    """In-process registry of subscriptions keyed by topic."""

    def __init__(self) -> None:
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def _register(self, subscription: Subscription) -> None:
        self._subscriptions.setdefault(subscription.topic, []).append(subscription)
        logger.debug(f"Subscription started: topic={subscription.topic}")

    def _unregister(self, subscription: Subscription) -> None:
        listeners = self._subscriptions.get(subscription.topic, [])
        if subscription in listeners:
            listeners.remove(subscription)
        if not listeners:
            self._subscriptions.pop(subscription.topic, None)

    def subscription_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, []))

    async def listen(
        self,
        topic: str,
        loader: SnapshotLoader,
        callback: SnapshotCallback
    ) -> Subscription:
        """
        Create and start a subscription.

        Args:
            topic: Topic to follow
            loader: Coroutine function returning the topic's snapshot
            callback: Receives every snapshot, starting with the current one

        Returns:
            The started Subscription
        """
        return await Subscription(self, topic, loader, callback).start()

    async def publish(self, *topics: str) -> None:
        """
        Push fresh snapshots to every listener of the given topics.

        A failing listener is logged and does not affect the others or the
        write that triggered the notification.
        """
        for topic in topics:
            for subscription in list(self._subscriptions.get(topic, [])):
                try:
                    await subscription.refresh()
                except Exception as e:
                    logger.error(f"Listener for {topic} failed: {e}", exc_info=True)
