"""
Tests for ChangeNotifier and Subscription.

Listeners receive the current snapshot on start and a fresh snapshot on
every publish of their topic until they are stopped.
"""

import pytest

from taskbox.services.subscriptions import ChangeNotifier, tasks_topic


class SnapshotSource:
    """Loader returning a mutable value and counting loads."""

    def __init__(self, value):
        self.value = value
        self.loads = 0

    async def load(self):
        self.loads += 1
        return self.value


class TestSubscription:
    """Tests for the subscription lifecycle."""

    @pytest.mark.asyncio
    async def test_start_delivers_current_snapshot(self):
        notifier = ChangeNotifier()
        source = SnapshotSource(["a"])
        received = []

        subscription = await notifier.listen("topic", source.load, received.append)

        assert subscription.active
        assert received == [["a"]]
        assert notifier.subscription_count("topic") == 1

    @pytest.mark.asyncio
    async def test_publish_delivers_fresh_snapshot(self):
        notifier = ChangeNotifier()
        source = SnapshotSource(1)
        received = []
        await notifier.listen("topic", source.load, received.append)

        source.value = 2
        await notifier.publish("topic")

        assert received == [1, 2]

    @pytest.mark.asyncio
    async def test_publish_only_reaches_matching_topic(self):
        notifier = ChangeNotifier()
        source = SnapshotSource("x")
        received = []
        await notifier.listen(tasks_topic("p1"), source.load, received.append)

        await notifier.publish(tasks_topic("p2"))

        assert received == ["x"]

    @pytest.mark.asyncio
    async def test_stopped_subscription_receives_nothing(self):
        notifier = ChangeNotifier()
        source = SnapshotSource(1)
        received = []
        subscription = await notifier.listen("topic", source.load, received.append)

        subscription.stop()
        subscription.stop()
        await notifier.publish("topic")

        assert received == [1]
        assert not subscription.active
        assert notifier.subscription_count("topic") == 0

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self):
        notifier = ChangeNotifier()
        source = SnapshotSource(1)
        received = []
        calls = []

        def broken(snapshot):
            calls.append(snapshot)
            if len(calls) > 1:
                raise ValueError("listener exploded")

        await notifier.listen("topic", source.load, broken)
        await notifier.listen("topic", source.load, received.append)

        await notifier.publish("topic")

        assert received == [1, 1]
        assert len(calls) == 2
