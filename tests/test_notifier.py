"""Tests for LiveChangeNotifier."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from hotwills.sync import LiveChangeNotifier, SyncContext

from conftest import ALICE, BOB


@pytest.fixture
def realtime():
    client = MagicMock()
    client.remove_channel = AsyncMock()

    def make_channel(name):
        channel = MagicMock(name=name)
        channel.topic = name
        channel.subscribe = AsyncMock(return_value=channel)
        return channel

    client.channel.side_effect = make_channel
    return client


def registered_callback(channel):
    return channel.on_postgres_changes.call_args.kwargs["callback"]


class TestStart:
    @pytest.mark.asyncio
    async def test_subscribes_to_owner_rows(self, realtime, context):
        notifier = LiveChangeNotifier(realtime, context, on_change=MagicMock())

        assert await notifier.start() is True

        realtime.channel.assert_called_once_with(f"models-live-{ALICE}")
        channel = notifier._channel
        channel.on_postgres_changes.assert_called_once()
        args, kwargs = channel.on_postgres_changes.call_args
        assert args == ("*",)
        assert kwargs["table"] == "models"
        assert kwargs["filter"] == f"created_by=eq.{ALICE}"
        channel.subscribe.assert_awaited_once()
        assert notifier.subscribed_owner == ALICE

    @pytest.mark.asyncio
    async def test_disabled(self, realtime, context):
        notifier = LiveChangeNotifier(realtime, context, on_change=MagicMock(), enabled=False)
        assert await notifier.start() is False
        realtime.channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_client(self, context):
        notifier = LiveChangeNotifier(None, context, on_change=MagicMock())
        assert await notifier.start() is False

    @pytest.mark.asyncio
    async def test_requires_caller(self, realtime):
        notifier = LiveChangeNotifier(realtime, SyncContext(), on_change=MagicMock())
        assert await notifier.start() is False
        realtime.channel.assert_not_called()


class TestEvents:
    @pytest.mark.asyncio
    async def test_event_triggers_refresh(self, realtime, context):
        on_change = MagicMock()
        notifier = LiveChangeNotifier(realtime, context, on_change=on_change)
        await notifier.start()

        registered_callback(notifier._channel)({"eventType": "INSERT", "new": {"id": 1}})

        on_change.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_async_refresh_scheduled(self, realtime, context):
        refreshed = asyncio.Event()

        async def on_change():
            refreshed.set()

        notifier = LiveChangeNotifier(realtime, context, on_change=on_change)
        await notifier.start()

        registered_callback(notifier._channel)({})
        await asyncio.wait_for(refreshed.wait(), 1)


class TestResubscribe:
    @pytest.mark.asyncio
    async def test_switch_owner_replaces_channel(self, realtime, context):
        notifier = LiveChangeNotifier(realtime, context, on_change=MagicMock())
        await notifier.start()
        old_channel = notifier._channel

        context.set_effective_owner(BOB)
        await notifier.resubscribe()

        realtime.remove_channel.assert_awaited_once_with(old_channel)
        assert notifier.subscribed_owner == BOB
        assert realtime.channel.call_count == 2

    @pytest.mark.asyncio
    async def test_stop(self, realtime, context):
        notifier = LiveChangeNotifier(realtime, context, on_change=MagicMock())
        await notifier.start()

        await notifier.stop()
        await notifier.stop()

        assert realtime.remove_channel.await_count == 1
        assert notifier.subscribed_owner is None
