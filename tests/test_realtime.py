import asyncio

import pytest

from launchpad.notifications.realtime import RealtimeHub, pitch_session_channel, queue_forwarder


def test_filters_by_table_and_columns():
    hub = RealtimeHub()
    got = []
    hub.on_insert(pitch_session_channel("s1"), "chat_messages", got.append, session_id="s1")

    assert hub.publish_insert("chat_messages", {"id": "1", "session_id": "s1"}) == 1
    assert hub.publish_insert("chat_messages", {"id": "2", "session_id": "s2"}) == 0
    assert hub.publish_insert("investments", {"id": "3", "session_id": "s1"}) == 0
    assert [row["id"] for row in got] == ["1"]


def test_failing_subscriber_does_not_block_others():
    hub = RealtimeHub()
    got = []

    def broken(row):
        raise RuntimeError("socket gone")

    hub.on_insert("a", "chat_messages", broken)
    hub.on_insert("b", "chat_messages", got.append)

    assert hub.publish_insert("chat_messages", {"id": "1"}) == 1
    assert got == [{"id": "1"}]


def test_unsubscribe_is_idempotent():
    hub = RealtimeHub()
    sub = hub.on_insert("a", "chat_messages", lambda row: None)
    assert hub.subscriber_count("a") == 1
    sub.unsubscribe()
    sub.unsubscribe()
    assert hub.subscriber_count() == 0


@pytest.mark.asyncio
async def test_queue_forwarder_delivers_on_loop():
    queue = asyncio.Queue()
    hub = RealtimeHub()
    hub.on_insert("ws", "chat_messages", queue_forwarder(queue, asyncio.get_running_loop()))

    hub.publish_insert("chat_messages", {"id": "1"})

    assert await asyncio.wait_for(queue.get(), timeout=1) == {"id": "1"}
