import pytest
from sqlalchemy import func, select

from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.database.models import (
    ChatMessage,
    FounderNotification,
    MessagePitchRoomLink,
    MirrorEvent,
    PitchSession,
)
from launchpad.exceptions import AuthenticationError, AuthorizationError, InvalidInputError, NotFoundError
from launchpad.messaging.bridge import DirectMessagingBridge
from launchpad.notifications import mirror_notifier
from launchpad.notifications.mirror_notifier import dispatch_event, dispatch_pending


def count(model):
    with db_session() as db:
        return db.execute(select(func.count()).select_from(model)).scalar_one()


def bridge_for(viewer, hub, dispatch=dispatch_event):
    return DirectMessagingBridge(viewer, hub=hub, dispatch=dispatch)


def test_viewer_required(hub):
    with pytest.raises(AuthenticationError):
        DirectMessagingBridge(None, hub=hub)


def test_first_investor_message_creates_session_link_and_notification(founder, investor, startup, hub):
    published = []
    hub.on_insert("watch", "chat_messages", published.append)

    result = bridge_for(investor, hub).send_message(founder.user_id, "Hi, loved your deck")

    assert count(PitchSession) == 1
    assert count(ChatMessage) == 1
    assert count(MessagePitchRoomLink) == 1
    assert count(FounderNotification) == 1

    with db_session() as db:
        session = crud.find_active_session_for_startup(db, startup.id)
        assert session.kind == "direct"
        assert session.session_name == "Direct Chat - Foo"
        assert (session.end_time - session.start_time).days == 7

        notification = crud.list_founder_notifications(db, founder.user_id)[0]
        assert notification.message == "New message from investor in Foo"
        assert notification.notification_type == "new_message"
        assert notification.pitch_session_id == session.id

        event = crud.get_mirror_event(db, result["mirror_event_id"])
        assert event.status == "done"
        assert event.attempts == 1

    assert [row["id"] for row in published] == [result["message"]["id"]]


def test_second_message_reuses_session(founder, investor, startup, hub):
    bridge = bridge_for(investor, hub)
    bridge.send_message(founder.user_id, "one")
    bridge.send_message(founder.user_id, "two")

    assert count(PitchSession) == 1
    assert count(ChatMessage) == 2
    assert count(FounderNotification) == 2


def test_existing_pitch_session_is_used(founder, investor, pitch_session, hub):
    result = bridge_for(investor, hub).send_message(founder.user_id, "hello")
    assert result["message"]["session_id"] == pitch_session.id
    assert count(PitchSession) == 1


def test_direct_session_insert_is_idempotent(startup):
    with db_session() as db:
        first = crud.insert_direct_session_if_absent(db, startup)
    with db_session() as db:
        second = crud.insert_direct_session_if_absent(db, startup)
    assert first.id == second.id
    assert count(PitchSession) == 1


def test_founder_reply_leaves_no_mirror_event(founder, investor, startup, hub):
    bridge_for(investor, hub).send_message(founder.user_id, "question")
    result = bridge_for(founder, hub).send_message(founder.user_id, "answer")

    assert result["mirror_event_id"] is None
    assert count(MirrorEvent) == 1
    assert count(FounderNotification) == 1


def test_validation(founder, investor, hub):
    bridge = bridge_for(investor, hub)
    with pytest.raises(InvalidInputError):
        bridge.send_message(founder.user_id, "   ")
    with pytest.raises(NotFoundError):
        bridge.send_message(founder.user_id, "no active startup yet")


def test_failed_dispatch_is_retried_by_sweep(founder, investor, startup, hub, monkeypatch):
    result = bridge_for(investor, hub, dispatch=lambda event_id: None).send_message(founder.user_id, "hi")
    assert count(FounderNotification) == 0

    monkeypatch.setattr(mirror_notifier.time, "sleep", lambda seconds: None)
    assert dispatch_pending() == 1
    assert count(FounderNotification) == 1
    assert count(MessagePitchRoomLink) == 1

    # already done: no second notification
    assert dispatch_event(result["mirror_event_id"]) is True
    assert count(FounderNotification) == 1


def test_start_chat_sends_opener(founder, investor, startup, hub):
    result = bridge_for(investor, hub).start_chat(founder.user_id)

    assert result["conversation"] == founder.user_id
    assert result["message"]["message"].startswith("Hi Fiona Founder! I'm interested in Foo")
    with pytest.raises(AuthorizationError):
        bridge_for(founder, hub).start_chat(founder.user_id)
    with pytest.raises(NotFoundError):
        bridge_for(investor, hub).start_chat("nobody")


def test_load_conversation_merges_sources(founder, investor, startup, hub):
    bridge = bridge_for(investor, hub)
    assert bridge.load_conversation(founder.user_id) == []
    assert count(PitchSession) == 0

    bridge.start_chat(founder.user_id)
    bridge.send_message(founder.user_id, "follow up")
    bridge_for(founder, hub).send_message(founder.user_id, "thanks!")

    entries = bridge.load_conversation(founder.user_id)

    assert [e["source"] for e in entries] == ["direct", "pitch_session", "pitch_session"]
    assert [e["is_own"] for e in entries] == [True, True, False]
    assert entries[-1]["message"] == "thanks!"


def test_list_conversations(founder, investor, startup, hub):
    bridge = bridge_for(investor, hub)
    assert bridge.list_conversations() == []

    bridge.send_message(founder.user_id, "hi")
    bridge_for(founder, hub).send_message(founder.user_id, "hello back")

    conversations = bridge.list_conversations()
    assert len(conversations) == 1
    conversation = conversations[0]
    assert conversation["founder_id"] == founder.user_id
    assert conversation["founder_name"] == "Fiona Founder"
    assert conversation["startup_name"] == "Foo"
    assert conversation["last_message"] == "hello back"
    assert conversation["unread_count"] == 1

    # founders do not see their own startup as a conversation
    assert bridge_for(founder, hub).list_conversations() == []


def test_notifications_and_mark_read(founder, investor, startup, hub):
    bridge_for(investor, hub).send_message(founder.user_id, "hi")
    founder_bridge = bridge_for(founder, hub)

    assert len(founder_bridge.notifications(unread_only=True)) == 1
    assert founder_bridge.mark_notifications_read() == 1
    assert founder_bridge.notifications(unread_only=True) == []
    assert len(founder_bridge.notifications()) == 1
