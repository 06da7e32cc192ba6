"""
Direct messaging bridge
=======================

1:1 investor/founder conversations. Messages are stored in the founder's
backing pitch session so they show up in the pitch room too; investor
messages additionally leave a mirror event for the outbox dispatcher, which
creates the sync link and the founder notification.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.database.models import PitchSession, Profile
from launchpad.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidInputError,
    NotFoundError,
)
from launchpad.notifications.mirror_notifier import notify_founder
from launchpad.notifications.realtime import RealtimeHub, get_hub

logger = logging.getLogger(__name__)

UNREAD_WINDOW = timedelta(hours=24)

OPENER = (
    "Hi {founder_name}! I'm interested in {startup_name} and would like to discuss "
    "potential investment opportunities. Could we chat about your startup?"
)


def notification_text(startup_name: Optional[str]) -> str:
    return f"New message from investor in {startup_name or 'your startup'}"


class DirectMessagingBridge:
    def __init__(
        self,
        viewer: Optional[Profile],
        hub: Optional[RealtimeHub] = None,
        dispatch: Optional[Callable[[str], None]] = None,
    ):
        if viewer is None:
            raise AuthenticationError()
        self.viewer = viewer
        self.hub = hub or get_hub()
        self.dispatch = dispatch or notify_founder

    @property
    def is_investor(self) -> bool:
        return self.viewer.user_type == "investor"

    # ------------------------------------------------------------------ #
    def start_chat(self, founder_id: str) -> Dict[str, Any]:
        if not self.is_investor:
            raise AuthorizationError("Only investors can start a chat with a founder")
        with db_session() as db:
            founder = crud.get_profile(db, founder_id)
            if founder is None or founder.user_type != "founder":
                raise NotFoundError("Founder")
            startup = crud.get_active_startup_for_founder(db, founder_id)
            opener = OPENER.format(
                founder_name=founder.full_name or "there",
                startup_name=startup.name if startup else "your startup",
            )
            dm = crud.create_direct_message(db, self.viewer.user_id, founder_id, opener)
            payload = dm.to_dict()
        logger.info("Investor %s started a chat with founder %s", self.viewer.user_id, founder_id)
        return {"conversation": founder_id, "message": payload}

    # ------------------------------------------------------------------ #
    def _backing_session(self, db: Session, founder_id: str, create: bool) -> Optional[PitchSession]:
        startup = crud.get_active_startup_for_founder(db, founder_id)
        if startup is None:
            raise NotFoundError("Active startup for founder")
        session = crud.find_active_session_for_startup(db, startup.id)
        if session is None and create:
            session = crud.insert_direct_session_if_absent(db, startup)
            logger.info("Backing session %s ready for startup %s", session.id, startup.id)
        return session

    def load_or_create_backing_session(self, founder_id: str) -> Dict[str, Any]:
        with db_session() as db:
            session = self._backing_session(db, founder_id, create=True)
            return session.to_dict()

    def send_message(self, founder_id: str, text: str) -> Dict[str, Any]:
        text = (text or "").strip()
        if not text:
            raise InvalidInputError("Message cannot be empty")

        event_id = None
        try:
            with db_session() as db:
                session = self._backing_session(db, founder_id, create=True)
                row = crud.create_chat_message(db, session.id, self.viewer.user_id, text, "text")
                if self.is_investor:
                    startup = crud.get_startup(db, session.startup_id)
                    event = crud.create_mirror_event(
                        db,
                        chat_message_id=row.id,
                        pitch_session_id=session.id,
                        founder_id=founder_id,
                        investor_id=self.viewer.user_id,
                        notification_message=notification_text(startup.name if startup else None),
                    )
                    event_id = event.id
                payload = row.to_dict()
        except SQLAlchemyError as exc:
            logger.error("Error sending direct message to %s: %s", founder_id, exc)
            raise crud.persistence_error(exc, "recipient") from exc

        self.hub.publish_insert("chat_messages", payload)
        if event_id:
            self.dispatch(event_id)
        return {"message": payload, "mirror_event_id": event_id}

    # ------------------------------------------------------------------ #
    def load_conversation(self, founder_id: str) -> List[Dict[str, Any]]:
        """Backing-session messages and plain DMs between the two parties, oldest first."""
        entries: List[Dict[str, Any]] = []
        with db_session() as db:
            try:
                session = self._backing_session(db, founder_id, create=False)
            except NotFoundError:
                session = None
            if session is not None:
                for m in crud.list_chat_messages(db, session.id):
                    entries.append(
                        {
                            "id": m.id,
                            "sender_id": m.user_id,
                            "message": m.message,
                            "message_type": m.message_type,
                            "created_at": m.created_at,
                            "source": "pitch_session",
                            "session_id": session.id,
                        }
                    )
            other = founder_id if founder_id != self.viewer.user_id else None
            if other:
                for dm in crud.list_direct_messages_between(db, self.viewer.user_id, other):
                    entries.append(
                        {
                            "id": dm.id,
                            "sender_id": dm.sender_id,
                            "message": dm.message,
                            "message_type": dm.message_type,
                            "created_at": dm.created_at,
                            "source": "direct",
                            "session_id": None,
                        }
                    )
        entries.sort(key=lambda e: e["created_at"])
        for e in entries:
            e["created_at"] = e["created_at"].isoformat()
            e["is_own"] = e["sender_id"] == self.viewer.user_id
        return entries

    def list_conversations(self) -> List[Dict[str, Any]]:
        """One entry per founder with an active session, newest activity first."""
        since = datetime.utcnow() - UNREAD_WINDOW
        conversations: Dict[str, Dict[str, Any]] = {}
        with db_session() as db:
            sessions = crud.list_active_sessions(db)
            startups = {s.startup_id: crud.get_startup(db, s.startup_id) for s in sessions}
            founders = crud.get_profiles(db, [st.founder_id for st in startups.values() if st])
            for session in sessions:
                startup = startups.get(session.startup_id)
                if startup is None or startup.founder_id == self.viewer.user_id:
                    continue
                if startup.founder_id in conversations:
                    continue
                last = crud.latest_chat_message(db, session.id)
                founder = founders.get(startup.founder_id)
                conversations[startup.founder_id] = {
                    "founder_id": startup.founder_id,
                    "founder_name": founder.full_name if founder else None,
                    "startup_name": startup.name,
                    "session_id": session.id,
                    "last_message": last.message if last else None,
                    "last_message_at": last.created_at.isoformat() if last else None,
                    "unread_count": crud.count_recent_from_others(db, session.id, self.viewer.user_id, since),
                }
        return sorted(
            conversations.values(),
            key=lambda c: c["last_message_at"] or "",
            reverse=True,
        )

    # ------------------------------------------------------------------ #
    def notifications(self, unread_only: bool = False) -> List[Dict[str, Any]]:
        with db_session() as db:
            return [n.to_dict() for n in crud.list_founder_notifications(db, self.viewer.user_id, unread_only)]

    def mark_notifications_read(self, pitch_session_id: Optional[str] = None) -> int:
        with db_session() as db:
            return crud.mark_notifications_read(db, self.viewer.user_id, pitch_session_id)
