import datetime
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from launchpad.database.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime.datetime:
    return datetime.datetime.utcnow()


class SerializerMixin:
    """Plain-dict view of a row; timestamps as ISO strings."""

    def to_dict(self) -> dict:
        out = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, datetime.datetime):
                value = value.isoformat()
            out[column.key] = value
        return out


class Profile(SerializerMixin, Base):
    """
    ORM mapping for the Supabase table `profiles`.

    One row per auth identity; `user_type` is fixed at signup.
    """
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    full_name = Column(String)
    avatar_url = Column(String)
    # founder | investor
    user_type = Column(String(16), nullable=False)

    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    def __repr__(self):
        return f"<Profile user_id={self.user_id} user_type={self.user_type}>"


class Startup(SerializerMixin, Base):
    """ORM mapping for `startups` – one venture per row, owned by a founder."""
    __tablename__ = "startups"

    id = Column(String(36), primary_key=True, default=_uuid)
    founder_id = Column(String(64), nullable=False, index=True)

    name = Column(String, nullable=False)
    tagline = Column(String, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    vision = Column(Text, default="")
    product_description = Column(Text, default="")
    market_size = Column(Text, default="")
    business_model = Column(Text, default="")

    funding_ask = Column(Float, nullable=False, default=0)
    equity_offered = Column(Float, nullable=False, default=0)
    current_valuation = Column(Float, nullable=False, default=0)
    # Sum of accepted investments; only ever changed by an atomic increment.
    total_invested = Column(Float, nullable=False, default=0)

    pitch_deck_url = Column(String)
    # draft | active | funded
    status = Column(String(16), nullable=False, default="draft")

    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    def __repr__(self):
        return f"<Startup id={self.id} name={self.name} total_invested={self.total_invested}>"


class PitchSession(SerializerMixin, Base):
    """
    ORM mapping for `pitch_sessions`.

    `kind` separates founder-scheduled pitches from sessions auto-created to
    back direct messages; the partial unique index allows at most one active
    `direct` session per startup.
    """
    __tablename__ = "pitch_sessions"
    __table_args__ = (
        Index(
            "uq_pitch_sessions_active_direct",
            "startup_id",
            unique=True,
            postgresql_where=text("status = 'active' AND kind = 'direct'"),
            sqlite_where=text("status = 'active' AND kind = 'direct'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    startup_id = Column(String(36), ForeignKey("startups.id"), nullable=False, index=True)
    session_name = Column(String, nullable=False)
    description = Column(Text)
    pitch_deck_url = Column(String)
    pitch_deck_text = Column(Text)
    start_time = Column(DateTime, default=_now, nullable=False)
    end_time = Column(DateTime, nullable=False)
    # scheduled | active | completed
    status = Column(String(16), nullable=False, default="scheduled")
    # pitch | direct
    kind = Column(String(16), nullable=False, default="pitch")

    created_at = Column(DateTime, default=_now, nullable=False)

    def __repr__(self):
        return f"<PitchSession id={self.id} startup_id={self.startup_id} status={self.status}>"


class ChatMessage(SerializerMixin, Base):
    """
    Append-only event in a pitch session.

    `user_id` is a profile id or a sentinel (`system`, `ai-investor-<session>`),
    so it carries no foreign key.
    """
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(36), ForeignKey("pitch_sessions.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    message = Column(Text, nullable=False)
    # text | ai_response | system | direct_message_sync
    message_type = Column(String(32), nullable=False, default="text")
    ai_provider = Column(String(16))

    created_at = Column(DateTime, default=_now, nullable=False, index=True)


class DirectMessage(SerializerMixin, Base):
    """1:1 message between two users, outside any pitch session."""
    __tablename__ = "direct_messages"

    id = Column(String(36), primary_key=True, default=_uuid)
    sender_id = Column(String(64), nullable=False, index=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    message = Column(Text, nullable=False)
    message_type = Column(String(32), nullable=False, default="text")

    created_at = Column(DateTime, default=_now, nullable=False)


class MessagePitchRoomLink(SerializerMixin, Base):
    """Marks a chat message as mirrored from a DM into a pitch session."""
    __tablename__ = "message_pitch_room_links"
    __table_args__ = (
        UniqueConstraint("chat_message_id", "pitch_session_id", name="uq_link_message_session"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    chat_message_id = Column(String(36), ForeignKey("chat_messages.id"), nullable=False)
    pitch_session_id = Column(String(36), ForeignKey("pitch_sessions.id"), nullable=False, index=True)
    sync_direction = Column(String(32), nullable=False, default="dm_to_pitch")

    created_at = Column(DateTime, default=_now, nullable=False)


class Investment(SerializerMixin, Base):
    """Offer or commitment; AI-originated rows are inserted `accepted`."""
    __tablename__ = "investments"

    id = Column(String(36), primary_key=True, default=_uuid)
    investor_id = Column(String(64), nullable=False, index=True)
    startup_id = Column(String(36), ForeignKey("startups.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    message = Column(Text)
    # pending | accepted | rejected
    status = Column(String(16), nullable=False, default="pending")

    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class FounderNotification(SerializerMixin, Base):
    __tablename__ = "founder_notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    founder_id = Column(String(64), nullable=False, index=True)
    investor_id = Column(String(64), nullable=False)
    pitch_session_id = Column(String(36), ForeignKey("pitch_sessions.id"), index=True)
    notification_type = Column(String(32), nullable=False, default="new_message")
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=_now, nullable=False)


class FundingRound(SerializerMixin, Base):
    __tablename__ = "funding_rounds"

    id = Column(String(36), primary_key=True, default=_uuid)
    startup_id = Column(String(36), ForeignKey("startups.id"), nullable=False, index=True)
    investor_id = Column(String(64), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    equity_percentage = Column(Float, nullable=False)
    valuation = Column(Float, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    terms = Column(Text)

    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class Rating(SerializerMixin, Base):
    __tablename__ = "ratings"

    id = Column(String(36), primary_key=True, default=_uuid)
    startup_id = Column(String(36), ForeignKey("startups.id"), nullable=False, index=True)
    investor_id = Column(String(64), nullable=False, index=True)
    overall_score = Column(Float, nullable=False)

    created_at = Column(DateTime, default=_now, nullable=False)


class MirrorEvent(SerializerMixin, Base):
    """
    Outbox row written in the same transaction as an investor's DM.

    The dispatcher turns each pending event into one link + one founder
    notification and records attempts, so a failed mirror is retried on its
    own without touching the original message.
    """
    __tablename__ = "mirror_outbox"

    id = Column(String(36), primary_key=True, default=_uuid)
    chat_message_id = Column(String(36), ForeignKey("chat_messages.id"), nullable=False)
    pitch_session_id = Column(String(36), ForeignKey("pitch_sessions.id"), nullable=False)
    founder_id = Column(String(64), nullable=False)
    investor_id = Column(String(64), nullable=False)
    notification_message = Column(Text, nullable=False)
    # pending | done | failed
    status = Column(String(16), nullable=False, default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)

    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    def __repr__(self):
        return f"<MirrorEvent id={self.id} status={self.status} attempts={self.attempts}>"
