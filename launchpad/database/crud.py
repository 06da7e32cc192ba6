"""
Row-level reads and writes against the LaunchPad tables.

Functions only `flush()`; the caller's unit of work (`db_session()`) owns
the commit so that related writes land together.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from launchpad.database.models import (
    ChatMessage,
    DirectMessage,
    FounderNotification,
    FundingRound,
    Investment,
    MessagePitchRoomLink,
    MirrorEvent,
    PitchSession,
    Profile,
    Rating,
    Startup,
    _uuid,
)
from launchpad.exceptions import PersistenceError

AI_INVESTOR_PREFIX = "ai-investor-"
SYSTEM_USER_ID = "system"
DIRECT_SESSION_DAYS = 7


def ai_investor_id(session_id: str) -> str:
    """Synthetic investor identity used for AI-originated investments."""
    return f"{AI_INVESTOR_PREFIX}{session_id}"


# --------------------------------------------------------------------------- #
# Error translation
# --------------------------------------------------------------------------- #
def persistence_error(exc: SQLAlchemyError, invalid_target: str = "session") -> PersistenceError:
    """
    Map a rejected write onto the user-facing message for its error code:
    permission denied (42501), foreign-key violation (23503), row-level
    security rejection, or a generic fallback.
    """
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None)
    text = str(orig if orig is not None else exc)
    lowered = text.lower()

    if code is None and "foreign key" in lowered:
        code = "23503"
    if code is None and "permission denied" in lowered:
        code = "42501"

    if code == "42501":
        return PersistenceError("Permission denied. Please refresh the page and try again.", code, 403)
    if code == "23503":
        return PersistenceError(
            f"Invalid {invalid_target}. Please refresh the page and try again.", code
        )
    if "row-level security" in lowered or "rls" in text:
        return PersistenceError("Security policy error. Please contact support.", code, 403)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return PersistenceError(f"Failed to send message: {text}", code, 503)
    return PersistenceError(f"Failed to send message: {text}", code)


def _insert_for(db: Session):
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


# --------------------------------------------------------------------------- #
# Profiles
# --------------------------------------------------------------------------- #
def get_profile(db: Session, user_id: str) -> Optional[Profile]:
    return db.execute(select(Profile).where(Profile.user_id == user_id)).scalar_one_or_none()


def get_profiles(db: Session, user_ids: Iterable[str]) -> Dict[str, Profile]:
    ids = list(set(user_ids))
    if not ids:
        return {}
    rows = db.execute(select(Profile).where(Profile.user_id.in_(ids))).scalars().all()
    return {p.user_id: p for p in rows}


def create_profile(db: Session, user_id: str, full_name: str, user_type: str) -> Profile:
    profile = Profile(user_id=user_id, full_name=full_name, user_type=user_type)
    db.add(profile)
    db.flush()
    return profile


# --------------------------------------------------------------------------- #
# Startups
# --------------------------------------------------------------------------- #
def get_startup(db: Session, startup_id: str) -> Optional[Startup]:
    return db.get(Startup, startup_id)


def lock_startup(db: Session, startup_id: str) -> Optional[Startup]:
    """SELECT ... FOR UPDATE on the startup row (no-op lock on SQLite)."""
    return db.execute(
        select(Startup).where(Startup.id == startup_id).with_for_update()
    ).scalar_one_or_none()


def get_active_startup_for_founder(db: Session, founder_id: str) -> Optional[Startup]:
    return db.execute(
        select(Startup)
        .where(Startup.founder_id == founder_id, Startup.status == "active")
        .order_by(Startup.created_at.asc())
        .limit(1)
    ).scalar_one_or_none()


def list_startups_for_founder(db: Session, founder_id: str) -> List[Startup]:
    return list(
        db.execute(select(Startup).where(Startup.founder_id == founder_id)).scalars().all()
    )


def list_startups(db: Session, status: Optional[str] = None) -> List[Startup]:
    stmt = select(Startup).order_by(Startup.created_at.desc())
    if status:
        stmt = stmt.where(Startup.status == status)
    return list(db.execute(stmt).scalars().all())


def create_startup(db: Session, **fields) -> Startup:
    startup = Startup(**fields)
    db.add(startup)
    db.flush()
    return startup


# --------------------------------------------------------------------------- #
# Investments
# --------------------------------------------------------------------------- #
def create_investment(
    db: Session,
    investor_id: str,
    startup_id: str,
    amount: float,
    message: Optional[str] = None,
    status: str = "pending",
) -> Investment:
    investment = Investment(
        investor_id=investor_id,
        startup_id=startup_id,
        amount=amount,
        message=message,
        status=status,
    )
    db.add(investment)
    db.flush()
    return investment


def get_investment(db: Session, investment_id: str) -> Optional[Investment]:
    return db.get(Investment, investment_id)


def increment_total_invested(db: Session, startup_id: str, amount: float) -> float:
    """
    Atomically add `amount` to `startups.total_invested` and return the new
    total. The addition happens inside one UPDATE, so concurrent writers
    serialise on the row lock instead of overwriting each other.
    """
    db.execute(
        update(Startup)
        .where(Startup.id == startup_id)
        .values(
            total_invested=Startup.total_invested + amount,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    total = db.execute(
        select(Startup.total_invested).where(Startup.id == startup_id)
    ).scalar_one()
    startup = db.get(Startup, startup_id)
    if startup is not None:
        db.refresh(startup)
    return float(total)


def sum_accepted_investments(db: Session, startup_id: str) -> float:
    total = db.execute(
        select(func.coalesce(func.sum(Investment.amount), 0)).where(
            Investment.startup_id == startup_id, Investment.status == "accepted"
        )
    ).scalar_one()
    return float(total)


def accepted_investments_by_startup(db: Session) -> Dict[str, List[Investment]]:
    rows = db.execute(select(Investment).where(Investment.status == "accepted")).scalars().all()
    grouped: Dict[str, List[Investment]] = {}
    for inv in rows:
        grouped.setdefault(inv.startup_id, []).append(inv)
    return grouped


# --------------------------------------------------------------------------- #
# Pitch sessions
# --------------------------------------------------------------------------- #
def get_pitch_session(db: Session, session_id: str) -> Optional[PitchSession]:
    return db.get(PitchSession, session_id)


def list_active_sessions(db: Session) -> List[PitchSession]:
    return list(
        db.execute(
            select(PitchSession)
            .where(PitchSession.status == "active")
            .order_by(PitchSession.start_time.asc())
        ).scalars().all()
    )


def list_sessions_for_startups(
    db: Session, startup_ids: Sequence[str], status: Optional[str] = None
) -> List[PitchSession]:
    if not startup_ids:
        return []
    stmt = select(PitchSession).where(PitchSession.startup_id.in_(list(startup_ids)))
    if status:
        stmt = stmt.where(PitchSession.status == status)
    return list(db.execute(stmt).scalars().all())


def create_pitch_session(db: Session, **fields) -> PitchSession:
    session = PitchSession(**fields)
    db.add(session)
    db.flush()
    return session


def find_active_session_for_startup(db: Session, startup_id: str) -> Optional[PitchSession]:
    return db.execute(
        select(PitchSession)
        .where(PitchSession.startup_id == startup_id, PitchSession.status == "active")
        .order_by(PitchSession.start_time.asc())
        .limit(1)
    ).scalar_one_or_none()


def insert_direct_session_if_absent(db: Session, startup: Startup) -> Optional[PitchSession]:
    """
    Create the auto-created `direct` session for a startup unless one is
    already active. Relies on the partial unique index, so two concurrent
    first contacts end up sharing one row. Returns the active direct session.
    """
    now = datetime.utcnow()
    insert = _insert_for(db)
    stmt = (
        insert(PitchSession)
        .values(
            id=_uuid(),
            startup_id=startup.id,
            session_name=f"Direct Chat - {startup.name}",
            description="Auto-created session for direct investor-founder conversations",
            start_time=now,
            end_time=now + timedelta(days=DIRECT_SESSION_DAYS),
            status="active",
            kind="direct",
            created_at=now,
        )
        .on_conflict_do_nothing()
    )
    db.execute(stmt)
    return db.execute(
        select(PitchSession).where(
            PitchSession.startup_id == startup.id,
            PitchSession.status == "active",
            PitchSession.kind == "direct",
        )
    ).scalar_one_or_none()


# --------------------------------------------------------------------------- #
# Chat messages
# --------------------------------------------------------------------------- #
def create_chat_message(
    db: Session,
    session_id: str,
    user_id: str,
    message: str,
    message_type: str = "text",
    ai_provider: Optional[str] = None,
) -> ChatMessage:
    row = ChatMessage(
        session_id=session_id,
        user_id=user_id,
        message=message,
        message_type=message_type,
        ai_provider=ai_provider,
    )
    db.add(row)
    db.flush()
    return row


def list_chat_messages(db: Session, session_id: str) -> List[ChatMessage]:
    return list(
        db.execute(
            select(ChatMessage)
            .where(ChatMessage.session_id == session_id)
            .order_by(ChatMessage.created_at.asc())
        ).scalars().all()
    )


def latest_chat_message(db: Session, session_id: str) -> Optional[ChatMessage]:
    return db.execute(
        select(ChatMessage)
        .where(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()


def count_recent_from_others(db: Session, session_id: str, user_id: str, since: datetime) -> int:
    return db.execute(
        select(func.count(ChatMessage.id)).where(
            ChatMessage.session_id == session_id,
            ChatMessage.user_id != user_id,
            ChatMessage.created_at >= since,
        )
    ).scalar_one()


# --------------------------------------------------------------------------- #
# Direct messages + links
# --------------------------------------------------------------------------- #
def create_direct_message(db: Session, sender_id: str, recipient_id: str, message: str) -> DirectMessage:
    row = DirectMessage(sender_id=sender_id, recipient_id=recipient_id, message=message)
    db.add(row)
    db.flush()
    return row


def list_direct_messages_between(db: Session, user_a: str, user_b: str) -> List[DirectMessage]:
    return list(
        db.execute(
            select(DirectMessage)
            .where(
                or_(
                    and_(DirectMessage.sender_id == user_a, DirectMessage.recipient_id == user_b),
                    and_(DirectMessage.sender_id == user_b, DirectMessage.recipient_id == user_a),
                )
            )
            .order_by(DirectMessage.created_at.asc())
        ).scalars().all()
    )


def create_link_if_absent(
    db: Session, chat_message_id: str, pitch_session_id: str, sync_direction: str = "dm_to_pitch"
) -> MessagePitchRoomLink:
    existing = db.execute(
        select(MessagePitchRoomLink).where(
            MessagePitchRoomLink.chat_message_id == chat_message_id,
            MessagePitchRoomLink.pitch_session_id == pitch_session_id,
        )
    ).scalar_one_or_none()
    if existing:
        return existing
    link = MessagePitchRoomLink(
        chat_message_id=chat_message_id,
        pitch_session_id=pitch_session_id,
        sync_direction=sync_direction,
    )
    db.add(link)
    db.flush()
    return link


def linked_message_ids(db: Session, pitch_session_id: str) -> set:
    rows = db.execute(
        select(MessagePitchRoomLink.chat_message_id).where(
            MessagePitchRoomLink.pitch_session_id == pitch_session_id
        )
    ).scalars().all()
    return set(rows)


# --------------------------------------------------------------------------- #
# Founder notifications
# --------------------------------------------------------------------------- #
def create_founder_notification(
    db: Session,
    founder_id: str,
    investor_id: str,
    pitch_session_id: str,
    message: str,
    notification_type: str = "new_message",
) -> FounderNotification:
    row = FounderNotification(
        founder_id=founder_id,
        investor_id=investor_id,
        pitch_session_id=pitch_session_id,
        notification_type=notification_type,
        message=message,
    )
    db.add(row)
    db.flush()
    return row


def list_founder_notifications(
    db: Session, founder_id: str, unread_only: bool = False
) -> List[FounderNotification]:
    stmt = (
        select(FounderNotification)
        .where(FounderNotification.founder_id == founder_id)
        .order_by(FounderNotification.created_at.desc())
    )
    if unread_only:
        stmt = stmt.where(FounderNotification.is_read.is_(False))
    return list(db.execute(stmt).scalars().all())


def mark_notifications_read(db: Session, founder_id: str, pitch_session_id: Optional[str] = None) -> int:
    stmt = update(FounderNotification).where(
        FounderNotification.founder_id == founder_id,
        FounderNotification.is_read.is_(False),
    )
    if pitch_session_id:
        stmt = stmt.where(FounderNotification.pitch_session_id == pitch_session_id)
    result = db.execute(stmt.values(is_read=True).execution_options(synchronize_session=False))
    return result.rowcount or 0


# --------------------------------------------------------------------------- #
# Mirror outbox
# --------------------------------------------------------------------------- #
def create_mirror_event(
    db: Session,
    chat_message_id: str,
    pitch_session_id: str,
    founder_id: str,
    investor_id: str,
    notification_message: str,
) -> MirrorEvent:
    event = MirrorEvent(
        chat_message_id=chat_message_id,
        pitch_session_id=pitch_session_id,
        founder_id=founder_id,
        investor_id=investor_id,
        notification_message=notification_message,
    )
    db.add(event)
    db.flush()
    return event


def get_mirror_event(db: Session, event_id: str) -> Optional[MirrorEvent]:
    return db.get(MirrorEvent, event_id)


def list_pending_mirror_events(db: Session, limit: int = 100) -> List[MirrorEvent]:
    return list(
        db.execute(
            select(MirrorEvent)
            .where(MirrorEvent.status == "pending")
            .order_by(MirrorEvent.created_at.asc())
            .limit(limit)
        ).scalars().all()
    )


# --------------------------------------------------------------------------- #
# Ratings / funding rounds
# --------------------------------------------------------------------------- #
def ratings_for_startups(db: Session, startup_ids: Sequence[str]) -> List[Rating]:
    if not startup_ids:
        return []
    return list(
        db.execute(select(Rating).where(Rating.startup_id.in_(list(startup_ids)))).scalars().all()
    )


def ratings_by_investor(db: Session, investor_id: str) -> List[Rating]:
    return list(db.execute(select(Rating).where(Rating.investor_id == investor_id)).scalars().all())


def funding_rounds_by_investor(db: Session, investor_id: str) -> List[FundingRound]:
    return list(
        db.execute(select(FundingRound).where(FundingRound.investor_id == investor_id)).scalars().all()
    )
