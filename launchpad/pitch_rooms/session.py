"""
Pitch room session
==================

One viewer's live view of a pitch session: history, realtime fan-in,
message sending and the AI investor that answers founders.

States: ``idle`` -> ``joining`` -> ``joined``. ``leave()`` returns to idle
but does not cancel AI replies that are already scheduled.
"""

import asyncio
import logging
import random
from typing import Any, Callable, Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from launchpad.api.ai.decisions import (
    DemoTerms,
    InvestmentDecision,
    extract_decision,
    has_trigger,
)
from launchpad.api.ai.gateway import AIGateway, AIResponse, ChatContext, get_gateway
from launchpad.api.ai.prompts import (
    CoachingPrompt,
    DemoInvestorPrompt,
    EvaluatorPrompt,
    InvestorAdvisorPrompt,
)
from launchpad.api.ai.providers import ChatTurn
from launchpad.api.ai.sanitize_html import render_markdown
from launchpad.config import get_settings
from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.database.models import PitchSession, Profile, Startup
from launchpad.exceptions import (
    AuthenticationError,
    InvalidInputError,
    NotFoundError,
    PersistenceError,
    SendInProgressError,
)
from launchpad.notifications.realtime import (
    RealtimeHub,
    Subscription,
    get_hub,
    pitch_session_channel,
)
from launchpad.pitch_rooms.investments import apply_investment

logger = logging.getLogger(__name__)

IDLE = "idle"
JOINING = "joining"
JOINED = "joined"

HISTORY_WINDOW = 5
REPLY_PROVIDER = "groq"


def present_message(row: Dict[str, Any]) -> Dict[str, Any]:
    """Row dict plus the sanitised HTML a chat bubble renders."""
    out = dict(row)
    if out.get("message_type") in ("ai_response", "system"):
        out["html"] = render_markdown(out.get("message") or "")
    return out


class PitchRoomSession:
    def __init__(
        self,
        viewer: Optional[Profile],
        gateway: Optional[AIGateway] = None,
        hub: Optional[RealtimeHub] = None,
        reply_delay: Optional[float] = None,
        trigger_terms=None,
        rng: Optional[random.Random] = None,
        on_message: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        settings = get_settings()
        self.viewer = viewer
        self.gateway = gateway or get_gateway()
        self.hub = hub or get_hub()
        self.reply_delay = settings.ai_reply_delay_seconds if reply_delay is None else reply_delay
        self.trigger_terms = tuple(trigger_terms if trigger_terms is not None else settings.ai_trigger_terms)
        self.rng = rng or random.Random()
        self.on_message = on_message

        self.state = IDLE
        self.session: Optional[PitchSession] = None
        self.startup: Optional[Startup] = None
        self.messages: List[Dict[str, Any]] = []
        self._message_ids: Set[str] = set()
        self._subscription: Optional[Subscription] = None
        self.is_sending = False
        self.pending_replies: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    @property
    def session_id(self) -> Optional[str]:
        return self.session.id if self.session else None

    @property
    def viewer_is_founder_of_room(self) -> bool:
        return bool(self.viewer and self.startup and self.startup.founder_id == self.viewer.user_id)

    async def join(self, session_id: str, subscribe: bool = True) -> List[Dict[str, Any]]:
        self.leave()
        self.state = JOINING
        try:
            with db_session() as db:
                session = crud.get_pitch_session(db, session_id)
                if session is None:
                    raise NotFoundError("Pitch session")
                startup = crud.get_startup(db, session.startup_id)
                history = [m.to_dict() for m in crud.list_chat_messages(db, session_id)]
                synced: Set[str] = set()
                if self.viewer and startup and startup.founder_id == self.viewer.user_id:
                    marked = crud.mark_notifications_read(db, self.viewer.user_id, session_id)
                    if marked:
                        logger.info("Marked %d notifications read for session %s", marked, session_id)
                    synced = crud.linked_message_ids(db, session_id)
        except Exception:
            self.state = IDLE
            raise

        self.session = session
        self.startup = startup
        self.messages = []
        self._message_ids = set()
        for row in history:
            if row["id"] in synced:
                row["message_type"] = "direct_message_sync"
            self._append(row, notify=False)

        if subscribe:
            self._subscription = self.hub.on_insert(
                pitch_session_channel(session_id),
                "chat_messages",
                self.receive_realtime_insert,
                session_id=session_id,
            )
        self.state = JOINED
        logger.info("Joined pitch session %s with %d messages", session_id, len(self.messages))
        return list(self.messages)

    def leave(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self.state = IDLE

    # ------------------------------------------------------------------ #
    # Messages
    # ------------------------------------------------------------------ #
    def _append(self, row: Dict[str, Any], notify: bool = True) -> bool:
        if row["id"] in self._message_ids:
            return False
        self._message_ids.add(row["id"])
        shown = present_message(row)
        self.messages.append(shown)
        if notify and self.on_message is not None:
            self.on_message(shown)
        return True

    def receive_realtime_insert(self, row: Dict[str, Any]) -> bool:
        """Append an inserted row unless it is already shown."""
        if self.session and row.get("session_id") != self.session.id:
            return False
        return self._append(row)

    def _require_joined(self) -> None:
        if self.state != JOINED or self.session is None:
            raise InvalidInputError("Join a pitch session first")

    async def send_message(self, text: str, schedule_reply: bool = True) -> Dict[str, Any]:
        text = (text or "").strip()
        if not text:
            raise InvalidInputError("Message cannot be empty")
        if self.viewer is None:
            raise AuthenticationError()
        self._require_joined()
        if self.is_sending:
            raise SendInProgressError()

        self.is_sending = True
        try:
            try:
                with db_session() as db:
                    row = crud.create_chat_message(
                        db, self.session.id, self.viewer.user_id, text, "text"
                    ).to_dict()
            except SQLAlchemyError as exc:
                logger.error("Error sending message to %s: %s", self.session.id, exc)
                raise crud.persistence_error(exc, "session") from exc
        finally:
            self.is_sending = False

        self._append(row)
        self.hub.publish_insert("chat_messages", row)
        if schedule_reply:
            task = asyncio.create_task(self.reply_after_delay(row))
            self.pending_replies.add(task)
            task.add_done_callback(self.pending_replies.discard)
        return row

    async def reply_after_delay(self, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if self.reply_delay > 0:
            await asyncio.sleep(self.reply_delay)
        try:
            return await self.generate_ai_response(row["message"], replying_to=row)
        except Exception as exc:
            logger.error("AI reply for session %s failed: %s", row.get("session_id"), exc, exc_info=True)
            return None

    # ------------------------------------------------------------------ #
    # AI investor
    # ------------------------------------------------------------------ #
    def _context(self, recent: List[Dict[str, Any]]) -> ChatContext:
        viewer_id = self.viewer.user_id if self.viewer else None
        history = [
            ChatTurn(role="user" if m["user_id"] == viewer_id else "assistant", content=m["message"])
            for m in recent
        ]
        return ChatContext(
            user_type=self.viewer.user_type if self.viewer else "founder",
            startup_name=self.startup.name,
            pitch_context=f"Pitch session for {self.startup.name}: {self.startup.tagline}",
            conversation_history=history,
            pitch_deck_content=self.session.pitch_deck_text,
        )

    def demo_mode(self, user_message: str) -> bool:
        return has_trigger(self.trigger_terms, user_message, self.startup.name, self.startup.tagline)

    def _store_ai_reply(self, response: AIResponse) -> Optional[Dict[str, Any]]:
        try:
            with db_session() as db:
                row = crud.create_chat_message(
                    db,
                    session_id=self.session.id,
                    user_id=crud.ai_investor_id(self.session.id),
                    message=response.content,
                    message_type="ai_response",
                    ai_provider=response.provider,
                ).to_dict()
        except SQLAlchemyError as exc:
            logger.error("Could not store AI reply for %s: %s", self.session.id, exc, exc_info=True)
            return None
        self._append(row)
        self.hub.publish_insert("chat_messages", row)
        return row

    async def generate_ai_response(
        self, user_message: str, replying_to: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Answer ``user_message`` as the AI investor (founders) or advisor
        (investors). For founders, read a decision out of the reply and apply
        it when it is INVEST.
        """
        self._require_joined()
        replying_to = replying_to or {
            "id": None,
            "user_id": self.viewer.user_id if self.viewer else None,
            "message": user_message,
        }
        prior = [m for m in self.messages if m["id"] != replying_to["id"]]
        recent = (prior + [replying_to])[-HISTORY_WINDOW:]
        context = self._context(recent)

        is_founder = context.user_type == "founder"
        terms: Optional[DemoTerms] = None
        if is_founder and self.demo_mode(user_message):
            terms = DemoTerms.draw(self.rng)
            logger.info("Demo mode in session %s: %s", self.session.id, terms)
            prompt = DemoInvestorPrompt().build(
                self.startup.name, user_message, terms.amount, terms.equity, terms.reasoning,
                self.session.pitch_deck_text,
            )
        elif is_founder:
            prompt = EvaluatorPrompt().build(self.startup.name, user_message, self.session.pitch_deck_text)
        else:
            prompt = InvestorAdvisorPrompt().build(user_message)

        logger.info("Generating AI response with %s...", REPLY_PROVIDER)
        response = await self.gateway.generate(prompt, context, REPLY_PROVIDER)
        row = self._store_ai_reply(response)

        decision: Optional[InvestmentDecision] = None
        investment = None
        if is_founder and response.ok:
            if terms is not None:
                decision = terms.as_decision()
            else:
                decision = await extract_decision(self.gateway, response.content, REPLY_PROVIDER)
            if decision is not None and decision.is_invest:
                investment = apply_investment(self.session.id, self.startup.id, decision, self.hub)

        return {"message": row, "response": response, "decision": decision, "investment": investment}

    async def send_ai_message(self, provider: str) -> Dict[str, Any]:
        """Ask ``provider`` for role-specific coaching and post it to the room."""
        if self.viewer is None:
            raise AuthenticationError()
        self._require_joined()
        if self.is_sending:
            raise SendInProgressError()

        self.is_sending = True
        try:
            context = self._context(self.messages[-HISTORY_WINDOW:])
            prompt = CoachingPrompt(context.user_type).build(bool(self.session.pitch_deck_text))
            response = await self.gateway.generate(prompt, context, provider)
            row = self._store_ai_reply(response)
        finally:
            self.is_sending = False
        if row is None:
            raise PersistenceError("Failed to save AI response. Please try again.")
        return row
