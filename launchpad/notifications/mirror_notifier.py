"""
Outbox dispatcher for investor DMs.

Each investor message in the direct-message bridge writes a ``MirrorEvent``
in the same transaction as the chat row. Dispatching an event creates the
pitch-room link and the founder notification; failures are recorded on the
event and retried without touching the original message.
"""

import logging
import time
from threading import Thread
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.database.models import MirrorEvent

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_DELAY = 2.0


def _apply_event(event_id: str) -> bool:
    with db_session() as db:
        event: Optional[MirrorEvent] = crud.get_mirror_event(db, event_id)
        if event is None:
            logger.warning("Mirror event %s no longer exists", event_id)
            return True
        if event.status == "done":
            return True
        crud.create_link_if_absent(db, event.chat_message_id, event.pitch_session_id, "dm_to_pitch")
        crud.create_founder_notification(
            db,
            founder_id=event.founder_id,
            investor_id=event.investor_id,
            pitch_session_id=event.pitch_session_id,
            message=event.notification_message,
            notification_type="new_message",
        )
        event.attempts += 1
        event.status = "done"
        event.last_error = None
    return True


def _record_failure(event_id: str, error: str, final: bool) -> None:
    try:
        with db_session() as db:
            event = crud.get_mirror_event(db, event_id)
            if event is None:
                return
            event.attempts += 1
            event.last_error = error[:2000]
            if final:
                event.status = "failed"
    except SQLAlchemyError as exc:
        logger.error("Could not record failure for mirror event %s: %s", event_id, exc)


def dispatch_event(event_id: str, max_retries: int = MAX_ATTEMPTS, retry_delay: float = RETRY_DELAY) -> bool:
    """
    Apply one mirror event, retrying up to ``max_retries`` times.
    Returns True once the link and notification exist.
    """
    attempts = 0
    while attempts < max_retries:
        attempts += 1
        try:
            _apply_event(event_id)
            logger.info(
                "Mirror event %s dispatched on attempt %d/%d", event_id, attempts, max_retries
            )
            return True
        except SQLAlchemyError as e:
            final = attempts >= max_retries
            logger.error(
                "Mirror event %s attempt %d/%d failed: %s",
                event_id, attempts, max_retries, str(e),
                exc_info=True,
            )
            _record_failure(event_id, str(e), final)
            if not final:
                logger.info("Retrying mirror event %s in %s seconds", event_id, retry_delay)
                time.sleep(retry_delay)
            else:
                logger.error("All retry attempts failed for mirror event %s", event_id)
    return False


def dispatch_pending(limit: int = 100) -> int:
    """Sweep events left pending (e.g. by a restart). Returns how many succeeded."""
    with db_session() as db:
        pending = [e.id for e in crud.list_pending_mirror_events(db, limit)]
    done = 0
    for event_id in pending:
        if dispatch_event(event_id, max_retries=1):
            done += 1
    if pending:
        logger.info("Mirror sweep dispatched %d/%d pending events", done, len(pending))
    return done


def notify_founder(event_id: str) -> None:
    """Dispatch ``event_id`` on a background thread."""
    logger.debug("Queuing mirror event %s in background thread", event_id)
    Thread(target=dispatch_event, args=(event_id,), daemon=True).start()
