"""
Startup wizard, browser and pitch-session scheduling.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from launchpad.api.ai.gateway import AIGateway, ChatContext, get_gateway
from launchpad.api.ai.prompts import FieldSuggestionPrompt
from launchpad.api.ai.sanitize_html import cleanse_json
from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.database.models import Profile
from launchpad.exceptions import AuthorizationError, InvalidInputError, NotFoundError, ProviderError

logger = logging.getLogger(__name__)

SORT_KEYS = {
    "newest": (lambda s: s["created_at"], True),
    "funding": (lambda s: s["funding_ask"] or 0, True),
    "valuation": (lambda s: s["current_valuation"] or 0, True),
    "name": (lambda s: (s["name"] or "").lower(), False),
}
SESSION_DURATIONS = (30, 60, 90, 120)
SUGGESTION_PROVIDER = "openai"

TEXT_FIELDS = (
    "name",
    "tagline",
    "description",
    "vision",
    "product_description",
    "market_size",
    "business_model",
)


def compute_valuation(funding_ask: float, equity_offered: float) -> float:
    """Post-money valuation implied by the ask; ``ask * 10`` without equity."""
    if equity_offered and equity_offered > 0:
        return funding_ask / equity_offered * 100
    return funding_ask * 10


def _require_founder(viewer: Optional[Profile]) -> Profile:
    if viewer is None or viewer.user_type != "founder":
        raise AuthorizationError("Only founders can do this")
    return viewer


def create_startup(viewer: Optional[Profile], data: Dict[str, Any]) -> Dict[str, Any]:
    founder = _require_founder(viewer)
    fields = cleanse_json({k: data.get(k) or "" for k in TEXT_FIELDS})
    if not fields["name"].strip():
        raise InvalidInputError("Startup name is required")

    funding_ask = float(data.get("funding_ask") or 0)
    equity_offered = float(data.get("equity_offered") or 0)
    if funding_ask < 0 or not 0 <= equity_offered <= 100:
        raise InvalidInputError("Funding ask must be positive and equity between 0 and 100")

    valuation = data.get("current_valuation")
    if not valuation:
        valuation = compute_valuation(funding_ask, equity_offered)

    with db_session() as db:
        startup = crud.create_startup(
            db,
            founder_id=founder.user_id,
            funding_ask=funding_ask,
            equity_offered=equity_offered,
            current_valuation=float(valuation),
            pitch_deck_url=data.get("pitch_deck_url"),
            status="active",
            **fields,
        )
        result = startup.to_dict()
    logger.info("Startup %s created by %s (valuation %s)", result["id"], founder.user_id, valuation)
    return result


async def suggest_field(name: str, field_name: str, details: Optional[str] = None,
                        gateway: Optional[AIGateway] = None) -> str:
    if field_name not in FieldSuggestionPrompt.FIELD_GUIDANCE:
        raise InvalidInputError(f"No suggestions for field {field_name!r}")
    if not (name or "").strip():
        raise InvalidInputError("Enter a startup name first")
    gateway = gateway or get_gateway()
    response = await gateway.generate(
        FieldSuggestionPrompt().build(name, field_name, details),
        ChatContext(user_type="founder", startup_name=name),
        SUGGESTION_PROVIDER,
    )
    if not response.ok:
        raise ProviderError(response.provider, response.error or "suggestion failed")
    return response.content.strip().strip('"')


def browse_startups(search: Optional[str] = None, sort: str = "newest") -> List[Dict[str, Any]]:
    if sort not in SORT_KEYS:
        raise InvalidInputError(f"Unknown sort {sort!r}")
    with db_session() as db:
        rows = [s.to_dict() for s in crud.list_startups(db, status="active")]
    if search:
        needle = search.lower()
        rows = [
            s for s in rows
            if any(needle in (s.get(k) or "").lower() for k in ("name", "tagline", "description"))
        ]
    key, reverse = SORT_KEYS[sort]
    return sorted(rows, key=key, reverse=reverse)


def get_startup(startup_id: str) -> Dict[str, Any]:
    with db_session() as db:
        startup = crud.get_startup(db, startup_id)
        if startup is None:
            raise NotFoundError("Startup")
        return startup.to_dict()


def create_pitch_session(
    viewer: Optional[Profile],
    startup_id: str,
    session_name: str,
    description: Optional[str] = None,
    duration_minutes: int = 60,
    pitch_deck_url: Optional[str] = None,
    pitch_deck_text: Optional[str] = None,
) -> Dict[str, Any]:
    founder = _require_founder(viewer)
    if duration_minutes not in SESSION_DURATIONS:
        raise InvalidInputError(f"Duration must be one of {SESSION_DURATIONS}")
    if not (session_name or "").strip():
        raise InvalidInputError("Session name is required")

    now = datetime.utcnow()
    with db_session() as db:
        startup = crud.get_startup(db, startup_id)
        if startup is None:
            raise NotFoundError("Startup")
        if startup.founder_id != founder.user_id:
            raise AuthorizationError("You can only open pitch sessions for your own startup")
        session = crud.create_pitch_session(
            db,
            startup_id=startup_id,
            session_name=session_name.strip(),
            description=description,
            start_time=now,
            end_time=now + timedelta(minutes=duration_minutes),
            status="active",
            kind="pitch",
            pitch_deck_url=pitch_deck_url,
            pitch_deck_text=pitch_deck_text,
        )
        result = session.to_dict()
    logger.info("Pitch session %s opened for startup %s", result["id"], startup_id)
    return result


def list_active_sessions() -> List[Dict[str, Any]]:
    with db_session() as db:
        sessions = crud.list_active_sessions(db)
        out = []
        for s in sessions:
            row = s.to_dict()
            startup = crud.get_startup(db, s.startup_id)
            row["startup"] = startup.to_dict() if startup else None
            out.append(row)
    return out
