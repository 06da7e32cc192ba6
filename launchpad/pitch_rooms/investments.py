"""
Applying an investment to a startup.

Everything happens in one unit of work: lock the startup row, insert the
investment, bump ``total_invested`` with a single UPDATE and announce the
result in the pitch room. A failure anywhere rolls the whole unit back.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from launchpad.api.ai.decisions import InvestmentDecision
from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.exceptions import InvalidInputError, LaunchPadError, NotFoundError
from launchpad.notifications.realtime import RealtimeHub, get_hub

logger = logging.getLogger(__name__)


def format_money(amount: float) -> str:
    return f"${amount:,.0f}"


def format_equity(equity: float) -> str:
    return f"{equity:g}"


def confirmation_message(amount: float, equity: float, startup_name: str, total: float) -> str:
    return (
        f"🎉 **INVESTMENT CONFIRMED!** AI Investor has successfully invested {format_money(amount)} "
        f"for {format_equity(equity)}% equity in {startup_name}. "
        f"Total funding raised: {format_money(total)}"
    )


def apply_investment(
    session_id: str,
    startup_id: str,
    decision: InvestmentDecision,
    hub: Optional[RealtimeHub] = None,
) -> Optional[Dict[str, Any]]:
    """
    Record an AI investor's INVEST decision. Returns the investment, new
    total and announcement row, or ``None`` when the unit was rolled back.
    """
    hub = hub or get_hub()
    logger.info(
        "Processing AI investment: session=%s startup=%s amount=%s equity=%s",
        session_id, startup_id, decision.amount, decision.equity,
    )
    try:
        if not decision.is_invest or not decision.amount or decision.amount <= 0:
            raise InvalidInputError("Only INVEST decisions with a positive amount can be applied")
        with db_session() as db:
            startup = crud.lock_startup(db, startup_id)
            if startup is None:
                raise NotFoundError("Startup")
            investment = crud.create_investment(
                db,
                investor_id=crud.ai_investor_id(session_id),
                startup_id=startup_id,
                amount=decision.amount,
                message=f"AI Investment Decision: {decision.reasoning}",
                status="accepted",
            )
            total = crud.increment_total_invested(db, startup_id, decision.amount)
            announcement = crud.create_chat_message(
                db,
                session_id=session_id,
                user_id=crud.SYSTEM_USER_ID,
                message=confirmation_message(decision.amount, decision.equity or 0, startup.name, total),
                message_type="system",
            )
            result = {
                "investment": investment.to_dict(),
                "total_invested": total,
                "message": announcement.to_dict(),
            }
    except (SQLAlchemyError, LaunchPadError) as exc:
        logger.error("Critical error processing AI investment for %s: %s", startup_id, exc, exc_info=True)
        return None

    logger.info("AI invested %s in %s; total now %s",
                format_money(decision.amount), startup_id, format_money(result["total_invested"]))
    hub.publish_insert("chat_messages", result["message"])
    return result
