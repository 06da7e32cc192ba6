"""Human investment offers and the founder's accept/reject."""

import logging
from typing import Any, Dict, Optional

from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.database.models import Profile
from launchpad.exceptions import AuthorizationError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)


def make_offer(viewer: Optional[Profile], startup_id: str, amount: float,
               message: Optional[str] = None) -> Dict[str, Any]:
    if viewer is None or viewer.user_type != "investor":
        raise AuthorizationError("Only investors can make offers")
    if amount is None or amount <= 0:
        raise InvalidInputError("Offer amount must be positive")
    with db_session() as db:
        if crud.get_startup(db, startup_id) is None:
            raise NotFoundError("Startup")
        investment = crud.create_investment(db, viewer.user_id, startup_id, amount, message, "pending")
        result = investment.to_dict()
    logger.info("Offer %s of %s from %s to %s", result["id"], amount, viewer.user_id, startup_id)
    return result


def respond_to_offer(viewer: Optional[Profile], investment_id: str, accept: bool) -> Dict[str, Any]:
    """Accepting adds the amount to the startup's total under a row lock."""
    if viewer is None:
        raise AuthorizationError("Only founders can respond to offers")
    with db_session() as db:
        investment = crud.get_investment(db, investment_id)
        if investment is None:
            raise NotFoundError("Investment")
        startup = crud.lock_startup(db, investment.startup_id)
        if startup is None or startup.founder_id != viewer.user_id:
            raise AuthorizationError("Only the startup's founder can respond to this offer")
        if investment.status != "pending":
            raise InvalidInputError(f"Offer already {investment.status}")

        investment.status = "accepted" if accept else "rejected"
        total = startup.total_invested
        if accept:
            total = crud.increment_total_invested(db, startup.id, investment.amount)
        db.flush()
        result = investment.to_dict()
    result["total_invested"] = total
    return result
