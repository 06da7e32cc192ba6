import logging
from typing import Any, Dict, List

from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

TABS = {
    "invested": lambda e: e["total_invested"],
    "valuation": lambda e: e["valuation"],
    "rating": lambda e: e["average_rating"],
    "popularity": lambda e: e["total_investors"],
}


def badge_for(total_invested: float, total_investors: int, average_rating: float):
    if total_invested >= 1_000_000:
        return "unicorn"
    if total_invested >= 500_000 and total_investors >= 5:
        return "rising_star"
    if average_rating >= 4.7:
        return "top_rated"
    if total_investors >= 8:
        return "investor_favorite"
    return None


def leaderboard(tab: str = "invested") -> List[Dict[str, Any]]:
    """Startups ranked 1..n by the chosen tab (ties keep newest-first order)."""
    if tab not in TABS:
        raise InvalidInputError(f"Unknown leaderboard tab {tab!r}")

    with db_session() as db:
        startups = crud.list_startups(db)
        ids = [s.id for s in startups]
        founders = crud.get_profiles(db, [s.founder_id for s in startups])
        investments = crud.accepted_investments_by_startup(db)
        scores: Dict[str, List[float]] = {}
        for rating in crud.ratings_for_startups(db, ids):
            scores.setdefault(rating.startup_id, []).append(rating.overall_score)

        entries = []
        for startup in startups:
            investors = {inv.investor_id for inv in investments.get(startup.id, [])}
            startup_scores = scores.get(startup.id, [])
            average = round(sum(startup_scores) / len(startup_scores), 1) if startup_scores else 0.0
            founder = founders.get(startup.founder_id)
            entries.append(
                {
                    "id": startup.id,
                    "name": startup.name,
                    "tagline": startup.tagline or "",
                    "founder_name": founder.full_name if founder and founder.full_name else "Unknown Founder",
                    "total_invested": startup.total_invested or 0,
                    "valuation": startup.current_valuation or 0,
                    "average_rating": average,
                    "total_investors": len(investors),
                    "badge": badge_for(startup.total_invested or 0, len(investors), average),
                }
            )

    entries.sort(key=TABS[tab], reverse=True)
    for rank, entry in enumerate(entries, start=1):
        entry["rank"] = rank
    return entries
