from typing import Any, Dict

from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.database.models import Profile


def dashboard(viewer: Profile) -> Dict[str, Any]:
    """Headline numbers for the viewer's role."""
    with db_session() as db:
        if viewer.user_type == "founder":
            startups = crud.list_startups_for_founder(db, viewer.user_id)
            ids = [s.id for s in startups]
            ratings = crud.ratings_for_startups(db, ids)
            sessions = crud.list_sessions_for_startups(db, ids, status="active")
            return {
                "user_type": "founder",
                "total_startups": len(startups),
                "total_valuation": sum(s.current_valuation or 0 for s in startups),
                "total_invested": sum(s.total_invested or 0 for s in startups),
                "average_rating": (
                    sum(r.overall_score for r in ratings) / len(ratings) if ratings else 0.0
                ),
                "active_sessions": len(sessions),
            }

        ratings = crud.ratings_by_investor(db, viewer.user_id)
        rounds = crud.funding_rounds_by_investor(db, viewer.user_id)
        return {
            "user_type": "investor",
            "startups_rated": len(ratings),
            "total_funding": sum(r.amount or 0 for r in rounds),
            "funding_rounds": len(rounds),
        }
