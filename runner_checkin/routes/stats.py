import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from runner_checkin import models, schemas
from runner_checkin.auth_utils import get_current_user, get_db

logger = logging.getLogger("runner_checkin.stats")

router = APIRouter(prefix="/api/stats", tags=["Statistics"])


def checkin_stats(db: Session, event_id: int) -> dict:
    total = db.query(func.count(models.Participant.id)).filter(
        models.Participant.event_id == event_id
    ).scalar() or 0
    checked_in = db.query(func.count(models.Participant.id)).filter(
        models.Participant.event_id == event_id,
        models.Participant.checkin_at.isnot(None)
    ).scalar() or 0
    return {
        "total": total,
        "checked_in": checked_in,
        "remaining": total - checked_in,
        # Halves round up
        "check_in_percentage": (200 * checked_in + total) // (2 * total) if total > 0 else 0,
    }


# Endpoint: GET /api/stats
# Description: Check-in progress for one event.
@router.get("", response_model=schemas.StatsResponse)
def get_stats(event_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    stats = checkin_stats(db, event_id)
    logger.debug(f"User {current_user.id} fetched stats for event {event_id}: {stats}")
    return stats
