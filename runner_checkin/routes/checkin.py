import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from runner_checkin import models, schemas
from runner_checkin.auth_utils import get_current_user, get_db
from runner_checkin.checkin_service import AlreadyCheckedInError, prepare_evidence, record_check_in, undo_check_in
from runner_checkin.image_utils import InvalidImageError
from runner_checkin.storage import R2Storage, StorageError, get_storage

logger = logging.getLogger("runner_checkin.checkin")

router = APIRouter(prefix="/api/checkin", tags=["Check-in"])


@router.post("", response_model=schemas.CheckInResponse)
def check_in_participant(
    payload: schemas.CheckInRequest,
    db: Session = Depends(get_db),
    storage: R2Storage = Depends(get_storage),
    current_user: models.User = Depends(get_current_user)
):
    """Record a participant's arrival with photo and signature evidence."""
    logger.debug(
        f"Check-in request from user {current_user.id}: participant={payload.participant_id}, "
        f"photo={len(payload.photo or '')} chars, signature={len(payload.signature or '')} chars"
    )
    if not payload.participant_id or not payload.photo or not payload.signature:
        raise HTTPException(status_code=400, detail="Participant ID, photo, and signature are required")

    participant = db.query(models.Participant).filter(models.Participant.id == payload.participant_id).first()
    if not participant:
        logger.error(f"Participant not found: {payload.participant_id}")
        raise HTTPException(status_code=404, detail="Participant not found")
    if participant.checkin_at is not None:
        logger.error(f"Participant already checked in: {payload.participant_id}")
        raise HTTPException(status_code=400, detail="Participant already checked in")

    try:
        evidence = prepare_evidence(payload.photo, payload.signature)
    except InvalidImageError as e:
        logger.error(f"Rejected check-in images for participant {participant.id}: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))

    try:
        checkin_at = record_check_in(
            storage,
            participant,
            evidence,
            checkin_by=payload.checkin_by or current_user.user_name,
            note=payload.note or None,
        )
        db.commit()
    except AlreadyCheckedInError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Participant already checked in")
    except StorageError as e:
        db.rollback()
        raise HTTPException(status_code=502, detail=f"Failed to store check-in images: {str(e)}")

    return {
        "success": True,
        "message": "Check-in completed successfully",
        "checkin_at": checkin_at,
    }


@router.delete("/{participant_id}", response_model=schemas.MessageResponse)
def remove_check_in(
    participant_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Clear a participant's check-in so the desk can redo it."""
    logger.debug(f"User {current_user.id} removing check-in for participant {participant_id}")
    participant = db.query(models.Participant).filter(models.Participant.id == participant_id).first()
    if not participant:
        raise HTTPException(status_code=404, detail="Participant not found")
    if participant.checkin_at is None:
        raise HTTPException(status_code=400, detail="Participant is not checked in")

    undo_check_in(participant)
    db.commit()
    logger.info(f"User {current_user.id} removed check-in for participant {participant_id}")
    return {"success": True, "message": "Check-in removed successfully"}
