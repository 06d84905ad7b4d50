import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from sqlalchemy.orm import Session, joinedload

from runner_checkin import models, schemas
from runner_checkin.auth_utils import get_current_user, get_db
from runner_checkin.roster_import import import_roster

logger = logging.getLogger("runner_checkin.events")

router = APIRouter(prefix="/api/events", tags=["Events"])


def get_event_or_404(db: Session, event_id: int) -> models.Event:
    event = db.query(models.Event).options(joinedload(models.Event.creator)).filter(
        models.Event.id == event_id
    ).first()
    if not event:
        logger.error(f"Event {event_id} not found")
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.get("", response_model=List[schemas.EventSchema])
def get_events(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    logger.debug(f"User {current_user.id} ({current_user.user_name}) fetching active events")
    events = db.query(models.Event).options(joinedload(models.Event.creator)).filter(
        models.Event.status == models.EventStatus.active
    ).order_by(models.Event.event_start_date.desc(), models.Event.id.desc()).all()
    logger.info(f"User {current_user.id} fetched {len(events)} active events")
    return events


@router.get("/{event_id}", response_model=schemas.EventSchema)
def get_event(event_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return get_event_or_404(db, event_id)


@router.post("", response_model=schemas.EventCreateResponse, response_model_exclude_none=True)
async def create_event(
    event_name: str = Form(...),
    event_start_date: date = Form(...),
    event_end_date: Optional[date] = Form(None),
    location: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    participants_file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Create an event and, when a roster file is attached, import its participants."""
    logger.debug(f"User {current_user.id} creating event with name: {event_name}")
    if not event_name.strip():
        raise HTTPException(status_code=400, detail="Event name and start date are required")

    new_event = models.Event(
        event_name=event_name.strip(),
        event_start_date=event_start_date,
        event_end_date=event_end_date,
        location=location or None,
        description=description or None,
        created_by=current_user.id,
    )
    db.add(new_event)
    db.commit()
    db.refresh(new_event)
    logger.info(f"User {current_user.id} created event {new_event.id}")

    participant_count = 0
    participant_errors = []
    if participants_file is not None and participants_file.filename:
        content = await participants_file.read()
        if content:
            result = import_roster(db, new_event, participants_file.filename, content)
            participant_count = result.created
            participant_errors = result.errors

    message = "Event created successfully"
    if participant_count > 0:
        message += f" with {participant_count} participants"
    return {
        "success": True,
        "message": message,
        "eventId": new_event.id,
        "participantCount": participant_count,
        "participantErrors": participant_errors or None,
    }


@router.put("/{event_id}/manage")
def update_event(
    event_id: int,
    payload: schemas.EventUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    logger.debug(f"User {current_user.id} updating event id: {event_id}")
    event = get_event_or_404(db, event_id)
    if not payload.event_name.strip():
        raise HTTPException(status_code=400, detail="Event name and start date are required")

    event.event_name = payload.event_name.strip()
    event.event_start_date = payload.event_start_date
    # Only overwrite optional fields the client actually sent
    for field_name in ("event_end_date", "location", "description", "status"):
        if field_name in payload.model_fields_set:
            setattr(event, field_name, getattr(payload, field_name))
    if event.status is None:
        event.status = models.EventStatus.active

    try:
        db.commit()
        db.refresh(event)
    except Exception as e:
        logger.error(f"Failed to update event {event_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to update event: {str(e)}")
    logger.info(f"User {current_user.id} updated event {event_id} successfully")
    return {
        "success": True,
        "message": "Event updated successfully",
        "event": schemas.EventSchema.model_validate(event),
    }


@router.delete("/{event_id}/manage", response_model=schemas.MessageResponse)
def archive_event(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    logger.debug(f"User {current_user.id} attempting to archive event id: {event_id}")
    event = get_event_or_404(db, event_id)
    event.status = models.EventStatus.archived
    db.commit()
    logger.info(f"User {current_user.id} archived event {event_id} successfully")
    return {"success": True, "message": "Event archived successfully"}
