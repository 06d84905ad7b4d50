import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Form, Query, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session

from runner_checkin import models, schemas
from runner_checkin.auth_utils import get_current_user, get_db
from runner_checkin.cache_utils import add_cache_headers
from runner_checkin.checkin_service import prepare_evidence, record_check_in
from runner_checkin.image_utils import InvalidImageError
from runner_checkin.roster_export import XLSX_MEDIA_TYPE, build_csv, build_template_csv, build_xlsx
from runner_checkin.roster_import import TEMPLATE_HEADERS, apply_name_defaults, existing_bibs, next_free_bib
from runner_checkin.storage import R2Storage, StorageError, get_storage

logger = logging.getLogger("runner_checkin.participants")

router = APIRouter(prefix="/api", tags=["Participants"])

MIN_SEARCH_LENGTH = 2


def participants_for_event(db: Session, event_id: int) -> List[models.Participant]:
    return db.query(models.Participant).filter(
        models.Participant.event_id == event_id
    ).order_by(models.Participant.bib_no.asc()).all()


def search_participants(db: Session, event_id: int, query: str) -> List[models.Participant]:
    term = f"%{query}%"
    p = models.Participant
    return db.query(p).filter(
        p.event_id == event_id,
        or_(
            p.bib_no.ilike(term),
            p.first_name.ilike(term),
            p.last_name.ilike(term),
            p.full_name.ilike(term),
            (p.first_name + " " + p.last_name).ilike(term),
            p.phone.ilike(term),
            p.email.ilike(term),
        )
    ).order_by(p.bib_no.asc()).all()


# Endpoint: GET /api/participants/search
# Description: Returns the participants of an event. With a query of two or more characters only those whose
# bib, name, phone or email contain it are returned.
@router.get("/participants/search", response_model=List[schemas.ParticipantSchema])
def search(
    event_id: int,
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    q = (q or "").strip()
    if len(q) >= MIN_SEARCH_LENGTH:
        participants = search_participants(db, event_id, q)
    else:
        participants = participants_for_event(db, event_id)
    logger.debug(f"User {current_user.id} searched event {event_id} for '{q}': {len(participants)} hits")
    return participants


@router.get("/participants/template")
def download_template(current_user: models.User = Depends(get_current_user)):
    return Response(
        content=build_template_csv(TEMPLATE_HEADERS),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="template_participants.csv"'},
    )


def _export(db: Session, event_id: int, format: str) -> Response:
    participants = participants_for_event(db, event_id)
    if format == "excel":
        response = Response(
            content=build_xlsx(participants),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="participants_event_{event_id}.xlsx"'},
        )
    else:
        if not participants:
            raise HTTPException(status_code=404, detail="No participants found for this event")
        response = Response(
            content=build_csv(participants),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="participants_event_{event_id}.csv"'},
        )
    logger.info(f"Exported {len(participants)} participants of event {event_id} as {format}")
    return add_cache_headers(response, no_cache=True)


@router.get("/participants/export")
def export_participants(
    event_id: int,
    format: str = Query("csv", pattern="^(csv|excel)$"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    return _export(db, event_id, format)


@router.get("/export-participants")
def export_participants_legacy(
    event_id: int,
    format: str = Query("csv", pattern="^(csv|excel)$"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Older clients download exports from this path."""
    return _export(db, event_id, format)


@router.get("/participants/{participant_id}", response_model=schemas.ParticipantSchema)
def get_participant(
    participant_id: int,
    event_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    query = db.query(models.Participant).filter(models.Participant.id == participant_id)
    if event_id is not None:
        query = query.filter(models.Participant.event_id == event_id)
    participant = query.first()
    if not participant:
        logger.error(f"Participant {participant_id} not found (event filter: {event_id})")
        raise HTTPException(status_code=404, detail="Participant not found")
    return participant


# Endpoint: POST /api/participants
# Description: Registers a walk-up participant from the check-in desk. When a photo and a signature are sent
# along, the participant is checked in in the same request.
@router.post("/participants", response_model=schemas.ParticipantCreateResponse)
def create_participant(
    event_id: int = Form(...),
    participant_id: Optional[str] = Form(None),
    start_time: Optional[str] = Form(None),
    bib_no: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    age_group: Optional[str] = Form(None),
    id_card_passport: Optional[str] = Form(None),
    last_name: Optional[str] = Form(None),
    first_name: Optional[str] = Form(None),
    tshirt_size: Optional[str] = Form(None),
    birthday_year: Optional[int] = Form(None),
    nationality: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    emergency_contact_name: Optional[str] = Form(None),
    emergency_contact_phone: Optional[str] = Form(None),
    blood_type: Optional[str] = Form(None),
    medical_information: Optional[str] = Form(None),
    medicines_using: Optional[str] = Form(None),
    parent_full_name: Optional[str] = Form(None),
    parent_date_of_birth: Optional[str] = Form(None),
    parent_email: Optional[str] = Form(None),
    parent_id_card_passport: Optional[str] = Form(None),
    parent_relationship: Optional[str] = Form(None),
    full_name: Optional[str] = Form(None),
    name_on_bib: Optional[str] = Form(None),
    photo: Optional[str] = Form(None),
    signature: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    storage: R2Storage = Depends(get_storage),
    current_user: models.User = Depends(get_current_user)
):
    logger.debug(f"User {current_user.id} creating participant in event {event_id}")
    event = db.query(models.Event).filter(models.Event.id == event_id).first()
    if not event:
        logger.error(f"Event {event_id} not found for participant creation")
        raise HTTPException(status_code=404, detail="Event not found")

    check_in_now = bool(photo and signature)
    evidence = None
    if check_in_now:
        try:
            evidence = prepare_evidence(photo, signature)
        except InvalidImageError as e:
            logger.error(f"Rejected check-in images for new participant: {str(e)}")
            raise HTTPException(status_code=400, detail=str(e))

    data = {
        "participant_id": participant_id,
        "start_time": start_time,
        "category": category,
        "age_group": age_group,
        "id_card_passport": id_card_passport,
        "last_name": (last_name or "").strip(),
        "first_name": (first_name or "").strip(),
        "tshirt_size": tshirt_size,
        "birthday_year": birthday_year,
        "nationality": nationality,
        "phone": phone,
        "email": email,
        "emergency_contact_name": emergency_contact_name,
        "emergency_contact_phone": emergency_contact_phone,
        "blood_type": blood_type,
        "medical_information": medical_information,
        "medicines_using": medicines_using,
        "parent_full_name": parent_full_name,
        "parent_date_of_birth": parent_date_of_birth,
        "parent_email": parent_email,
        "parent_id_card_passport": parent_id_card_passport,
        "parent_relationship": parent_relationship,
        "full_name": (full_name or "").strip(),
        "name_on_bib": (name_on_bib or "").strip(),
    }
    data = apply_name_defaults({k: v for k, v in data.items() if v not in (None, "")})

    taken = existing_bibs(db, event_id)
    bib_no = (bib_no or "").strip()
    if not bib_no:
        bib_no = next_free_bib(taken)
    elif bib_no in taken:
        logger.error(f"Bib {bib_no} already exists in event {event_id}")
        raise HTTPException(status_code=409, detail=f"Bib {bib_no} already exists in this event")

    participant = models.Participant(event_id=event_id, bib_no=bib_no, note="Manually created", **data)
    db.add(participant)
    try:
        db.flush()
        if check_in_now:
            record_check_in(
                storage,
                participant,
                evidence,
                checkin_by=current_user.user_name,
                note="Manually created and checked in",
            )
        db.commit()
    except StorageError as e:
        db.rollback()
        raise HTTPException(status_code=502, detail=f"Failed to store check-in images: {str(e)}")
    except Exception as e:
        logger.error(f"Failed to create participant in event {event_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to create participant")

    logger.info(f"User {current_user.id} created participant {participant.id} (bib {bib_no}) in event {event_id}")
    return {
        "success": True,
        "message": "Participant created successfully",
        "participantId": participant.id,
        "checkedIn": check_in_now,
    }
