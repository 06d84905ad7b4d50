import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from runner_checkin import models
from runner_checkin.image_utils import photo_to_jpeg, signature_to_png
from runner_checkin.storage import R2Storage

logger = logging.getLogger("runner_checkin.checkin_service")

PHOTO_PREFIX = "runner-photos"
SIGNATURE_PREFIX = "runner-signatures"


class AlreadyCheckedInError(Exception):
    pass


@dataclass
class CheckInEvidence:
    photo_jpeg: bytes
    signature_png: bytes


def sanitize_bib(bib_no: str) -> str:
    """Reduce a bib number to characters that are safe inside an object key."""
    sanitized = re.sub(r'[^\w-]', '_', bib_no or '')
    return sanitized[:50] or 'unknown'


def blob_key(prefix: str, event_id: int, bib_no: str, extension: str, millis: Optional[int] = None) -> str:
    millis = millis if millis is not None else int(time.time() * 1000)
    return f"{prefix}/event_{event_id}_bib_{sanitize_bib(bib_no)}_{millis}.{extension}"


def prepare_evidence(photo: str, signature: str) -> CheckInEvidence:
    """Decode and normalise both images. Raises InvalidImageError before anything is stored."""
    return CheckInEvidence(photo_jpeg=photo_to_jpeg(photo), signature_png=signature_to_png(signature))


def record_check_in(
    storage: R2Storage,
    participant: models.Participant,
    evidence: CheckInEvidence,
    checkin_by: str,
    note: Optional[str] = None,
) -> datetime:
    """
    Upload the photo and signature, then stamp the participant as checked in.

    The participant row is modified in the caller's session but not committed,
    so a failed upload leaves the database untouched once the caller rolls back.
    """
    if participant.checkin_at is not None:
        raise AlreadyCheckedInError(f"Participant {participant.id} already checked in")

    uploaded_at = datetime.now(timezone.utc)
    millis = int(uploaded_at.timestamp() * 1000)

    photo_key = blob_key(PHOTO_PREFIX, participant.event_id, participant.bib_no, "jpg", millis)
    storage.put_object(
        photo_key,
        evidence.photo_jpeg,
        content_type="image/jpeg",
        metadata={
            "participant_id": participant.id,
            "type": "checkin_photo",
            "uploaded_at": uploaded_at.isoformat(),
        },
    )

    signature_key = blob_key(SIGNATURE_PREFIX, participant.event_id, participant.bib_no, "png", millis)
    storage.put_object(
        signature_key,
        evidence.signature_png,
        content_type="image/png",
        metadata={
            "participant_id": participant.id,
            "type": "checkin_signature",
            "uploaded_at": uploaded_at.isoformat(),
        },
    )

    participant.checkin_at = uploaded_at
    participant.checkin_by = checkin_by
    participant.note = note
    participant.uploaded_image_url = photo_key
    participant.signature_url = signature_key
    logger.info(f"Participant {participant.id} (bib {participant.bib_no}) checked in by {checkin_by}")
    return uploaded_at


def undo_check_in(participant: models.Participant) -> None:
    # Stored blobs are kept as an audit trail
    participant.checkin_at = None
    participant.checkin_by = None
    participant.note = None
    participant.signature_url = None
    participant.uploaded_image_url = None
    logger.info(f"Check-in cleared for participant {participant.id} (bib {participant.bib_no})")
