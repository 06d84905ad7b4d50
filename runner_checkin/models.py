from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, Enum, Boolean, UniqueConstraint, select, func
import enum
from sqlalchemy.orm import relationship, column_property
from .database import Base
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


class UserRole(enum.Enum):
    staff = "staff"
    admin = "admin"


class EventStatus(enum.Enum):
    active = "active"
    archived = "archived"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    user_name = Column(String(100), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(Enum(UserRole, name="user_role"), default=UserRole.staff, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    events_created = relationship("Event", back_populates="creator")


class Event(Base):
    __tablename__ = "events"
    id = Column(Integer, primary_key=True, index=True)
    event_name = Column(String(255), nullable=False)
    event_start_date = Column(Date, nullable=False)
    event_end_date = Column(Date, nullable=True)
    location = Column(String(255), nullable=True)
    description = Column(String(1000), nullable=True)
    status = Column(Enum(EventStatus, name="event_status"), default=EventStatus.active, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    creator = relationship("User", back_populates="events_created")
    participants = relationship("Participant", back_populates="event", order_by="Participant.bib_no")

    @property
    def created_by_name(self):
        return self.creator.user_name if self.creator else None


class Participant(Base):
    """A registered runner. Check-in state lives on the row itself."""
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("event_id", "bib_no", name="uq_participants_event_bib"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    participant_id = Column(String(100), nullable=True)  # organiser's own registration id
    start_time = Column(String(50), nullable=True)
    bib_no = Column(String(50), nullable=False)
    category = Column(String(100), nullable=True)
    age_group = Column(String(100), nullable=True)
    id_card_passport = Column(String(100), nullable=True)
    last_name = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    name_on_bib = Column(String(255), nullable=True)
    tshirt_size = Column(String(20), nullable=True)
    birthday_year = Column(Integer, nullable=True)
    nationality = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)
    blood_type = Column(String(10), nullable=True)
    medical_information = Column(Text, nullable=True)
    medicines_using = Column(Text, nullable=True)
    parent_full_name = Column(String(255), nullable=True)
    parent_date_of_birth = Column(String(50), nullable=True)
    parent_email = Column(String(255), nullable=True)
    parent_id_card_passport = Column(String(100), nullable=True)
    parent_relationship = Column(String(100), nullable=True)
    checkin_at = Column(DateTime, nullable=True)
    checkin_by = Column(String(255), nullable=True)
    note = Column(String(500), nullable=True)
    signature_url = Column(String(500), nullable=True)  # blob key, not a public URL
    uploaded_image_url = Column(String(500), nullable=True)  # blob key, not a public URL
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    event = relationship("Event", back_populates="participants")

    @property
    def is_checked_in(self):
        return self.checkin_at is not None


Event.participant_count = column_property(
    select(func.count(Participant.id))
    .where(Participant.event_id == Event.id)
    .correlate_except(Participant)
    .scalar_subquery()
)

# Column order used by exports and the import template
PARTICIPANT_COLUMNS = [column.name for column in Participant.__table__.columns]
