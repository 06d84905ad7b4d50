from pydantic import BaseModel, EmailStr
from typing import Optional, List
from datetime import date, datetime

from runner_checkin.models import UserRole, EventStatus


class LoginRequest(BaseModel):
    username: str
    password: str


class UserInfo(BaseModel):
    id: int
    user_name: str
    email: Optional[str] = None
    role: UserRole

    class Config:
        from_attributes = True
        use_enum_values = True


class UserSchema(UserInfo):
    is_active: bool
    created_at: Optional[datetime] = None


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    access_token: str
    token_type: str = "bearer"
    user: UserInfo


class UserCreate(BaseModel):
    user_name: str
    password: str
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = UserRole.staff


class UserUpdate(BaseModel):
    user_name: Optional[str] = None
    password: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None


class EventSchema(BaseModel):
    id: int
    event_name: str
    event_start_date: date
    event_end_date: Optional[date] = None
    location: Optional[str] = None
    description: Optional[str] = None
    status: EventStatus
    created_by: Optional[int] = None
    created_by_name: Optional[str] = None
    participant_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class EventUpdate(BaseModel):
    event_name: str
    event_start_date: date
    event_end_date: Optional[date] = None
    location: Optional[str] = None
    description: Optional[str] = None
    status: Optional[EventStatus] = None


class EventCreateResponse(BaseModel):
    success: bool
    message: str
    eventId: int
    participantCount: int
    participantErrors: Optional[List[str]] = None


class ParticipantSchema(BaseModel):
    id: int
    event_id: int
    participant_id: Optional[str] = None
    start_time: Optional[str] = None
    bib_no: str
    category: Optional[str] = None
    age_group: Optional[str] = None
    id_card_passport: Optional[str] = None
    last_name: str
    first_name: str
    full_name: Optional[str] = None
    name_on_bib: Optional[str] = None
    tshirt_size: Optional[str] = None
    birthday_year: Optional[int] = None
    nationality: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    blood_type: Optional[str] = None
    medical_information: Optional[str] = None
    medicines_using: Optional[str] = None
    parent_full_name: Optional[str] = None
    parent_date_of_birth: Optional[str] = None
    parent_email: Optional[str] = None
    parent_id_card_passport: Optional[str] = None
    parent_relationship: Optional[str] = None
    checkin_at: Optional[datetime] = None
    checkin_by: Optional[str] = None
    note: Optional[str] = None
    signature_url: Optional[str] = None
    uploaded_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ParticipantCreateResponse(BaseModel):
    success: bool
    message: str
    participantId: int
    checkedIn: bool


class CheckInRequest(BaseModel):
    # Missing fields are rejected with a 400 by the route
    participant_id: Optional[int] = None
    photo: Optional[str] = None
    signature: Optional[str] = None
    checkin_by: Optional[str] = None
    note: Optional[str] = None


class CheckInResponse(BaseModel):
    success: bool
    message: str
    checkin_at: datetime


class StatsResponse(BaseModel):
    total: int
    checked_in: int
    remaining: int
    check_in_percentage: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str
