from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional


class AppointmentStatus:
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'

    ALL = (PENDING, CONFIRMED, CANCELLED, COMPLETED)


class UserRole:
    ADMIN = 'admin'
    STAFF = 'staff'
    CLIENT = 'client'


def parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def parse_date(value) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def parse_hhmm(value) -> Optional[str]:
    """Postgres hands back time columns as HH:MM:SS; the app works in HH:MM."""
    if not value:
        return None
    return str(value)[:5]


def _known_columns(cls, row: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in row.items() if k in names}


@dataclass
class Service:
    id: str
    name: str
    duration: int
    price: Decimal
    category: str = 'General'
    description: Optional[str] = None
    is_active: bool = True
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> 'Service':
        data = _known_columns(cls, row)
        data['duration'] = int(data.get('duration') or 0)
        data['price'] = Decimal(str(data.get('price') or 0))
        data['created_at'] = parse_datetime(data.get('created_at'))
        data['updated_at'] = parse_datetime(data.get('updated_at'))
        return cls(**data)


@dataclass
class Staff:
    id: str
    name: str
    email: str
    title: str = 'Specialist'
    phone: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool = True
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> 'Staff':
        data = _known_columns(cls, row)
        data['created_at'] = parse_datetime(data.get('created_at'))
        data['updated_at'] = parse_datetime(data.get('updated_at'))
        return cls(**data)


@dataclass
class Client:
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    notes: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> 'Client':
        data = _known_columns(cls, row)
        data['date_of_birth'] = parse_date(data.get('date_of_birth'))
        data['created_at'] = parse_datetime(data.get('created_at'))
        data['updated_at'] = parse_datetime(data.get('updated_at'))
        return cls(**data)


@dataclass
class Appointment:
    id: str
    client_id: str
    staff_id: Optional[str]
    appointment_date: date
    start_time: str
    end_time: str
    total_duration: int
    total_price: Decimal
    service_ids: List[str] = field(default_factory=list)
    status: str = AppointmentStatus.PENDING
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Joined client-side, not stored in the appointments table
    client_name: Optional[str] = None
    staff_name: Optional[str] = None
    staff_avatar_url: Optional[str] = None
    service_names: List[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict) -> 'Appointment':
        data = _known_columns(cls, row)
        data['appointment_date'] = parse_date(data.get('appointment_date'))
        data['start_time'] = parse_hhmm(data.get('start_time'))
        data['end_time'] = parse_hhmm(data.get('end_time'))
        data['total_duration'] = int(data.get('total_duration') or 0)
        data['total_price'] = Decimal(str(data.get('total_price') or 0))
        data['service_ids'] = list(data.get('service_ids') or [])
        data['created_at'] = parse_datetime(data.get('created_at'))
        data['updated_at'] = parse_datetime(data.get('updated_at'))
        return cls(**data)


def minutes_of(hhmm: str) -> int:
    hours, minutes = hhmm.split(':')
    return int(hours) * 60 + int(minutes)


def format_minutes(total: int) -> str:
    return f"{(total // 60) % 24:02d}:{total % 60:02d}"


def duration_matches_times(appointment: Appointment) -> bool:
    """True when start_time + total_duration lands exactly on end_time.

    Nothing in the app enforces this; rows written by other tools can break it.
    """
    if not appointment.start_time or not appointment.end_time:
        return False
    span = minutes_of(appointment.end_time) - minutes_of(appointment.start_time)
    return span == appointment.total_duration
