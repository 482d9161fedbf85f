# Typed rows for the visitors, visits and profiles tables
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Dict, Optional

from .period import Period

DEFAULT_COLOR = '#6b7280'


class VisitStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    DENIED = 'denied'

    def can_transition_to(self, new_status: "VisitStatus") -> bool:
        # Decisions are made once, by an admin, on pending visits only
        return self is VisitStatus.PENDING and new_status in (VisitStatus.CONFIRMED, VisitStatus.DENIED)


class OwnerStatus(str, Enum):
    IN_TOWN = 'in_town_indefinitely'
    OUT_OF_STATE = 'out_of_state_indefinitely'


def parse_iso_date(value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Timestamps are accepted too, only the date part is kept
    return date.fromisoformat(str(value)[:10])


def parse_iso_time(value) -> Optional[time]:
    if value is None or value == '':
        return None
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


def parse_iso_datetime(value) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


@dataclass
class Visitor:
    id: str
    name: str
    description: Optional[str] = None
    user_id: Optional[str] = None
    color: str = DEFAULT_COLOR

    @classmethod
    def from_row(cls, row: Dict) -> "Visitor":
        return cls(id=row['id'],
                   name=row.get('name') or 'Unknown',
                   description=row.get('description'),
                   user_id=row.get('user_id'))


@dataclass
class Visit:
    id: str
    visitor_id: Optional[str]
    start_date: date
    end_date: date
    status: VisitStatus = VisitStatus.PENDING
    submitted_by: Optional[str] = None
    arrival_time: Optional[time] = None
    departure_time: Optional[time] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    visitor_name: str = 'Unknown'
    submitter_email: Optional[str] = None
    submitter_name: Optional[str] = None
    color: str = DEFAULT_COLOR

    @classmethod
    def from_row(cls, row: Dict, visitors_by_id: Optional[Dict[str, Visitor]] = None) -> "Visit":
        """
        Builds a Visit from a REST row. Embedded relations are optional:
            visitors -> {"name": ...} for the visitor name
            profiles -> {"email": ..., "name": ...} for the submitter
        When a colored visitor lookup is given, the visit takes the visitor's color.
        """
        embedded_visitor = row.get('visitors') or {}
        embedded_profile = row.get('profiles') or {}
        visitor = (visitors_by_id or {}).get(row.get('visitor_id'))
        visitor_name = embedded_visitor.get('name') or (visitor.name if visitor else None) or 'Unknown'
        return cls(id=row['id'],
                   visitor_id=row.get('visitor_id'),
                   start_date=parse_iso_date(row['start_date']),
                   end_date=parse_iso_date(row['end_date']),
                   status=VisitStatus(row.get('status') or 'pending'),
                   submitted_by=row.get('submitted_by'),
                   arrival_time=parse_iso_time(row.get('arrival_time')),
                   departure_time=parse_iso_time(row.get('departure_time')),
                   notes=row.get('notes'),
                   created_at=parse_iso_datetime(row.get('created_at')),
                   reviewed_at=parse_iso_datetime(row.get('reviewed_at')),
                   reviewed_by=row.get('reviewed_by'),
                   visitor_name=visitor_name,
                   submitter_email=embedded_profile.get('email'),
                   submitter_name=embedded_profile.get('name'),
                   color=visitor.color if visitor else DEFAULT_COLOR)

    @property
    def period(self) -> Period:
        return Period(self.start_date, self.end_date)

    def to_dict(self) -> Dict:
        return {'id': self.id,
                'visitor_id': self.visitor_id,
                'visitor_name': self.visitor_name,
                'submitted_by': self.submitted_by,
                'start_date': self.start_date.isoformat(),
                'end_date': self.end_date.isoformat(),
                'arrival_time': self.arrival_time.strftime('%H:%M') if self.arrival_time else None,
                'departure_time': self.departure_time.strftime('%H:%M') if self.departure_time else None,
                'notes': self.notes,
                'status': self.status.value,
                'color': self.color}


@dataclass
class Profile:
    id: str
    email: str = ''
    name: Optional[str] = None
    is_admin: bool = False
    owner_status: OwnerStatus = OwnerStatus.OUT_OF_STATE
    owner_status_until: Optional[date] = None

    @classmethod
    def from_row(cls, row: Dict) -> "Profile":
        return cls(id=row['id'],
                   email=row.get('email') or '',
                   name=row.get('name'),
                   is_admin=bool(row.get('is_admin')),
                   owner_status=OwnerStatus(row.get('owner_status') or OwnerStatus.OUT_OF_STATE.value),
                   owner_status_until=parse_iso_date(row.get('owner_status_until')))

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return self.email.split('@')[0] if self.email else 'Unknown'
