# Utility functions for visit proposals and display formatting
import re
from datetime import date, time
from typing import Dict, Optional

from email_validator import validate_email, EmailNotValidError

from .error_utils import VisitValidationError
from .models import VisitStatus

MAX_NOTES_LENGTH = 1000
MIN_PASSWORD_LENGTH = 6

STATUS_BADGES = {
    VisitStatus.PENDING: {'label': 'Pending Review', 'class_name': 'status-pending'},
    VisitStatus.CONFIRMED: {'label': 'Confirmed', 'class_name': 'status-confirmed'},
    VisitStatus.DENIED: {'label': 'Denied', 'class_name': 'status-denied'},
}


def parse_date_input(value: Optional[str], field_name: str) -> date:
    if value is not None and not isinstance(value, str):
        raise VisitValidationError(f"{field_name} must be a date in YYYY-MM-DD format.")
    if not value or not value.strip():
        raise VisitValidationError(f"{field_name} is required.")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise VisitValidationError(f"{field_name} must be a date in YYYY-MM-DD format.")


def parse_time_input(value: Optional[str], field_name: str) -> Optional[time]:
    """Times are optional; an empty input means no time was given."""
    if value is not None and not isinstance(value, str):
        raise VisitValidationError(f"{field_name} must be a time in HH:MM format.")
    if not value or not value.strip():
        return None
    match = re.fullmatch(r'(\d{1,2}):(\d{2})(?::(\d{2}))?', value.strip())
    if not match:
        raise VisitValidationError(f"{field_name} must be a time in HH:MM format.")
    hours, minutes, seconds = match.groups()
    try:
        return time(int(hours), int(minutes), int(seconds or 0))
    except ValueError:
        raise VisitValidationError(f"{field_name} is not a valid time.")


def validate_proposal(form: Dict, today: date) -> Dict:
    """
    Validates the visit proposal form and returns the cleaned values.

    Rules:
      • start date is today or later
      • end date is on or after the start date (a single day visit is allowed)
      • arrival/departure times are optional HH:MM values
      • notes are optional and at most MAX_NOTES_LENGTH characters

    Raises VisitValidationError with a user facing message on the first failed rule.
    """
    start_date = parse_date_input(form.get('start_date'), 'Arrival date')
    end_date = parse_date_input(form.get('end_date'), 'Departure date')
    if start_date < today:
        raise VisitValidationError("Arrival date cannot be in the past.")
    if end_date < start_date:
        raise VisitValidationError("Departure date must be on or after the arrival date.")

    notes = form.get('notes') or ''
    if not isinstance(notes, str):
        raise VisitValidationError("Notes must be text.")
    notes = notes.strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise VisitValidationError(f"Notes are too long. Max {MAX_NOTES_LENGTH} characters.")

    return {'start_date': start_date,
            'end_date': end_date,
            'arrival_time': parse_time_input(form.get('arrival_time'), 'Arrival time'),
            'departure_time': parse_time_input(form.get('departure_time'), 'Departure time'),
            'notes': notes or None}


def sanitize_email(email: Optional[str]) -> str:
    """
    Trims, validates and normalizes an email address. Raises VisitValidationError when it is unusable.
    Deliverability is not checked here, the auth backend sends the confirmation email.
    """
    email = (email or '').strip()
    # 254 characters is the common maximum by RFC 5321 / 5322
    if not email or len(email) > 254:
        raise VisitValidationError("Please enter a valid email address.")
    try:
        valid = validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise VisitValidationError(f"Invalid email format: {e}")
    return valid.normalized


def validate_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise VisitValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return password


def format_time(value: Optional[time], compact: bool = True) -> Optional[str]:
    """
    12 hour clock rendering. Compact form is used inside calendar cells ("3:05pm"), the spaced form in lists
    ("3:05 PM").
    """
    if value is None:
        return None
    hour12 = value.hour % 12 or 12
    if compact:
        return f"{hour12}:{value.minute:02d}{'pm' if value.hour >= 12 else 'am'}"
    return f"{hour12}:{value.minute:02d} {'PM' if value.hour >= 12 else 'AM'}"


def format_date(value: date) -> str:
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def format_short_date(value: date) -> str:
    return f"{value.strftime('%b')} {value.day}"


def format_long_date(value: date) -> str:
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def status_badge(status) -> Dict[str, str]:
    try:
        return STATUS_BADGES[VisitStatus(status)]
    except ValueError:
        return STATUS_BADGES[VisitStatus.PENDING]
