"""
Where each owner (admin) currently is: in town or out of state.

An owner is in town while one of their confirmed visits covers today, or while their profile says
in_town_indefinitely and the optional "until" date has not passed. A current confirmed visit locks the status, it
cannot be toggled until the visit is over.
"""
from dataclasses import dataclass
from datetime import date
import logging
from typing import Dict, Iterable, List, Optional

from .error_utils import BackendError
from .models import OwnerStatus, Profile, Visit, VisitStatus

logger = logging.getLogger(__name__)


@dataclass
class OwnerSummary:
    owner: Profile
    in_town: bool
    locked: bool
    expired: bool
    current_visit: Optional[Visit] = None
    next_visit: Optional[Visit] = None


def is_until_expired(owner: Profile, today: date) -> bool:
    return owner.owner_status_until is not None and owner.owner_status_until < today


def current_visit(owner_id: str, visits: Iterable[Visit], today: date) -> Optional[Visit]:
    for visit in visits:
        if visit.status is VisitStatus.CONFIRMED and visit.submitted_by == owner_id and visit.period.contains(today):
            return visit
    return None


def next_visit(owner_id: str, visits: Iterable[Visit], today: date) -> Optional[Visit]:
    """Earliest upcoming visit of the owner, pending ones included."""
    upcoming = [visit for visit in visits
                if visit.status is not VisitStatus.DENIED
                and visit.submitted_by == owner_id
                and visit.start_date > today]
    return min(upcoming, key=lambda visit: visit.start_date, default=None)


def summarize(owner: Profile, visits: List[Visit], today: date) -> OwnerSummary:
    visiting = current_visit(owner.id, visits, today)
    expired = is_until_expired(owner, today)
    in_town = visiting is not None or (owner.owner_status is OwnerStatus.IN_TOWN and not expired)
    return OwnerSummary(owner=owner,
                        in_town=in_town,
                        locked=visiting is not None,
                        expired=expired,
                        current_visit=visiting,
                        next_visit=next_visit(owner.id, visits, today))


def toggle_updates(current_status) -> Dict:
    """Profile changes for flipping an owner's status. Leaving town clears the until date."""
    if OwnerStatus(current_status) is OwnerStatus.IN_TOWN:
        return {'owner_status': OwnerStatus.OUT_OF_STATE.value, 'owner_status_until': None}
    return {'owner_status': OwnerStatus.IN_TOWN.value}


def expire_owner_statuses(db, owners: List[Profile], today: date) -> List[Profile]:
    """
    Moves owners whose in-town "until" date has passed back to out of state.

    Returns the owners list with the expired ones replaced by their updated profiles. A failed update is logged and
    the stale profile kept, the calendar still renders them as out of state because the date has passed.
    """
    refreshed = []
    for owner in owners:
        if owner.owner_status is OwnerStatus.IN_TOWN and is_until_expired(owner, today):
            logger.info("Owner %s in-town status expired on %s", owner.id, owner.owner_status_until)
            try:
                updated = db.update_profile(owner.id, {'owner_status': OwnerStatus.OUT_OF_STATE.value,
                                                       'owner_status_until': None})
            except BackendError as e:
                logger.error("Could not expire owner status for %s: %s", owner.id, e.message)
                updated = None
            refreshed.append(updated or owner)
        else:
            refreshed.append(owner)
    return refreshed
