from datetime import datetime, timezone
import logging
from typing import Dict, List, Optional

from .calendar import assign_colors, color_visits
from .error_utils import BackendError, StatusTransitionError
from .models import Profile, Visit, VisitStatus, Visitor
from .supabase_client import SupabaseClient, eq

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

PENDING_COLUMNS = '*, visitors (name), profiles:submitted_by (email, name)'


class DatabasePersistence:
    """
    All reads and writes of visitors, visits and profiles, plus the auth calls, go through here.

    Storage and row level authorization live in the hosted backend. This class only shapes the REST calls and turns
    rows into model objects; it is created per request with the signed in user's access token (or none for anonymous
    reads) so the backend can enforce who may change what.
    """

    def __init__(self, client: SupabaseClient):
        self._client = client

    # Auth

    def sign_up(self, email: str, password: str, name: str, redirect_to: Optional[str] = None) -> Dict:
        logger.info("Signing up %s", email)
        return self._client.sign_up(email, password, name, redirect_to)

    def sign_in(self, email: str, password: str) -> Dict:
        logger.info("Signing in %s", email)
        return self._client.sign_in_with_password(email, password)

    def refresh_session(self, refresh_token: str) -> Dict:
        return self._client.refresh_session(refresh_token)

    def get_user(self, access_token: str) -> Dict:
        return self._client.get_user(access_token)

    def sign_out(self, access_token: str) -> None:
        # Local state is cleared regardless, a failed server side logout only leaves a token to expire
        try:
            self._client.sign_out(access_token)
        except BackendError as e:
            logger.warning("Server sign out failed: %s", e.message)

    # Profiles

    def get_profile(self, user_id: str) -> Optional[Profile]:
        rows = self._client.select('profiles', filters={'id': eq(user_id)})
        return Profile.from_row(rows[0]) if rows else None

    def update_profile(self, user_id: str, updates: Dict) -> Optional[Profile]:
        rows = self._client.update('profiles', updates, filters={'id': eq(user_id)})
        if not rows:
            logger.error("Profile update for %s matched no rows", user_id)
            return None
        return Profile.from_row(rows[0])

    def list_admins(self) -> List[Profile]:
        rows = self._client.select('profiles', filters={'is_admin': eq('true')}, order='name.asc')
        return [Profile.from_row(row) for row in rows]

    # Visitors

    def list_visitors(self) -> List[Visitor]:
        rows = self._client.select('visitors', order='name.asc')
        return assign_colors(Visitor.from_row(row) for row in rows)

    def find_or_create_visitor(self, user_id: str, name: str) -> str:
        """
        Returns the id of the visitor linked to the user, creating one on the first proposal.
        """
        rows = self._client.select('visitors', columns='id', filters={'user_id': eq(user_id)})
        if rows:
            return rows[0]['id']
        logger.info("Creating visitor record for user %s", user_id)
        created = self._client.insert('visitors', {'user_id': user_id, 'name': name, 'description': 'Registered user'},
                                      columns='id')
        if not created:
            raise BackendError("Visitor could not be created")
        return created[0]['id']

    # Visits

    def list_visits(self, visitors: Optional[List[Visitor]] = None) -> List[Visit]:
        """Visits for the calendar, colored by visitor. Denied visits are left out."""
        if visitors is None:
            visitors = self.list_visitors()
        rows = self._client.select('visits', columns='*, visitors (id, name, description)',
                                   filters={'status': 'in.(pending,confirmed)'}, order='start_date.asc')
        return color_visits((Visit.from_row(row) for row in rows), visitors)

    def visits_for_user(self, user_id: str) -> List[Visit]:
        rows = self._client.select('visits', filters={'submitted_by': eq(user_id)}, order='start_date.asc')
        return [Visit.from_row(row) for row in rows]

    def pending_visits(self) -> List[Visit]:
        rows = self._client.select('visits', columns=PENDING_COLUMNS, filters={'status': eq('pending')},
                                   order='created_at.asc')
        return [Visit.from_row(row) for row in rows]

    def insert_visit(self, visitor_id: str, submitted_by: str, proposal: Dict) -> Visit:
        row = {'visitor_id': visitor_id,
               'submitted_by': submitted_by,
               'start_date': proposal['start_date'].isoformat(),
               'end_date': proposal['end_date'].isoformat(),
               'arrival_time': proposal['arrival_time'].strftime('%H:%M') if proposal.get('arrival_time') else None,
               'departure_time': proposal['departure_time'].strftime('%H:%M') if proposal.get('departure_time') else None,
               'notes': proposal.get('notes') or None,
               'status': VisitStatus.PENDING.value}
        created = self._client.insert('visits', row)
        if not created:
            raise BackendError("Visit could not be created")
        logger.info("Visit %s proposed by %s", created[0]['id'], submitted_by)
        return Visit.from_row(created[0])

    def decide_visit(self, visit_id: str, status: VisitStatus, reviewer_id: str,
                     now: Optional[datetime] = None) -> Visit:
        """
        Approves or denies a pending visit. The update only matches rows that are still pending, so a visit decided
        by another admin in the meantime is left alone and reported as a StatusTransitionError.
        """
        status = VisitStatus(status)
        if not VisitStatus.PENDING.can_transition_to(status):
            raise StatusTransitionError(f"Visits can only be confirmed or denied, not set to {status.value}")
        reviewed_at = (now or datetime.now(timezone.utc)).isoformat()
        rows = self._client.update('visits', {'status': status.value, 'reviewed_at': reviewed_at, 'reviewed_by': reviewer_id},
                                   filters={'id': eq(visit_id), 'status': eq(VisitStatus.PENDING.value)})
        if not rows:
            raise StatusTransitionError("This visit is no longer pending.")
        logger.info("Visit %s %s by %s", visit_id, status.value, reviewer_id)
        return Visit.from_row(rows[0])

    def cancel_visit(self, visit_id: str, user_id: str) -> bool:
        """Owners may withdraw their own proposals while they are still pending."""
        rows = self._client.delete('visits', filters={'id': eq(visit_id),
                                                      'submitted_by': eq(user_id),
                                                      'status': eq(VisitStatus.PENDING.value)})
        return bool(rows)

    def delete_visit(self, visit_id: str) -> bool:
        rows = self._client.delete('visits', filters={'id': eq(visit_id)})
        if rows:
            logger.info("Visit %s deleted", visit_id)
        return bool(rows)
