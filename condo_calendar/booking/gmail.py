from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import base64
from html import escape
from typing import Dict, List, Optional
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from google.oauth2 import service_account
import logging

from .booking_utils import format_long_date
from .models import Visit, VisitStatus

logger = logging.getLogger(__name__)


def build_new_visit_email(visit: Visit, property_name: str) -> Dict[str, str]:
    """
    Subject and HTML body announcing a new visit proposal to the owners.
    """
    start = format_long_date(visit.start_date)
    end = format_long_date(visit.end_date)
    arrival = f" (arriving {visit.arrival_time.strftime('%H:%M')})" if visit.arrival_time else ""
    departure = f" (departing {visit.departure_time.strftime('%H:%M')})" if visit.departure_time else ""
    notes = f"<p><strong>Notes:</strong> {escape(visit.notes)}</p>" if visit.notes else ""
    body = (f"<h2>New Visit Proposal</h2>"
            f"<p>A new visit has been proposed for the {escape(property_name)}:</p>"
            f"<ul><li><strong>Start:</strong> {start}{arrival}</li>"
            f"<li><strong>End:</strong> {end}{departure}</li></ul>"
            f"{notes}"
            f"<p>Log in to the calendar to review and approve or deny this request.</p>")
    return {'subject': f"New Visit Proposal: {start} - {end}", 'html': body}


class GmailIntegration:

    SCOPES = ['https://www.googleapis.com/auth/gmail.send']

    def __init__(self, service_account_file: str, sender: str):
        self._api_key_path = service_account_file
        self._sender = sender
        self.service = self._authorize()

    @property
    def get_api_key_path(self):
        return self._api_key_path

    @staticmethod
    def create_message(to: List[str], from_email: str, subject: str, html: str) -> Dict[str, str]:
        message = MIMEMultipart()
        message['to'] = ', '.join(to)
        message['from'] = from_email
        message['subject'] = subject
        message.attach(MIMEText(html, 'html'))

        # Encode to base64 for Gmail API
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode()
        return {'raw': raw}

    def send_new_visit_notification(self, visit: Visit, recipients: List[str], property_name: str) -> Optional[Dict]:
        """
        Emails the owners about a new pending proposal. Returns the sent message resource, or None when nothing was
        sent. Only pending visits are announced.
        """
        if visit.status is not VisitStatus.PENDING:
            logger.info("Skipping notification for visit %s with status %s", visit.id, visit.status.value)
            return None
        if not recipients:
            logger.info("No notification recipients configured")
            return None
        content = build_new_visit_email(visit, property_name)
        try:
            message = self.create_message(recipients, self._sender, content['subject'], content['html'])
            sent = self.service.users().messages().send(userId='me', body=message).execute()
        except HttpError as e:
            logger.error(f'An error occurred sending the visit notification: {e}')
            return None
        logger.info("Visit notification sent for %s", visit.id)
        return sent

    def _authorize(self):
        creds = service_account.Credentials.from_service_account_file(
                self.get_api_key_path,
                scopes=self.SCOPES,
                subject=self._sender  # Impersonating the sending mailbox
            )
        return build("gmail", "v1", credentials=creds)
