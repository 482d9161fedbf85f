"""
Signed in state, kept in the signed session cookie.

The stored session is {"user": {...}, "access_token": ..., "refresh_token": ..., "expires_at": <unix seconds>}.
It is written on sign in and on email confirmation, refreshed with the refresh token once the access token is
within REFRESH_LEEWAY seconds of expiring, and dropped on sign out or when a refresh is rejected.
"""
import logging
import time
from typing import Dict, Optional

from flask import session

from .error_utils import BackendError

logger = logging.getLogger(__name__)

SESSION_KEY = 'supabase_session'
REFRESH_LEEWAY = 60
# Token lifetime assumed when the backend does not report one
DEFAULT_EXPIRES_IN = 3600


def store_session(payload: Dict, now: Optional[float] = None) -> Dict:
    """Stores a token endpoint answer (or equivalent dict) and returns the stored session."""
    now = time.time() if now is None else now
    expires_at = payload.get('expires_at')
    if not expires_at:
        expires_at = now + int(payload.get('expires_in') or DEFAULT_EXPIRES_IN)
    user = payload.get('user') or {}
    # Cookie space is limited, only what the pages use is kept
    stored = {'user': {'id': user.get('id'), 'email': user.get('email'),
                       'user_metadata': user.get('user_metadata') or {}},
              'access_token': payload['access_token'],
              'refresh_token': payload.get('refresh_token'),
              'expires_at': int(expires_at)}
    session[SESSION_KEY] = stored
    return stored


def stored_session() -> Optional[Dict]:
    stored = session.get(SESSION_KEY)
    if not isinstance(stored, dict) or not stored.get('access_token') or not (stored.get('user') or {}).get('id'):
        return None
    return stored


def clear_session() -> None:
    session.pop(SESSION_KEY, None)


def access_token() -> Optional[str]:
    stored = stored_session()
    return stored['access_token'] if stored else None


def needs_refresh(stored: Dict, now: Optional[float] = None) -> bool:
    now = time.time() if now is None else now
    return int(stored.get('expires_at') or 0) - REFRESH_LEEWAY <= now


def ensure_fresh_session(db, now: Optional[float] = None) -> Optional[Dict]:
    """
    Returns the stored session, refreshing it first when the access token is about to expire.
    A session that cannot be refreshed is cleared and None returned.
    """
    stored = stored_session()
    if stored is None:
        if SESSION_KEY in session:
            clear_session()
        return None
    if not needs_refresh(stored, now):
        return stored
    if not stored.get('refresh_token'):
        clear_session()
        return None
    try:
        payload = db.refresh_session(stored['refresh_token'])
    except BackendError as e:
        logger.warning("Session refresh failed, signing out: %s", e.message)
        clear_session()
        return None
    if not payload.get('user'):
        payload['user'] = stored['user']
    logger.info("Refreshed session for user %s", payload['user'].get('id'))
    return store_session(payload, now)


def confirm_from_tokens(db, access_token: str, refresh_token: str, expires_in=None, now: Optional[float] = None) -> Dict:
    """Starts a session from the tokens delivered by the email confirmation link."""
    user = db.get_user(access_token)
    if not user or not user.get('id'):
        raise BackendError("Confirmation link did not identify a user")
    return store_session({'user': user, 'access_token': access_token, 'refresh_token': refresh_token,
                          'expires_in': expires_in}, now)
