import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from .error_utils import AuthenticationError, BackendError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


def eq(value) -> str:
    """PostgREST equality filter value."""
    return f"eq.{value}"


class SupabaseClient:
    """
    Thin HTTP client for the hosted backend's auth (/auth/v1) and REST (/rest/v1) endpoints.

    Every request carries the project's anon key as `apikey`. Requests made on behalf of a signed in user also carry
    the user's access token as a bearer token, so the backend's row level security applies to them. Without a user
    token the anon key doubles as the bearer token.

    May raise the following errors on any call:
        BackendError: backend unreachable, non-2xx answer or invalid JSON
        AuthenticationError: credentials or token rejected (401/403, or 400 from the token endpoint)
    """

    def __init__(self, url: str, anon_key: str, access_token: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        if not url or not anon_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
        self._url = url.rstrip('/')
        self._anon_key = anon_key
        self._access_token = access_token
        self._timeout = timeout
        self._session = session or requests.Session()

    def _headers(self, access_token: Optional[str] = None, prefer: Optional[str] = None) -> Dict[str, str]:
        token = access_token or self._access_token or self._anon_key
        headers = {'apikey': self._anon_key,
                   'Authorization': f"Bearer {token}",
                   'Content-Type': 'application/json'}
        if prefer:
            headers['Prefer'] = prefer
        return headers

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:300] or response.reason or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            for key in ('error_description', 'msg', 'message', 'error'):
                if body.get(key):
                    return str(body[key])
        return f"HTTP {response.status_code}"

    def _request(self, method: str, path: str, *, params=None, json=None, access_token=None, prefer=None) -> Any:
        url = f"{self._url}{path}"
        logger.info("Executing request: %s %s", method, path)
        try:
            response = self._session.request(method, url, params=params, json=json,
                                              headers=self._headers(access_token, prefer), timeout=self._timeout)
        except requests.RequestException as e:
            logger.error("Request to backend failed: %s", e)
            raise BackendError(f"Could not reach the calendar backend: {e}") from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error("Backend returned %s for %s %s: %s", response.status_code, method, path, message)
            if response.status_code in (401, 403) or (path.startswith('/auth/v1/token') and response.status_code == 400):
                raise AuthenticationError(message, response.status_code)
            raise BackendError(message, response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError("Backend returned invalid JSON", response.status_code) from e

    # Auth endpoints

    def sign_up(self, email: str, password: str, name: str, redirect_to: Optional[str] = None) -> Dict:
        path = '/auth/v1/signup'
        if redirect_to:
            path += f"?redirect_to={quote(redirect_to, safe='')}"
        return self._request('POST', path, json={'email': email, 'password': password, 'data': {'name': name}})

    def sign_in_with_password(self, email: str, password: str) -> Dict:
        return self._request('POST', '/auth/v1/token', params={'grant_type': 'password'},
                             json={'email': email, 'password': password}, access_token=self._anon_key)

    def refresh_session(self, refresh_token: str) -> Dict:
        return self._request('POST', '/auth/v1/token', params={'grant_type': 'refresh_token'},
                             json={'refresh_token': refresh_token}, access_token=self._anon_key)

    def get_user(self, access_token: str) -> Dict:
        return self._request('GET', '/auth/v1/user', access_token=access_token)

    def sign_out(self, access_token: str) -> None:
        self._request('POST', '/auth/v1/logout', access_token=access_token)

    # REST endpoints

    def select(self, table: str, columns: str = '*', filters: Optional[Dict[str, str]] = None,
               order: Optional[str] = None) -> List[Dict]:
        params = {'select': columns}
        params.update(filters or {})
        if order:
            params['order'] = order
        return self._request('GET', f"/rest/v1/{table}", params=params) or []

    def insert(self, table: str, row: Dict, columns: str = '*') -> List[Dict]:
        return self._request('POST', f"/rest/v1/{table}", params={'select': columns}, json=row,
                             prefer='return=representation') or []

    def update(self, table: str, values: Dict, filters: Dict[str, str]) -> List[Dict]:
        if not filters:
            raise ValueError("Refusing to update without filters")
        return self._request('PATCH', f"/rest/v1/{table}", params=filters, json=values,
                             prefer='return=representation') or []

    def delete(self, table: str, filters: Dict[str, str]) -> List[Dict]:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        return self._request('DELETE', f"/rest/v1/{table}", params=filters,
                             prefer='return=representation') or []
