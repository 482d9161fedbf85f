# In-memory stand-in for the hosted backend, used in place of SupabaseClient by the route tests.
from datetime import datetime, timezone
from uuid import uuid4

from condo_calendar.booking.error_utils import AuthenticationError, BackendError


class FakeBackend:

    def __init__(self):
        self.tables = {'profiles': [], 'visitors': [], 'visits': []}
        self.users = {}      # email -> {'id', 'email', 'password', 'user_metadata'}
        self.tokens = {}     # access token -> user id
        self.refresh_tokens = {}
        self.signed_out = []
        self.signups = []

    def add_user(self, email, password='secret123', name=None, is_admin=False, **profile):
        user_id = str(uuid4())
        self.users[email] = {'id': user_id, 'email': email, 'password': password, 'user_metadata': {'name': name}}
        self.tables['profiles'].append({'id': user_id, 'email': email, 'name': name, 'is_admin': is_admin,
                                        'owner_status': profile.get('owner_status', 'out_of_state_indefinitely'),
                                        'owner_status_until': profile.get('owner_status_until')})
        return user_id

    def issue_tokens(self, user_id):
        access_token = f"access-{uuid4().hex}"
        refresh_token = f"refresh-{uuid4().hex}"
        self.tokens[access_token] = user_id
        self.refresh_tokens[refresh_token] = user_id
        return access_token, refresh_token

    def add_visitor(self, name, user_id=None, description=None):
        row = {'id': str(uuid4()), 'name': name, 'user_id': user_id, 'description': description}
        self.tables['visitors'].append(row)
        return row['id']

    def add_visit(self, visitor_id, start_date, end_date, status='pending', submitted_by=None, **extra):
        row = {'id': str(uuid4()), 'visitor_id': visitor_id, 'submitted_by': submitted_by,
               'start_date': start_date, 'end_date': end_date, 'status': status,
               'arrival_time': None, 'departure_time': None, 'notes': None,
               'created_at': datetime.now(timezone.utc).isoformat(), 'reviewed_at': None, 'reviewed_by': None}
        row.update(extra)
        self.tables['visits'].append(row)
        return row['id']

    def row(self, table, row_id):
        return next((row for row in self.tables[table] if row['id'] == row_id), None)

    def user_payload(self, user_id):
        user = next(user for user in self.users.values() if user['id'] == user_id)
        return {'id': user['id'], 'email': user['email'], 'user_metadata': user['user_metadata']}

    def client_factory(self):
        backend = self

        def factory(url, anon_key, access_token=None, timeout=None):
            return FakeSupabaseClient(backend, access_token)
        return factory


def _matches(row, filters):
    for column, expression in (filters or {}).items():
        operator, _, value = expression.partition('.')
        actual = row.get(column)
        if operator == 'eq':
            if value in ('true', 'false'):
                if bool(actual) != (value == 'true'):
                    return False
            elif str(actual) != value:
                return False
        elif operator == 'in':
            if str(actual) not in value.strip('()').split(','):
                return False
        else:
            raise ValueError(f"Unsupported filter {expression}")
    return True


class FakeSupabaseClient:

    def __init__(self, backend, access_token=None):
        self.backend = backend
        self.access_token = access_token

    # Auth

    def sign_up(self, email, password, name, redirect_to=None):
        if email in self.backend.users:
            raise BackendError("User already registered", 422)
        self.backend.signups.append({'email': email, 'name': name, 'redirect_to': redirect_to})
        return {'id': str(uuid4()), 'email': email}

    def sign_in_with_password(self, email, password):
        user = self.backend.users.get(email)
        if not user or user['password'] != password:
            raise AuthenticationError("Invalid login credentials", 400)
        access_token, refresh_token = self.backend.issue_tokens(user['id'])
        return {'access_token': access_token, 'refresh_token': refresh_token, 'expires_in': 3600,
                'user': self.backend.user_payload(user['id'])}

    def refresh_session(self, refresh_token):
        user_id = self.backend.refresh_tokens.pop(refresh_token, None)
        if user_id is None:
            raise AuthenticationError("Invalid Refresh Token", 400)
        access_token, new_refresh_token = self.backend.issue_tokens(user_id)
        return {'access_token': access_token, 'refresh_token': new_refresh_token, 'expires_in': 3600,
                'user': self.backend.user_payload(user_id)}

    def get_user(self, access_token):
        user_id = self.backend.tokens.get(access_token)
        if user_id is None:
            raise AuthenticationError("invalid JWT", 401)
        return self.backend.user_payload(user_id)

    def sign_out(self, access_token):
        self.backend.signed_out.append(access_token)
        self.backend.tokens.pop(access_token, None)

    # REST

    def _embed(self, table, row, columns):
        row = dict(row)
        if table == 'visits' and 'visitors' in columns:
            visitor = self.backend.row('visitors', row['visitor_id'])
            row['visitors'] = dict(visitor) if visitor else None
        if table == 'visits' and 'profiles:submitted_by' in columns:
            profile = self.backend.row('profiles', row.get('submitted_by'))
            row['profiles'] = {'email': profile['email'], 'name': profile['name']} if profile else None
        return row

    def select(self, table, columns='*', filters=None, order=None):
        rows = [self._embed(table, row, columns) for row in self.backend.tables[table] if _matches(row, filters)]
        if order:
            column, _, direction = order.partition('.')
            rows.sort(key=lambda row: (row.get(column) is None, row.get(column) or ''), reverse=direction == 'desc')
        return rows

    def insert(self, table, row, columns='*'):
        row = dict(row)
        row.setdefault('id', str(uuid4()))
        if table == 'visits':
            row.setdefault('created_at', datetime.now(timezone.utc).isoformat())
        self.backend.tables[table].append(row)
        return [dict(row)]

    def update(self, table, values, filters):
        updated = []
        for row in self.backend.tables[table]:
            if _matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    def delete(self, table, filters):
        kept, deleted = [], []
        for row in self.backend.tables[table]:
            (deleted if _matches(row, filters) else kept).append(row)
        self.backend.tables[table] = kept
        return deleted
