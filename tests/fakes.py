# tests/fakes.py
# In-memory stand-ins for the hosted backend used across the test modules.

import uuid
from types import SimpleNamespace


class FakeAPIError(Exception):
    """Shaped like postgrest's APIError: the readable text is in .message."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class FakeDatabase:
    """Implements the Database gateway surface over plain lists of dicts."""

    def __init__(self, tables=None):
        self.tables = {name: [dict(row) for row in rows] for name, rows in (tables or {}).items()}
        self.fail_with = None
        self.calls = []
        self.channels = []

    def _call(self, op, table):
        self.calls.append((op, table))
        if self.fail_with is not None:
            raise self.fail_with

    def calls_of(self, op):
        return [c for c in self.calls if c[0] == op]

    async def fetch_all(self, table, order, desc=False):
        self._call('fetch_all', table)
        rows = [dict(row) for row in self.tables.get(table, [])]
        return sorted(rows, key=lambda row: str(row.get(order) or ''), reverse=desc)

    async def fetch_in(self, table, columns, column, values):
        self._call('fetch_in', table)
        wanted = set(values)
        if not wanted:
            return []
        return [dict(row) for row in self.tables.get(table, []) if row.get(column) in wanted]

    async def fetch_one(self, table, column, value, columns='*'):
        self._call('fetch_one', table)
        for row in self.tables.get(table, []):
            if row.get(column) == value:
                return dict(row)
        return None

    async def insert(self, table, row):
        self._call('insert', table)
        stored = dict(row)
        stored.setdefault('id', str(uuid.uuid4()))
        self.tables.setdefault(table, []).append(stored)
        return dict(stored)

    async def update(self, table, record_id, values):
        self._call('update', table)
        for row in self.tables.get(table, []):
            if row['id'] == record_id:
                row.update(values)
                return dict(row)
        raise LookupError(f"No {table} row with id {record_id}")

    async def delete(self, table, record_id):
        self._call('delete', table)
        self.tables[table] = [row for row in self.tables.get(table, []) if row['id'] != record_id]

    async def subscribe(self, table, callback):
        channel = (table, callback)
        self.channels.append(channel)
        return channel

    async def unsubscribe(self, channel):
        self.channels.remove(channel)


class Notifications:
    """Collects notify(level, text) calls."""

    def __init__(self):
        self.sent = []

    async def __call__(self, level, text):
        self.sent.append((level, text))

    def of(self, level):
        return [text for lvl, text in self.sent if lvl == level]


# --- supabase-py client surface ---
class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.filters = []
        self.row = None

    def select(self, columns='*'):
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, count):
        return self

    def insert(self, row):
        self.row = row
        return self

    async def execute(self):
        if self.row is not None:
            self.client.inserted.append((self.table, self.row))
            return SimpleNamespace(data=[self.row])
        rows = [
            row for row in self.client.tables.get(self.table, [])
            if all(row.get(column) == value for column, value in self.filters)
        ]
        return SimpleNamespace(data=rows)


class FakeAuthAdmin:
    def __init__(self):
        self.created = []

    async def create_user(self, attributes):
        self.created.append(attributes)
        return SimpleNamespace(user=SimpleNamespace(id=f"user-{len(self.created)}", email=attributes['email']))


class FakeAuth:
    def __init__(self):
        self.users_by_token = {}
        self.accounts = {}
        self.admin = FakeAuthAdmin()
        self.signed_out = []
        self.refresh_error = None
        self.signup_error = None
        self.signup_confirms_email = False

    @staticmethod
    def response(user, expires_at=2_000_000_000):
        session = SimpleNamespace(access_token=f"access-{user.id}", refresh_token=f"refresh-{user.id}",
                                  expires_at=expires_at)
        return SimpleNamespace(user=user, session=session)

    async def get_user(self, jwt):
        if jwt not in self.users_by_token:
            raise FakeAPIError("invalid JWT")
        return SimpleNamespace(user=self.users_by_token[jwt])

    async def sign_in_with_password(self, credentials):
        account = self.accounts.get(credentials['email'])
        if account is None or account['password'] != credentials['password']:
            raise FakeAPIError("Invalid login credentials")
        return self.response(account['user'])

    async def sign_up(self, credentials):
        if self.signup_error:
            raise FakeAPIError(self.signup_error)
        user = SimpleNamespace(id=f"user-{credentials['email']}", email=credentials['email'],
                               user_metadata=credentials['options']['data'])
        if self.signup_confirms_email:
            return SimpleNamespace(user=user, session=None)
        return self.response(user)

    async def sign_out(self, options=None):
        self.signed_out.append(options)

    async def refresh_session(self, refresh_token=None):
        if self.refresh_error:
            raise FakeAPIError(self.refresh_error)
        session = SimpleNamespace(access_token="access-renewed", refresh_token="refresh-renewed",
                                  expires_at=2_100_000_000)
        return SimpleNamespace(user=None, session=session)


class FakeSupabaseClient:
    def __init__(self, tables=None):
        self.tables = tables or {}
        self.inserted = []
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)

    def add_account(self, email, password, user_id, full_name=None, role=None):
        user = SimpleNamespace(id=user_id, email=email, user_metadata={'full_name': full_name} if full_name else {})
        self.auth.accounts[email] = {'password': password, 'user': user}
        self.auth.users_by_token[f"access-{user_id}"] = user
        if role:
            self.tables.setdefault('user_roles', []).append({'user_id': user_id, 'role': role})
        return user
