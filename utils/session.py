# utils/session.py

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

from database.db_supabase import Database
from database.models import UserRole
from stores.base import describe_error

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid login credentials'


class AuthFailure(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class UserSession:
    """A signed-in dashboard or booking user, bound to one Telegram account.

    Each session owns its own Supabase client so row level security applies
    to the signed-in user, not to the bot.
    """
    telegram_id: int
    user_id: str
    email: str
    full_name: Optional[str]
    role: str
    access_token: str
    refresh_token: str
    expires_at: int
    db: Database
    stores: Dict[str, object] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def can_use_dashboard(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.STAFF)

    def expires_within(self, seconds: int, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return self.expires_at - now <= seconds


ClientFactory = Callable[[], Awaitable[object]]


class SessionRegistry:
    """Sessions keyed by Telegram user id.

    Lifecycle: created on sign in, refreshed by the scheduler before the
    access token expires, dropped on sign out or failed refresh.
    """

    def __init__(self, client_factory: ClientFactory):
        self.client_factory = client_factory
        self._sessions: Dict[int, UserSession] = {}

    def get(self, telegram_id: int) -> Optional[UserSession]:
        return self._sessions.get(telegram_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def telegram_ids(self):
        return list(self._sessions)

    async def sign_in(self, telegram_id: int, email: str, password: str) -> UserSession:
        client = await self.client_factory()
        try:
            response = await client.auth.sign_in_with_password({'email': email, 'password': password})
        except Exception as e:
            message = describe_error(e, 'Login failed')
            if message == INVALID_CREDENTIALS:
                message = 'Incorrect email or password. Please try again.'
            logger.info(f"Sign in failed for {email}: {message}")
            raise AuthFailure(message)
        return await self._open(telegram_id, client, response)

    async def sign_up(self, telegram_id: int, full_name: str, email: str, password: str) -> Optional[UserSession]:
        """Returns None when the project requires email confirmation first."""
        client = await self.client_factory()
        try:
            response = await client.auth.sign_up({
                'email': email,
                'password': password,
                'options': {'data': {'full_name': full_name}},
            })
        except Exception as e:
            message = describe_error(e, 'Signup failed')
            if 'already registered' in message:
                message = 'This email is already registered. Please login instead.'
            logger.info(f"Sign up failed for {email}: {message}")
            raise AuthFailure(message)
        if response.session is None:
            return None
        return await self._open(telegram_id, client, response)

    async def sign_out(self, telegram_id: int) -> bool:
        session = self._sessions.pop(telegram_id, None)
        if session is None:
            return False
        for name, store in session.stores.items():
            close = getattr(store, 'close', None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.warning(f"Closing the {name} store of {session.email} failed: {describe_error(e, 'error')}")
        try:
            await session.db.auth.sign_out({'scope': 'local'})
        except Exception as e:
            logger.warning(f"Sign out of {session.email} did not reach the server: {describe_error(e, 'error')}")
        logger.info(f"User {telegram_id} signed out.")
        return True

    async def refresh_expiring(self, margin_seconds: int, now: Optional[float] = None) -> int:
        refreshed = 0
        for telegram_id, session in list(self._sessions.items()):
            if not session.expires_within(margin_seconds, now):
                continue
            try:
                response = await session.db.auth.refresh_session(session.refresh_token)
            except Exception as e:
                logger.warning(f"Session refresh failed for {session.email}: {describe_error(e, 'error')}")
                await self.sign_out(telegram_id)
                continue
            session.access_token = response.session.access_token
            session.refresh_token = response.session.refresh_token
            session.expires_at = response.session.expires_at
            refreshed += 1
        return refreshed

    async def _open(self, telegram_id: int, client, response) -> UserSession:
        user, auth_session = response.user, response.session
        db = Database(client)
        role = await self._role_of(db, user.id)
        metadata = user.user_metadata or {}

        previous = self._sessions.get(telegram_id)
        if previous is not None:
            await self.sign_out(telegram_id)

        session = UserSession(
            telegram_id=telegram_id,
            user_id=user.id,
            email=user.email,
            full_name=metadata.get('full_name'),
            role=role,
            access_token=auth_session.access_token,
            refresh_token=auth_session.refresh_token,
            expires_at=auth_session.expires_at,
            db=db,
        )
        self._sessions[telegram_id] = session
        logger.info(f"User {telegram_id} signed in as {session.email} ({session.role}).")
        return session

    async def _role_of(self, db: Database, user_id: str) -> str:
        try:
            row = await db.fetch_one('user_roles', 'user_id', user_id, columns='role')
        except Exception as e:
            logger.error(f"Could not read role of {user_id}: {describe_error(e, 'error')}")
            row = None
        return row['role'] if row else UserRole.CLIENT
