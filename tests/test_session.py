# tests/test_session.py

from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase

from utils.filters import RoleFilter
from utils.scheduler import refresh_sessions
from utils.session import AuthFailure, SessionRegistry

from fakes import FakeSupabaseClient

TELEGRAM_ID = 5550101


class ClosingStore:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class BrokenStore:
    async def close(self):
        raise ConnectionError("realtime socket closed")


class SessionRegistryTests(IsolatedAsyncioTestCase):
    def setUp(self):
        self.clients = []
        self.sessions = SessionRegistry(self.new_client)

    async def new_client(self):
        client = FakeSupabaseClient()
        client.add_account('owner@lumina.ph', 'owner-pass', 'admin-1', full_name='Rosa Villanueva', role='admin')
        client.add_account('ana@lumina.ph', 'ana-pass', 'client-1')
        self.clients.append(client)
        return client

    async def test_sign_in_reads_the_role(self):
        session = await self.sessions.sign_in(TELEGRAM_ID, 'owner@lumina.ph', 'owner-pass')

        self.assertTrue(session.is_admin)
        self.assertTrue(session.can_use_dashboard)
        self.assertEqual(session.full_name, 'Rosa Villanueva')
        self.assertIs(self.sessions.get(TELEGRAM_ID), session)
        self.assertEqual(len(self.sessions), 1)

    async def test_missing_role_row_means_client(self):
        session = await self.sessions.sign_in(TELEGRAM_ID, 'ana@lumina.ph', 'ana-pass')
        self.assertEqual(session.role, 'client')
        self.assertFalse(session.can_use_dashboard)

    async def test_wrong_password_has_a_friendly_message(self):
        with self.assertRaises(AuthFailure) as raised:
            await self.sessions.sign_in(TELEGRAM_ID, 'owner@lumina.ph', 'wrong')
        self.assertEqual(raised.exception.message, 'Incorrect email or password. Please try again.')
        self.assertIsNone(self.sessions.get(TELEGRAM_ID))

    async def test_sign_up_opens_a_session(self):
        session = await self.sessions.sign_up(TELEGRAM_ID, 'Liza Cruz', 'liza@lumina.ph', 'secret123')
        self.assertEqual(session.full_name, 'Liza Cruz')
        self.assertEqual(session.role, 'client')

    async def test_sign_up_waiting_for_email_confirmation(self):
        async def confirming_client():
            client = FakeSupabaseClient()
            client.auth.signup_confirms_email = True
            return client

        sessions = SessionRegistry(confirming_client)
        self.assertIsNone(await sessions.sign_up(TELEGRAM_ID, 'Liza Cruz', 'liza@lumina.ph', 'secret123'))
        self.assertEqual(len(sessions), 0)

    async def test_sign_up_with_taken_email(self):
        async def taken_client():
            client = FakeSupabaseClient()
            client.auth.signup_error = 'User already registered'
            return client

        sessions = SessionRegistry(taken_client)
        with self.assertRaises(AuthFailure) as raised:
            await sessions.sign_up(TELEGRAM_ID, 'Liza Cruz', 'liza@lumina.ph', 'secret123')
        self.assertEqual(raised.exception.message, 'This email is already registered. Please login instead.')

    async def test_sign_out_closes_stores_locally(self):
        session = await self.sessions.sign_in(TELEGRAM_ID, 'owner@lumina.ph', 'owner-pass')
        store = ClosingStore()
        session.stores['appointments'] = store

        self.assertTrue(await self.sessions.sign_out(TELEGRAM_ID))
        self.assertTrue(store.closed)
        self.assertEqual(self.clients[0].auth.signed_out, [{'scope': 'local'}])
        self.assertIsNone(self.sessions.get(TELEGRAM_ID))
        self.assertFalse(await self.sessions.sign_out(TELEGRAM_ID))

    async def test_failing_store_does_not_block_sign_out(self):
        session = await self.sessions.sign_in(TELEGRAM_ID, 'owner@lumina.ph', 'owner-pass')
        other = ClosingStore()
        session.stores['appointments'] = BrokenStore()
        session.stores['clients'] = other

        self.assertTrue(await self.sessions.sign_out(TELEGRAM_ID))
        self.assertTrue(other.closed)
        self.assertEqual(self.clients[0].auth.signed_out, [{'scope': 'local'}])
        self.assertIsNone(self.sessions.get(TELEGRAM_ID))

    async def test_signing_in_again_replaces_the_old_session(self):
        first = await self.sessions.sign_in(TELEGRAM_ID, 'ana@lumina.ph', 'ana-pass')
        first.stores['appointments'] = ClosingStore()
        second = await self.sessions.sign_in(TELEGRAM_ID, 'owner@lumina.ph', 'owner-pass')

        self.assertTrue(first.stores['appointments'].closed)
        self.assertIs(self.sessions.get(TELEGRAM_ID), second)
        self.assertEqual(len(self.sessions), 1)


class SessionRefreshTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.client = FakeSupabaseClient()
        self.client.add_account('owner@lumina.ph', 'owner-pass', 'admin-1', role='admin')

        async def factory():
            return self.client

        self.sessions = SessionRegistry(factory)
        self.session = await self.sessions.sign_in(TELEGRAM_ID, 'owner@lumina.ph', 'owner-pass')

    async def test_tokens_close_to_expiry_are_refreshed(self):
        now = self.session.expires_at - 60
        self.assertEqual(await self.sessions.refresh_expiring(300, now=now), 1)
        self.assertEqual(self.session.access_token, 'access-renewed')
        self.assertEqual(self.session.expires_at, 2_100_000_000)

    async def test_fresh_tokens_are_left_alone(self):
        now = self.session.expires_at - 3600
        self.assertEqual(await self.sessions.refresh_expiring(300, now=now), 0)
        self.assertEqual(self.session.access_token, 'access-admin-1')

    async def test_failed_refresh_signs_the_user_out(self):
        self.client.auth.refresh_error = 'Invalid Refresh Token: Already Used'
        now = self.session.expires_at - 60
        self.assertEqual(await self.sessions.refresh_expiring(300, now=now), 0)
        self.assertIsNone(self.sessions.get(TELEGRAM_ID))

    async def test_scheduler_job_skips_an_empty_registry(self):
        await self.sessions.sign_out(TELEGRAM_ID)
        self.client.auth.refresh_error = 'should not be called'
        await refresh_sessions(self.sessions, 300)
        self.assertEqual(len(self.sessions), 0)


class RoleFilterTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        client = FakeSupabaseClient()
        client.add_account('maria@lumina.ph', 'maria-pass', 'staff-1', role='staff')

        async def factory():
            return client

        self.sessions = SessionRegistry(factory)
        await self.sessions.sign_in(TELEGRAM_ID, 'maria@lumina.ph', 'maria-pass')

    def event_from(self, telegram_id):
        return SimpleNamespace(from_user=SimpleNamespace(id=telegram_id))

    async def test_matching_role_passes_the_session_on(self):
        result = await RoleFilter('admin', 'staff')(self.event_from(TELEGRAM_ID), sessions=self.sessions)
        self.assertEqual(result['session'].role, 'staff')

    async def test_other_roles_are_rejected(self):
        self.assertFalse(await RoleFilter('admin')(self.event_from(TELEGRAM_ID), sessions=self.sessions))

    async def test_anonymous_users_are_rejected(self):
        self.assertFalse(await RoleFilter('admin', 'staff')(self.event_from(42), sessions=self.sessions))
