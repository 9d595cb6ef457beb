# tests/test_handlers.py

from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, patch

from booking.wizard import BookingWizard
from database.models import Service
from handlers import admin_handlers, auth_handlers, client_handlers
from states.fsm_states import AuthStates, ClientStates, DashboardStates

TELEGRAM_ID = 5550101


class FakeState:
    """Just enough of FSMContext for handlers that read and clear data."""

    def __init__(self, data=None):
        self.data = dict(data or {})
        self.cleared = False

    async def get_data(self):
        return dict(self.data)

    async def update_data(self, **values):
        self.data.update(values)

    async def set_state(self, state=None):
        pass

    async def clear(self):
        self.data = {}
        self.cleared = True


def wizard_ready_to_confirm():
    today = date.today()
    wizard = BookingWizard()
    wizard.toggle_service(Service(id='svc-1', name='Haircut', duration=30, price=Decimal('500'), category='Hair'))
    wizard.next()
    wizard.choose_staff(None)
    wizard.next()
    wizard.choose_date(today + timedelta(days=1), today)
    wizard.choose_time('10:00')
    wizard.next()
    for name, value in (('name', 'Ana Reyes'), ('email', 'ana@lumina.ph'), ('phone', '0917 555 0101')):
        wizard.set_detail(name, value)
    wizard.next()
    return wizard


def handler_for(router, callback):
    return next(h for h in router.message.handlers if h.callback is callback)


class TextStepRoutingTests(IsolatedAsyncioTestCase):
    """Commands typed during a text step reach their own handlers."""

    TEXT_STEPS = [
        (auth_handlers.router, auth_handlers.login_email, AuthStates.login_email),
        (auth_handlers.router, auth_handlers.login_password, AuthStates.login_password),
        (auth_handlers.router, auth_handlers.signup_name, AuthStates.signup_name),
        (auth_handlers.router, auth_handlers.signup_email, AuthStates.signup_email),
        (auth_handlers.router, auth_handlers.signup_password, AuthStates.signup_password),
        (auth_handlers.router, auth_handlers.signup_confirm, AuthStates.signup_confirm),
        (client_handlers.router, client_handlers.client_provide_detail, ClientStates.entering_detail_value),
        (admin_handlers.router, admin_handlers.form_submitted, DashboardStates.filling_form),
        (admin_handlers.router, admin_handlers.search_submitted, DashboardStates.searching),
    ]

    async def accepts(self, router, callback, state, text):
        handler = handler_for(router, callback)
        passed, _ = await handler.check(SimpleNamespace(text=text), raw_state=state.state)
        return passed

    async def test_commands_are_not_taken_as_answers(self):
        for router, callback, state in self.TEXT_STEPS:
            with self.subTest(handler=callback.__name__):
                self.assertFalse(await self.accepts(router, callback, state, '/start'))

    async def test_plain_answers_are_accepted(self):
        for router, callback, state in self.TEXT_STEPS:
            with self.subTest(handler=callback.__name__):
                self.assertTrue(await self.accepts(router, callback, state, 'secret123'))

    async def test_other_states_do_not_match(self):
        passed = await self.accepts(auth_handlers.router, auth_handlers.login_password,
                                    AuthStates.login_email, 'secret123')
        self.assertFalse(passed)


class ConfirmBookingTests(IsolatedAsyncioTestCase):
    def callback(self):
        return SimpleNamespace(
            from_user=SimpleNamespace(id=TELEGRAM_ID),
            message=SimpleNamespace(edit_text=AsyncMock()),
            answer=AsyncMock(),
        )

    def buttons_after_confirm(self, callback):
        markup = callback.message.edit_text.await_args.kwargs['reply_markup']
        return [button.callback_data for row in markup.inline_keyboard for button in row]

    async def confirm(self, session):
        callback = self.callback()
        state = FakeState({'wizard': wizard_ready_to_confirm().to_state()})
        sessions = SimpleNamespace(get=lambda telegram_id: session)

        with patch.object(client_handlers.config, 'admin_chat_id', None):
            await client_handlers.client_confirm_booking(callback, state, SimpleNamespace(), sessions)

        self.assertTrue(state.cleared)
        callback.answer.assert_awaited_once()
        return self.buttons_after_confirm(callback)

    async def test_signed_in_staff_keep_their_landing_buttons(self):
        buttons = await self.confirm(SimpleNamespace(can_use_dashboard=True))
        self.assertEqual(buttons, ['client_book', 'dash_home', 'auth_logout'])

    async def test_anonymous_client_is_offered_sign_in(self):
        buttons = await self.confirm(None)
        self.assertEqual(buttons, ['client_book', 'auth_login', 'auth_signup'])
