# tests/test_forms.py

import asyncio
import base64
from datetime import date
from decimal import Decimal
from unittest import IsolatedAsyncioTestCase, TestCase

from pydantic import ValidationError

from database.models import Client, Service, Staff
from forms.dialogs import ClientDialog, ServiceDialog, StaffDialog, parse_form_text, render_form_text
from forms.schemas import AccountRequest, ClientForm, ServiceForm, SignupForm, StaffForm, field_errors
from stores.base import ActionResult


def errors_of(schema, **values):
    try:
        schema(**values)
    except ValidationError as e:
        return field_errors(e)
    return {}


class ServiceFormTests(TestCase):
    def valid(self, **overrides):
        values = dict(name='Haircut', duration=30, price=500, category='Hair')
        values.update(overrides)
        return values

    def test_duration_bounds(self):
        self.assertEqual(errors_of(ServiceForm, **self.valid(duration=4)), {'duration': 'Minimum 5 minutes'})
        self.assertEqual(errors_of(ServiceForm, **self.valid(duration=481)), {'duration': 'Maximum 8 hours'})
        self.assertEqual(errors_of(ServiceForm, **self.valid(duration=480)), {})

    def test_price_and_name(self):
        self.assertEqual(errors_of(ServiceForm, **self.valid(price=-1)), {'price': 'Price must be positive'})
        self.assertEqual(errors_of(ServiceForm, **self.valid(name='   ')), {'name': 'Name is required'})

    def test_text_values_are_coerced(self):
        """Values typed into a chat arrive as strings."""
        form = ServiceForm(name=' Haircut ', duration='45', price='650.50', category='Hair', is_active='no')
        self.assertEqual(form.name, 'Haircut')
        self.assertEqual(form.duration, 45)
        self.assertEqual(form.price, Decimal('650.50'))
        self.assertFalse(form.is_active)


class AccountFormTests(TestCase):
    def test_invalid_email(self):
        errors = errors_of(StaffForm, name='Maria', email='maria-at-lumina', title='Stylist')
        self.assertEqual(errors, {'email': 'Invalid email address'})

    def test_short_password(self):
        errors = errors_of(ClientForm, name='Ana', email='ana@lumina.ph', password='abc')
        self.assertEqual(errors, {'password': 'Password must be at least 6 characters'})

    def test_blank_optional_fields_become_none(self):
        form = ClientForm(name='Ana', email='ana@lumina.ph', password='', date_of_birth='')
        self.assertIsNone(form.password)
        self.assertIsNone(form.date_of_birth)

    def test_avatar_size_limit(self):
        small = 'data:image/png;base64,' + base64.b64encode(b'x' * 1024).decode()
        large = 'data:image/png;base64,' + base64.b64encode(b'x' * (500 * 1024 + 1)).decode()
        self.assertEqual(errors_of(StaffForm, name='Maria', email='maria@lumina.ph', title='Stylist',
                                   avatar_url=small), {})
        errors = errors_of(StaffForm, name='Maria', email='maria@lumina.ph', title='Stylist', avatar_url=large)
        self.assertEqual(errors, {'avatar_url': 'Avatar must be 500KB or smaller'})

    def test_signup_passwords_must_match(self):
        errors = errors_of(SignupForm, full_name='Ana Reyes', email='ana@lumina.ph',
                           password='secret123', confirm_password='secret124')
        self.assertEqual(errors, {'confirm_password': "Passwords don't match"})

    def test_signup_name_length(self):
        errors = errors_of(SignupForm, full_name='A', email='ana@lumina.ph',
                           password='secret123', confirm_password='secret123')
        self.assertEqual(errors, {'full_name': 'Name must be at least 2 characters'})

    def test_overlong_email_is_rejected(self):
        domain = '.'.join(['a' * 60] * 4) + '.ph'
        errors = errors_of(StaffForm, name='Maria', email='m' * 60 + '@' + domain, title='Stylist')
        self.assertEqual(errors, {'email': 'Invalid email address'})

    def test_account_request_uses_camel_case_on_the_wire(self):
        request = AccountRequest(email='joy@lumina.ph', password='secret123', user_type='staff')
        body = request.model_dump(by_alias=True)
        self.assertEqual(body['userType'], 'staff')
        self.assertIsNone(body['additionalData'])

        parsed = AccountRequest.model_validate({'email': 'joy@lumina.ph', 'userType': 'staff'})
        self.assertFalse(parsed.is_complete)
        self.assertEqual(parsed.extra, {})


class FormTextTests(TestCase):
    def test_parse_reads_key_value_lines(self):
        values = parse_form_text("Name: Gel Manicure\nduration: 60\nnot a field\nIs Active: yes\nnotes: a: b")
        self.assertEqual(values, {'name': 'Gel Manicure', 'duration': '60', 'is_active': 'yes', 'notes': 'a: b'})

    def test_render_writes_booleans_as_words(self):
        self.assertEqual(render_form_text({'name': 'Haircut', 'is_active': False, 'bio': None}),
                         "name: Haircut\nis_active: no\nbio: ")


class DialogTests(IsolatedAsyncioTestCase):
    async def test_create_mode_starts_from_defaults(self):
        dialog = ServiceDialog(on_submit=None)
        self.assertFalse(dialog.is_edit)
        values = dialog.initial_values()
        self.assertEqual(values['duration'], 30)
        self.assertEqual(values['category'], 'General')
        self.assertTrue(values['is_active'])

    async def test_edit_mode_prefills_the_record(self):
        service = Service(id='svc-1', name='Haircut', duration=45, price=Decimal('500'), category='Hair')
        dialog = ServiceDialog(on_submit=None, record=service)
        self.assertTrue(dialog.is_edit)
        self.assertEqual(dialog.initial_values()['duration'], 45)
        self.assertIn('name: Haircut', dialog.template())

    async def test_email_is_locked_when_editing(self):
        """The login identity cannot be changed from the edit form."""
        received = []

        async def on_submit(form):
            received.append(form)
            return ActionResult(True)

        staff = Staff(id='staff-1', name='Maria Santos', email='maria@lumina.ph', title='Stylist')
        dialog = StaffDialog(on_submit, record=staff)
        self.assertNotIn('email', dialog.initial_values())

        outcome = await dialog.submit({'name': 'Maria S.', 'email': 'other@lumina.ph'})
        self.assertTrue(outcome.success)
        self.assertEqual(received[0].email, 'maria@lumina.ph')
        self.assertEqual(received[0].name, 'Maria S.')

    async def test_staff_edit_keeps_the_avatar(self):
        received = []

        async def on_submit(form):
            received.append(form)
            return ActionResult(True)

        staff = Staff(id='staff-1', name='Maria Santos', email='maria@lumina.ph', title='Stylist',
                      avatar_url='https://cdn.lumina.ph/maria.png')
        dialog = StaffDialog(on_submit, record=staff)
        self.assertNotIn('avatar_url', dialog.initial_values())

        outcome = await dialog.submit({'bio': 'Colour specialist', 'avatar_url': ''})
        self.assertTrue(outcome.success)
        self.assertEqual(received[0].avatar_url, 'https://cdn.lumina.ph/maria.png')
        self.assertEqual(received[0].bio, 'Colour specialist')

    async def test_client_edit_keeps_birthday(self):
        received = []

        async def on_submit(form):
            received.append(form)
            return ActionResult(True)

        client = Client(id='c1', name='Ana Reyes', email='ana@lumina.ph', date_of_birth=date(1992, 4, 8))
        outcome = await ClientDialog(on_submit, record=client).submit({'phone': '0917 555 0101'})
        self.assertTrue(outcome.submitted)
        self.assertEqual(received[0].date_of_birth, date(1992, 4, 8))

    async def test_validation_errors_skip_the_submit(self):
        calls = []

        async def on_submit(form):
            calls.append(form)
            return ActionResult(True)

        outcome = await ServiceDialog(on_submit).submit({'name': 'Trim', 'duration': '2'})
        self.assertFalse(outcome.submitted)
        self.assertEqual(outcome.errors, {'duration': 'Minimum 5 minutes'})
        self.assertEqual(calls, [])

    async def test_only_one_submission_in_flight(self):
        """A second submit while the first is pending is ignored."""
        release = asyncio.Event()
        calls = []

        async def on_submit(form):
            calls.append(form)
            await release.wait()
            return ActionResult(True)

        dialog = ServiceDialog(on_submit)
        values = {'name': 'Gel Manicure', 'duration': '60', 'price': '650', 'category': 'Nails'}
        first = asyncio.create_task(dialog.submit(values))
        await asyncio.sleep(0)
        self.assertTrue(dialog.submitting)

        second = await dialog.submit(values)
        self.assertFalse(second.submitted)

        release.set()
        outcome = await first
        self.assertTrue(outcome.success)
        self.assertEqual(len(calls), 1)
        self.assertFalse(dialog.submitting)

    async def test_failed_store_call_keeps_dialog_usable(self):
        async def on_submit(form):
            return ActionResult(False, error='duplicate key value')

        dialog = ServiceDialog(on_submit)
        outcome = await dialog.submit({'name': 'Haircut', 'duration': '30', 'price': '500', 'category': 'Hair'})
        self.assertTrue(outcome.submitted)
        self.assertFalse(outcome.success)
        self.assertFalse(dialog.submitting)
