# tests/test_provisioning.py

from aiohttp.test_utils import AioHTTPTestCase

from provisioning.server import create_app

from fakes import FakeSupabaseClient

ADMIN_TOKEN = "access-admin-1"
STAFF_TOKEN = "access-staff-1"


class CreateUserAccountTests(AioHTTPTestCase):
    async def get_application(self):
        self.admin_client = FakeSupabaseClient()
        self.admin_client.add_account('owner@lumina.ph', 'owner-pass', 'admin-1', role='admin')
        self.admin_client.add_account('maria@lumina.ph', 'maria-pass', 'staff-1', role='staff')
        return create_app(self.admin_client)

    async def post(self, body, token=ADMIN_TOKEN):
        headers = {'Authorization': f"Bearer {token}"} if token else {}
        response = await self.client.request("POST", "/create-user-account", json=body, headers=headers)
        return response, await response.json()

    def inserted(self, table):
        return [row for name, row in self.admin_client.inserted if name == table]

    async def test_preflight_answers_with_cors_headers(self):
        response = await self.client.request("OPTIONS", "/create-user-account")
        self.assertEqual(response.status, 200)
        self.assertEqual(response.headers['Access-Control-Allow-Origin'], '*')
        self.assertIn('authorization', response.headers['Access-Control-Allow-Headers'])

    async def test_missing_authorization_header(self):
        response, payload = await self.post({'email': 'ana@lumina.ph'}, token=None)
        self.assertEqual(response.status, 400)
        self.assertEqual(payload, {'error': 'No authorization header'})

    async def test_unknown_token_is_rejected(self):
        response, payload = await self.post({'email': 'ana@lumina.ph'}, token='forged')
        self.assertEqual(response.status, 400)
        self.assertEqual(payload, {'error': 'invalid JWT'})

    async def test_only_admins_may_provision(self):
        """A signed-in staff member cannot create accounts."""
        response, payload = await self.post(
            {'email': 'ana@lumina.ph', 'password': 'secret123', 'userType': 'client'}, token=STAFF_TOKEN)
        self.assertEqual(response.status, 400)
        self.assertEqual(payload['error'], 'Only admins can create user accounts')
        self.assertEqual(self.admin_client.auth.admin.created, [])

    async def test_required_fields(self):
        response, payload = await self.post({'email': 'ana@lumina.ph', 'userType': 'client'})
        self.assertEqual(response.status, 400)
        self.assertEqual(payload['error'], 'Email, password, and userType are required')

    async def test_staff_account_with_defaults(self):
        response, payload = await self.post({
            'email': 'joy@lumina.ph', 'password': 'secret123', 'phone': '0917 555 0199',
            'userType': 'staff', 'additionalData': {},
        })

        self.assertEqual(response.status, 200)
        self.assertEqual(payload, {'success': True, 'userId': 'user-1'})

        created = self.admin_client.auth.admin.created[0]
        self.assertTrue(created['email_confirm'])
        self.assertEqual(created['user_metadata'], {'full_name': None, 'phone': '0917 555 0199'})

        self.assertEqual(self.inserted('profiles')[0]['user_id'], 'user-1')
        self.assertEqual(self.inserted('user_roles'), [{'user_id': 'user-1', 'role': 'staff'}])
        staff = self.inserted('staff')[0]
        self.assertEqual(staff['name'], 'New Staff')
        self.assertEqual(staff['title'], 'Specialist')
        self.assertTrue(staff['is_active'])
        self.assertIsNone(staff['bio'])

    async def test_client_account_carries_additional_data(self):
        response, payload = await self.post({
            'email': 'ana@lumina.ph', 'password': 'secret123', 'fullName': 'Ana Reyes',
            'userType': 'client', 'additionalData': {'date_of_birth': '1992-04-08', 'notes': 'Prefers mornings'},
        })

        self.assertTrue(payload['success'])
        client = self.inserted('clients')[0]
        self.assertEqual(client['name'], 'Ana Reyes')
        self.assertEqual(client['date_of_birth'], '1992-04-08')
        self.assertEqual(client['notes'], 'Prefers mornings')
        self.assertEqual(self.inserted('user_roles')[0]['role'], 'client')
        self.assertEqual(self.inserted('staff'), [])

    async def test_inactive_staff_flag_is_kept(self):
        await self.post({
            'email': 'joy@lumina.ph', 'password': 'secret123', 'fullName': 'Joy Lim',
            'userType': 'staff', 'additionalData': {'is_active': False, 'title': 'Esthetician'},
        })
        staff = self.inserted('staff')[0]
        self.assertFalse(staff['is_active'])
        self.assertEqual(staff['title'], 'Esthetician')
