"""
Account provisioning endpoint
-----------------------------
POST /create-user-account creates a login identity for a staff member or a
client together with its profile, role and business rows. It runs with the
service-role key and is the only place that key is used.

The caller must send ``Authorization: Bearer <access token>`` of a user whose
``user_roles.role`` is ``admin``. Any failure answers ``400 {"error": msg}``.
"""

import asyncio
import logging

from aiohttp import web
from supabase import AsyncClientOptions, acreate_client

from config_reader import config
from database.models import UserRole
from forms.schemas import AccountRequest
from stores.base import describe_error

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
}

ADMIN_CLIENT = web.AppKey('admin_client', object)


class ProvisioningRejected(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def bearer_token(request: web.Request) -> str:
    header = request.headers.get('Authorization')
    if not header:
        raise ProvisioningRejected("No authorization header")
    return header.replace('Bearer ', '', 1)


async def require_admin(admin, token: str):
    response = await admin.auth.get_user(token)
    caller = response.user if response else None
    if caller is None:
        raise ProvisioningRejected("Unauthorized")

    roles = await admin.table('user_roles').select('role').eq('user_id', caller.id).limit(1).execute()
    if not roles.data or roles.data[0].get('role') != UserRole.ADMIN:
        raise ProvisioningRejected("Only admins can create user accounts")
    return caller


def business_row(user_type: str, user_id: str, full_name, email: str, phone, extra: dict):
    if user_type == UserRole.CLIENT:
        return 'clients', {
            'user_id': user_id,
            'name': full_name or 'New Client',
            'email': email,
            'phone': phone,
            'date_of_birth': extra.get('date_of_birth') or None,
            'notes': extra.get('notes') or None,
        }
    if user_type == UserRole.STAFF:
        is_active = extra.get('is_active')
        return 'staff', {
            'user_id': user_id,
            'name': full_name or 'New Staff',
            'email': email,
            'phone': phone,
            'title': extra.get('title') or 'Specialist',
            'bio': extra.get('bio') or None,
            'is_active': True if is_active is None else is_active,
            'avatar_url': extra.get('avatar_url') or None,
        }
    return None, None


async def create_user_account(request: web.Request) -> web.Response:
    admin = request.app[ADMIN_CLIENT]
    try:
        caller = await require_admin(admin, bearer_token(request))

        body = AccountRequest.model_validate(await request.json())
        if not body.is_complete:
            raise ProvisioningRejected("Email, password, and userType are required")
        email, password, user_type = body.email, body.password, body.user_type
        full_name, phone = body.full_name, body.phone

        created = await admin.auth.admin.create_user({
            'email': email,
            'password': password,
            'email_confirm': True,
            'user_metadata': {'full_name': full_name, 'phone': phone},
        })
        user_id = created.user.id

        await admin.table('profiles').insert({
            'user_id': user_id,
            'full_name': full_name,
            'email': email,
            'phone': phone,
        }).execute()

        role = UserRole.STAFF if user_type == UserRole.STAFF else UserRole.CLIENT
        await admin.table('user_roles').insert({'user_id': user_id, 'role': role}).execute()

        table, row = business_row(user_type, user_id, full_name, email, phone, body.extra)
        if table:
            await admin.table(table).insert(row).execute()

        logger.info(f"Admin {caller.id} created {user_type} account {user_id} for {email}")
        return web.json_response({'success': True, 'userId': user_id}, headers=CORS_HEADERS)
    except Exception as e:
        message = describe_error(e, "Unknown error")
        logger.error(f"Account provisioning failed: {message}")
        return web.json_response({'error': message}, status=400, headers=CORS_HEADERS)


async def preflight(request: web.Request) -> web.Response:
    return web.Response(headers=CORS_HEADERS)


def create_app(admin_client) -> web.Application:
    app = web.Application()
    app[ADMIN_CLIENT] = admin_client
    app.router.add_post('/create-user-account', create_user_account)
    app.router.add_route('OPTIONS', '/create-user-account', preflight)
    return app


async def build_admin_client():
    if not config.supabase_service_role_key:
        raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY is required to run the provisioning server")
    return await acreate_client(
        config.supabase_url,
        config.supabase_service_role_key,
        options=AsyncClientOptions(auto_refresh_token=False, persist_session=False),
    )


async def serve():
    app = create_app(await build_admin_client())
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.provisioning_host, config.provisioning_port)
    await site.start()
    logger.info(f"Provisioning server listening on {config.provisioning_host}:{config.provisioning_port}")
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    try:
        asyncio.run(serve())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Provisioning server stopped.")


if __name__ == "__main__":
    main()
