# stores/accounts.py

import logging
from typing import Optional

import aiohttp

from database.models import UserRole
from forms.schemas import AccountRequest
from .base import ActionResult

logger = logging.getLogger(__name__)


class ProvisioningError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AccountProvisioner:
    """Client side of the create-user-account endpoint.

    The endpoint re-checks the admin role; the checks here only spare the
    round trip for callers that can never succeed.
    """

    def __init__(self, url: str, timeout: float = 15):
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def provision(self, session, user_type: str, email: str, password: str,
                        full_name: str, phone: Optional[str], additional_data: dict) -> str:
        if session is None:
            plural = 'staff' if user_type == 'staff' else 'clients'
            raise ProvisioningError(f"You must be logged in to create {plural}")
        if session.role != UserRole.ADMIN:
            raise ProvisioningError("Only admins can create user accounts")

        body = AccountRequest(
            email=email,
            password=password,
            full_name=full_name,
            phone=phone,
            user_type=user_type,
            additional_data=additional_data,
        ).model_dump(by_alias=True)
        headers = {'Authorization': f"Bearer {session.access_token}"}

        async with aiohttp.ClientSession(timeout=self.timeout) as http:
            async with http.post(self.url, json=body, headers=headers) as response:
                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None

        if not isinstance(payload, dict):
            raise ProvisioningError("Failed to create user account")
        if payload.get('error'):
            raise ProvisioningError(payload['error'])
        if response.status >= 400 or not payload.get('success'):
            raise ProvisioningError("Failed to create user account")

        logger.info(f"Provisioned {user_type} account {payload.get('userId')} for {email}")
        return payload['userId']


class AccountBackedStore:
    """Mixin for stores whose rows can own a login identity.

    A create with a password goes through the provisioning endpoint, which
    writes the business row itself; the local list is then reloaded.
    """

    user_type: str

    def __init__(self, db, notify=None, provisioner: Optional[AccountProvisioner] = None, session=None):
        super().__init__(db, notify)
        self.provisioner = provisioner
        self.session = session

    def additional_data(self, form) -> dict:
        raise NotImplementedError

    async def create(self, form):
        form, invalid = await self._validated(form)
        if invalid:
            return invalid
        if not form.password:
            return await super().create(form)
        if self.provisioner is None:
            message = "Account creation is not available right now"
            logger.error(f"{message}: no provisioning endpoint configured for {self.label}")
            await self.notify('error', message)
            return ActionResult(False, error=message)

        try:
            user_id = await self.provisioner.provision(
                self.session,
                user_type=self.user_type,
                email=form.email,
                password=form.password,
                full_name=form.name,
                phone=form.phone,
                additional_data=self.additional_data(form),
            )
        except Exception as e:
            return await self._failed(e, f"Failed to create {self.singular}")

        await self.load()
        await self.notify('success', f"{self.singular.capitalize()} account created successfully")
        return ActionResult(True, data=user_id)
