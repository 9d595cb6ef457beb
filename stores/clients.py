from typing import List

from database.models import Client
from forms.schemas import ClientForm
from .accounts import AccountBackedStore
from .base import EntityStore


class ClientStore(AccountBackedStore, EntityStore[Client]):
    table = 'clients'
    label = 'clients'
    singular = 'client'
    user_type = 'client'
    form_schema = ClientForm

    def from_row(self, row: dict) -> Client:
        return Client.from_row(row)

    def to_insert(self, form: ClientForm) -> dict:
        return {
            'name': form.name,
            'email': form.email,
            'phone': form.phone or None,
            'date_of_birth': form.date_of_birth.isoformat() if form.date_of_birth else None,
            'notes': form.notes or None,
        }

    def to_update(self, form: ClientForm) -> dict:
        values = self.to_insert(form)
        values.pop('email')
        return values

    def additional_data(self, form: ClientForm) -> dict:
        return {
            'date_of_birth': form.date_of_birth.isoformat() if form.date_of_birth else None,
            'notes': form.notes,
        }

    def search(self, query: str) -> List[Client]:
        query = (query or '').strip().lower()
        if not query:
            return list(self.items)
        return [c for c in self.items if query in c.name.lower() or query in c.email.lower()]
