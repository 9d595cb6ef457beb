from typing import List

from database.models import Staff
from forms.schemas import StaffForm
from .accounts import AccountBackedStore
from .base import EntityStore


class StaffStore(AccountBackedStore, EntityStore[Staff]):
    table = 'staff'
    label = 'staff'
    singular = 'staff member'
    user_type = 'staff'
    form_schema = StaffForm

    def from_row(self, row: dict) -> Staff:
        return Staff.from_row(row)

    def to_insert(self, form: StaffForm) -> dict:
        return {
            'name': form.name,
            'email': form.email,
            'phone': form.phone or None,
            'title': form.title,
            'bio': form.bio or None,
            'is_active': form.is_active,
            'avatar_url': form.avatar_url or None,
        }

    def to_update(self, form: StaffForm) -> dict:
        values = self.to_insert(form)
        values.pop('email')
        return values

    def additional_data(self, form: StaffForm) -> dict:
        return {
            'title': form.title,
            'bio': form.bio,
            'is_active': form.is_active,
            'avatar_url': form.avatar_url,
        }

    def active(self) -> List[Staff]:
        return [s for s in self.items if s.is_active]
