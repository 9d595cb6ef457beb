from typing import List

from database.models import Service
from forms.schemas import ServiceForm
from .base import EntityStore


class ServiceStore(EntityStore[Service]):
    table = 'services'
    label = 'services'
    singular = 'service'
    form_schema = ServiceForm

    def from_row(self, row: dict) -> Service:
        return Service.from_row(row)

    @property
    def categories(self) -> List[str]:
        seen = []
        for service in self.items:
            if service.category not in seen:
                seen.append(service.category)
        return seen

    def active(self) -> List[Service]:
        return [s for s in self.items if s.is_active]

    def by_category(self, only_active: bool = False):
        services = self.active() if only_active else self.items
        groups = {}
        for service in services:
            groups.setdefault(service.category, []).append(service)
        return groups
