# stores/appointments.py

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import List

from database.models import Appointment, AppointmentStatus
from forms.schemas import AppointmentForm
from .base import ActionResult, EntityStore, LookupTable, describe_error

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = 'Unknown Client'
UNKNOWN_STAFF = 'Unknown Staff'
UNKNOWN_SERVICE = 'Unknown Service'


@dataclass
class DaySummary:
    day: date
    appointments: List[Appointment] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.appointments)

    @property
    def confirmed(self) -> int:
        return sum(1 for a in self.appointments if a.status == AppointmentStatus.CONFIRMED)

    @property
    def revenue(self) -> Decimal:
        return sum((a.total_price for a in self.appointments), Decimal('0'))


class AppointmentStore(EntityStore[Appointment]):
    table = 'appointments'
    label = 'appointments'
    singular = 'appointment'
    order = 'appointment_date'
    order_desc = True
    form_schema = AppointmentForm

    def __init__(self, db, notify=None):
        super().__init__(db, notify)
        self._channel = None
        self._pending = set()

    def from_row(self, row: dict) -> Appointment:
        return Appointment.from_row(row)

    async def load(self) -> List[Appointment]:
        try:
            rows = await self.db.fetch_all(self.table, order=self.order, desc=self.order_desc)
            appointments = [self.from_row(row) for row in rows]
            self.items = await self._enrich(appointments) if appointments else []
        except Exception as e:
            logger.error(f"Error fetching appointments: {describe_error(e, 'unknown error')}")
            await self.notify('error', "Failed to load appointments")
        finally:
            self.loading = False
        return self.items

    async def _enrich(self, appointments: List[Appointment]) -> List[Appointment]:
        client_ids = {a.client_id for a in appointments}
        staff_ids = {a.staff_id for a in appointments if a.staff_id}
        service_ids = {sid for a in appointments for sid in a.service_ids}

        clients = LookupTable(
            await self.db.fetch_in('clients', 'id, name', 'id', sorted(client_ids)),
            lambda row: row['name'], UNKNOWN_CLIENT)
        staff = LookupTable(
            await self.db.fetch_in('staff', 'id, name, avatar_url', 'id', sorted(staff_ids)),
            lambda row: (row['name'], row.get('avatar_url')), (UNKNOWN_STAFF, None))
        services = LookupTable(
            await self.db.fetch_in('services', 'id, name', 'id', sorted(service_ids)),
            lambda row: row['name'], UNKNOWN_SERVICE)

        enriched = []
        for a in appointments:
            staff_name, avatar = staff.get(a.staff_id)
            enriched.append(replace(
                a,
                client_name=clients.get(a.client_id),
                staff_name=staff_name,
                staff_avatar_url=avatar,
                service_names=[services.get(sid) for sid in a.service_ids],
            ))
        return enriched

    async def create(self, form) -> ActionResult:
        form, invalid = await self._validated(form)
        if invalid:
            return invalid
        try:
            row = await self.db.insert(self.table, form.model_dump(mode='json'))
        except Exception as e:
            return await self._failed(e, "Failed to create appointment")
        await self.notify('success', "Appointment booked successfully!")
        await self.load()
        return ActionResult(True, data=self.from_row(row))

    async def update_status(self, record_id: str, status: str) -> ActionResult:
        if status not in AppointmentStatus.ALL:
            return ActionResult(False, error=f"Unknown status '{status}'")
        try:
            await self.db.update(self.table, record_id, {'status': status})
        except Exception as e:
            return await self._failed(e, "Failed to update appointment")
        self.items = [replace(a, status=status) if a.id == record_id else a for a in self.items]
        await self.notify('success', "Appointment updated successfully")
        return ActionResult(True)

    # --- Change feed ---
    async def subscribe(self):
        if self._channel is not None:
            return self._channel
        try:
            self._channel = await self.db.subscribe(self.table, self._on_change)
        except Exception as e:
            logger.error(f"Could not subscribe to appointment changes: {describe_error(e, 'unknown error')}")
        return self._channel

    def _on_change(self, payload) -> None:
        # Realtime callbacks are synchronous; the reload runs on the loop
        task = asyncio.get_running_loop().create_task(self.handle_change(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def handle_change(self, payload) -> None:
        """Any insert/update/delete on the table reloads the whole list."""
        logger.debug(f"Appointments changed: {payload}")
        await self.load()

    async def close(self) -> None:
        if self._channel is None:
            return
        try:
            await self.db.unsubscribe(self._channel)
        finally:
            self._channel = None

    # --- Views over the local list ---
    def for_date(self, day: date) -> List[Appointment]:
        return sorted((a for a in self.items if a.appointment_date == day), key=lambda a: a.start_time or '')

    def search(self, query: str) -> List[Appointment]:
        query = (query or '').strip().lower()
        if not query:
            return list(self.items)
        return [
            a for a in self.items
            if query in (a.client_name or '').lower()
            or any(query in name.lower() for name in a.service_names)
        ]

    def day_summary(self, day: date) -> DaySummary:
        return DaySummary(day=day, appointments=self.for_date(day))
