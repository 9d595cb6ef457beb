"""
Booking wizard
--------------
Five linear steps: service -> staff -> datetime -> details -> confirm.

"Continue" moves forward only when the current step is complete, "Back" is
always allowed. Nothing is written to the store from here: the confirm step
hands a draft to whoever submits bookings.

The date and time grids are static. They do not look at existing
appointments or at staff working hours, so two clients can pick the same
staff member and slot.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from database.models import Service, Staff, format_minutes, minutes_of

STEPS = ('service', 'staff', 'datetime', 'details', 'confirm')
STEP_LABELS = {
    'service': 'Service',
    'staff': 'Specialist',
    'datetime': 'Date & Time',
    'details': 'Your Details',
    'confirm': 'Confirm',
}

ANY_STAFF = 'any'
BOOKING_WINDOW_DAYS = 14

TIME_SLOTS = tuple(format_minutes(m) for m in range(9 * 60, 17 * 60 + 1, 30))


def available_dates(today: date) -> List[date]:
    """The next 14 calendar days, starting tomorrow."""
    return [today + timedelta(days=i) for i in range(1, BOOKING_WINDOW_DAYS + 1)]


@dataclass
class SelectedService:
    id: str
    name: str
    duration: int
    price: Decimal

    @classmethod
    def of(cls, service: Service) -> 'SelectedService':
        return cls(id=service.id, name=service.name, duration=service.duration, price=service.price)


@dataclass
class ContactDetails:
    name: str = ''
    email: str = ''
    phone: str = ''
    notes: str = ''

    def is_complete(self) -> bool:
        return all(value.strip() for value in (self.name, self.email, self.phone))


@dataclass
class BookingDraft:
    service_ids: List[str]
    service_names: List[str]
    staff_id: Optional[str]
    staff_name: str
    appointment_date: date
    start_time: str
    end_time: str
    total_duration: int
    total_price: Decimal
    contact: ContactDetails


@dataclass
class BookingWizard:
    step: str = STEPS[0]
    services: List[SelectedService] = field(default_factory=list)
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    day: Optional[date] = None
    slot: Optional[str] = None
    details: ContactDetails = field(default_factory=ContactDetails)
    email_locked: bool = False

    # --- Step navigation ---
    @property
    def step_index(self) -> int:
        return STEPS.index(self.step)

    @property
    def is_terminal(self) -> bool:
        return self.step == STEPS[-1]

    def can_continue(self) -> bool:
        if self.step == 'service':
            return bool(self.services)
        if self.step == 'staff':
            return self.staff_id is not None
        if self.step == 'datetime':
            return self.day is not None and self.slot is not None
        if self.step == 'details':
            return self.details.is_complete()
        return False

    def next(self) -> bool:
        if not self.can_continue():
            return False
        self.step = STEPS[self.step_index + 1]
        return True

    def back(self) -> bool:
        if self.step_index == 0:
            return False
        self.step = STEPS[self.step_index - 1]
        return True

    # --- Service step ---
    def toggle_service(self, service: Service) -> bool:
        """Adds the service, or removes it if already selected. Returns the new state."""
        for selected in self.services:
            if selected.id == service.id:
                self.services.remove(selected)
                return False
        self.services.append(SelectedService.of(service))
        return True

    def is_selected(self, service_id: str) -> bool:
        return any(s.id == service_id for s in self.services)

    @property
    def total_duration(self) -> int:
        return sum(s.duration for s in self.services)

    @property
    def total_price(self) -> Decimal:
        return sum((s.price for s in self.services), Decimal('0'))

    # --- Staff step ---
    def choose_staff(self, staff: Optional[Staff]) -> None:
        """``None`` picks the "any available" option."""
        if staff is None:
            self.staff_id, self.staff_name = ANY_STAFF, 'Any Available'
        else:
            self.staff_id, self.staff_name = staff.id, staff.name

    # --- Date & time step ---
    def choose_date(self, day: date, today: date) -> bool:
        if day not in available_dates(today):
            return False
        self.day = day
        return True

    def choose_time(self, slot: str) -> bool:
        if slot not in TIME_SLOTS:
            return False
        self.slot = slot
        return True

    # --- Details step ---
    def autofill(self, session) -> None:
        """Prefills contact fields from a signed-in session and locks the email."""
        if session is None:
            return
        if not self.details.name and session.full_name:
            self.details.name = session.full_name
        if session.email:
            self.details.email = session.email
            self.email_locked = True

    def set_detail(self, name: str, value: str) -> bool:
        if name not in ('name', 'email', 'phone', 'notes'):
            return False
        if name == 'email' and self.email_locked:
            return False
        setattr(self.details, name, (value or '').strip())
        return True

    # --- Confirm step ---
    @property
    def end_time(self) -> Optional[str]:
        if not self.slot:
            return None
        return format_minutes(minutes_of(self.slot) + self.total_duration)

    def summary(self, currency: str = '₱') -> str:
        lines = [f"• {s.name} ({s.duration} min, {currency}{s.price:,.2f})" for s in self.services]
        if self.staff_name:
            lines.append(f"Specialist: {self.staff_name}")
        if self.day and self.slot:
            lines.append(f"When: {self.day:%a, %b %d} at {self.slot}–{self.end_time}")
        lines.append(f"Total: {self.total_duration} min · {currency}{self.total_price:,.2f}")
        return "\n".join(lines)

    def draft(self) -> BookingDraft:
        return BookingDraft(
            service_ids=[s.id for s in self.services],
            service_names=[s.name for s in self.services],
            staff_id=None if self.staff_id == ANY_STAFF else self.staff_id,
            staff_name=self.staff_name or '',
            appointment_date=self.day,
            start_time=self.slot,
            end_time=self.end_time,
            total_duration=self.total_duration,
            total_price=self.total_price,
            contact=ContactDetails(**asdict(self.details)),
        )

    # --- FSM storage ---
    def to_state(self) -> Dict[str, object]:
        return {
            'step': self.step,
            'services': [
                {'id': s.id, 'name': s.name, 'duration': s.duration, 'price': str(s.price)}
                for s in self.services
            ],
            'staff_id': self.staff_id,
            'staff_name': self.staff_name,
            'date': self.day.isoformat() if self.day else None,
            'time': self.slot,
            'details': asdict(self.details),
            'email_locked': self.email_locked,
        }

    @classmethod
    def from_state(cls, data: Optional[dict]) -> 'BookingWizard':
        if not data:
            return cls()
        return cls(
            step=data.get('step', STEPS[0]),
            services=[
                SelectedService(id=s['id'], name=s['name'], duration=int(s['duration']), price=Decimal(s['price']))
                for s in data.get('services', [])
            ],
            staff_id=data.get('staff_id'),
            staff_name=data.get('staff_name'),
            day=date.fromisoformat(data['date']) if data.get('date') else None,
            slot=data.get('time'),
            details=ContactDetails(**data.get('details', {})),
            email_locked=data.get('email_locked', False),
        )
