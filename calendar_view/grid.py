"""
Calendar grid
-------------
Projects appointments onto day / 3-day / week columns with a 15-minute time
axis, or onto month cells.

Placement:
- each appointment is drawn once, as a block anchored at the slot equal to
  its start_time; the block spans total_duration / 15 rows
- the slots it covers after the start are "covered", never a second block
- columns are per day, not per staff member; overlapping appointments share
  the same slot and are listed side by side

An appointment whose start_time is not on the 15-minute axis has no start
slot and is left out of the time grid (it still shows in the month view).
"""

import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from database.models import Appointment, AppointmentStatus, format_minutes


class ViewMode:
    DAY = 'day'
    THREE_DAY = '3day'
    WEEK = 'week'
    MONTH = 'month'

    ALL = (DAY, THREE_DAY, WEEK, MONTH)
    LABELS = {DAY: 'Day', THREE_DAY: '3 Days', WEEK: 'Week', MONTH: 'Month'}


SLOT_MINUTES = 15
TIME_AXIS: Tuple[str, ...] = tuple(format_minutes(m) for m in range(0, 24 * 60, SLOT_MINUTES))
SLOT_INDEX: Dict[str, int] = {label: i for i, label in enumerate(TIME_AXIS)}

DEFAULT_ROW_HEIGHT = 1


@dataclass(frozen=True)
class StatusStyle:
    emoji: str
    label: str


STATUS_STYLES = {
    AppointmentStatus.PENDING: StatusStyle('🟡', 'Pending'),
    AppointmentStatus.CONFIRMED: StatusStyle('🟢', 'Confirmed'),
    AppointmentStatus.CANCELLED: StatusStyle('🔴', 'Cancelled'),
    AppointmentStatus.COMPLETED: StatusStyle('🔵', 'Completed'),
}
UNKNOWN_STATUS = StatusStyle('⚪', 'Unknown')


def status_style(status: str) -> StatusStyle:
    return STATUS_STYLES.get(status, UNKNOWN_STATUS)


def status_badge(status: str) -> str:
    style = status_style(status)
    return f"{style.emoji} {style.label}"


# --- Columns ---
def today_in(timezone: str) -> date:
    return datetime.now(ZoneInfo(timezone)).date()


def week_start(anchor: date) -> date:
    return anchor - timedelta(days=anchor.weekday())


def visible_days(mode: str, anchor: date) -> List[date]:
    if mode == ViewMode.DAY:
        return [anchor]
    if mode == ViewMode.THREE_DAY:
        return [anchor + timedelta(days=i) for i in range(3)]
    if mode == ViewMode.WEEK:
        start = week_start(anchor)
        return [start + timedelta(days=i) for i in range(7)]
    if mode == ViewMode.MONTH:
        days_in_month = calendar.monthrange(anchor.year, anchor.month)[1]
        return [date(anchor.year, anchor.month, d) for d in range(1, days_in_month + 1)]
    raise ValueError(f"Unknown view mode: {mode}")


def month_cells(anchor: date) -> List[Optional[date]]:
    """Month days left-padded with None so day 1 sits in its weekday column (Monday first)."""
    first_weekday, days_in_month = calendar.monthrange(anchor.year, anchor.month)
    cells: List[Optional[date]] = [None] * first_weekday
    cells.extend(date(anchor.year, anchor.month, d) for d in range(1, days_in_month + 1))
    return cells


# --- Navigation ---
def shift_anchor(mode: str, anchor: date, step: int) -> date:
    """Moves the anchor one page forward (step=1) or back (step=-1)."""
    if mode == ViewMode.DAY:
        return anchor + timedelta(days=step)
    if mode == ViewMode.THREE_DAY:
        return anchor + timedelta(days=3 * step)
    if mode == ViewMode.WEEK:
        return anchor + timedelta(days=7 * step)
    if mode == ViewMode.MONTH:
        month_index = anchor.year * 12 + anchor.month - 1 + step
        year, month = divmod(month_index, 12)
        day = min(anchor.day, calendar.monthrange(year, month + 1)[1])
        return date(year, month + 1, day)
    raise ValueError(f"Unknown view mode: {mode}")


def title_for(mode: str, anchor: date) -> str:
    if mode == ViewMode.MONTH:
        return anchor.strftime('%B %Y')
    days = visible_days(mode, anchor)
    if len(days) == 1:
        return days[0].strftime('%A, %B %d, %Y')
    return f"{days[0].strftime('%b %d')} – {days[-1].strftime('%b %d, %Y')}"


# --- Time grid ---
def slot_span(duration_minutes: int) -> int:
    return max(1, math.ceil(duration_minutes / SLOT_MINUTES))


@dataclass
class Block:
    appointment: Appointment
    column: int
    start_slot: int
    span: int
    height: float

    @property
    def end_slot(self) -> int:
        return min(self.start_slot + self.span, len(TIME_AXIS))


@dataclass
class TimeGrid:
    mode: str
    anchor: date
    days: List[date]
    row_height: float = DEFAULT_ROW_HEIGHT
    blocks: List[Block] = field(default_factory=list)

    def blocks_at(self, column: int, slot: int) -> List[Block]:
        return [b for b in self.blocks if b.column == column and b.start_slot == slot]

    def covering(self, column: int, slot: int) -> List[Block]:
        return [b for b in self.blocks if b.column == column and b.start_slot < slot < b.end_slot]

    def slot_lookup(self, column: int, slot: int) -> str:
        if self.blocks_at(column, slot):
            return 'block'
        if self.covering(column, slot):
            return 'covered'
        return 'empty'

    def empty_slots(self, column: int) -> List[str]:
        return [TIME_AXIS[i] for i in range(len(TIME_AXIS)) if self.slot_lookup(column, i) == 'empty']

    def occupied_rows(self) -> List[int]:
        rows = set()
        for b in self.blocks:
            rows.update(range(b.start_slot, b.end_slot))
        return sorted(rows)


def build_time_grid(appointments: Iterable[Appointment], mode: str, anchor: date,
                    row_height: float = DEFAULT_ROW_HEIGHT) -> TimeGrid:
    if mode == ViewMode.MONTH:
        raise ValueError("Month view has no time axis; use build_month_grid")
    days = visible_days(mode, anchor)
    columns = {day: i for i, day in enumerate(days)}
    grid = TimeGrid(mode=mode, anchor=anchor, days=days, row_height=row_height)

    for appointment in appointments:
        column = columns.get(appointment.appointment_date)
        if column is None:
            continue
        start_slot = SLOT_INDEX.get(appointment.start_time)
        if start_slot is None:
            continue
        span = slot_span(appointment.total_duration)
        grid.blocks.append(Block(
            appointment=appointment,
            column=column,
            start_slot=start_slot,
            span=span,
            height=appointment.total_duration / SLOT_MINUTES * row_height,
        ))

    grid.blocks.sort(key=lambda b: (b.column, b.start_slot, b.appointment.start_time))
    return grid


# --- Month grid ---
@dataclass
class MonthCell:
    day: Optional[date]
    appointments: List[Appointment] = field(default_factory=list)

    @property
    def is_padding(self) -> bool:
        return self.day is None


def build_month_grid(appointments: Iterable[Appointment], anchor: date) -> List[MonthCell]:
    by_day: Dict[date, List[Appointment]] = {}
    for appointment in appointments:
        d = appointment.appointment_date
        if d and d.year == anchor.year and d.month == anchor.month:
            by_day.setdefault(d, []).append(appointment)

    cells = []
    for day in month_cells(anchor):
        found = sorted(by_day.get(day, []), key=lambda a: a.start_time or '') if day else []
        cells.append(MonthCell(day=day, appointments=found))
    return cells
