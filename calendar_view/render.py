from html import escape
from typing import List

from database.models import Appointment
from .grid import TIME_AXIS, MonthCell, TimeGrid, status_badge, status_style

CELL_WIDTH = 6
MESSAGE_LIMIT = 4000

EMPTY_CELL = '·'
COVERED_CELL = '│'


def _fit(text: str, width: int) -> str:
    return text[:width].ljust(width)


def describe_appointment(a: Appointment, currency: str = '₱') -> str:
    services = ', '.join(a.service_names) if a.service_names else '—'
    return (f"{status_style(a.status).emoji} {a.start_time}–{a.end_time} "
            f"<b>{escape(a.client_name or '')}</b> · {escape(services)} "
            f"({escape(a.staff_name or '')}) {currency}{a.total_price:,.2f}")


def render_time_grid(grid: TimeGrid, title: str, currency: str = '₱') -> str:
    if not grid.blocks:
        return f"<b>{escape(title)}</b>\n\nNo appointments scheduled."

    header = ' ' * CELL_WIDTH + ''.join(_fit(d.strftime('%a%d'), CELL_WIDTH) for d in grid.days)
    lines = [header]
    for row in grid.occupied_rows():
        cells = []
        for column in range(len(grid.days)):
            starting = grid.blocks_at(column, row)
            if starting:
                first = starting[0].appointment
                mark = status_style(first.status).emoji + (first.client_name or '?')[:2]
                if len(starting) > 1:
                    mark = f"{len(starting)}×" + mark
                cells.append(_fit(mark, CELL_WIDTH))
            elif grid.covering(column, row):
                cells.append(_fit(COVERED_CELL, CELL_WIDTH))
            else:
                cells.append(_fit(EMPTY_CELL, CELL_WIDTH))
        lines.append(_fit(TIME_AXIS[row], CELL_WIDTH) + ''.join(cells))

    listing = []
    for block in grid.blocks:
        day = grid.days[block.column].strftime('%a %d')
        listing.append(f"{day} {describe_appointment(block.appointment, currency)}")

    return _assemble(title, lines, listing)


def render_month(cells: List[MonthCell], title: str) -> str:
    header = ' '.join(d.ljust(3) for d in ('Mo', 'Tu', 'We', 'Th', 'Fr', 'Sa', 'Su'))
    rows, current = [header], []
    for cell in cells:
        if cell.is_padding:
            current.append('   ')
        else:
            marker = '*' if cell.appointments else ' '
            current.append(f"{cell.day.day:>2}{marker}")
        if len(current) == 7:
            rows.append(' '.join(current))
            current = []
    if current:
        rows.append(' '.join(current))

    busy = [c for c in cells if c.appointments]
    listing = [
        f"{c.day.strftime('%a %d')}: {len(c.appointments)} appointment(s)"
        for c in busy
    ]
    return _assemble(title, rows, listing)


# Offered on an empty slot; neither action does anything yet
CONTEXT_MENU_ACTIONS = (
    ('add_appointment', '➕ Add Appointment'),
    ('add_note', '📝 Add Note'),
)


def render_context_menu(day, slot: str) -> str:
    return f"<b>{day:%a, %b %d} · {slot}</b>\nThis slot is free."


def render_appointment_row(a: Appointment, currency: str = '₱') -> str:
    return (f"{a.appointment_date:%b %d} {a.start_time} · <b>{escape(a.client_name or '')}</b>\n"
            f"   {escape(', '.join(a.service_names))} · {escape(a.staff_name or '')} · "
            f"{currency}{a.total_price:,.2f} · {status_badge(a.status)}")


def _assemble(title: str, grid_lines: List[str], listing: List[str]) -> str:
    """Title, monospace grid, then listing lines, kept under one message."""
    head = f"<b>{escape(title)}</b>\n"
    lines = list(grid_lines)

    def pre(rows):
        return f"<pre>{escape(chr(10).join(rows))}</pre>"

    clipped = False
    # Room for the trailing ellipsis line
    budget = MESSAGE_LIMIT - 2
    while len(head) + len(pre(lines)) > budget and len(lines) > 1:
        lines.pop()
        clipped = True
    if clipped:
        lines[-1] = '…'

    text = head + pre(lines)
    for line in listing:
        if len(text) + len(line) + 1 > budget:
            return text + "\n…"
        text += "\n" + line
    return text
