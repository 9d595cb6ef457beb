# keyboards/admin_keyboards.py

from typing import List, Sequence

from aiogram.types import InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from calendar_view.grid import ViewMode, status_style
from calendar_view.render import CONTEXT_MENU_ACTIONS
from database.models import Appointment, AppointmentStatus

ENTITY_TITLES = {
    'clients': 'Clients',
    'services': 'Services',
    'staff': 'Staff',
}

STATUS_ACTIONS = {
    AppointmentStatus.CONFIRMED: "🟢 Confirm",
    AppointmentStatus.COMPLETED: "🔵 Complete",
    AppointmentStatus.CANCELLED: "🔴 Cancel",
    AppointmentStatus.PENDING: "🟡 Pending",
}


def get_dashboard_keyboard(is_admin: bool):
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(text="📅 Appointments", callback_data="dash_appts"))
    builder.add(InlineKeyboardButton(text="👥 Clients", callback_data="ent_list_clients"))
    builder.add(InlineKeyboardButton(text="💇 Services", callback_data="ent_list_services"))
    if is_admin:
        builder.add(InlineKeyboardButton(text="🧑‍💼 Staff", callback_data="ent_list_staff"))
    builder.add(InlineKeyboardButton(text="🔄 Refresh", callback_data="dash_home"))
    builder.add(InlineKeyboardButton(text="🏠 Home", callback_data="landing"))
    builder.adjust(2)
    return builder.as_markup()


def get_calendar_keyboard(mode: str, empty_hours: Sequence[str] = ()):
    builder = InlineKeyboardBuilder()
    builder.row(*[
        InlineKeyboardButton(text=("• " if m == mode else "") + ViewMode.LABELS[m], callback_data=f"cal_view_{m}")
        for m in ViewMode.ALL
    ])
    builder.row(
        InlineKeyboardButton(text="◀️", callback_data="cal_prev"),
        InlineKeyboardButton(text="Today", callback_data="cal_today"),
        InlineKeyboardButton(text="▶️", callback_data="cal_next"),
    )
    # Empty hour slots, day view only
    hours = [InlineKeyboardButton(text=f"＋{h}", callback_data=f"cal_slot_{h}") for h in empty_hours]
    for i in range(0, len(hours), 4):
        builder.row(*hours[i:i + 4])
    builder.row(
        InlineKeyboardButton(text="📋 List & search", callback_data="appt_list"),
        InlineKeyboardButton(text="🏠 Dashboard", callback_data="dash_home"),
    )
    return builder.as_markup()


def get_context_menu_keyboard(slot: str):
    builder = InlineKeyboardBuilder()
    for action, label in CONTEXT_MENU_ACTIONS:
        builder.add(InlineKeyboardButton(text=label, callback_data=f"ctx_{action}_{slot}"))
    builder.add(InlineKeyboardButton(text="🔙 Calendar", callback_data="dash_appts"))
    builder.adjust(2, 1)
    return builder.as_markup()


def get_appointment_list_keyboard(appointments: List[Appointment]):
    builder = InlineKeyboardBuilder()
    for a in appointments:
        builder.row(InlineKeyboardButton(
            text=f"{status_style(a.status).emoji} {a.appointment_date:%b %d} {a.start_time} {a.client_name or ''}",
            callback_data=f"appt_{a.id}"
        ))
    builder.row(
        InlineKeyboardButton(text="🔍 Search", callback_data="appt_search"),
        InlineKeyboardButton(text="🔙 Calendar", callback_data="dash_appts"),
    )
    return builder.as_markup()


def get_appointment_actions_keyboard(appointment: Appointment):
    builder = InlineKeyboardBuilder()
    for status, label in STATUS_ACTIONS.items():
        if status != appointment.status:
            builder.add(InlineKeyboardButton(text=label, callback_data=f"apst_{status}_{appointment.id}"))
    builder.add(InlineKeyboardButton(text="🔙 Back to list", callback_data="appt_list"))
    builder.adjust(2)
    return builder.as_markup()


def get_entity_list_keyboard(kind: str, items: list, labels: List[str]):
    builder = InlineKeyboardBuilder()
    for item, label in zip(items, labels):
        builder.row(InlineKeyboardButton(text=label, callback_data=f"ent_view_{kind}_{item.id}"))
    builder.row(
        InlineKeyboardButton(text="➕ Add", callback_data=f"ent_new_{kind}"),
        InlineKeyboardButton(text="🔍 Search", callback_data=f"ent_search_{kind}"),
    )
    builder.row(InlineKeyboardButton(text="🏠 Dashboard", callback_data="dash_home"))
    return builder.as_markup()


def get_entity_actions_keyboard(kind: str, record_id: str):
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(text="✏️ Edit", callback_data=f"ent_edit_{kind}_{record_id}"))
    builder.add(InlineKeyboardButton(text="🗑 Delete", callback_data=f"ent_del_{kind}_{record_id}"))
    builder.add(InlineKeyboardButton(text=f"🔙 {ENTITY_TITLES[kind]}", callback_data=f"ent_list_{kind}"))
    builder.adjust(2, 1)
    return builder.as_markup()


def get_delete_confirmation_keyboard(kind: str, record_id: str):
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(text="🗑 Yes, delete", callback_data=f"ent_delok_{kind}_{record_id}"))
    builder.add(InlineKeyboardButton(text="Keep", callback_data=f"ent_view_{kind}_{record_id}"))
    return builder.as_markup()


def get_form_keyboard(kind: str):
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(text="❌ Cancel", callback_data=f"ent_list_{kind}"))
    return builder.as_markup()
