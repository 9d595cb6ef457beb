# keyboards/client_keyboards.py

from datetime import date
from typing import Dict, List

from aiogram.types import InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from booking.wizard import ANY_STAFF, TIME_SLOTS, BookingWizard, available_dates
from database.models import Service, Staff


def get_landing_keyboard(signed_in: bool = False, can_use_dashboard: bool = False):
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="📅 Book now", callback_data="client_book"))
    if can_use_dashboard:
        builder.row(InlineKeyboardButton(text="📊 Dashboard", callback_data="dash_home"))
    if signed_in:
        builder.row(InlineKeyboardButton(text="🚪 Sign out", callback_data="auth_logout"))
    else:
        builder.row(
            InlineKeyboardButton(text="🔑 Sign in", callback_data="auth_login"),
            InlineKeyboardButton(text="📝 Sign up", callback_data="auth_signup"),
        )
    return builder.as_markup()


def _navigation_row(builder: InlineKeyboardBuilder, wizard: BookingWizard, show_back: bool = True):
    buttons = []
    if show_back and wizard.step_index > 0:
        buttons.append(InlineKeyboardButton(text="🔙 Back", callback_data="wizard_back"))
    if wizard.can_continue():
        buttons.append(InlineKeyboardButton(text="Continue ➡️", callback_data="wizard_next"))
    else:
        buttons.append(InlineKeyboardButton(text="🔒 Continue", callback_data="wizard_locked"))
    builder.row(*buttons)
    builder.row(InlineKeyboardButton(text="❌ Cancel", callback_data="cancel_booking"))


def get_services_keyboard(groups: Dict[str, List[Service]], wizard: BookingWizard, currency: str):
    builder = InlineKeyboardBuilder()
    for category, services in groups.items():
        builder.row(InlineKeyboardButton(text=f"— {category} —", callback_data="noop"))
        for service in services:
            mark = "✅ " if wizard.is_selected(service.id) else ""
            builder.row(InlineKeyboardButton(
                text=f"{mark}{service.name} · {service.duration} min · {currency}{service.price:,.0f}",
                callback_data=f"svc_{service.id}"
            ))
    _navigation_row(builder, wizard)
    return builder.as_markup()


def get_staff_keyboard(staff: List[Staff], wizard: BookingWizard):
    builder = InlineKeyboardBuilder()
    mark = "✅ " if wizard.staff_id == ANY_STAFF else ""
    builder.row(InlineKeyboardButton(text=f"{mark}✨ Any Available", callback_data=f"staff_{ANY_STAFF}"))
    for member in staff:
        mark = "✅ " if wizard.staff_id == member.id else ""
        builder.row(InlineKeyboardButton(text=f"{mark}{member.name} · {member.title}",
                                         callback_data=f"staff_{member.id}"))
    _navigation_row(builder, wizard)
    return builder.as_markup()


def get_datetime_keyboard(wizard: BookingWizard, today: date):
    builder = InlineKeyboardBuilder()
    days = []
    for day in available_dates(today):
        mark = "✅" if wizard.day == day else ""
        days.append(InlineKeyboardButton(text=f"{mark}{day.strftime('%a %d')}",
                                         callback_data=f"day_{day.isoformat()}"))
    for i in range(0, len(days), 4):
        builder.row(*days[i:i + 4])

    slots = []
    for slot in TIME_SLOTS:
        mark = "✅" if wizard.slot == slot else ""
        slots.append(InlineKeyboardButton(text=f"{mark}{slot}", callback_data=f"slot_{slot}"))
    for i in range(0, len(slots), 4):
        builder.row(*slots[i:i + 4])

    _navigation_row(builder, wizard)
    return builder.as_markup()


DETAIL_LABELS = {
    'name': '👤 Name',
    'email': '✉️ Email',
    'phone': '📞 Phone',
    'notes': '📝 Notes',
}


def get_details_keyboard(wizard: BookingWizard):
    builder = InlineKeyboardBuilder()
    for field_name, label in DETAIL_LABELS.items():
        if field_name == 'email' and wizard.email_locked:
            continue
        value = getattr(wizard.details, field_name)
        builder.row(InlineKeyboardButton(text=f"{label}: {value or '—'}",
                                         callback_data=f"detail_{field_name}"))
    _navigation_row(builder, wizard)
    return builder.as_markup()


def get_confirmation_keyboard():
    builder = InlineKeyboardBuilder()
    builder.row(InlineKeyboardButton(text="✅ Confirm booking", callback_data="wizard_confirm"))
    builder.row(
        InlineKeyboardButton(text="🔙 Back", callback_data="wizard_back"),
        InlineKeyboardButton(text="❌ Cancel", callback_data="cancel_booking"),
    )
    return builder.as_markup()
