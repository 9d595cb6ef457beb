# handlers/admin_handlers.py

import logging
from datetime import date
from functools import partial
from html import escape
from typing import Dict, Optional

from aiogram import Bot, F, Router, types
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext

from calendar_view.grid import (
    ViewMode,
    build_month_grid,
    build_time_grid,
    shift_anchor,
    status_badge,
    title_for,
    today_in,
)
from calendar_view.render import (
    CONTEXT_MENU_ACTIONS,
    render_appointment_row,
    render_context_menu,
    render_month,
    render_time_grid,
)
from config_reader import config
from database.models import UserRole
from forms.dialogs import ClientDialog, EntityDialog, ServiceDialog, StaffDialog, parse_form_text
from keyboards.admin_keyboards import (
    ENTITY_TITLES,
    get_appointment_actions_keyboard,
    get_appointment_list_keyboard,
    get_calendar_keyboard,
    get_context_menu_keyboard,
    get_dashboard_keyboard,
    get_delete_confirmation_keyboard,
    get_entity_actions_keyboard,
    get_entity_list_keyboard,
    get_form_keyboard,
)
from states.fsm_states import DashboardStates
from stores.accounts import AccountProvisioner
from stores.appointments import AppointmentStore
from stores.clients import ClientStore
from stores.services import ServiceStore
from stores.staff import StaffStore
from utils.filters import PLAIN_TEXT, RoleFilter
from utils.notifications import chat_notifier, delete_quietly, edit_message
from utils.session import UserSession

router = Router()
# Dashboard handlers only run for signed-in admins and staff
router.message.filter(RoleFilter(UserRole.ADMIN, UserRole.STAFF))
router.callback_query.filter(RoleFilter(UserRole.ADMIN, UserRole.STAFF))

logger = logging.getLogger(__name__)

HOME_LIST_LIMIT = 5
LIST_LIMIT = 25
# Hours offered as empty-slot buttons in day view
SLOT_BUTTON_HOURS = range(8, 21)

DIALOGS = {
    'services': ServiceDialog,
    'staff': StaffDialog,
    'clients': ClientDialog,
}

# Open create/edit form per Telegram user; holds the in-flight flag between messages
open_dialogs: Dict[int, EntityDialog] = {}


def get_store(session: UserSession, kind: str, bot: Bot, provisioner: Optional[AccountProvisioner] = None):
    """Stores live on the session so they are dropped on sign out."""
    store = session.stores.get(kind)
    if store is not None:
        return store

    notify = chat_notifier(bot, session.telegram_id)
    if kind == 'appointments':
        store = AppointmentStore(session.db, notify)
    elif kind == 'services':
        store = ServiceStore(session.db, notify)
    elif kind == 'staff':
        store = StaffStore(session.db, notify, provisioner, session)
    elif kind == 'clients':
        store = ClientStore(session.db, notify, provisioner, session)
    else:
        raise ValueError(f"Unknown store kind: {kind}")
    session.stores[kind] = store
    return store


async def appointment_store(session: UserSession, bot: Bot) -> AppointmentStore:
    store = get_store(session, 'appointments', bot)
    if store.loading:
        await store.load()
        # Later changes reload it through the change feed
        await store.subscribe()
    return store


def may_manage(kind: str, session: UserSession) -> bool:
    return kind != 'staff' or session.is_admin


def parse_entity_callback(data: str):
    """ent_<action>_<kind>[_<record id>] -> (action, kind, record id)."""
    parts = data.split("_", 3)
    record_id = parts[3] if len(parts) > 3 else None
    return parts[1], parts[2], record_id


# --- Home ---
async def render_home(session: UserSession, bot: Bot, provisioner: AccountProvisioner) -> str:
    currency = config.currency_symbol
    appointments = await appointment_store(session, bot)
    clients = get_store(session, 'clients', bot, provisioner)
    services = get_store(session, 'services', bot)
    await clients.load()
    await services.load()

    today = appointments.day_summary(today_in(config.timezone))
    lines = [
        f"📊 <b>Dashboard</b> · {today.day:%A, %B %d}",
        f"Signed in as {escape(session.full_name or session.email)} ({session.role})\n",
        f"📅 Today's appointments: <b>{today.count}</b> ({today.confirmed} confirmed)",
        f"💰 Today's revenue: <b>{currency}{today.revenue:,.2f}</b>",
        f"👥 Total clients: <b>{len(clients.items)}</b>",
        f"💇 Services offered: <b>{len(services.active())}</b> active of {len(services.items)}",
    ]
    if today.appointments:
        lines.append("\n<b>Today</b>")
        lines.extend(render_appointment_row(a, currency) for a in today.appointments[:HOME_LIST_LIMIT])
        if today.count > HOME_LIST_LIMIT:
            lines.append(f"…and {today.count - HOME_LIST_LIMIT} more")
    else:
        lines.append("\nNo appointments today.")
    return "\n".join(lines)


@router.callback_query(F.data == "dash_home")
async def dashboard_home(callback: types.CallbackQuery, state: FSMContext, session: UserSession, bot: Bot,
                         provisioner: AccountProvisioner):
    open_dialogs.pop(callback.from_user.id, None)
    await state.set_state(None)
    text = await render_home(session, bot, provisioner)
    await edit_message(callback.message, text, reply_markup=get_dashboard_keyboard(session.is_admin))
    await callback.answer()


@router.message(Command("dashboard"))
async def dashboard_command(message: types.Message, state: FSMContext, session: UserSession, bot: Bot,
                            provisioner: AccountProvisioner):
    open_dialogs.pop(message.from_user.id, None)
    await state.set_state(None)
    text = await render_home(session, bot, provisioner)
    await message.answer(text, reply_markup=get_dashboard_keyboard(session.is_admin))


# --- Appointments calendar ---
async def calendar_position(state: FSMContext):
    data = await state.get_data()
    mode = data.get('cal_mode', ViewMode.WEEK)
    anchor = data.get('cal_anchor')
    return mode, date.fromisoformat(anchor) if anchor else today_in(config.timezone)


async def show_calendar(callback: types.CallbackQuery, state: FSMContext, session: UserSession, bot: Bot):
    store = await appointment_store(session, bot)
    mode, anchor = await calendar_position(state)
    title = title_for(mode, anchor)

    empty_hours = ()
    if mode == ViewMode.MONTH:
        text = render_month(build_month_grid(store.items, anchor), title)
    else:
        grid = build_time_grid(store.items, mode, anchor)
        text = render_time_grid(grid, title, config.currency_symbol)
        if mode == ViewMode.DAY:
            free = set(grid.empty_slots(0))
            empty_hours = [f"{h:02d}:00" for h in SLOT_BUTTON_HOURS if f"{h:02d}:00" in free]

    await edit_message(callback.message, text, reply_markup=get_calendar_keyboard(mode, empty_hours))


@router.callback_query(F.data == "dash_appts")
async def appointments_calendar(callback: types.CallbackQuery, state: FSMContext, session: UserSession, bot: Bot):
    await show_calendar(callback, state, session, bot)
    await callback.answer()


@router.callback_query(F.data.startswith("cal_view_"))
async def calendar_switch_view(callback: types.CallbackQuery, state: FSMContext, session: UserSession, bot: Bot):
    mode = callback.data[len("cal_view_"):]
    if mode not in ViewMode.ALL:
        await callback.answer("Unknown view.", show_alert=True)
        return
    await state.update_data(cal_mode=mode)
    await show_calendar(callback, state, session, bot)
    await callback.answer()


@router.callback_query(F.data.in_({"cal_prev", "cal_next", "cal_today"}))
async def calendar_navigate(callback: types.CallbackQuery, state: FSMContext, session: UserSession, bot: Bot):
    mode, anchor = await calendar_position(state)
    if callback.data == "cal_today":
        anchor = today_in(config.timezone)
    else:
        anchor = shift_anchor(mode, anchor, 1 if callback.data == "cal_next" else -1)
    await state.update_data(cal_anchor=anchor.isoformat())
    await show_calendar(callback, state, session, bot)
    await callback.answer()


@router.callback_query(F.data.startswith("cal_slot_"))
async def calendar_empty_slot(callback: types.CallbackQuery, state: FSMContext):
    slot = callback.data[len("cal_slot_"):]
    _, anchor = await calendar_position(state)
    await callback.message.edit_text(render_context_menu(anchor, slot), reply_markup=get_context_menu_keyboard(slot))
    await callback.answer()


@router.callback_query(F.data.startswith("ctx_"))
async def calendar_context_action(callback: types.CallbackQuery):
    action = callback.data[len("ctx_"):].rsplit("_", 1)[0]
    label = dict(CONTEXT_MENU_ACTIONS).get(action, "This action")
    await callback.answer(f"{label}: coming soon.", show_alert=True)


# --- Appointments list ---
async def render_appointment_list(session: UserSession, state: FSMContext, bot: Bot):
    store = await appointment_store(session, bot)
    query = (await state.get_data()).get('appointments_query', '')
    found = store.search(query)

    header = "📋 <b>Appointments</b>"
    if query:
        header += f" matching “{escape(query)}”"
    if not found:
        return f"{header}\n\nNo appointments found.", get_appointment_list_keyboard([])
    shown = found[:LIST_LIMIT]
    text = f"{header}\n{len(found)} appointment(s)"
    if len(found) > LIST_LIMIT:
        text += f", showing the first {LIST_LIMIT}"
    return text, get_appointment_list_keyboard(shown)


@router.callback_query(F.data == "appt_list")
async def appointments_list(callback: types.CallbackQuery, state: FSMContext, session: UserSession, bot: Bot):
    text, keyboard = await render_appointment_list(session, state, bot)
    await edit_message(callback.message, text, reply_markup=keyboard)
    await callback.answer()


@router.callback_query(F.data == "appt_search")
async def appointments_search(callback: types.CallbackQuery, state: FSMContext):
    await state.update_data(search_kind='appointments')
    await state.set_state(DashboardStates.searching)
    await callback.message.answer("Send a client or service name to search for (\"-\" shows all):")
    await callback.answer()


@router.callback_query(F.data.startswith("appt_"))
async def appointment_details(callback: types.CallbackQuery, session: UserSession, bot: Bot):
    store = await appointment_store(session, bot)
    appointment = store.get(callback.data[len("appt_"):])
    if appointment is None:
        await callback.answer("This appointment no longer exists.", show_alert=True)
        return
    await edit_message(callback.message, render_appointment_detail(appointment),
                       reply_markup=get_appointment_actions_keyboard(appointment))
    await callback.answer()


def render_appointment_detail(appointment) -> str:
    text = (f"<b>Appointment</b> · {status_badge(appointment.status)}\n\n"
            f"{render_appointment_row(appointment, config.currency_symbol)}\n"
            f"⏱ {appointment.start_time}–{appointment.end_time} ({appointment.total_duration} min)")
    if appointment.notes:
        text += f"\n📝 {escape(appointment.notes)}"
    return text


@router.callback_query(F.data.startswith("apst_"))
async def appointment_set_status(callback: types.CallbackQuery, session: UserSession, bot: Bot):
    _, status, record_id = callback.data.split("_", 2)
    store = await appointment_store(session, bot)
    result = await store.update_status(record_id, status)
    if not result.success:
        await callback.answer(result.error or "Failed to update appointment", show_alert=True)
        return

    appointment = store.get(record_id)
    if appointment is not None:
        await edit_message(callback.message, render_appointment_detail(appointment),
                           reply_markup=get_appointment_actions_keyboard(appointment))
    await callback.answer()


# --- Clients / services / staff ---
def entity_label(kind: str, item) -> str:
    if kind == 'services':
        state = "" if item.is_active else " (inactive)"
        return f"{item.name} · {item.duration} min · {config.currency_symbol}{item.price:,.0f}{state}"
    if kind == 'staff':
        state = "🟢" if item.is_active else "⚪"
        return f"{state} {item.name} · {item.title}"
    return f"{item.name} · {item.email}"


def search_entities(kind: str, store, query: str) -> list:
    query = (query or '').strip().lower()
    if kind == 'clients':
        return store.search(query)
    items = store.items
    if kind == 'services':
        # Grouped by category, categories in first-seen order
        groups = store.by_category()
        items = [s for category in store.categories for s in groups.get(category, [])]
    if not query:
        return list(items)
    return [i for i in items if query in i.name.lower()]


async def render_entity_list(kind: str, session: UserSession, state: FSMContext, bot: Bot, provisioner):
    store = get_store(session, kind, bot, provisioner)
    await store.load()
    query = (await state.get_data()).get(f'{kind}_query', '')
    found = search_entities(kind, store, query)

    header = f"<b>{ENTITY_TITLES[kind]}</b>"
    if query:
        header += f" matching “{escape(query)}”"
    lines = [header, f"{len(found)} found"]
    if kind == 'services' and found:
        for category in store.categories:
            count = sum(1 for s in found if s.category == category)
            if count:
                lines.append(f"• {escape(category)}: {count}")
    shown = found[:LIST_LIMIT]
    return "\n".join(lines), get_entity_list_keyboard(kind, shown, [entity_label(kind, i) for i in shown])


def render_entity_detail(kind: str, item) -> str:
    currency = config.currency_symbol
    if kind == 'services':
        lines = [f"💇 <b>{escape(item.name)}</b>", f"Category: {escape(item.category)}",
                 f"Duration: {item.duration} min", f"Price: {currency}{item.price:,.2f}",
                 f"Active: {'yes' if item.is_active else 'no'}"]
        if item.description:
            lines.append(f"\n{escape(item.description)}")
    elif kind == 'staff':
        lines = [f"🧑‍💼 <b>{escape(item.name)}</b> · {escape(item.title)}", f"✉️ {escape(item.email)}",
                 f"📞 {escape(item.phone or '—')}", f"Active: {'yes' if item.is_active else 'no'}",
                 f"Login account: {'yes' if item.user_id else 'no'}"]
        if item.bio:
            lines.append(f"\n{escape(item.bio)}")
    else:
        lines = [f"👤 <b>{escape(item.name)}</b>", f"✉️ {escape(item.email)}", f"📞 {escape(item.phone or '—')}",
                 f"Birthday: {item.date_of_birth:%B %d, %Y}" if item.date_of_birth else "Birthday: —",
                 f"Login account: {'yes' if item.user_id else 'no'}"]
        if item.notes:
            lines.append(f"\n📝 {escape(item.notes)}")
    return "\n".join(lines)


@router.callback_query(F.data.startswith("ent_"))
async def entity_action(callback: types.CallbackQuery, state: FSMContext, session: UserSession, bot: Bot,
                        provisioner: AccountProvisioner):
    action, kind, record_id = parse_entity_callback(callback.data)
    if kind not in ENTITY_TITLES:
        await callback.answer("Unknown section.", show_alert=True)
        return
    if not may_manage(kind, session):
        await callback.answer("Only admins can manage staff.", show_alert=True)
        return

    if action == 'list':
        open_dialogs.pop(callback.from_user.id, None)
        await state.set_state(None)
        text, keyboard = await render_entity_list(kind, session, state, bot, provisioner)
        await edit_message(callback.message, text, reply_markup=keyboard)
    elif action == 'search':
        await state.update_data(search_kind=kind)
        await state.set_state(DashboardStates.searching)
        await callback.message.answer("Send a name to search for (\"-\" shows all):")
    elif action == 'new':
        await open_form(callback, state, session, bot, provisioner, kind, None)
    else:
        store = get_store(session, kind, bot, provisioner)
        if store.loading:
            await store.load()
        item = store.get(record_id)
        if item is None:
            await callback.answer("This record no longer exists.", show_alert=True)
            return
        if action == 'view':
            await edit_message(callback.message, render_entity_detail(kind, item),
                               reply_markup=get_entity_actions_keyboard(kind, item.id))
        elif action == 'edit':
            await open_form(callback, state, session, bot, provisioner, kind, item)
        elif action == 'del':
            await callback.message.edit_text(f"Delete <b>{escape(item.name)}</b>? This cannot be undone.",
                                             reply_markup=get_delete_confirmation_keyboard(kind, item.id))
        elif action == 'delok':
            result = await store.delete(item.id)
            if result.success:
                text, keyboard = await render_entity_list(kind, session, state, bot, provisioner)
                await edit_message(callback.message, text, reply_markup=keyboard)
    await callback.answer()


async def open_form(callback: types.CallbackQuery, state: FSMContext, session: UserSession, bot: Bot,
                    provisioner, kind: str, record):
    store = get_store(session, kind, bot, provisioner)
    on_submit = store.create if record is None else partial(store.update, record.id)
    dialog = DIALOGS[kind](on_submit, record)
    open_dialogs[callback.from_user.id] = dialog

    await state.update_data(form_kind=kind)
    await state.set_state(DashboardStates.filling_form)

    verb = "Edit" if dialog.is_edit else "New"
    hint = "Copy the form below, fill it in and send it back."
    if kind in ('staff', 'clients') and not dialog.is_edit:
        hint += "\nLeave password empty to add a record without a login account."
    await callback.message.answer(f"<b>{verb} {store.singular}</b>\n{hint}")
    await callback.message.answer(f"<pre>{escape(dialog.template())}</pre>", reply_markup=get_form_keyboard(kind))


@router.message(DashboardStates.filling_form, PLAIN_TEXT)
async def form_submitted(message: types.Message, state: FSMContext, session: UserSession, bot: Bot,
                         provisioner: AccountProvisioner):
    dialog = open_dialogs.get(message.from_user.id)
    kind = (await state.get_data()).get('form_kind')
    if dialog is None or kind is None:
        await state.set_state(None)
        await message.answer("This form is no longer open. Use /dashboard to start again.")
        return

    values = parse_form_text(message.text)
    if values.get('password'):
        await delete_quietly(message)

    outcome = await dialog.submit(values)
    if not outcome.submitted:
        if outcome.errors:
            errors = "\n".join(f"• {escape(name)}: {escape(text)}" for name, text in outcome.errors.items())
            await message.answer(f"Please fix these fields and send the form again:\n{errors}")
        else:
            await message.answer("Still saving the previous submission…")
        return

    if not outcome.success:
        # The store already reported the error; the form stays open for another try
        return

    open_dialogs.pop(message.from_user.id, None)
    await state.set_state(None)
    text, keyboard = await render_entity_list(kind, session, state, bot, provisioner)
    await message.answer(text, reply_markup=keyboard)


@router.message(DashboardStates.searching, PLAIN_TEXT)
async def search_submitted(message: types.Message, state: FSMContext, session: UserSession, bot: Bot,
                           provisioner: AccountProvisioner):
    kind = (await state.get_data()).get('search_kind')
    query = '' if message.text.strip() == '-' else message.text.strip()
    await state.update_data(**{f'{kind}_query': query})
    await state.set_state(None)

    if kind == 'appointments':
        text, keyboard = await render_appointment_list(session, state, bot)
    else:
        text, keyboard = await render_entity_list(kind, session, state, bot, provisioner)
    await message.answer(text, reply_markup=keyboard)
