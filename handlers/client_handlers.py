# handlers/client_handlers.py

import logging
from datetime import date
from html import escape

from aiogram import Bot, F, Router, types
from aiogram.filters import Command, StateFilter
from aiogram.fsm.context import FSMContext

from booking.wizard import ANY_STAFF, STEP_LABELS, STEPS, BookingWizard
from calendar_view.grid import today_in
from config_reader import config
from database.db_supabase import Database
from keyboards.client_keyboards import (
    DETAIL_LABELS,
    get_confirmation_keyboard,
    get_datetime_keyboard,
    get_details_keyboard,
    get_landing_keyboard,
    get_services_keyboard,
    get_staff_keyboard,
)
from states.fsm_states import ClientStates
from stores.services import ServiceStore
from stores.staff import StaffStore
from utils.filters import PLAIN_TEXT
from utils.notifications import chat_notifier, edit_message, notify_admin_on_booking_request
from utils.session import SessionRegistry

router = Router()
logger = logging.getLogger(__name__)

STEP_STATES = {
    'service': ClientStates.choosing_services,
    'staff': ClientStates.choosing_staff,
    'datetime': ClientStates.choosing_datetime,
    'details': ClientStates.entering_details,
    'confirm': ClientStates.confirming,
}

LOCKED_HINTS = {
    'service': "Select at least one service to continue.",
    'staff': "Choose a specialist or \"Any Available\".",
    'datetime': "Pick both a date and a time.",
    'details': "Name, email and phone are required.",
}

WIZARD_STATES = (
    ClientStates.choosing_services,
    ClientStates.choosing_staff,
    ClientStates.choosing_datetime,
    ClientStates.entering_details,
    ClientStates.confirming,
)


async def load_wizard(state: FSMContext) -> BookingWizard:
    data = await state.get_data()
    return BookingWizard.from_state(data.get('wizard'))


async def save_wizard(state: FSMContext, wizard: BookingWizard):
    await state.update_data(wizard=wizard.to_state())
    await state.set_state(STEP_STATES[wizard.step])


def step_header(wizard: BookingWizard) -> str:
    return f"<b>Step {wizard.step_index + 1}/{len(STEPS)} · {STEP_LABELS[wizard.step]}</b>"


async def render_step(wizard: BookingWizard, db: Database, bot: Bot, chat_id: int):
    """Text and keyboard of the wizard's current step."""
    currency = config.currency_symbol
    header = step_header(wizard)
    notify = chat_notifier(bot, chat_id)

    if wizard.step == 'service':
        store = ServiceStore(db, notify)
        await store.load()
        text = f"{header}\nTap services to add or remove them.\n\n{escape(wizard.summary(currency))}"
        return text, get_services_keyboard(store.by_category(only_active=True), wizard, currency)

    if wizard.step == 'staff':
        store = StaffStore(db, notify)
        await store.load()
        return f"{header}\nWho would you like to see?", get_staff_keyboard(store.active(), wizard)

    if wizard.step == 'datetime':
        chosen = f"{wizard.day:%A, %B %d}" if wizard.day else "no date"
        text = f"{header}\nChosen: {chosen} · {wizard.slot or 'no time'}"
        return text, get_datetime_keyboard(wizard, today_in(config.timezone))

    if wizard.step == 'details':
        text = f"{header}\nTap a field to fill it in."
        if wizard.email_locked:
            text += f"\nBooking as {escape(wizard.details.email)}"
        return text, get_details_keyboard(wizard)

    contact = wizard.details
    text = (f"{header}\n\n{escape(wizard.summary(currency))}\n\n"
            f"👤 {escape(contact.name)}\n✉️ {escape(contact.email)}\n📞 {escape(contact.phone)}")
    if contact.notes:
        text += f"\n📝 {escape(contact.notes)}"
    return text, get_confirmation_keyboard()


async def show_step(callback: types.CallbackQuery, wizard: BookingWizard, db: Database, bot: Bot):
    text, keyboard = await render_step(wizard, db, bot, callback.message.chat.id)
    await edit_message(callback.message, text, reply_markup=keyboard)


# --- Start ---
@router.callback_query(F.data == "client_book")
async def client_start_booking(callback: types.CallbackQuery, state: FSMContext, db: Database, bot: Bot):
    logger.info(f"User {callback.from_user.id} started booking.")
    wizard = BookingWizard()
    await save_wizard(state, wizard)
    await show_step(callback, wizard, db, bot)
    await callback.answer()


@router.message(Command("book"))
async def client_book_command(message: types.Message, state: FSMContext, db: Database, bot: Bot):
    logger.info(f"User {message.from_user.id} started booking.")
    wizard = BookingWizard()
    await save_wizard(state, wizard)
    text, keyboard = await render_step(wizard, db, bot, message.chat.id)
    await message.answer(text, reply_markup=keyboard)


# --- Step 1: services ---
@router.callback_query(ClientStates.choosing_services, F.data.startswith("svc_"))
async def client_toggle_service(callback: types.CallbackQuery, state: FSMContext, db: Database, bot: Bot):
    service_id = callback.data.split("_", 1)[1]
    store = ServiceStore(db, chat_notifier(bot, callback.message.chat.id))
    await store.load()
    service = store.get(service_id)
    if service is None or not service.is_active:
        await callback.answer("This service is no longer available.", show_alert=True)
        return

    wizard = await load_wizard(state)
    wizard.toggle_service(service)
    await save_wizard(state, wizard)
    await show_step(callback, wizard, db, bot)
    await callback.answer()


# --- Step 2: staff ---
@router.callback_query(ClientStates.choosing_staff, F.data.startswith("staff_"))
async def client_pick_staff(callback: types.CallbackQuery, state: FSMContext, db: Database, bot: Bot):
    staff_id = callback.data.split("_", 1)[1]
    wizard = await load_wizard(state)

    if staff_id == ANY_STAFF:
        wizard.choose_staff(None)
    else:
        store = StaffStore(db, chat_notifier(bot, callback.message.chat.id))
        await store.load()
        member = store.get(staff_id)
        if member is None:
            await callback.answer("This specialist is no longer available.", show_alert=True)
            return
        wizard.choose_staff(member)

    await save_wizard(state, wizard)
    await show_step(callback, wizard, db, bot)
    await callback.answer()


# --- Step 3: date & time ---
@router.callback_query(ClientStates.choosing_datetime, F.data.startswith("day_"))
async def client_pick_date(callback: types.CallbackQuery, state: FSMContext, db: Database, bot: Bot):
    try:
        day = date.fromisoformat(callback.data.split("_", 1)[1])
    except ValueError:
        await callback.answer("Unknown date.", show_alert=True)
        return

    wizard = await load_wizard(state)
    if not wizard.choose_date(day, today_in(config.timezone)):
        await callback.answer("That date can no longer be booked. Please pick another.", show_alert=True)
        return
    await save_wizard(state, wizard)
    await show_step(callback, wizard, db, bot)
    await callback.answer()


@router.callback_query(ClientStates.choosing_datetime, F.data.startswith("slot_"))
async def client_pick_time(callback: types.CallbackQuery, state: FSMContext, db: Database, bot: Bot):
    wizard = await load_wizard(state)
    if not wizard.choose_time(callback.data.split("_", 1)[1]):
        await callback.answer("Unknown time slot.", show_alert=True)
        return
    await save_wizard(state, wizard)
    await show_step(callback, wizard, db, bot)
    await callback.answer()


# --- Step 4: contact details ---
@router.callback_query(ClientStates.entering_details, F.data.startswith("detail_"))
async def client_edit_detail(callback: types.CallbackQuery, state: FSMContext):
    field_name = callback.data.split("_", 1)[1]
    wizard = await load_wizard(state)
    if field_name not in DETAIL_LABELS or (field_name == 'email' and wizard.email_locked):
        await callback.answer("This field can't be changed.", show_alert=True)
        return

    await state.update_data(detail_field=field_name)
    await state.set_state(ClientStates.entering_detail_value)
    hint = " (send \"-\" to clear)" if field_name == 'notes' else ""
    await callback.message.answer(f"Send your {field_name}{hint}:")
    await callback.answer()


@router.message(ClientStates.entering_detail_value, PLAIN_TEXT)
async def client_provide_detail(message: types.Message, state: FSMContext, db: Database, bot: Bot):
    data = await state.get_data()
    field_name = data.get('detail_field')
    wizard = BookingWizard.from_state(data.get('wizard'))

    value = message.text.strip()
    if field_name == 'notes' and value == '-':
        value = ''
    if not wizard.set_detail(field_name, value):
        await message.answer("This field can't be changed.")

    await state.update_data(detail_field=None)
    await save_wizard(state, wizard)
    text, keyboard = await render_step(wizard, db, bot, message.chat.id)
    await message.answer(text, reply_markup=keyboard)


# --- Navigation ---
@router.callback_query(StateFilter(*WIZARD_STATES), F.data == "wizard_next")
async def client_next_step(callback: types.CallbackQuery, state: FSMContext, db: Database, bot: Bot,
                           sessions: SessionRegistry):
    wizard = await load_wizard(state)
    if not wizard.next():
        await callback.answer(LOCKED_HINTS.get(wizard.step, "Complete this step first."), show_alert=True)
        return
    if wizard.step == 'details':
        wizard.autofill(sessions.get(callback.from_user.id))

    await save_wizard(state, wizard)
    await show_step(callback, wizard, db, bot)
    await callback.answer()


@router.callback_query(StateFilter(*WIZARD_STATES), F.data == "wizard_locked")
async def client_locked_step(callback: types.CallbackQuery, state: FSMContext):
    wizard = await load_wizard(state)
    await callback.answer(LOCKED_HINTS.get(wizard.step, "Complete this step first."), show_alert=True)


@router.callback_query(StateFilter(*WIZARD_STATES), F.data == "wizard_back")
async def client_previous_step(callback: types.CallbackQuery, state: FSMContext, db: Database, bot: Bot):
    wizard = await load_wizard(state)
    if wizard.back():
        await save_wizard(state, wizard)
        await show_step(callback, wizard, db, bot)
    await callback.answer()


# --- Step 5: confirm ---
@router.callback_query(ClientStates.confirming, F.data == "wizard_confirm")
async def client_confirm_booking(callback: types.CallbackQuery, state: FSMContext, bot: Bot,
                                 sessions: SessionRegistry):
    wizard = await load_wizard(state)
    draft = wizard.draft()

    # Booking requests are forwarded to the salon; no appointment row is written here
    await notify_admin_on_booking_request(
        bot=bot,
        admin_chat_id=config.admin_chat_id,
        draft=draft,
        currency=config.currency_symbol,
        from_user_id=callback.from_user.id,
    )
    logger.info(f"User {callback.from_user.id} sent a booking request for {draft.appointment_date} {draft.start_time}.")

    await state.clear()
    session = sessions.get(callback.from_user.id)
    await callback.message.edit_text(
        "✅ Thank you! Your booking request has been sent.\n\n"
        f"{escape(wizard.summary(config.currency_symbol))}\n\n"
        "We'll contact you to confirm your appointment.",
        reply_markup=get_landing_keyboard(session is not None, bool(session and session.can_use_dashboard))
    )
    await callback.answer()


# Cancel at any step
@router.callback_query(F.data == "cancel_booking")
async def cancel_booking(callback: types.CallbackQuery, state: FSMContext, sessions: SessionRegistry):
    await state.clear()
    session = sessions.get(callback.from_user.id)
    await callback.message.edit_text(
        "Booking cancelled.",
        reply_markup=get_landing_keyboard(session is not None, bool(session and session.can_use_dashboard))
    )
    await callback.answer()


@router.callback_query(F.data == "noop")
async def ignore_label(callback: types.CallbackQuery):
    await callback.answer()
