from html import escape

from aiogram import F, Router, types
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext

from keyboards.client_keyboards import get_landing_keyboard
from utils.session import SessionRegistry

router = Router()

WELCOME = (
    "✨ <b>Welcome to Lumina Salon & Clinic</b>\n\n"
    "Book hair, skin and wellness treatments with our specialists in a few taps."
)


def landing_keyboard_for(sessions: SessionRegistry, telegram_id: int):
    session = sessions.get(telegram_id)
    return get_landing_keyboard(signed_in=session is not None,
                                can_use_dashboard=bool(session and session.can_use_dashboard))


@router.message(CommandStart())
async def start_command(message: types.Message, state: FSMContext, sessions: SessionRegistry):
    await state.clear()
    session = sessions.get(message.from_user.id)
    greeting = f"Hello, {escape(session.full_name or session.email)}!\n\n" if session else ""
    await message.answer(greeting + WELCOME, reply_markup=landing_keyboard_for(sessions, message.from_user.id))


@router.callback_query(F.data == "landing")
async def back_to_landing(callback: types.CallbackQuery, state: FSMContext, sessions: SessionRegistry):
    await state.clear()
    await callback.message.edit_text(WELCOME, reply_markup=landing_keyboard_for(sessions, callback.from_user.id))
    await callback.answer()


# Reached only when the dashboard router's role filter rejected the sender
DASHBOARD_PREFIXES = ("dash_", "cal_", "appt_", "apst_", "ent_", "ctx_")


@router.callback_query(F.data.startswith(DASHBOARD_PREFIXES))
async def dashboard_denied(callback: types.CallbackQuery):
    await callback.answer("Sign in with a staff or admin account to use the dashboard.", show_alert=True)


@router.message(Command("dashboard"))
async def dashboard_command_denied(message: types.Message):
    await message.answer("Sign in with a staff or admin account to use the dashboard: /login")
