# handlers/auth_handlers.py

import logging
from html import escape

from aiogram import F, Router, types
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from pydantic import ValidationError

from forms.schemas import LoginForm, SignupForm, field_errors
from keyboards.client_keyboards import get_landing_keyboard
from states.fsm_states import AuthStates
from utils.filters import PLAIN_TEXT
from utils.notifications import delete_quietly
from utils.session import AuthFailure, SessionRegistry

router = Router()
logger = logging.getLogger(__name__)

SIGNUP_PROMPTS = {
    'full_name': (AuthStates.signup_name, "Your full name:"),
    'email': (AuthStates.signup_email, "Your email address:"),
    'password': (AuthStates.signup_password, "Choose a password (at least 6 characters):"),
    'confirm_password': (AuthStates.signup_confirm, "Repeat the password:"),
}


def format_errors(errors: dict) -> str:
    return "\n".join(f"• {escape(text)}" for text in errors.values())


def signed_in_keyboard(session):
    return get_landing_keyboard(signed_in=True, can_use_dashboard=session.can_use_dashboard)


# --- Login ---
@router.message(Command("login"))
async def login_command(message: types.Message, state: FSMContext):
    await state.clear()
    await state.set_state(AuthStates.login_email)
    await message.answer("🔑 <b>Sign in</b>\n\nYour email address:")


@router.callback_query(F.data == "auth_login")
async def login_button(callback: types.CallbackQuery, state: FSMContext):
    await state.clear()
    await state.set_state(AuthStates.login_email)
    await callback.message.answer("🔑 <b>Sign in</b>\n\nYour email address:")
    await callback.answer()


@router.message(AuthStates.login_email, PLAIN_TEXT)
async def login_email(message: types.Message, state: FSMContext):
    await state.update_data(email=message.text.strip())
    await state.set_state(AuthStates.login_password)
    await message.answer("Your password:")


@router.message(AuthStates.login_password, PLAIN_TEXT)
async def login_password(message: types.Message, state: FSMContext, sessions: SessionRegistry):
    data = await state.get_data()
    password = message.text
    await delete_quietly(message)

    try:
        form = LoginForm(email=data.get('email', ''), password=password)
    except ValidationError as e:
        errors = field_errors(e)
        if 'email' in errors:
            await state.set_state(AuthStates.login_email)
            await message.answer(f"{format_errors(errors)}\n\nYour email address:")
        else:
            await message.answer(f"{format_errors(errors)}\n\nYour password:")
        return

    try:
        session = await sessions.sign_in(message.from_user.id, form.email, form.password)
    except AuthFailure as e:
        await state.set_state(AuthStates.login_password)
        await message.answer(f"❌ {escape(e.message)}\n\nYour password, or /start to give up:")
        return

    await state.clear()
    name = session.full_name or session.email
    await message.answer(f"✅ Welcome back, {escape(name)}!", reply_markup=signed_in_keyboard(session))


# --- Signup ---
@router.message(Command("signup"))
async def signup_command(message: types.Message, state: FSMContext):
    await state.clear()
    await state.set_state(AuthStates.signup_name)
    await message.answer("📝 <b>Create account</b>\n\n" + SIGNUP_PROMPTS['full_name'][1])


@router.callback_query(F.data == "auth_signup")
async def signup_button(callback: types.CallbackQuery, state: FSMContext):
    await state.clear()
    await state.set_state(AuthStates.signup_name)
    await callback.message.answer("📝 <b>Create account</b>\n\n" + SIGNUP_PROMPTS['full_name'][1])
    await callback.answer()


@router.message(AuthStates.signup_name, PLAIN_TEXT)
async def signup_name(message: types.Message, state: FSMContext):
    await state.update_data(full_name=message.text.strip())
    await state.set_state(AuthStates.signup_email)
    await message.answer(SIGNUP_PROMPTS['email'][1])


@router.message(AuthStates.signup_email, PLAIN_TEXT)
async def signup_email(message: types.Message, state: FSMContext):
    await state.update_data(email=message.text.strip())
    await state.set_state(AuthStates.signup_password)
    await message.answer(SIGNUP_PROMPTS['password'][1])


@router.message(AuthStates.signup_password, PLAIN_TEXT)
async def signup_password(message: types.Message, state: FSMContext):
    await state.update_data(password=message.text)
    await delete_quietly(message)
    await state.set_state(AuthStates.signup_confirm)
    await message.answer(SIGNUP_PROMPTS['confirm_password'][1])


@router.message(AuthStates.signup_confirm, PLAIN_TEXT)
async def signup_confirm(message: types.Message, state: FSMContext, sessions: SessionRegistry):
    data = await state.get_data()
    confirm = message.text
    await delete_quietly(message)

    try:
        form = SignupForm(
            full_name=data.get('full_name', ''),
            email=data.get('email', ''),
            password=data.get('password', ''),
            confirm_password=confirm,
        )
    except ValidationError as e:
        errors = field_errors(e)
        # Ask again from the first field that failed
        first = next((name for name in SIGNUP_PROMPTS if name in errors), 'full_name')
        if first == 'confirm_password':
            first = 'password'
        next_state, prompt = SIGNUP_PROMPTS[first]
        await state.set_state(next_state)
        await message.answer(f"{format_errors(errors)}\n\n{prompt}")
        return

    try:
        session = await sessions.sign_up(message.from_user.id, form.full_name, form.email, form.password)
    except AuthFailure as e:
        await state.clear()
        await message.answer(f"❌ {escape(e.message)}", reply_markup=get_landing_keyboard())
        return

    await state.clear()
    if session is None:
        await message.answer("📧 Account created! Check your email to confirm it, then /login.")
        return
    await message.answer(f"✅ Welcome, {escape(form.full_name)}! Your account is ready.",
                         reply_markup=signed_in_keyboard(session))


# --- Logout ---
async def _logout(telegram_id: int, state: FSMContext, sessions: SessionRegistry) -> str:
    await state.clear()
    if await sessions.sign_out(telegram_id):
        return "👋 You have been signed out."
    return "You are not signed in."


@router.message(Command("logout"))
async def logout_command(message: types.Message, state: FSMContext, sessions: SessionRegistry):
    text = await _logout(message.from_user.id, state, sessions)
    await message.answer(text, reply_markup=get_landing_keyboard())


@router.callback_query(F.data == "auth_logout")
async def logout_button(callback: types.CallbackQuery, state: FSMContext, sessions: SessionRegistry):
    text = await _logout(callback.from_user.id, state, sessions)
    await callback.message.edit_text(text, reply_markup=get_landing_keyboard())
    await callback.answer()
