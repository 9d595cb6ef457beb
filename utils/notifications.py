# utils/notifications.py

import logging
from html import escape
from typing import Optional

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.types import Message

from booking.wizard import BookingDraft
from stores.base import Notifier

logger = logging.getLogger(__name__)

TOAST_ICONS = {'success': '✅', 'error': '❌'}


def chat_notifier(bot: Bot, chat_id: int) -> Notifier:
    """Store notifications delivered as short chat messages."""

    async def notify(level: str, text: str) -> None:
        try:
            await bot.send_message(chat_id, f"{TOAST_ICONS.get(level, 'ℹ️')} {escape(text)}")
        except TelegramAPIError as e:
            logger.error(f"Could not deliver notification to {chat_id}: {e}")

    return notify


def format_booking_request(draft: BookingDraft, currency: str) -> str:
    services = "\n".join(f"  • {escape(name)}" for name in draft.service_names)
    contact = draft.contact
    text = (
        f"🔔 <b>New booking request</b>\n\n"
        f"<b>Services:</b>\n{services}\n"
        f"<b>Specialist:</b> {escape(draft.staff_name)}\n"
        f"<b>Date:</b> {draft.appointment_date:%A, %B %d, %Y}\n"
        f"<b>Time:</b> {draft.start_time}–{draft.end_time}\n"
        f"<b>Duration:</b> {draft.total_duration} min\n"
        f"<b>Total:</b> {currency}{draft.total_price:,.2f}\n\n"
        f"👤 {escape(contact.name)}\n"
        f"✉️ {escape(contact.email)}\n"
        f"📞 {escape(contact.phone)}"
    )
    if contact.notes:
        text += f"\n📝 {escape(contact.notes)}"
    return text


async def notify_admin_on_booking_request(bot: Bot, admin_chat_id: Optional[int],
                                          draft: BookingDraft, currency: str, from_user_id: int):
    if not admin_chat_id:
        logger.warning("ADMIN_CHAT_ID is not set, booking request not forwarded.")
        return

    text = format_booking_request(draft, currency)
    text += f"\n\n<i>Telegram ID:</i> <code>{from_user_id}</code>"
    try:
        await bot.send_message(chat_id=admin_chat_id, text=text)
        logger.info(f"Booking request from {from_user_id} forwarded to admin chat {admin_chat_id}")
    except TelegramAPIError as e:
        logger.error(f"Could not forward booking request to admin chat {admin_chat_id}: {e}")


async def edit_message(message: Message, text: str, reply_markup=None):
    """edit_text that tolerates re-rendering an unchanged screen."""
    try:
        await message.edit_text(text, reply_markup=reply_markup)
    except TelegramBadRequest as e:
        if "message is not modified" not in str(e):
            raise


async def delete_quietly(message: Message):
    """Removes a message holding a secret; older messages may no longer be deletable."""
    try:
        await message.delete()
    except TelegramBadRequest:
        logger.debug(f"Could not delete message {message.message_id} in chat {message.chat.id}")
