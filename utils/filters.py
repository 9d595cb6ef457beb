from typing import Union

from aiogram import F
from aiogram.filters import Filter
from aiogram.types import CallbackQuery, Message

from utils.session import SessionRegistry

# Free-text answers; commands fall through to their own handlers
PLAIN_TEXT = F.text & ~F.text.startswith('/')


class RoleFilter(Filter):
    """Passes when the sender is signed in with one of ``roles``.

    On success the matching session is handed to the handler as ``session``.
    """

    def __init__(self, *roles: str):
        self.roles = roles

    async def __call__(self, event: Union[Message, CallbackQuery], sessions: SessionRegistry) -> Union[bool, dict]:
        session = sessions.get(event.from_user.id)
        if session is None or session.role not in self.roles:
            return False
        return {'session': session}
