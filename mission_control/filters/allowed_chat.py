from __future__ import annotations
from typing import Iterable, Optional, Union

from aiogram.filters import BaseFilter
from aiogram.types import Message, CallbackQuery

from mission_control.config import settings


class AllowedChat(BaseFilter):
    """
    Белый список чатов TELEGRAM_ALLOWED_CHAT_IDS; пустой — пускаем всех.
    Чужие чаты игнорируем молча.
    """

    def __init__(self, chat_ids: Optional[Iterable[int]] = None) -> None:
        ids = chat_ids if chat_ids is not None else settings.TELEGRAM_ALLOWED_CHAT_IDS
        self.chat_ids = {int(x) for x in ids}

    async def __call__(self, event: Union[Message, CallbackQuery]) -> bool:
        if isinstance(event, Message):
            chat = event.chat
        else:
            chat = event.message.chat if event.message else None
        if not chat:
            return False
        return not self.chat_ids or chat.id in self.chat_ids
