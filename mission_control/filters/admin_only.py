from __future__ import annotations

from typing import Iterable, Optional, Union

from aiogram.filters import BaseFilter
from aiogram.types import Message, CallbackQuery

from mission_control.config import settings


class AdminOnly(BaseFilter):
    """
    Пускает только админов (по tg_id) из TELEGRAM_ADMIN_USER_IDS.
    Пустой список — админских команд нет ни у кого.
    """

    def __init__(self, admin_ids: Optional[Iterable[int]] = None) -> None:
        ids = admin_ids if admin_ids is not None else settings.TELEGRAM_ADMIN_USER_IDS
        self.admin_ids = {int(x) for x in ids}

    async def __call__(self, event: Union[Message, CallbackQuery]) -> bool:
        user = getattr(event, "from_user", None)
        uid = getattr(user, "id", None)
        return uid is not None and uid in self.admin_ids
