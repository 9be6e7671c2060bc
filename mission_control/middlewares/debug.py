# mission_control/middlewares/debug.py
from __future__ import annotations
from loguru import logger
from aiogram import BaseMiddleware
from aiogram.types import Message, CallbackQuery
from aiogram.exceptions import TelegramBadRequest


class DebugMiddleware(BaseMiddleware):
    async def __call__(self, handler, event, data):
        if isinstance(event, Message):
            uid = getattr(event.from_user, "id", 0) or 0
            logger.debug(f"[DBG:MSG] chat={event.chat.id} from={uid} text={(event.text or event.caption or '')[:120]!r}")
        elif isinstance(event, CallbackQuery):
            uid = getattr(event.from_user, "id", 0) or 0
            logger.debug(f"[DBG:CB]  from={uid} data={event.data!r}")

        try:
            result = await handler(event, data)
        except TelegramBadRequest as e:
            # «query is too old», «message is not modified» и прочий UI-шум
            logger.warning(f"[DBG] TelegramBadRequest suppressed: {e}")
            return None
        except Exception as e:
            # поллинг не роняем
            logger.opt(exception=True).error(f"[DBG] Handler error: {e}")
            return None
        return result
