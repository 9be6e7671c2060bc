# mission_control/telegram_bot.py
from __future__ import annotations

from typing import Optional, Sequence, Tuple

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.client.session.aiohttp import AiohttpSession
from aiogram.enums import ParseMode
from aiogram.types import ReplyParameters
from loguru import logger

from mission_control.container import Services
from mission_control.handlers import register
from mission_control.middlewares.debug import DebugMiddleware
from mission_control.models.mission import Mission
from mission_control.models.submission import Submission
from mission_control.services.reports import mission_card_text, mission_results_text, mission_summary_text
from mission_control.utils.text import h

MESSAGE_LIMIT = 4096


def build_session(proxy: Optional[str] = None) -> AiohttpSession:
    if proxy:
        logger.info("[BOOT] proxy enabled via PROXY_URL")
        return AiohttpSession(proxy=proxy)
    return AiohttpSession()


def build_bot(token: Optional[str], proxy: Optional[str] = None) -> Bot:
    if not token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN not set")
    return Bot(
        token=token,
        session=build_session(proxy),
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )


def build_dispatcher(services: Services) -> Dispatcher:
    # services попадает в хендлеры как именованный аргумент
    dp = Dispatcher(services=services)
    register(dp)

    dbg = DebugMiddleware()
    dp.message.middleware(dbg)
    dp.callback_query.middleware(dbg)
    logger.info("[BOOT] telegram routers registered, DebugMiddleware attached")
    return dp


def _announcement_ref(mission: Mission) -> Tuple[int, int]:
    """(chat_id, message_id) анонса: из полей миссии или из thread_id «tg:chat:msg»."""
    if mission.telegram_chat_id and mission.telegram_message_id:
        return int(mission.telegram_chat_id), int(mission.telegram_message_id)
    _, chat_id, message_id = mission.thread_id.split(":", 2)
    return int(chat_id), int(message_id)


class TelegramGateway:
    """Коллабораторы сканера для миссий, объявленных в Telegram."""

    name = "telegram"

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    def handles(self, mission: Mission) -> bool:
        return mission.is_telegram

    async def post_summary(self, mission: Mission, submissions: Sequence[Submission]) -> bool:
        chat_id, message_id = _announcement_ref(mission)
        await self.bot.send_message(
            chat_id,
            h(mission_summary_text(mission, submissions))[:MESSAGE_LIMIT],
            reply_parameters=ReplyParameters(message_id=message_id, allow_sending_without_reply=True),
        )
        return True

    async def lock_thread(self, mission: Mission) -> bool:
        # у ответов на анонс нечего запирать: после closed новые сабмиты игнорируются
        logger.debug(f"[TG] nothing to lock for {mission.id}")
        return True

    async def update_announcement(self, mission: Mission) -> bool:
        chat_id, message_id = _announcement_ref(mission)
        await self.bot.edit_message_text(
            text=h(mission_card_text(mission, status="closed")),
            chat_id=chat_id,
            message_id=message_id,
        )
        return True

    async def post_results(self, mission: Mission, submissions: Sequence[Submission]) -> bool:
        chat_id, _ = _announcement_ref(mission)
        await self.bot.send_message(chat_id, h(mission_results_text(mission, submissions))[:MESSAGE_LIMIT])
        return True
