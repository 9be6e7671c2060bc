# main.py — веб-вход (webhook + health) и запуск Discord/Telegram/сканера дедлайнов
from __future__ import annotations

from dotenv import load_dotenv

load_dotenv(override=False)

import asyncio
from typing import List, Optional

from aiogram import Bot, Dispatcher, types
from fastapi import FastAPI, Request
from loguru import logger

from mission_control.config import settings
from mission_control.container import build_services
from mission_control.db import ensure_db
from mission_control.discord_bot import DiscordGateway, MissionClient
from mission_control.logging import setup_logging
from mission_control.telegram_bot import TelegramGateway, build_bot, build_dispatcher

# ────────────────────────── Инициализация ──────────────────────────
services = build_services()
app = FastAPI()

bot: Optional[Bot] = None
dp: Optional[Dispatcher] = None
discord_client: Optional[MissionClient] = None
_tasks: List[asyncio.Task] = []


def _check_env() -> None:
    if not settings.DISCORD_BOT_TOKEN:
        raise RuntimeError("DISCORD_BOT_TOKEN not set")
    if not settings.DISCORD_MISSION_CHANNEL_ID:
        raise RuntimeError("DISCORD_MISSION_CHANNEL_ID not set")
    if not settings.DISCORD_JUDGE_ROLE_IDS:
        logger.warning("[ENV] DISCORD_JUDGE_ROLE_IDS is empty — Discord votes will be rejected")
    if not settings.DISCORD_RESULTS_CHANNEL_ID:
        logger.warning("[ENV] DISCORD_RESULTS_CHANNEL_ID is not set (results only in threads)")
    if not settings.sheets_configured:
        logger.warning("[ENV] Google Sheets not configured — missions will stay closed")
    if not settings.telegram_enabled:
        logger.info("[ENV] TELEGRAM_BOT_TOKEN not set, Telegram bot disabled")
    if settings.PROXY_URL:
        logger.info("[ENV] PROXY_URL is set")


def _spawn(coro, name: str) -> None:
    task = asyncio.create_task(coro, name=name)
    task.add_done_callback(_log_task_exit)
    _tasks.append(task)


def _log_task_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.opt(exception=exc).error(f"[BOOT] task {task.get_name()} crashed: {exc}")


# ────────────────────────── Webhook endpoint ───────────────────────
@app.post("/webhook")
async def telegram_webhook(request: Request):
    if bot is None or dp is None:
        return {"ok": False, "detail": "telegram disabled"}
    if settings.WEBHOOK_SECRET:
        if request.headers.get("x-telegram-bot-api-secret-token") != settings.WEBHOOK_SECRET:
            return {"ok": False, "detail": "bad secret"}

    data = await request.json()
    update = types.Update.model_validate(data, context={"bot": bot})
    await dp.feed_update(bot, update)
    return {"ok": True}


# ────────────────────────── Жизненный цикл ─────────────────────────
@app.on_event("startup")
async def on_startup():
    global bot, dp, discord_client
    setup_logging(settings.LOG_LEVEL)
    _check_env()

    await ensure_db()
    logger.info("[DB] storage ensured")

    # Discord — основная платформа
    discord_client = MissionClient(
        tracker=services.tracker,
        votes=services.votes,
        mission_channel_id=settings.DISCORD_MISSION_CHANNEL_ID,
        judge_role_ids=settings.DISCORD_JUDGE_ROLE_IDS,
        guild_id=settings.DISCORD_GUILD_ID,
    )
    services.scanner.gateways.append(DiscordGateway(discord_client, settings.DISCORD_RESULTS_CHANNEL_ID))
    _spawn(discord_client.start(settings.DISCORD_BOT_TOKEN), "discord")
    logger.info("[BOOT] discord client starting")

    # Telegram — опционально: webhook при BASE_URL, иначе поллинг
    if settings.telegram_enabled:
        bot = build_bot(settings.TELEGRAM_BOT_TOKEN, settings.PROXY_URL)
        dp = build_dispatcher(services)
        services.scanner.gateways.append(TelegramGateway(bot))
        if settings.BASE_URL:
            url = f"{settings.BASE_URL.rstrip('/')}/webhook"
            await bot.set_webhook(
                url=url,
                secret_token=settings.WEBHOOK_SECRET or None,
                drop_pending_updates=True,
            )
            logger.info(f"[WEBHOOK] set to {url}")
        else:
            await bot.delete_webhook(drop_pending_updates=True)
            _spawn(dp.start_polling(bot, handle_signals=False), "telegram-polling")
            logger.info("[BOOT] telegram polling started")

    services.scanner.start()


@app.on_event("shutdown")
async def on_shutdown():
    services.scanner.stop()
    sweep = services.scanner.current_sweep
    if sweep is not None and not sweep.done():
        # клиенты нужны проходу до конца
        logger.info("[BOOT] waiting for the running deadline sweep")
        try:
            await sweep
        except Exception as e:
            logger.warning(f"[BOOT] deadline sweep ended with error: {e}")
    if dp is not None and not settings.BASE_URL:
        try:
            await dp.stop_polling()
        except RuntimeError:
            pass
    if bot is not None:
        if settings.BASE_URL:
            try:
                await bot.delete_webhook(drop_pending_updates=False)
            except Exception as e:
                logger.warning(f"[BOOT] delete_webhook failed: {e}")
        await bot.session.close()
    if discord_client is not None:
        await discord_client.close()
    for task in _tasks:
        task.cancel()
    logger.info("[BOOT] graceful shutdown complete")


# health-check
@app.get("/")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
