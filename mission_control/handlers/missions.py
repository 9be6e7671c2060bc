# mission_control/handlers/missions.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.types import Message, CallbackQuery
from loguru import logger

from mission_control.callbacks import VoteCb
from mission_control.config import settings
from mission_control.container import Services
from mission_control.filters.admin_only import AdminOnly
from mission_control.filters.allowed_chat import AllowedChat
from mission_control.keyboards import vote_kb
from mission_control.models.mission import Mission
from mission_control.services.commands import build_template_mission, parse_kv_args
from mission_control.services.reports import card_text, sweep_report_text
from mission_control.services.sheets import format_average
from mission_control.services.votes import is_judge
from mission_control.utils.text import extract_urls, h
from mission_control.utils.time import fmt_dt, in_days, parse_deadline

router = Router()
router.message.filter(AllowedChat())
router.callback_query.filter(AllowedChat())


def tg_thread_id(chat_id: int, message_id: int) -> str:
    """Telegram-миссия живёт в ответах на анонс: его адрес и есть «тред»."""
    return f"tg:{chat_id}:{message_id}"

def _author_tag(m: Message) -> str:
    u = m.from_user
    if u is None:
        return "unknown"
    return f"@{u.username}" if u.username else (u.full_name or f"id{u.id}")

async def _announce(
    m: Message,
    services: Services,
    title: str,
    deadline: datetime,
    brief: Optional[str] = None,
    text: Optional[str] = None,
) -> Mission:
    """Публикуем анонс, регистрируем миссию по его message_id."""
    sent = await m.answer(h(text or card_text(title, deadline, brief)))
    mission = await services.missions.register_mission(
        tg_thread_id(sent.chat.id, sent.message_id), title, deadline, brief
    )
    updated = await services.missions.update_mission_telegram_info(
        mission.id, str(sent.message_id), str(sent.chat.id)
    )
    logger.info(f"[TG] mission {mission.id} announced in chat {sent.chat.id}")
    return updated or mission


# ───────────────── создание миссий ─────────────────

@router.message(Command("newmission"), AdminOnly())
async def newmission_cmd(m: Message, command: CommandObject, services: Services):
    """
    /newmission [deadline] Title
    brief...
    Первое слово — дедлайн, если распознаётся; иначе DEFAULT_DEADLINE_DAYS.
    """
    args = (command.args or "").strip()
    head, _, brief = args.partition("\n")
    head = head.strip()
    if not head:
        await m.answer("Usage: /newmission [deadline] Title\n(brief on the next lines)")
        return

    first, _, rest = head.partition(" ")
    deadline = parse_deadline(first) if rest.strip() else None
    title = rest.strip() if deadline else head
    deadline = deadline or in_days(settings.DEFAULT_DEADLINE_DAYS)

    await _announce(m, services, title, deadline, brief.strip() or None)


@router.message(Command("tm"), AdminOnly())
async def tm_cmd(m: Message, command: CommandObject, services: Services):
    words, user_vars = parse_kv_args(command.args)
    if not words:
        await m.answer("Usage: /tm &lt;name&gt; [var=val ...]")
        return
    res = await build_template_mission(services.templates, " ".join(words), user_vars)
    if not res.success:
        await m.answer(f"❌ {h(res.error)}")
        return
    await _announce(
        m, services, res.title, in_days(res.deadline_days), res.brief,
        text=f"{res.announcement}\n\nReply to this message with your link to submit." if res.announcement else None,
    )


# ───────────────── админка ─────────────────

@router.message(Command("deadline"), AdminOnly())
async def deadline_cmd(m: Message, command: CommandObject, services: Services):
    parts = (command.args or "").split(maxsplit=1)
    if len(parts) != 2:
        await m.answer("Usage: /deadline &lt;mission id&gt; &lt;when&gt;")
        return
    mission_id, when = parts
    deadline = parse_deadline(when)
    if deadline is None:
        await m.answer("Could not parse the deadline. Try 3d, 12h, 2025-01-31 or 31.01.")
        return
    mission = await services.missions.update_mission_deadline(mission_id, deadline)
    if mission is None:
        await m.answer("Mission not found or no longer active.")
        return
    await m.answer(f"⏳ «{h(mission.title)}» now ends {fmt_dt(mission.deadline)}")


@router.message(Command("sweep"), AdminOnly())
async def sweep_cmd(m: Message, services: Services):
    report = await services.scanner.trigger()
    await m.answer(h(sweep_report_text(report)))


@router.message(Command("export"), AdminOnly())
async def export_cmd(m: Message, command: CommandObject, services: Services):
    mission_id = (command.args or "").strip()
    if not mission_id:
        await m.answer("Usage: /export &lt;mission id&gt;")
        return
    outcome = await services.scanner.retry_export(mission_id)
    if outcome is None:
        await m.answer("Mission not found.")
    elif outcome.export_error:
        await m.answer(f"❌ Export failed: {h(outcome.export_error)}")
    else:
        await m.answer(f"📤 «{h(outcome.title)}» exported — {outcome.exported_rows} row(s)")


# ───────────────── сабмиты: ответ на анонс ─────────────────

@router.message(F.reply_to_message)
async def submission_reply(m: Message, services: Services):
    if m.from_user is None or m.from_user.is_bot:
        return
    urls = extract_urls(m.text or m.caption)
    if not urls:
        return
    mission = await services.missions.get_mission_by_telegram_message(str(m.reply_to_message.message_id))
    if mission is None or mission.telegram_chat_id != str(m.chat.id):
        return

    sub = await services.tracker.on_candidate_message(
        thread_id=mission.thread_id,
        thread_name=mission.title,
        message_id=tg_thread_id(m.chat.id, m.message_id),
        channel_id=str(m.chat.id),
        author_id=str(m.from_user.id),
        author_tag=_author_tag(m),
        content=m.text or m.caption or "",
        urls=urls,
        origin="telegram",
        auto_register=False,
    )
    if sub is None:
        await m.reply("⛔ This mission is closed.")
        return
    await m.reply("📝 Submission recorded. Judges, score it:", reply_markup=vote_kb(sub.id))


# ───────────────── голосование кнопками ─────────────────

@router.callback_query(VoteCb.filter())
async def vote_cb(cq: CallbackQuery, callback_data: VoteCb, services: Services):
    uid = cq.from_user.id
    if not is_judge([uid], settings.TELEGRAM_JUDGE_USER_IDS):
        await cq.answer("Only judges can score submissions.", show_alert=True)
        return
    sub = await services.votes.toggle_vote(callback_data.sid, str(uid), callback_data.score)
    if sub is None:
        await cq.answer("Submission not found.", show_alert=True)
        return
    if sub.vote_of(str(uid)) is None:
        await cq.answer(f"Vote removed. Average: {format_average(sub)}")
    else:
        await cq.answer(f"Scored {callback_data.score}. Average: {format_average(sub)}")
