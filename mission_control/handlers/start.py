from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from mission_control.container import Services
from mission_control.filters.allowed_chat import AllowedChat
from mission_control.services.reports import status_text
from mission_control.utils.text import h
from mission_control.utils.time import fmt_dt

router = Router()
router.message.filter(AllowedChat())

HELP_TEXT = (
    "<b>Mission Control Bot</b>\n\n"
    "<b>Everyone:</b>\n"
    "/status — monitoring status\n"
    "/missions — active missions\n"
    "Reply to a mission announcement with a link to submit.\n\n"
    "<b>Admins:</b>\n"
    "/newmission [deadline] Title (brief on the next lines)\n"
    "/tm &lt;name&gt; [var=val ...] — mission from a template\n"
    "/templates — saved templates\n"
    "/tview &lt;name&gt; — template details\n"
    "/tnew name=... [deadline=7] (reply to brief text)\n"
    "/tdel &lt;name&gt; — delete a template\n"
    "/deadline &lt;mission id&gt; &lt;when&gt; — move a deadline\n"
    "/sweep — run the deadline check now\n"
    "/export &lt;mission id&gt; — retry the sheet export\n\n"
    "Deadlines: 3d, 12h, 90m, 2025-01-31, 31.01"
)


@router.message(CommandStart())
async def start_cmd(m: Message):
    await m.answer(
        "<b>Mission Control Bot</b>\n\n"
        "Discord + Telegram submissions, judge scores, Google Sheets export.\n"
        "Use /status to check current missions, /help for commands."
    )


@router.message(Command("help"))
async def help_cmd(m: Message):
    await m.answer(HELP_TEXT)


@router.message(Command("status"))
async def status_cmd(m: Message, services: Services):
    active = await services.missions.list_active_missions()
    past = await services.missions.missions_past_deadline()
    text = status_text(active, past)
    last = services.scanner.last_report
    if last is not None and last.degraded:
        failed = [o.title for o in last.outcomes if not o.ok]
        text += f"\n\n⚠️ Last deadline sweep ({fmt_dt(last.started_at)}) had problems: {', '.join(failed)}"
    await m.answer(h(text))


@router.message(Command("missions"))
async def missions_cmd(m: Message, services: Services):
    active = await services.missions.list_active_missions()
    if not active:
        await m.answer("No active missions.")
        return
    lines = ["<b>Active missions:</b>"]
    for ms in sorted(active, key=lambda x: x.deadline):
        where = "Telegram" if ms.is_telegram else "Discord"
        lines.append(f"• {h(ms.title)} — until {fmt_dt(ms.deadline)} ({where})\n  <code>{ms.id}</code>")
    await m.answer("\n".join(lines))
