from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from loguru import logger

from mission_control.container import Services
from mission_control.filters.admin_only import AdminOnly
from mission_control.filters.allowed_chat import AllowedChat
from mission_control.services.commands import parse_kv_args
from mission_control.services.templates_service import TemplateExistsError, template_placeholders
from mission_control.utils.text import h, trim
from mission_control.utils.time import fmt_date

router = Router()
router.message.filter(AllowedChat())

PREVIEW_LEN = 60


@router.message(Command("templates"))
async def templates_cmd(m: Message, services: Services):
    items = await services.templates.list_templates()
    if not items:
        await m.answer("<i>No templates saved yet. Use /tnew to create one.</i>")
        return
    lines = ["<b>Saved Templates:</b>\n"]
    for t in items:
        lines.append(f"<b>{h(t.name)}</b> ({t.default_deadline_days}d)")
        lines.append(f"  {h(trim(t.brief_content, PREVIEW_LEN))}\n")
    lines.append(f"<i>{len(items)} template{'s' if len(items) != 1 else ''} total</i>")
    await m.answer("\n".join(lines))


@router.message(Command("tview"))
async def tview_cmd(m: Message, command: CommandObject, services: Services):
    name = (command.args or "").strip()
    if not name:
        await m.answer("Usage: /tview &lt;name&gt;")
        return
    t = await services.templates.get_template_by_name(name)
    if t is None:
        await m.answer(f"Template \"{h(name)}\" not found.")
        return

    lines = [
        f"<b>Template: {h(t.name)}</b>\n",
        f"<b>Deadline:</b> {t.default_deadline_days} days",
        f"<b>Created:</b> {fmt_date(t.created_at)}\n",
        "<b>Brief:</b>",
        f"<pre>{h(t.brief_content)}</pre>",
    ]
    placeholders = template_placeholders(t.brief_content)
    if placeholders:
        lines.append("\n<b>Placeholders:</b> " + ", ".join(h("{{" + p + "}}") for p in placeholders))
    if t.claude_prompt_override:
        lines.append(f"\n<b>Prompt override:</b> {h(t.claude_prompt_override)}")
    if t.announcement_format:
        lines.append("\n<b>Announcement format:</b>")
        lines.append(f"<pre>{h(t.announcement_format)}</pre>")
    await m.answer("\n".join(lines))


@router.message(Command("tnew"), AdminOnly())
async def tnew_cmd(m: Message, command: CommandObject, services: Services):
    """Ответом на текст брифа: /tnew name=weekly deadline=7 [prompt=...] [announcement=...]."""
    reply = m.reply_to_message
    brief = (reply.text or reply.caption or "").strip() if reply else ""
    _, opts = parse_kv_args(command.args)
    name = (opts.get("name") or "").strip()
    if not brief or not name:
        await m.answer("Reply to the brief text with: /tnew name=weekly deadline=7")
        return
    try:
        deadline_days = int(opts.get("deadline", 7))
    except ValueError:
        await m.answer("deadline must be a number of days.")
        return

    try:
        t = await services.templates.create_template(
            name=name,
            brief_content=brief,
            default_deadline_days=deadline_days,
            claude_prompt_override=opts.get("prompt"),
            announcement_format=opts.get("announcement"),
        )
    except TemplateExistsError as e:
        await m.answer(f"❌ {h(str(e))}")
        return
    logger.info(f"[TG] template {t.name!r} created by {m.from_user.id}")
    await m.answer(
        f"✅ Template <b>{h(t.name)}</b> created!\n\n"
        f"Use <code>/tm {h(t.name)}</code> to create a mission from it."
    )


@router.message(Command("tdel"), AdminOnly())
async def tdel_cmd(m: Message, command: CommandObject, services: Services):
    name = (command.args or "").strip()
    t = await services.templates.get_template_by_name(name) if name else None
    if t is None:
        await m.answer(f"Template \"{h(name)}\" not found.")
        return
    await services.templates.delete_template(t.id)
    await m.answer(f"✅ Template <b>{h(t.name)}</b> deleted.")
