"""Tests for the Telegram boundary: reply submissions, button votes, gateway."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from mission_control.callbacks import VoteCb
from mission_control.config import settings
from mission_control.container import Services
from mission_control.filters.admin_only import AdminOnly
from mission_control.filters.allowed_chat import AllowedChat
from mission_control.handlers.missions import submission_reply, tg_thread_id, vote_cb
from mission_control.models.mission import Mission
from mission_control.telegram_bot import TelegramGateway
from mission_control.utils.time import now_utc

CHAT = -100500
ANNOUNCEMENT = 10


@pytest.fixture
async def tg_mission(services: Services) -> Mission:
    m = await services.missions.register_mission(
        tg_thread_id(CHAT, ANNOUNCEMENT), "TG weekly", now_utc() + timedelta(days=1)
    )
    return await services.missions.update_mission_telegram_info(m.id, str(ANNOUNCEMENT), str(CHAT))


def _reply(text: str, message_id: int = 11, reply_to: int = ANNOUNCEMENT, chat: int = CHAT):
    m = MagicMock()
    m.chat = SimpleNamespace(id=chat, type="supergroup")
    m.message_id = message_id
    m.text = text
    m.caption = None
    m.from_user = SimpleNamespace(id=42, is_bot=False, username="alice", full_name="Alice")
    m.reply_to_message = SimpleNamespace(message_id=reply_to)
    m.reply = AsyncMock()
    return m


def _callback(user_id: int, sid: str, score: int):
    cq = MagicMock()
    cq.from_user = SimpleNamespace(id=user_id)
    cq.answer = AsyncMock()
    return cq, VoteCb(sid=sid, score=score)


class TestReplySubmission:
    async def test_link_reply_creates_submission(self, services: Services, tg_mission: Mission) -> None:
        m = _reply("done: https://x.com/alice/9")
        await submission_reply(m, services)

        subs = await services.submissions.submissions_by_mission(tg_mission.id)
        assert len(subs) == 1
        assert subs[0].source == "telegram"
        assert subs[0].user_tag == "@alice"
        assert subs[0].message_id == tg_thread_id(CHAT, 11)
        m.reply.assert_awaited_once()

    async def test_ignored_replies(self, services: Services, tg_mission: Mission) -> None:
        await submission_reply(_reply("no link"), services)
        await submission_reply(_reply("https://x.com/1", reply_to=999), services)
        await submission_reply(_reply("https://x.com/1", chat=777), services)
        assert await services.submissions.submissions_by_mission(tg_mission.id) == []

    async def test_closed_mission_refuses(self, services: Services, tg_mission: Mission) -> None:
        await services.missions.mark_mission_closed(tg_mission.id)
        m = _reply("https://x.com/late")
        await submission_reply(m, services)
        assert await services.submissions.submissions_by_mission(tg_mission.id) == []
        assert "closed" in m.reply.await_args.args[0]


class TestVoteButtons:
    async def test_judge_toggles(self, services: Services, tg_mission: Mission, monkeypatch) -> None:
        monkeypatch.setattr(settings, "TELEGRAM_JUDGE_USER_IDS_RAW", "7,8")
        await submission_reply(_reply("https://x.com/a"), services)
        sub = (await services.submissions.submissions_by_mission(tg_mission.id))[0]

        cq, data = _callback(7, sub.id, 4)
        await vote_cb(cq, data, services)
        assert "Scored 4" in cq.answer.await_args.args[0]

        cq, data = _callback(7, sub.id, 4)
        await vote_cb(cq, data, services)
        assert "Vote removed" in cq.answer.await_args.args[0]
        assert (await services.submissions.get_submission(sub.id)).votes == []

    async def test_non_judge_rejected(self, services: Services, tg_mission: Mission, monkeypatch) -> None:
        monkeypatch.setattr(settings, "TELEGRAM_JUDGE_USER_IDS_RAW", "7")
        await submission_reply(_reply("https://x.com/a"), services)
        sub = (await services.submissions.submissions_by_mission(tg_mission.id))[0]

        cq, data = _callback(99, sub.id, 5)
        await vote_cb(cq, data, services)
        assert cq.answer.await_args.kwargs.get("show_alert") is True
        assert (await services.submissions.get_submission(sub.id)).votes == []


class TestFilters:
    async def test_allowed_chat(self) -> None:
        # не Message — фильтр берёт чат из event.message, как у CallbackQuery
        cq = SimpleNamespace(message=SimpleNamespace(chat=SimpleNamespace(id=CHAT)))
        assert await AllowedChat([])(cq)
        assert await AllowedChat([CHAT])(cq)
        assert not await AllowedChat([1])(cq)
        assert not await AllowedChat([])(SimpleNamespace(message=None))

    async def test_admin_only(self) -> None:
        event = SimpleNamespace(from_user=SimpleNamespace(id=5))
        assert await AdminOnly([5])(event)
        assert not await AdminOnly([6])(event)
        assert not await AdminOnly([])(event)


class TestGateway:
    def _mission(self, status: str = "active") -> Mission:
        t = datetime(2025, 1, 1, tzinfo=timezone.utc)
        return Mission(
            id="mission-1", title="TG <weekly>", thread_id=tg_thread_id(CHAT, ANNOUNCEMENT),
            deadline=t, created_at=t, status=status,
            telegram_message_id=str(ANNOUNCEMENT), telegram_chat_id=str(CHAT),
        )

    def test_handles_only_telegram(self) -> None:
        gw = TelegramGateway(AsyncMock())
        assert gw.handles(self._mission())
        assert not gw.handles(self._mission().model_copy(update={"thread_id": "777"}))

    async def test_summary_replies_to_announcement(self) -> None:
        bot = AsyncMock()
        assert await TelegramGateway(bot).post_summary(self._mission(), [])
        args, kwargs = bot.send_message.await_args
        assert args[0] == CHAT
        assert "TG &lt;weekly&gt;" in args[1]
        assert kwargs["reply_parameters"].message_id == ANNOUNCEMENT

    async def test_announcement_shows_closed(self) -> None:
        bot = AsyncMock()
        assert await TelegramGateway(bot).update_announcement(self._mission())
        kwargs = bot.edit_message_text.await_args.kwargs
        assert "🔴 CLOSED" in kwargs["text"]
        assert "Reply to this message" not in kwargs["text"]
        assert (kwargs["chat_id"], kwargs["message_id"]) == (CHAT, ANNOUNCEMENT)

    async def test_lock_is_noop(self) -> None:
        bot = AsyncMock()
        assert await TelegramGateway(bot).lock_thread(self._mission())
        assert bot.mock_calls == []
