"""Tests for the Discord boundary: message/reaction events and scanner gateway."""
from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from mission_control.container import Services
from mission_control.discord_bot import DiscordGateway, MissionClient, _flip_marker
from mission_control.models.mission import Mission
from mission_control.services.votes import CONFIRMATION_EMOJI, VOTE_EMOJI_ORDER

MISSION_CHANNEL = 555
JUDGE_ROLE = 900


@pytest.fixture
def client(services: Services) -> MissionClient:
    return MissionClient(
        tracker=services.tracker,
        votes=services.votes,
        mission_channel_id=MISSION_CHANNEL,
        judge_role_ids=[JUDGE_ROLE],
    )


def _message(content: str = "my entry https://x.com/alice/1", parent_id: int = MISSION_CHANNEL, bot: bool = False):
    thread = MagicMock(spec=discord.Thread)
    thread.id = 777
    thread.parent_id = parent_id
    thread.name = "Weekly mission"
    msg = MagicMock()
    msg.id = 1001
    msg.content = content
    msg.channel = thread
    msg.guild = None
    msg.author = SimpleNamespace(id=42, bot=bot)
    msg.add_reaction = AsyncMock()
    return msg


def _reaction(emoji: str, roles=(JUDGE_ROLE,), user_id: int = 7):
    member = SimpleNamespace(id=user_id, bot=False, roles=[SimpleNamespace(id=r) for r in roles])
    return SimpleNamespace(
        user_id=user_id,
        guild_id=None,
        channel_id=777,
        message_id=1001,
        emoji=SimpleNamespace(name=emoji),
        member=member,
    )


class TestOnMessage:
    async def test_submission_tracked_and_reactions_added(self, client, services: Services) -> None:
        msg = _message()
        await client.on_message(msg)

        sub = await services.submissions.get_submission_by_message("1001")
        assert sub.urls == ["https://x.com/alice/1"]
        assert (await services.missions.get_mission_by_thread("777")).title == "Weekly mission"
        emojis = [c.args[0] for c in msg.add_reaction.await_args_list]
        assert emojis == [CONFIRMATION_EMOJI, *VOTE_EMOJI_ORDER]

    async def test_ignored_messages(self, client, services: Services) -> None:
        await client.on_message(_message(bot=True))
        await client.on_message(_message(parent_id=999))
        await client.on_message(_message(content="no links here"))
        assert await services.missions.list_missions() == []

    async def test_repeat_event_not_duplicated(self, client, services: Services) -> None:
        await client.on_message(_message())
        second = _message()
        await client.on_message(second)
        second.add_reaction.assert_not_awaited()
        mission = await services.missions.get_mission_by_thread("777")
        assert len(await services.submissions.submissions_by_mission(mission.id)) == 1


class TestReactions:
    async def test_judge_vote_and_rescore(self, client, services: Services) -> None:
        await client.on_message(_message())
        await client.on_raw_reaction_add(_reaction("3️⃣"))
        await client.on_raw_reaction_add(_reaction("5️⃣"))
        # снятие старой 3️⃣ не трогает актуальную 5
        await client.on_raw_reaction_remove(_reaction("3️⃣"))
        sub = await services.submissions.get_submission_by_message("1001")
        assert [(v.judge_id, v.score) for v in sub.votes] == [("7", 5)]

        await client.on_raw_reaction_remove(_reaction("5️⃣"))
        sub = await services.submissions.get_submission_by_message("1001")
        assert sub.votes == []

    async def test_non_judge_reaction_removed(self, client, services: Services) -> None:
        await client.on_message(_message())
        client._remove_reaction = AsyncMock()
        payload = _reaction("4️⃣", roles=(1,))
        await client.on_raw_reaction_add(payload)
        client._remove_reaction.assert_awaited_once_with(payload, payload.member)
        assert (await services.submissions.get_submission_by_message("1001")).votes == []

    async def test_other_emoji_and_untracked_message_ignored(self, client, services: Services) -> None:
        await client.on_message(_message())
        await client.on_raw_reaction_add(_reaction(CONFIRMATION_EMOJI))
        stray = _reaction("4️⃣")
        stray.message_id = 5
        await client.on_raw_reaction_add(stray)
        assert (await services.submissions.get_submission_by_message("1001")).votes == []


class TestGateway:
    def _mission(self, thread_id: str = "777") -> Mission:
        t = datetime(2025, 1, 1, tzinfo=timezone.utc)
        return Mission(id="mission-1", title="Weekly", thread_id=thread_id, deadline=t, created_at=t)

    def test_handles_only_discord_threads(self, client) -> None:
        gw = DiscordGateway(client)
        assert gw.handles(self._mission())
        assert not gw.handles(self._mission("tg:-100:5"))

    async def test_lock_archives_thread(self, client) -> None:
        thread = MagicMock(spec=discord.Thread)
        thread.edit = AsyncMock()
        client.resolve_thread = AsyncMock(return_value=thread)
        assert await DiscordGateway(client).lock_thread(self._mission())
        thread.edit.assert_awaited_once_with(locked=True, archived=True)

    async def test_missing_thread_raises(self, client) -> None:
        client.resolve_thread = AsyncMock(return_value=None)
        with pytest.raises(LookupError):
            await DiscordGateway(client).post_summary(self._mission(), [])

    async def test_results_skipped_without_channel(self, client) -> None:
        assert await DiscordGateway(client, results_channel_id=None).post_results(self._mission(), [])

    def test_embed_marker_flipped(self) -> None:
        embed = discord.Embed(title="🎯 Weekly", description="Status: 🟢 ACTIVE")
        embed.add_field(name="State", value="🟢 ACTIVE")
        flipped = _flip_marker(embed)
        assert flipped.description == "Status: 🔴 CLOSED"
        assert flipped.fields[0].value == "🔴 CLOSED"
        assert flipped.title == "🎯 Weekly"
