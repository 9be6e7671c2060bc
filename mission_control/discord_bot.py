# mission_control/discord_bot.py
"""
Discord: сабмиты в тредах канала миссий, голосование реакциями 1️⃣..5️⃣
(только судьи, чужие реакции снимаются), плюс коллабораторы сканера
дедлайнов — сводка, замок треда, анонс, итоги.
"""
from __future__ import annotations

import json
from typing import Iterable, Optional, Sequence

import discord
from loguru import logger

from mission_control.models.mission import Mission
from mission_control.models.submission import Submission
from mission_control.services.reports import mission_results_text, mission_summary_text
from mission_control.services.tracker import SubmissionTracker
from mission_control.services.votes import (
    CONFIRMATION_EMOJI,
    VOTE_EMOJI_ORDER,
    VoteReconciler,
    is_judge,
    score_for_emoji,
)
from mission_control.utils.text import extract_urls, trim

ACTIVE_MARK = "🟢 ACTIVE"
CLOSED_MARK = "🔴 CLOSED"
MESSAGE_LIMIT = 2000


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.guilds = True
    intents.guild_messages = True
    intents.guild_reactions = True
    intents.message_content = True
    return intents


class MissionClient(discord.Client):
    def __init__(
        self,
        tracker: SubmissionTracker,
        votes: VoteReconciler,
        mission_channel_id: Optional[int],
        judge_role_ids: Iterable[int],
        guild_id: Optional[int] = None,
        intents: Optional[discord.Intents] = None,
    ) -> None:
        super().__init__(intents=intents or build_intents())
        self.tracker = tracker
        self.votes = votes
        self.mission_channel_id = mission_channel_id
        self.judge_role_ids = [int(x) for x in judge_role_ids]
        self.guild_id = guild_id

    # ───────────────── события ─────────────────

    async def on_ready(self) -> None:
        logger.info(f"[DISCORD] ready as {self.user}")
        logger.info(f"[DISCORD] guild={self.guild_id} mission channel={self.mission_channel_id}")
        if not self.judge_role_ids:
            logger.warning("[DISCORD] DISCORD_JUDGE_ROLE_IDS is empty — nobody can vote")

    def _wrong_guild(self, guild_id: Optional[int]) -> bool:
        return bool(self.guild_id and guild_id != self.guild_id)

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        channel = message.channel
        if not isinstance(channel, discord.Thread):
            return
        if channel.parent_id != self.mission_channel_id:
            return
        if self._wrong_guild(message.guild.id if message.guild else None):
            return

        urls = extract_urls(message.content)
        if not urls:
            return
        if await self.tracker.index.resolve(str(message.id)):
            return

        sub = await self.tracker.on_candidate_message(
            thread_id=str(channel.id),
            thread_name=channel.name,
            message_id=str(message.id),
            channel_id=str(channel.id),
            author_id=str(message.author.id),
            author_tag=str(message.author),
            content=message.content,
            urls=urls,
            origin="discord",
        )
        if sub is None:
            return

        try:
            await message.add_reaction(CONFIRMATION_EMOJI)
            for emoji in VOTE_EMOJI_ORDER:
                await message.add_reaction(emoji)
            logger.info(f"[DISCORD] vote reactions added to {message.id}")
        except discord.HTTPException as e:
            logger.warning(f"[DISCORD] failed to add reactions to {message.id}: {e}")

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if self.user and payload.user_id == self.user.id:
            return
        if self._wrong_guild(payload.guild_id):
            return
        score = score_for_emoji(payload.emoji.name)
        if score is None:
            return
        submission_id = await self.tracker.index.resolve(str(payload.message_id))
        if not submission_id:
            return

        member = payload.member or await self._fetch_member(payload.guild_id, payload.user_id)
        if member is None or member.bot:
            return

        if not is_judge([r.id for r in member.roles], self.judge_role_ids):
            logger.info(f"[DISCORD] removing non-judge reaction from {member}")
            await self._remove_reaction(payload, member)
            return

        await self.votes.assert_vote(submission_id, str(member.id), score)
        logger.info(f"[DISCORD] judge {member} gave {score} to {submission_id}")

    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        if self.user and payload.user_id == self.user.id:
            return
        score = score_for_emoji(payload.emoji.name)
        if score is None:
            return
        submission_id = await self.tracker.index.resolve(str(payload.message_id))
        if not submission_id:
            return
        # снятие «старой» оценки не трогает актуальный голос
        await self.votes.retract_vote(submission_id, str(payload.user_id), score)

    # ───────────────── helpers ─────────────────

    async def _fetch_member(self, guild_id: Optional[int], user_id: int) -> Optional[discord.Member]:
        if guild_id is None:
            return None
        guild = self.get_guild(guild_id)
        if guild is None:
            return None
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.HTTPException as e:
            logger.info(f"[DISCORD] could not fetch member {user_id}: {e}")
            return None

    async def _remove_reaction(self, payload: discord.RawReactionActionEvent, member: discord.Member) -> None:
        try:
            channel = self.get_channel(payload.channel_id) or await self.fetch_channel(payload.channel_id)
            await channel.get_partial_message(payload.message_id).remove_reaction(payload.emoji, member)
        except discord.HTTPException as e:
            logger.warning(f"[DISCORD] failed to remove reaction: {e}")

    async def resolve_thread(self, thread_id: str) -> Optional[discord.Thread]:
        try:
            tid = int(thread_id)
        except ValueError:
            return None
        channel = self.get_channel(tid)
        if channel is None:
            channel = await self.fetch_channel(tid)
        return channel if isinstance(channel, discord.Thread) else None


def _flip_marker(embed: discord.Embed) -> discord.Embed:
    data = json.dumps(embed.to_dict(), ensure_ascii=False)
    return discord.Embed.from_dict(json.loads(data.replace(ACTIVE_MARK, CLOSED_MARK)))


class DiscordGateway:
    """Коллабораторы сканера для миссий из Discord-тредов."""

    name = "discord"

    def __init__(self, client: MissionClient, results_channel_id: Optional[int] = None) -> None:
        self.client = client
        self.results_channel_id = results_channel_id

    def handles(self, mission: Mission) -> bool:
        return not mission.is_telegram

    async def _thread(self, mission: Mission) -> discord.Thread:
        thread = await self.client.resolve_thread(mission.thread_id)
        if thread is None:
            raise LookupError(f"thread {mission.thread_id} not found")
        return thread

    async def post_summary(self, mission: Mission, submissions: Sequence[Submission]) -> bool:
        thread = await self._thread(mission)
        await thread.send(trim(mission_summary_text(mission, submissions), MESSAGE_LIMIT))
        return True

    async def lock_thread(self, mission: Mission) -> bool:
        thread = await self._thread(mission)
        await thread.edit(locked=True, archived=True)
        logger.info(f"[DISCORD] thread closed for «{mission.title}»")
        return True

    async def update_announcement(self, mission: Mission) -> bool:
        """Стартовое сообщение треда: 🟢 ACTIVE → 🔴 CLOSED (только наше)."""
        thread = await self._thread(mission)
        if isinstance(thread.parent, discord.TextChannel):
            starter = await thread.parent.fetch_message(thread.id)
        else:
            starter = thread.starter_message or await thread.fetch_message(thread.id)
        if starter.author != self.client.user:
            logger.debug(f"[DISCORD] starter of {thread.id} is not ours, nothing to update")
            return True
        content = starter.content.replace(ACTIVE_MARK, CLOSED_MARK) if starter.content else starter.content
        embeds = [_flip_marker(e) for e in starter.embeds]
        await starter.edit(content=content, embeds=embeds)
        return True

    async def post_results(self, mission: Mission, submissions: Sequence[Submission]) -> bool:
        if not self.results_channel_id:
            return True
        channel = self.client.get_channel(self.results_channel_id) or await self.client.fetch_channel(self.results_channel_id)
        await channel.send(trim(mission_results_text(mission, submissions), MESSAGE_LIMIT))
        return True
