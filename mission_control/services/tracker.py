from __future__ import annotations
from typing import Dict, Optional, Sequence

from loguru import logger

from mission_control.models.submission import Submission, SourceT
from mission_control.services.missions_service import MissionsService
from mission_control.services.submissions_service import SubmissionsService
from mission_control.utils.text import trim
from mission_control.utils.time import in_days

DEFAULT_DEADLINE_DAYS = 7


class SubmissionIndex:
    """
    message_id → submission_id. Только кэш для скорости: промах всегда
    перепроверяется в хранилище.
    """

    def __init__(self, submissions: SubmissionsService) -> None:
        self.submissions = submissions
        self._cache: Dict[str, str] = {}

    def remember(self, message_id: str, submission_id: str) -> None:
        self._cache[message_id] = submission_id

    async def resolve(self, message_id: str) -> Optional[str]:
        sid = self._cache.get(message_id)
        if sid:
            return sid
        sub = await self.submissions.get_submission_by_message(message_id)
        if sub is None:
            return None
        self._cache[message_id] = sub.id
        return sub.id


class SubmissionTracker:
    def __init__(
        self,
        missions: MissionsService,
        submissions: SubmissionsService,
        index: Optional[SubmissionIndex] = None,
        default_deadline_days: int = DEFAULT_DEADLINE_DAYS,
    ) -> None:
        self.missions = missions
        self.submissions = submissions
        self.index = index or SubmissionIndex(submissions)
        self.default_deadline_days = default_deadline_days

    async def on_candidate_message(
        self,
        *,
        thread_id: str,
        thread_name: str,
        message_id: str,
        channel_id: str,
        author_id: str,
        author_tag: str,
        content: str,
        urls: Sequence[str],
        origin: SourceT = "discord",
        auto_register: bool = True,
    ) -> Optional[Submission]:
        """
        Сообщение со ссылками внутри треда миссии → сабмит.
        Вызывающий уже отсеял ботов, чужие каналы и сообщения без ссылок.
        Миссии для треда нет — регистрируем с дедлайном now + N дней
        (пассивный режим Discord); при auto_register=False просто выходим.
        """
        mission = await self.missions.get_mission_by_thread(thread_id)
        if mission is None:
            if not auto_register:
                logger.info(f"[TRACKER] no mission for thread {thread_id}, skipping message {message_id}")
                return None
            mission = await self.missions.register_mission(
                thread_id, thread_name, in_days(self.default_deadline_days)
            )
        elif mission.status != "active":
            logger.info(f"[TRACKER] mission {mission.id} is {mission.status}, late submission {message_id} ignored")
            return None

        sub = await self.submissions.create_submission(
            message_id=message_id,
            channel_id=channel_id,
            thread_id=thread_id,
            mission_id=mission.id,
            user_id=author_id,
            user_tag=author_tag,
            content=content,
            urls=urls,
            source=origin,
        )
        self.index.remember(message_id, sub.id)
        logger.info(f"[TRACKER] {author_tag} → «{mission.title}»: {trim(urls[0] if urls else '', 80)}")
        return sub
