from __future__ import annotations
import uuid
from typing import List, Optional, Sequence

from loguru import logger

from mission_control.db import Storage
from mission_control.models.submission import Submission, Vote, SourceT
from mission_control.utils.time import now_utc

def _dump(obj) -> dict:
    return obj.model_dump(mode="json", by_alias=True, exclude_none=True)

def _find(items: List[dict], submission_id: str) -> Optional[dict]:
    for it in items:
        if it.get("id") == submission_id:
            return it
    return None


class SubmissionsService:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    async def _all(self) -> List[Submission]:
        return [Submission.model_validate(x) for x in await self.storage.load("submissions")]

    # ───────────────── CREATE ─────────────────

    async def create_submission(
        self,
        message_id: str,
        channel_id: str,
        thread_id: str,
        mission_id: str,
        user_id: str,
        user_tag: str,
        content: str,
        urls: Sequence[str],
        source: SourceT = "discord",
    ) -> Submission:
        """
        Условная вставка по message_id: если сабмит с этим сообщением уже есть,
        возвращаем его, вторую запись не создаём.
        """
        created = False

        def fn(items: List[dict]):
            nonlocal created
            created = False
            for it in items:
                if it.get("messageId") == message_id:
                    return Submission.model_validate(it), False
            sub = Submission(
                id=f"sub-{uuid.uuid4().hex[:12]}",
                message_id=message_id,
                channel_id=channel_id,
                thread_id=thread_id,
                mission_id=mission_id,
                user_id=user_id,
                user_tag=user_tag,
                content=content,
                urls=list(urls),
                votes=[],
                submitted_at=now_utc(),
                exported=False,
                source=source,
            )
            items.append(_dump(sub))
            created = True
            return sub, True

        sub = await self.storage.mutate("submissions", fn)
        if created:
            logger.info(f"[STORE] submission {sub.id} created (mission={mission_id}, source={source})")
        else:
            logger.info(f"[STORE] submission for message {message_id} already exists: {sub.id}")
        return sub

    # ───────────────── LOOKUPS ─────────────────

    async def get_submission(self, submission_id: str) -> Optional[Submission]:
        for s in await self._all():
            if s.id == submission_id:
                return s
        return None

    async def get_submission_by_message(self, message_id: str) -> Optional[Submission]:
        for s in await self._all():
            if s.message_id == message_id:
                return s
        return None

    async def submissions_by_mission(self, mission_id: str) -> List[Submission]:
        return [s for s in await self._all() if s.mission_id == mission_id]

    # ───────────────── VOTES ─────────────────

    async def record_vote(self, submission_id: str, judge_id: str, score: int) -> Optional[Submission]:
        """Один голос на судью: повторный — перезаписывает счёт и время."""
        logger.debug(f"[STORE] record_vote sub={submission_id} judge={judge_id} score={score}")
        updated = False

        def fn(items: List[dict]):
            nonlocal updated
            updated = False
            it = _find(items, submission_id)
            if it is None:
                return None, False
            vote = _dump(Vote(judge_id=judge_id, score=score, timestamp=now_utc()))
            votes = it.setdefault("votes", [])
            for i, v in enumerate(votes):
                if v.get("judgeId") == judge_id:
                    votes[i] = vote
                    updated = True
                    break
            else:
                votes.append(vote)
            return Submission.model_validate(it), True

        sub = await self.storage.mutate("submissions", fn)
        if sub is None:
            logger.error(f"[STORE] submission not found: {submission_id}")
        elif updated:
            logger.info(f"[STORE] vote updated: judge {judge_id} → {score} on {submission_id}")
        else:
            logger.info(f"[STORE] vote recorded: judge {judge_id} gave {score} to {submission_id}")
        return sub

    async def remove_vote(self, submission_id: str, judge_id: str, score: Optional[int] = None) -> Optional[Submission]:
        """
        Убирает голос судьи. С score — только если сохранённый счёт совпадает
        (снятие «старой» реакции не стирает новый голос).
        """
        logger.debug(f"[STORE] remove_vote sub={submission_id} judge={judge_id} score={score}")

        def fn(items: List[dict]):
            it = _find(items, submission_id)
            if it is None:
                return None, False
            votes = it.get("votes") or []
            keep = [
                v for v in votes
                if v.get("judgeId") != judge_id or (score is not None and v.get("score") != score)
            ]
            changed = len(keep) != len(votes)
            it["votes"] = keep
            return Submission.model_validate(it), changed

        sub = await self.storage.mutate("submissions", fn)
        if sub is None:
            logger.warning(f"[STORE] remove_vote: submission not found {submission_id}")
        else:
            logger.info(f"[STORE] vote removed: judge {judge_id} from {submission_id}")
        return sub

    async def toggle_vote(self, submission_id: str, judge_id: str, score: int) -> Optional[Submission]:
        """Тот же счёт ещё раз — голос снимается, иначе ставится. Решение внутри одной записи."""
        removed = False

        def fn(items: List[dict]):
            nonlocal removed
            removed = False
            it = _find(items, submission_id)
            if it is None:
                return None, False
            votes = it.setdefault("votes", [])
            mine = [i for i, v in enumerate(votes) if v.get("judgeId") == judge_id]
            if mine and votes[mine[0]].get("score") == score:
                it["votes"] = [v for v in votes if v.get("judgeId") != judge_id]
                removed = True
            else:
                vote = _dump(Vote(judge_id=judge_id, score=score, timestamp=now_utc()))
                if mine:
                    votes[mine[0]] = vote
                else:
                    votes.append(vote)
            return Submission.model_validate(it), True

        sub = await self.storage.mutate("submissions", fn)
        if sub is None:
            logger.error(f"[STORE] submission not found: {submission_id}")
        elif removed:
            logger.info(f"[STORE] vote toggled off: judge {judge_id} on {submission_id}")
        else:
            logger.info(f"[STORE] vote toggled: judge {judge_id} → {score} on {submission_id}")
        return sub

    async def mark_submissions_exported(self, mission_id: str) -> int:
        def fn(items: List[dict]):
            n = 0
            for it in items:
                if it.get("missionId") == mission_id and not it.get("exported"):
                    it["exported"] = True
                    n += 1
            return n, n > 0

        n = await self.storage.mutate("submissions", fn)
        logger.info(f"[STORE] {n} submission(s) of {mission_id} marked exported")
        return n
