from __future__ import annotations
from typing import Dict, Iterable, Optional

from loguru import logger

from mission_control.models.submission import Submission
from mission_control.services.submissions_service import SubmissionsService

# Эмодзи-оценки: фиксированный набор 1..5, других значений не бывает
VOTE_EMOJIS: Dict[str, int] = {
    "1️⃣": 1,
    "2️⃣": 2,
    "3️⃣": 3,
    "4️⃣": 4,
    "5️⃣": 5,
}
VOTE_EMOJI_ORDER = list(VOTE_EMOJIS)
CONFIRMATION_EMOJI = "📝"
SCORES = tuple(range(1, 6))


def score_for_emoji(name: Optional[str]) -> Optional[int]:
    if not name:
        return None
    return VOTE_EMOJIS.get(name)

def is_judge(role_ids: Iterable, judge_role_ids: Iterable) -> bool:
    """Судья — у кого есть хотя бы одна из судейских ролей."""
    judges = {str(r) for r in judge_role_ids}
    return any(str(r) in judges for r in role_ids)


class VoteReconciler:
    """
    Голоса судей. Право голоса проверяет вызывающий (граница платформы),
    диапазон счёта тоже: здесь только «один голос на судью».
    """

    def __init__(self, submissions: SubmissionsService) -> None:
        self.submissions = submissions

    async def assert_vote(self, submission_id: str, judge_id: str, score: int) -> Optional[Submission]:
        sub = await self.submissions.record_vote(submission_id, str(judge_id), score)
        if sub is None:
            logger.warning(f"[VOTES] {judge_id} → {score}: submission {submission_id} not found")
        return sub

    async def retract_vote(self, submission_id: str, judge_id: str, score: Optional[int] = None) -> Optional[Submission]:
        sub = await self.submissions.remove_vote(submission_id, str(judge_id), score)
        if sub is None:
            logger.warning(f"[VOTES] retract {judge_id}: submission {submission_id} not found")
        return sub

    async def toggle_vote(self, submission_id: str, judge_id: str, score: int) -> Optional[Submission]:
        """Кнопочный интерфейс: тот же счёт ещё раз — снять голос, иначе поставить."""
        sub = await self.submissions.toggle_vote(submission_id, str(judge_id), score)
        if sub is None:
            logger.warning(f"[VOTES] toggle {judge_id}: submission {submission_id} not found")
        return sub
