from __future__ import annotations

from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from mission_control.callbacks import VoteCb
from mission_control.services.votes import SCORES, VOTE_EMOJI_ORDER


# ───────────────── Оценки 1..5 под сабмитом ─────────────────────────────────
def vote_kb(submission_id: str) -> InlineKeyboardMarkup:
    """Кнопки общие для всех судей, поэтому свою оценку не подсвечиваем."""
    b = InlineKeyboardBuilder()
    for score, emoji in zip(SCORES, VOTE_EMOJI_ORDER):
        b.button(text=emoji, callback_data=VoteCb(sid=submission_id, score=score))
    b.adjust(5)
    return b.as_markup()
