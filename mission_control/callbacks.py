from __future__ import annotations

from aiogram.filters.callback_data import CallbackData


class VoteCb(CallbackData, prefix="vote"):
    sid: str    # submission id
    score: int  # 1..5
