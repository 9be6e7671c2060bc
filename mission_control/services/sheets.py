from __future__ import annotations
import asyncio
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import gspread
from google.oauth2.service_account import Credentials
from loguru import logger

from mission_control.models.mission import Mission
from mission_control.models.submission import Submission

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
BASE_HEADERS = [
    "Submission ID",
    "User ID",
    "User Tag",
    "URL",
    "Content",
    "Submitted At",
    "Vote Count",
    "Average Score",
]
NO_SCORE = "N/A"
CONTENT_LIMIT = 500


@dataclass
class ExportResult:
    success: bool
    row_count: int = 0
    error: Optional[str] = None


class SheetDestination(Protocol):
    """Табличный приёмник: одна вкладка на миссию."""

    async def ensure_tab(self, title: str) -> None: ...
    async def clear_tab(self, title: str) -> None: ...
    async def write_header(self, title: str, headers: Sequence[str]) -> None: ...
    async def append_rows(self, title: str, rows: Sequence[Sequence[str]]) -> None: ...


# ───────────────── таблица ─────────────────

def sanitize_title(title: str) -> str:
    return re.sub(r"[*?:/\\\[\]']", "-", title)[:100].strip() or "mission"

def tab_title(mission: Mission) -> str:
    """Вкладка миссии: название + хвост id, одноимённые миссии не затирают друг друга."""
    suffix = f" #{mission.id[-6:]}"
    return sanitize_title(mission.title)[: 100 - len(suffix)].rstrip() + suffix

def judge_columns(submissions: Sequence[Submission]) -> List[str]:
    return sorted({v.judge_id for s in submissions for v in s.votes})

def format_average(sub: Submission) -> str:
    avg = sub.average_score
    return NO_SCORE if avg is None else f"{avg:.2f}"

def build_table(submissions: Sequence[Submission]) -> Tuple[List[str], List[List[str]]]:
    judges = judge_columns(submissions)
    headers = BASE_HEADERS + [f"Judge_{j[-6:]}" for j in judges]
    rows: List[List[str]] = []
    for s in submissions:
        scores = {v.judge_id: str(v.score) for v in s.votes}
        rows.append([
            s.id,
            s.user_id,
            s.user_tag,
            s.urls[0] if s.urls else "",
            s.content[:CONTENT_LIMIT],
            s.submitted_at.isoformat(),
            str(len(s.votes)),
            format_average(s),
            *[scores.get(j, "") for j in judges],
        ])
    return headers, rows


class MissionExporter:
    """
    Экспорт миссии целиком: вкладка очищается и переписывается, так что
    повторный запуск не дублирует строки. Исключения не пробрасывает.
    """

    def __init__(self, destination: SheetDestination) -> None:
        self.destination = destination

    async def export(self, mission: Mission, submissions: Sequence[Submission]) -> ExportResult:
        title = tab_title(mission)
        logger.info(f"[SHEETS] exporting «{mission.title}» → tab {title!r} ({len(submissions)} rows)")
        try:
            headers, rows = build_table(submissions)
            await self.destination.ensure_tab(title)
            await self.destination.clear_tab(title)
            await self.destination.write_header(title, headers)
            if rows:
                await self.destination.append_rows(title, rows)
        except Exception as e:
            logger.error(f"[SHEETS] export of {mission.id} failed: {e}")
            return ExportResult(success=False, row_count=0, error=str(e))
        logger.info(f"[SHEETS] exported {len(rows)} submission(s) for «{mission.title}»")
        return ExportResult(success=True, row_count=len(rows))


# ───────────────── Google Sheets ─────────────────

class GoogleSheetsDestination:
    """gspread синхронный — каждый вызов уходит в поток."""

    def __init__(self, spreadsheet_id: str, service_account_email: str, private_key: str) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.service_account_email = service_account_email
        self.private_key = private_key
        self._spreadsheet = None
        self._tabs: Dict[str, object] = {}

    def _open(self):
        if self._spreadsheet is None:
            creds = Credentials.from_service_account_info(
                {
                    "type": "service_account",
                    "client_email": self.service_account_email,
                    "private_key": self.private_key,
                    "token_uri": "https://oauth2.googleapis.com/token",
                },
                scopes=SCOPES,
            )
            self._spreadsheet = gspread.authorize(creds).open_by_key(self.spreadsheet_id)
        return self._spreadsheet

    def _tab(self, title: str):
        ws = self._tabs.get(title)
        if ws is None:
            sh = self._open()
            try:
                ws = sh.worksheet(title)
            except gspread.exceptions.WorksheetNotFound:
                ws = sh.add_worksheet(title=title, rows=100, cols=26)
                logger.info(f"[SHEETS] created tab {title!r}")
            self._tabs[title] = ws
        return ws

    async def ensure_tab(self, title: str) -> None:
        await asyncio.to_thread(self._tab, title)

    async def clear_tab(self, title: str) -> None:
        await asyncio.to_thread(lambda: self._tab(title).clear())

    async def write_header(self, title: str, headers: Sequence[str]) -> None:
        await asyncio.to_thread(lambda: self._tab(title).update(values=[list(headers)], range_name="A1"))

    async def append_rows(self, title: str, rows: Sequence[Sequence[str]]) -> None:
        await asyncio.to_thread(
            lambda: self._tab(title).append_rows([list(r) for r in rows], value_input_option="RAW")
        )


def build_exporter(settings) -> Optional[MissionExporter]:
    """None — экспорт не настроен."""
    if not settings.sheets_configured:
        return None
    return MissionExporter(
        GoogleSheetsDestination(
            settings.GOOGLE_SPREADSHEET_ID,
            settings.GOOGLE_SERVICE_ACCOUNT_EMAIL,
            settings.GOOGLE_PRIVATE_KEY,
        )
    )
