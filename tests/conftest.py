"""Общие фикстуры: хранилище во временном каталоге и фейки внешних сервисов."""
from __future__ import annotations
from typing import List, Sequence, Tuple

import pytest

from mission_control.container import Services, build_services
from mission_control.db import Storage
from mission_control.models.mission import Mission
from mission_control.models.submission import Submission


@pytest.fixture
def storage(tmp_path) -> Storage:
    return Storage(tmp_path / "data")


@pytest.fixture
def services(storage) -> Services:
    return build_services(storage=storage)


class FakeDestination:
    """Таблица в памяти: вкладка → список строк (первая — заголовок)."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.tabs: dict[str, List[List[str]]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_on = fail_on

    def _check(self, step: str, title: str) -> None:
        self.calls.append((step, title))
        if self.fail_on == step:
            raise RuntimeError(f"{step} exploded")

    async def ensure_tab(self, title: str) -> None:
        self._check("ensure", title)
        self.tabs.setdefault(title, [])

    async def clear_tab(self, title: str) -> None:
        self._check("clear", title)
        self.tabs[title] = []

    async def write_header(self, title: str, headers: Sequence[str]) -> None:
        self._check("header", title)
        self.tabs[title].append(list(headers))

    async def append_rows(self, title: str, rows: Sequence[Sequence[str]]) -> None:
        self._check("append", title)
        self.tabs[title].extend(list(r) for r in rows)


class FakeGateway:
    """Записывает вызовы; fail=True — каждый шаг падает."""

    def __init__(self, name: str = "fake", fail: bool = False, telegram: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.telegram = telegram
        self.calls: List[Tuple[str, str, str]] = []

    def handles(self, mission: Mission) -> bool:
        return mission.is_telegram == self.telegram

    async def _step(self, step: str, mission: Mission) -> bool:
        self.calls.append((step, mission.id, mission.status))
        if self.fail:
            raise RuntimeError(f"{step} unavailable")
        return True

    async def post_summary(self, mission: Mission, submissions: Sequence[Submission]) -> bool:
        return await self._step("summary", mission)

    async def lock_thread(self, mission: Mission) -> bool:
        return await self._step("lock", mission)

    async def update_announcement(self, mission: Mission) -> bool:
        return await self._step("announcement", mission)

    async def post_results(self, mission: Mission, submissions: Sequence[Submission]) -> bool:
        return await self._step("results", mission)


@pytest.fixture
def destination() -> FakeDestination:
    return FakeDestination()


@pytest.fixture
def make_gateway():
    return FakeGateway


@pytest.fixture
def make_destination():
    return FakeDestination
