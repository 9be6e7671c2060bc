from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from loguru import logger

from mission_control.models.mission import Mission
from mission_control.models.submission import Submission
from mission_control.services.missions_service import MissionsService
from mission_control.services.sheets import MissionExporter
from mission_control.services.submissions_service import SubmissionsService
from mission_control.utils.time import now_utc

CHECK_INTERVAL_SEC = 5 * 60


class ChatGateway(Protocol):
    """Платформенные коллабораторы сканера. Каждый вызов — best-effort."""

    name: str

    def handles(self, mission: Mission) -> bool: ...
    async def post_summary(self, mission: Mission, submissions: Sequence[Submission]) -> bool: ...
    async def lock_thread(self, mission: Mission) -> bool: ...
    async def update_announcement(self, mission: Mission) -> bool: ...
    async def post_results(self, mission: Mission, submissions: Sequence[Submission]) -> bool: ...


@dataclass
class MissionOutcome:
    mission_id: str
    title: str
    status: str = "active"
    submissions: int = 0
    failures: Dict[str, str] = field(default_factory=dict)  # шаг → причина
    exported_rows: Optional[int] = None
    export_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.failures and self.export_error is None


@dataclass
class SweepReport:
    started_at: datetime
    outcomes: List[MissionOutcome] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return any(not o.ok for o in self.outcomes)


class DeadlineScanner:
    """
    Периодический проход по миссиям с истёкшим дедлайном:
    сводка → замок треда → анонс → closed (всегда) → итоги → экспорт.
    Миссии обрабатываются по очереди. Управление: start / stop / trigger.
    """

    def __init__(
        self,
        missions: MissionsService,
        submissions: SubmissionsService,
        gateways: Sequence[ChatGateway] = (),
        exporter: Optional[MissionExporter] = None,
        interval_sec: int = CHECK_INTERVAL_SEC,
    ) -> None:
        self.missions = missions
        self.submissions = submissions
        self.gateways = list(gateways)
        self.exporter = exporter
        self.interval_sec = interval_sec
        self._task: Optional[asyncio.Task] = None
        self.current_sweep: Optional[asyncio.Task] = None  # плановый проход, который сейчас идёт
        self._sweep_lock = asyncio.Lock()
        self.last_report: Optional[SweepReport] = None

    # ───────────────── управление ─────────────────

    def start(self) -> None:
        """Сразу один проход, дальше каждые interval_sec."""
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"[DEADLINES] started (every {self.interval_sec}s)")

    def stop(self) -> None:
        """Отменяет только таймер; начатый проход доходит до конца."""
        if self._task:
            self._task.cancel()
            self._task = None
            logger.info("[DEADLINES] stopped")

    async def trigger(self, now: Optional[datetime] = None) -> SweepReport:
        """Ручной проход; если идёт плановый — дожидаемся его."""
        logger.info("[DEADLINES] manual check triggered")
        return await self._sweep(now)

    async def _loop(self) -> None:
        while True:
            if self._sweep_lock.locked():
                logger.warning("[DEADLINES] previous sweep still running, tick skipped")
            else:
                self.current_sweep = asyncio.create_task(self._sweep())
                try:
                    await asyncio.shield(self.current_sweep)
                except Exception as e:
                    logger.exception(f"[DEADLINES] sweep error: {e}")
            await asyncio.sleep(self.interval_sec)

    # ───────────────── проход ─────────────────

    async def _sweep(self, now: Optional[datetime] = None) -> SweepReport:
        async with self._sweep_lock:
            now = now or now_utc()
            report = SweepReport(started_at=now)
            due = await self.missions.missions_past_deadline(now)
            if not due:
                self.last_report = report
                return report
            logger.info(f"[DEADLINES] {len(due)} mission(s) past deadline")
            for mission in due:
                outcome = MissionOutcome(mission_id=mission.id, title=mission.title)
                try:
                    await self._process(mission, outcome)
                except Exception as e:
                    logger.exception(f"[DEADLINES] processing {mission.id} failed: {e}")
                    outcome.failures["process"] = str(e) or type(e).__name__
                report.outcomes.append(outcome)
            if report.degraded:
                logger.warning(f"[DEADLINES] sweep finished with problems: "
                               f"{[o.mission_id for o in report.outcomes if not o.ok]}")
            self.last_report = report
            return report

    async def _process(self, mission: Mission, outcome: MissionOutcome) -> None:
        logger.info(f"[DEADLINES] processing «{mission.title}» (deadline {mission.deadline.isoformat()})")

        submissions = await self.submissions.submissions_by_mission(mission.id)
        outcome.submissions = len(submissions)

        await self._each_gateway(outcome, "summary", mission, lambda g: g.post_summary(mission, submissions))
        await self._each_gateway(outcome, "lock", mission, lambda g: g.lock_thread(mission))
        await self._each_gateway(outcome, "announcement", mission, lambda g: g.update_announcement(mission))

        # закрываем в любом случае
        closed = await self.missions.mark_mission_closed(mission.id)
        if closed:
            mission = closed
        outcome.status = mission.status

        await self._each_gateway(outcome, "results", mission, lambda g: g.post_results(mission, submissions))

        if self.exporter is None:
            logger.info(f"[DEADLINES] sheets not configured, «{mission.title}» stays {mission.status}")
            return
        await self._export(mission, submissions, outcome)

    async def _each_gateway(
        self,
        outcome: MissionOutcome,
        step: str,
        mission: Mission,
        call: Callable[[ChatGateway], Awaitable[bool]],
    ) -> None:
        for gw in self.gateways:
            if not gw.handles(mission):
                continue
            key = f"{step}:{gw.name}"
            try:
                ok = await call(gw)
            except Exception as e:
                logger.warning(f"[DEADLINES] {key} failed for {mission.id}: {e}")
                outcome.failures[key] = str(e) or type(e).__name__
                continue
            if not ok:
                logger.warning(f"[DEADLINES] {key} did not complete for {mission.id}")
                outcome.failures[key] = "not completed"

    async def _export(self, mission: Mission, submissions: Sequence[Submission], outcome: MissionOutcome) -> None:
        result = await self.exporter.export(mission, submissions)
        if not result.success:
            # остаётся closed; плановый проход его больше не подхватит
            outcome.export_error = result.error or "export failed"
            logger.error(f"[DEADLINES] export failed for «{mission.title}»: {outcome.export_error}")
            return
        exported = await self.missions.mark_mission_exported(mission.id)
        await self.submissions.mark_submissions_exported(mission.id)
        outcome.exported_rows = result.row_count
        outcome.status = exported.status if exported else outcome.status
        logger.info(f"[DEADLINES] exported «{mission.title}» - {result.row_count} submission(s)")

    # ───────────────── ручной повтор экспорта ─────────────────

    async def retry_export(self, mission_id: str) -> Optional[MissionOutcome]:
        """Повтор шага экспорта для миссии, застрявшей в closed."""
        mission = await self.missions.get_mission(mission_id)
        if mission is None:
            logger.warning(f"[DEADLINES] retry_export: mission not found {mission_id}")
            return None
        outcome = MissionOutcome(mission_id=mission.id, title=mission.title, status=mission.status)
        if mission.status != "closed":
            outcome.export_error = f"mission is {mission.status}, not closed"
            return outcome
        if self.exporter is None:
            outcome.export_error = "sheets not configured"
            return outcome
        submissions = await self.submissions.submissions_by_mission(mission.id)
        outcome.submissions = len(submissions)
        await self._export(mission, submissions, outcome)
        return outcome
