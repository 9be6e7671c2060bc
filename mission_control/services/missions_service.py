from __future__ import annotations
import uuid
from datetime import datetime
from typing import List, Optional

from loguru import logger

from mission_control.db import Storage
from mission_control.models.mission import Mission, STATUS_ORDER
from mission_control.utils.time import ensure_utc, now_utc

STATUS = {
    "active": "🟢 ACTIVE",
    "closed": "🔴 CLOSED",
    "exported": "📤 EXPORTED",
}

def _dump(m: Mission) -> dict:
    return m.model_dump(mode="json", by_alias=True, exclude_none=True)

def _find(items: List[dict], mission_id: str) -> Optional[dict]:
    for it in items:
        if it.get("id") == mission_id:
            return it
    return None


class MissionsService:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    async def _all(self) -> List[Mission]:
        return [Mission.model_validate(x) for x in await self.storage.load("missions")]

    # ───────────────── REGISTRATION ─────────────────

    async def register_mission(
        self,
        thread_id: str,
        title: str,
        deadline: datetime,
        brief: Optional[str] = None,
    ) -> Mission:
        """Идемпотентно: повторная регистрация треда возвращает существующую миссию."""
        logger.debug(f"[STORE] register_mission thread={thread_id} title={title!r}")

        def fn(items: List[dict]):
            for it in items:
                if it.get("threadId") == thread_id:
                    return Mission.model_validate(it), False
            mission = Mission(
                id=f"mission-{uuid.uuid4().hex[:12]}",
                title=title,
                thread_id=thread_id,
                deadline=ensure_utc(deadline),
                status="active",
                created_at=now_utc(),
                brief=brief,
            )
            items.append(_dump(mission))
            return mission, True

        mission = await self.storage.mutate("missions", fn)
        logger.info(f"[STORE] mission {mission.id} → thread {thread_id} ({mission.title!r})")
        return mission

    # ───────────────── LOOKUPS ─────────────────

    async def get_mission(self, mission_id: str) -> Optional[Mission]:
        for m in await self._all():
            if m.id == mission_id:
                return m
        return None

    async def get_mission_by_thread(self, thread_id: str) -> Optional[Mission]:
        for m in await self._all():
            if m.thread_id == thread_id:
                return m
        return None

    async def get_mission_by_telegram_message(self, message_id: str) -> Optional[Mission]:
        for m in await self._all():
            if m.telegram_message_id == message_id:
                return m
        return None

    async def list_missions(self) -> List[Mission]:
        return await self._all()

    async def list_active_missions(self) -> List[Mission]:
        return [m for m in await self._all() if m.status == "active"]

    async def missions_past_deadline(self, now: Optional[datetime] = None) -> List[Mission]:
        """Активные миссии с дедлайном <= now."""
        now = ensure_utc(now or now_utc())
        return [
            m for m in await self._all()
            if m.status == "active" and ensure_utc(m.deadline) <= now
        ]

    # ───────────────── UPDATES ─────────────────

    async def _update(self, mission_id: str, patch: dict, action: str) -> Optional[Mission]:
        def fn(items: List[dict]):
            it = _find(items, mission_id)
            if it is None:
                return None, False
            it.update(patch)
            return Mission.model_validate(it), True

        mission = await self.storage.mutate("missions", fn)
        if mission is None:
            logger.warning(f"[STORE] {action}: mission not found {mission_id}")
        return mission

    async def update_mission_telegram_info(self, mission_id: str, message_id: str, chat_id: str) -> Optional[Mission]:
        mission = await self._update(
            mission_id,
            {"telegramMessageId": str(message_id), "telegramChatId": str(chat_id)},
            "update_mission_telegram_info",
        )
        if mission:
            logger.info(f"[STORE] mission {mission_id} linked to telegram msg={message_id} chat={chat_id}")
        return mission

    async def update_mission_deadline(self, mission_id: str, deadline: datetime) -> Optional[Mission]:
        """Перенос дедлайна — только пока миссия активна."""
        def fn(items: List[dict]):
            it = _find(items, mission_id)
            if it is None or it.get("status") != "active":
                return (Mission.model_validate(it) if it else None), False
            it["deadline"] = ensure_utc(deadline).isoformat()
            return Mission.model_validate(it), True

        mission = await self.storage.mutate("missions", fn)
        if mission is None:
            logger.warning(f"[STORE] update_mission_deadline: mission not found {mission_id}")
        return mission

    async def _advance(self, mission_id: str, status: str, extra: Optional[dict] = None) -> Optional[Mission]:
        """Статус только вперёд: active → closed → exported."""
        def fn(items: List[dict]):
            it = _find(items, mission_id)
            if it is None:
                return None, False
            if STATUS_ORDER[it.get("status", "active")] >= STATUS_ORDER[status]:
                return Mission.model_validate(it), False
            it["status"] = status
            it.update(extra or {})
            return Mission.model_validate(it), True

        mission = await self.storage.mutate("missions", fn)
        if mission is None:
            logger.warning(f"[STORE] mark {status}: mission not found {mission_id}")
        else:
            logger.info(f"[STORE] mission {mission_id} status={mission.status}")
        return mission

    async def mark_mission_closed(self, mission_id: str) -> Optional[Mission]:
        return await self._advance(mission_id, "closed")

    async def mark_mission_exported(self, mission_id: str) -> Optional[Mission]:
        return await self._advance(mission_id, "exported", {"exportedAt": now_utc().isoformat()})
