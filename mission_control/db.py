# mission_control/db.py
from __future__ import annotations
import asyncio
import json
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

import aiosqlite
from loguru import logger

from mission_control.config import settings
from mission_control.utils.time import now_utc

T = TypeVar("T")

COLLECTIONS = ("missions", "submissions", "templates")
DB_FILENAME = "mission_control.db"
CAS_RETRIES = 3


class StorageCorruptedError(RuntimeError):
    """Документ коллекции есть, но не похож на {"<name>": [...]}."""


class ConcurrentWriteError(RuntimeError):
    """Версия коллекции менялась под нами CAS_RETRIES раз подряд."""


# --- storage path -------------------------------------------------------------
def resolve_storage_dir() -> str:
    env_dir = os.getenv("STORAGE_DIR")
    if env_dir and env_dir.strip():
        return env_dir.strip()
    v = getattr(settings, "STORAGE_DIR", None)
    if v and str(v).strip():
        return str(v).strip()
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
    return os.path.join(root, "storage")


# --- storage -----------------------------------------------------------------
class Storage:
    """
    Коллекции (missions / submissions / templates) как JSON-документы
    {"<name>": [...]} в SQLite внутри каталога данных: одна строка на коллекцию
    + счётчик версии.

    Каждое обращение перечитывает документ с диска. Изменения идут через
    mutate(): под asyncio.Lock коллекции читаем → правим → пишем с проверкой
    версии (compare-and-swap), так что параллельные корутины (или второй
    процесс на том же файле) не теряют чужие записи.

    <name>.json в каталоге данных читается только при первом обращении к
    коллекции, дальше его правки ни на что не влияют. Ручной ремонт делается
    прямо в базе (бот остановлен или нет):

        sqlite3 <STORAGE_DIR>/mission_control.db
        UPDATE collections SET payload = '<исправленный JSON>', version = version + 1
         WHERE name = 'missions';

    Увеличенная версия заставит идущий mutate() перечитать документ.
    Чтобы заново засеять коллекцию из <name>.json — удалить её строку:
    DELETE FROM collections WHERE name = '<name>';
    """

    def __init__(self, data_dir: str | os.PathLike | None = None) -> None:
        self.data_dir = Path(data_dir or resolve_storage_dir())
        self.db_path = self.data_dir / DB_FILENAME
        self._locks: Dict[str, asyncio.Lock] = {}
        self._ready = False

    def _lock(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        return lock

    async def ensure(self) -> None:
        """Создаёт каталог и схему (идемпотентно)."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
            CREATE TABLE IF NOT EXISTS collections (
                name TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT
            );""")
            await db.commit()
        if not self._ready:
            logger.info(f"[STORE] initialized at {self.db_path}")
        self._ready = True

    async def _connect(self) -> aiosqlite.Connection:
        if not self._ready:
            await self.ensure()
        db = await aiosqlite.connect(self.db_path)
        db.row_factory = aiosqlite.Row
        return db

    # --- documents ------------------------------------------------------------
    def _initial_payload(self, name: str) -> str:
        """Пустая коллекция или содержимое старого <name>.json, если он лежит рядом."""
        legacy = self.data_dir / f"{name}.json"
        if legacy.exists():
            raw = legacy.read_text(encoding="utf-8")
            self._decode(name, raw)  # битый файл: фатально
            logger.info(f"[STORE] seeding '{name}' from {legacy}")
            return raw
        return json.dumps({name: []})

    @staticmethod
    def _decode(name: str, payload: str) -> List[dict]:
        data = json.loads(payload)
        if not isinstance(data, dict) or not isinstance(data.get(name), list):
            raise StorageCorruptedError(f"collection '{name}' is malformed")
        return data[name]

    async def _read(self, db: aiosqlite.Connection, name: str) -> Tuple[List[dict], int]:
        if name not in COLLECTIONS:
            raise KeyError(f"unknown collection: {name}")
        cur = await db.execute("SELECT payload, version FROM collections WHERE name=?", (name,))
        row = await cur.fetchone()
        if row is None:
            await db.execute(
                "INSERT OR IGNORE INTO collections (name, payload, version, updated_at) VALUES (?,?,0,?)",
                (name, self._initial_payload(name), now_utc().isoformat()),
            )
            await db.commit()
            cur = await db.execute("SELECT payload, version FROM collections WHERE name=?", (name,))
            row = await cur.fetchone()
        return self._decode(name, row["payload"]), int(row["version"])

    async def _write(self, db: aiosqlite.Connection, name: str, items: List[dict], expected: Optional[int]) -> bool:
        payload = json.dumps({name: items}, ensure_ascii=False, indent=2)
        if expected is None:
            cur = await db.execute(
                "UPDATE collections SET payload=?, version=version+1, updated_at=? WHERE name=?",
                (payload, now_utc().isoformat(), name),
            )
        else:
            cur = await db.execute(
                "UPDATE collections SET payload=?, version=version+1, updated_at=? WHERE name=? AND version=?",
                (payload, now_utc().isoformat(), name, expected),
            )
        await db.commit()
        return cur.rowcount == 1

    # --- public -----------------------------------------------------------------
    async def load(self, name: str) -> List[dict]:
        db = await self._connect()
        try:
            items, _ = await self._read(db, name)
            return items
        finally:
            await db.close()

    async def save(self, name: str, items: List[dict]) -> None:
        """Полная перезапись коллекции (без проверки версии)."""
        async with self._lock(name):
            db = await self._connect()
            try:
                await self._read(db, name)
                await self._write(db, name, items, expected=None)
            finally:
                await db.close()

    async def mutate(self, name: str, fn: Callable[[List[dict]], Tuple[T, bool]]) -> T:
        """
        fn(items) правит список на месте и возвращает (result, changed).
        changed=False — ничего не пишем. fn может вызываться повторно на свежих
        данных, если версия успела смениться.
        """
        async with self._lock(name):
            for attempt in range(1, CAS_RETRIES + 1):
                db = await self._connect()
                try:
                    items, version = await self._read(db, name)
                    result, changed = fn(items)
                    if not changed:
                        return result
                    if await self._write(db, name, items, expected=version):
                        return result
                finally:
                    await db.close()
                logger.warning(f"[STORE] '{name}' version conflict, retry {attempt}/{CAS_RETRIES}")
            raise ConcurrentWriteError(f"collection '{name}' kept changing during update")


# --- default instance ----------------------------------------------------------
_default: Optional[Storage] = None

def get_storage() -> Storage:
    global _default
    if _default is None:
        _default = Storage()
    return _default

async def ensure_db() -> Storage:
    storage = get_storage()
    await storage.ensure()
    return storage
