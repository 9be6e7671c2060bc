# mission_control/utils/time.py
from __future__ import annotations

import os
import re
from datetime import datetime, timezone, timedelta
from typing import Optional

from dateutil import tz

# ── TZ для отображения (хранение всегда в UTC) ─────────────────────────────────
_TZ_NAME = os.getenv("TIMEZONE") or os.getenv("TZ") or "UTC"
TZ = tz.gettz(_TZ_NAME) or timezone.utc

# ── Базовые хелперы ────────────────────────────────────────────────────────────
def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def in_days(days: int | float, base: Optional[datetime] = None) -> datetime:
    return (base or now_utc()) + timedelta(days=days)

def ensure_utc(dt: datetime) -> datetime:
    """Наивные datetime считаем UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def fmt_dt(dt: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M") -> str:
    if not dt:
        return "not set"
    return ensure_utc(dt).astimezone(TZ).strftime(fmt)

def fmt_date(dt: Optional[datetime]) -> str:
    return fmt_dt(dt, "%B %d, %Y")

# ── Парсер дедлайнов из строки ─────────────────────────────────────────────────
def parse_deadline(s: Optional[str], base: Optional[datetime] = None) -> Optional[datetime]:
    """
    Принимает:
      • '3d' / '12h' / '90m' — относительно base (по умолчанию сейчас)
      • ISO: 'YYYY-MM-DD', 'YYYY-MM-DDTHH:MM', 'YYYY-MM-DD HH:MM'
      • 'DD.MM' / 'DD.MM.YYYY' (23:59 локального TZ)
    Возвращает datetime в UTC или None.
    """
    if not s:
        return None
    s = s.strip()
    if not s:
        return None

    m = re.fullmatch(r"(\d+)\s*([dhm])", s, flags=re.I)
    if m:
        n, unit = int(m.group(1)), m.group(2).lower()
        delta = {"d": timedelta(days=n), "h": timedelta(hours=n), "m": timedelta(minutes=n)}[unit]
        return (base or now_utc()) + delta

    # 'YYYY-MM-DD' без времени → конец дня
    m = re.fullmatch(r"(\d{4})-(\d{2})-(\d{2})", s)
    if m:
        try:
            dt = datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)), 23, 59, tzinfo=TZ)
        except ValueError:
            return None
        return dt.astimezone(timezone.utc)

    try:
        s_iso = s.replace(" ", "T") if (" " in s and "T" not in s) else s
        dt = datetime.fromisoformat(s_iso)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=TZ)
        return dt.astimezone(timezone.utc)
    except ValueError:
        pass

    m = re.fullmatch(r"(\d{1,2})\.(\d{1,2})(?:\.(\d{2,4}))?", s)
    if m:
        day, month = int(m.group(1)), int(m.group(2))
        year = int(m.group(3)) if m.group(3) else (base or now_utc()).astimezone(TZ).year
        if year < 100:
            year += 2000
        try:
            dt = datetime(year, month, day, 23, 59, tzinfo=TZ)
        except ValueError:
            return None
        return dt.astimezone(timezone.utc)

    return None
