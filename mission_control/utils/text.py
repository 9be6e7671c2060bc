from __future__ import annotations
import html
import re
from typing import List

URL_RE = re.compile(r"https?://[^\s]+")

def extract_urls(text: str | None) -> List[str]:
    """Все http(s)-ссылки в порядке появления (регистр важен)."""
    if not text:
        return []
    return URL_RE.findall(text)

def trim(s: str | None, n: int = 120) -> str:
    s = (s or "").strip()
    return s if len(s) <= n else s[: n - 1] + "…"

def h(s: str | None) -> str:
    """HTML-экранирование для parse_mode=HTML."""
    return html.escape(s or "", quote=False)
