from __future__ import annotations
import shlex
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from mission_control.services.templates_service import (
    TemplatesService,
    builtin_variables,
    resolve_template_variables,
)


@dataclass
class TemplateMission:
    success: bool
    title: str = ""
    brief: str = ""
    deadline_days: int = 7
    announcement: Optional[str] = None
    error: Optional[str] = None


def parse_kv_args(text: Optional[str]) -> Tuple[List[str], Dict[str, str]]:
    """
    'weekly topic="Pyth V3" deadline_days=5' → (['weekly'], {'topic': 'Pyth V3', ...}).
    Кавычки снимаются; незакрытая кавычка — режем по пробелам.
    """
    if not text:
        return [], {}
    try:
        parts = shlex.split(text)
    except ValueError:
        parts = text.split()
    words: List[str] = []
    pairs: Dict[str, str] = {}
    for p in parts:
        key, sep, value = p.partition("=")
        if sep and key:
            pairs[key.strip().lower()] = value
        else:
            words.append(p)
    return words, pairs


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


async def build_template_mission(
    templates: TemplatesService,
    name: str,
    user_vars: Dict[str, str],
) -> TemplateMission:
    """/tm <name> [var=val ...]: шаблон + встроенные переменные + пользовательские."""
    tmpl = await templates.get_template_by_name(name)
    if tmpl is None:
        return TemplateMission(success=False, error=f'Template "{name}" not found.')

    days = _int(user_vars.get("deadline_days"), tmpl.default_deadline_days)
    variables = {**builtin_variables(days), **user_vars}
    brief = resolve_template_variables(tmpl.brief_content, variables)

    if variables.get("title"):
        title = variables["title"]
    elif variables.get("topic"):
        title = f"{tmpl.name} - {variables['topic']}"
    else:
        title = tmpl.name

    announcement = None
    if tmpl.announcement_format:
        announcement = resolve_template_variables(tmpl.announcement_format, {**variables, "title": title})

    return TemplateMission(
        success=True,
        title=title,
        brief=brief,
        deadline_days=days,
        announcement=announcement,
    )
