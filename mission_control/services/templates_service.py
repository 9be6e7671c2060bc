from __future__ import annotations
import re
import uuid
from typing import Dict, List, Optional

from loguru import logger

from mission_control.db import Storage
from mission_control.models.template import MissionTemplate
from mission_control.utils.time import now_utc, in_days, fmt_date

PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")
EDITABLE = {"name", "brief_content", "default_deadline_days", "claude_prompt_override", "announcement_format"}


class TemplateExistsError(ValueError):
    pass


def resolve_template_variables(text: str, variables: Dict[str, str]) -> str:
    """{{key}} → значение; неизвестные плейсхолдеры остаются как есть."""
    return PLACEHOLDER_RE.sub(lambda m: variables.get(m.group(1), m.group(0)), text)

def template_placeholders(text: str) -> List[str]:
    out: List[str] = []
    for name in PLACEHOLDER_RE.findall(text or ""):
        if name not in out:
            out.append(name)
    return out

def builtin_variables(deadline_days: int) -> Dict[str, str]:
    now = now_utc()
    return {
        "date": fmt_date(now),
        "date_short": now.date().isoformat(),
        "deadline_date": fmt_date(in_days(deadline_days, now)),
        "deadline_days": str(deadline_days),
    }

def _dump(t: MissionTemplate) -> dict:
    return t.model_dump(mode="json", by_alias=True, exclude_none=True)

def _same_name(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class TemplatesService:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    async def _all(self) -> List[MissionTemplate]:
        return [MissionTemplate.model_validate(x) for x in await self.storage.load("templates")]

    async def create_template(
        self,
        name: str,
        brief_content: str,
        default_deadline_days: int = 7,
        claude_prompt_override: Optional[str] = None,
        announcement_format: Optional[str] = None,
    ) -> MissionTemplate:
        def fn(items: List[dict]):
            if any(_same_name(it.get("name", ""), name) for it in items):
                raise TemplateExistsError(f'Template "{name}" already exists.')
            now = now_utc()
            tmpl = MissionTemplate(
                id=f"tmpl-{uuid.uuid4().hex[:12]}",
                name=name,
                brief_content=brief_content,
                default_deadline_days=default_deadline_days,
                claude_prompt_override=claude_prompt_override,
                announcement_format=announcement_format,
                created_at=now,
                updated_at=now,
            )
            items.append(_dump(tmpl))
            return tmpl, True

        tmpl = await self.storage.mutate("templates", fn)
        logger.info(f"[STORE] template created: {tmpl.id} ({tmpl.name!r})")
        return tmpl

    async def get_template_by_name(self, name: str) -> Optional[MissionTemplate]:
        for t in await self._all():
            if _same_name(t.name, name):
                return t
        return None

    async def list_templates(self) -> List[MissionTemplate]:
        """Новые сверху."""
        return sorted(await self._all(), key=lambda t: t.created_at, reverse=True)

    async def update_template(self, template_id: str, **updates) -> Optional[MissionTemplate]:
        unknown = set(updates) - EDITABLE
        if unknown:
            raise ValueError(f"not editable: {', '.join(sorted(unknown))}")

        def fn(items: List[dict]):
            current = next((it for it in items if it.get("id") == template_id), None)
            if current is None:
                return None, False
            new_name = updates.get("name")
            if new_name and not _same_name(new_name, current.get("name", "")):
                if any(it is not current and _same_name(it.get("name", ""), new_name) for it in items):
                    raise TemplateExistsError(f'Template "{new_name}" already exists.')
            merged = MissionTemplate.model_validate(current).model_copy(
                update={**updates, "updated_at": now_utc()}
            )
            current.clear()
            current.update(_dump(merged))
            return merged, True

        tmpl = await self.storage.mutate("templates", fn)
        if tmpl:
            logger.info(f"[STORE] template updated: {tmpl.id} ({tmpl.name!r})")
        return tmpl

    async def delete_template(self, template_id: str) -> bool:
        def fn(items: List[dict]):
            for i, it in enumerate(items):
                if it.get("id") == template_id:
                    del items[i]
                    return True, True
            return False, False

        removed = await self.storage.mutate("templates", fn)
        if removed:
            logger.info(f"[STORE] template deleted: {template_id}")
        return removed
