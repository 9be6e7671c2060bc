from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MissionTemplate(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    id: str
    name: str
    brief_content: str
    default_deadline_days: int = 7
    claude_prompt_override: Optional[str] = None
    announcement_format: Optional[str] = None
    role_ids: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
