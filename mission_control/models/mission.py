from __future__ import annotations
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

StatusT = Literal["active", "closed", "exported"]

# порядок статусов: назад не откатываемся
STATUS_ORDER = {"active": 0, "closed": 1, "exported": 2}


class Mission(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    id: str
    title: str
    thread_id: str
    deadline: datetime
    status: StatusT = "active"
    created_at: datetime
    exported_at: Optional[datetime] = None
    brief: Optional[str] = None
    telegram_message_id: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    @property
    def is_telegram(self) -> bool:
        return self.thread_id.startswith("tg:")
