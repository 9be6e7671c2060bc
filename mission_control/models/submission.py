from __future__ import annotations
from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SourceT = Literal["discord", "telegram"]


class Vote(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    judge_id: str
    score: int
    timestamp: datetime


class Submission(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    id: str
    message_id: str
    channel_id: str
    thread_id: str
    mission_id: str
    user_id: str
    user_tag: str
    content: str = ""
    urls: List[str] = Field(default_factory=list)
    votes: List[Vote] = Field(default_factory=list)
    submitted_at: datetime
    exported: bool = False
    source: SourceT = "discord"

    def vote_of(self, judge_id: str) -> Optional[Vote]:
        for v in self.votes:
            if v.judge_id == judge_id:
                return v
        return None

    @property
    def average_score(self) -> Optional[float]:
        if not self.votes:
            return None
        return sum(v.score for v in self.votes) / len(self.votes)
