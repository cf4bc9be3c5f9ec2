# collagify/schemas.py
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

class LinkItem(BaseModel):
    message_id: int
    url: str
    submitted_at: datetime

class DayGroup(BaseModel):
    day: str = Field(..., description="Calendar day of the group, YYYY-MM-DD.")
    links: List[LinkItem] = Field(default_factory=list)

    @property
    def urls(self) -> List[str]:
        return [link.url for link in self.links]

    @property
    def message_ids(self) -> List[int]:
        return [link.message_id for link in self.links]

class DrainResult(BaseModel):
    message_ids: List[int] = Field(default_factory=list)
    groups: List[DayGroup] = Field(default_factory=list)

class CollageRunResponse(BaseModel):
    status: str
    channels_processed: List[int]
    collages_sent: int
    failures: List[str]
