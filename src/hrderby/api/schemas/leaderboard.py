from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class LeaderboardEntryResponse(BaseModel):
    roster_id: str
    rank: int
    total_hrs: int
    calculated_at: datetime


class LeaderboardResponse(BaseModel):
    leaderboard_type: str
    period_key: str
    calculated_at: datetime | None = None
    finalized: bool = False
    entries: List[LeaderboardEntryResponse] = Field(default_factory=list)


class LeaderboardPeriodResponse(BaseModel):
    leaderboard_type: str
    period_key: str
