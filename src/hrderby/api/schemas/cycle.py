from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CycleResponse(BaseModel):
    cycle_id: str
    season_year: int
    state: str
    phase: str
    attempts: int
    message: str | None
    players_fetched: int
    snapshots_written: int
    leaderboards_published: int
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None
