from __future__ import annotations

from datetime import date
from typing import List

from pydantic import BaseModel, Field


class PlayerResponse(BaseModel):
    player_id: int
    external_id: str
    display_name: str
    current_team_abbr: str
    photo_ref: str | None = None


class SnapshotResponse(BaseModel):
    season_year: int
    snapshot_date: date
    hrs_total: int
    hrs_regular_season: int
    hrs_postseason: int


class PlayerHistoryResponse(BaseModel):
    player: PlayerResponse
    snapshots: List[SnapshotResponse] = Field(default_factory=list)


class SeasonSummaryResponse(BaseModel):
    season_year: int
    cumulative_hrs: int
    team_abbr_at_season_end: str
    closed: bool


class PlayerSeasonsResponse(BaseModel):
    player: PlayerResponse
    seasons: List[SeasonSummaryResponse] = Field(default_factory=list)


class EligiblePlayerResponse(BaseModel):
    player_id: int
    display_name: str
    team_abbr: str
    season_year: int
    home_runs: int
