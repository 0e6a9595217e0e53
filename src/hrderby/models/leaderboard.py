"""Roster, score and standings models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

ROSTER_SIZE = 8
COUNTED_PLAYERS = 7

EntryStatus = Literal["draft", "entered", "locked"]


class LeaderboardType(str, Enum):
    OVERALL = "overall"
    MONTHLY = "monthly"
    ALLSTAR = "allstar"


class Roster(BaseModel):
    """An externally owned entry of eight players, in roster position order."""

    roster_id: str = Field(..., min_length=1)
    season_year: int
    entry_status: EntryStatus = "entered"
    player_ids: Tuple[int, ...]
    deleted: bool = False
    name: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("player_ids")
    @classmethod
    def _eight_distinct_players(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        if len(value) != ROSTER_SIZE:
            raise ValueError(f"roster must contain exactly {ROSTER_SIZE} players, got {len(value)}")
        if len(set(value)) != len(value):
            raise ValueError("roster contains duplicate players")
        return value

    @property
    def is_active(self) -> bool:
        return not self.deleted and self.entry_status in ("entered", "locked")


class ScoreRecord(BaseModel):
    roster_id: str
    leaderboard_type: LeaderboardType
    period_key: str
    best_seven_total: int = Field(..., ge=0)
    excluded_player_id: int
    player_totals: Tuple[int, ...] = ()
    missing_player_ids: Tuple[int, ...] = ()

    model_config = ConfigDict(frozen=True)


class LeaderboardEntry(BaseModel):
    roster_id: str
    leaderboard_type: LeaderboardType
    period_key: str
    rank: int = Field(..., ge=1)
    total_hrs: int = Field(..., ge=0)
    calculated_at: datetime

    model_config = ConfigDict(frozen=True)
