"""Archive models: per-date snapshots and per-season summaries."""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict


class SnapshotOutcome(str, Enum):
    INSERTED = "inserted"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"
    REJECTED = "rejected"


class StatSnapshot(BaseModel):
    """Home-run counts for one player as of one date in a season."""

    player_id: int = Field(..., ge=1)
    season_year: int
    snapshot_date: date
    hrs_total: int = Field(..., ge=0)
    hrs_regular_season: int = Field(..., ge=0)
    hrs_postseason: int = Field(0, ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _totals_add_up(self) -> "StatSnapshot":
        if self.hrs_total != self.hrs_regular_season + self.hrs_postseason:
            raise ValueError("hrs_total must equal hrs_regular_season + hrs_postseason")
        return self


class SeasonArchiveEntry(BaseModel):
    player_id: int = Field(..., ge=1)
    season_year: int
    cumulative_hrs: int = Field(..., ge=0)
    team_abbr_at_season_end: str
    closed: bool = False

    model_config = ConfigDict(frozen=True)


class EligiblePlayer(BaseModel):
    """A player who cleared the home-run bar in the season before a contest."""

    player_id: int
    display_name: str
    team_abbr: str
    season_year: int
    home_runs: int

    model_config = ConfigDict(frozen=True)
