"""Canonical player models shared across ingestion and archive layers."""

from __future__ import annotations

import re
import unicodedata
from typing import Optional

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict

UNKNOWN_TEAM = "UNK"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_name(name: str) -> str:
    """Lowercase, accent-free, punctuation-free form of a display name."""

    decomposed = unicodedata.normalize("NFKD", name)
    ascii_only = decomposed.encode("ascii", "ignore").decode("ascii")
    return " ".join(_NON_ALNUM.sub(" ", ascii_only.lower()).split())


def slugify_name(name: str) -> str:
    return normalize_name(name).replace(" ", "-")


class Player(BaseModel):
    """Permanent identity of a tracked player."""

    player_id: int = Field(..., ge=1)
    external_id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    current_team_abbr: str = UNKNOWN_TEAM
    photo_ref: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class FetchedPlayer(BaseModel):
    """One normalized row from an upstream stats source."""

    external_player_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    team_abbr: str = UNKNOWN_TEAM
    home_runs: int = Field(..., ge=0)
    postseason_home_runs: int = Field(0, ge=0)
    photo_ref: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _postseason_within_total(self) -> "FetchedPlayer":
        if self.postseason_home_runs > self.home_runs:
            raise ValueError("postseason_home_runs cannot exceed home_runs")
        return self

    @property
    def regular_season_home_runs(self) -> int:
        return self.home_runs - self.postseason_home_runs


class ResolvedPlayer(BaseModel):
    player_id: int = Field(..., ge=1)
    record: FetchedPlayer
    created: bool = False
    updated: bool = False

    model_config = ConfigDict(frozen=True)
