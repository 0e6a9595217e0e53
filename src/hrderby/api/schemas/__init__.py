"""Pydantic models for API I/O."""

from .cycle import CycleResponse
from .leaderboard import LeaderboardEntryResponse, LeaderboardPeriodResponse, LeaderboardResponse
from .player import (
    EligiblePlayerResponse,
    PlayerHistoryResponse,
    PlayerResponse,
    PlayerSeasonsResponse,
    SeasonSummaryResponse,
    SnapshotResponse,
)

__all__ = [
    "CycleResponse",
    "EligiblePlayerResponse",
    "LeaderboardEntryResponse",
    "LeaderboardPeriodResponse",
    "LeaderboardResponse",
    "PlayerHistoryResponse",
    "PlayerResponse",
    "PlayerSeasonsResponse",
    "SeasonSummaryResponse",
    "SnapshotResponse",
]
