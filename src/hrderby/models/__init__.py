"""Domain models shared across the pipeline."""

from .leaderboard import (
    COUNTED_PLAYERS,
    ROSTER_SIZE,
    LeaderboardEntry,
    LeaderboardType,
    Roster,
    ScoreRecord,
)
from .player import (
    UNKNOWN_TEAM,
    FetchedPlayer,
    Player,
    ResolvedPlayer,
    normalize_name,
    slugify_name,
)
from .stats import EligiblePlayer, SeasonArchiveEntry, SnapshotOutcome, StatSnapshot

__all__ = [
    "COUNTED_PLAYERS",
    "ROSTER_SIZE",
    "UNKNOWN_TEAM",
    "EligiblePlayer",
    "FetchedPlayer",
    "LeaderboardEntry",
    "LeaderboardType",
    "Player",
    "ResolvedPlayer",
    "Roster",
    "ScoreRecord",
    "SeasonArchiveEntry",
    "SnapshotOutcome",
    "StatSnapshot",
    "normalize_name",
    "slugify_name",
]
