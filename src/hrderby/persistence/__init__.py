"""Persistence layer: SQLite store and typed repositories."""

from .archive import StatsArchiveRepository
from .cycles import CycleStore, IngestionCycle
from .database import Database
from .leaderboards import LeaderboardRepository
from .players import PlayerRepository
from .rosters import RosterRepository

__all__ = [
    "CycleStore",
    "Database",
    "IngestionCycle",
    "LeaderboardRepository",
    "PlayerRepository",
    "RosterRepository",
    "StatsArchiveRepository",
]
