"""Leaderboard ranking and publishing."""

from .builder import LeaderboardBuilder, competition_ranks

__all__ = ["LeaderboardBuilder", "competition_ranks"]
