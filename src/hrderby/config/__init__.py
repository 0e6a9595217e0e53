"""Configuration helpers for leaderboard rules and pipeline settings."""

from .leaderboards import LeaderboardRules, get_rules, iter_rules
from .settings import (
    ActiveWindow,
    BackoffSettings,
    CadenceSettings,
    MonthPeriod,
    PipelineConfig,
    SeasonCalendar,
    SourceSettings,
)

__all__ = [
    "ActiveWindow",
    "BackoffSettings",
    "CadenceSettings",
    "LeaderboardRules",
    "MonthPeriod",
    "PipelineConfig",
    "SeasonCalendar",
    "SourceSettings",
    "get_rules",
    "iter_rules",
]
