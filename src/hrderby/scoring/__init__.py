"""Roster scoring."""

from .service import ScoringEngine, ScoringPeriod, best_seven

__all__ = ["ScoringEngine", "ScoringPeriod", "best_seven"]
