"""Rank active rosters and publish period standings."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Sequence, Union

from hrderby.config import get_rules
from hrderby.models import LeaderboardEntry, LeaderboardType, ScoreRecord
from hrderby.persistence import LeaderboardRepository, RosterRepository
from hrderby.scoring import ScoringEngine

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def competition_ranks(totals: Sequence[int]) -> List[int]:
    """Standard competition ranks for totals already sorted high to low.

    ``[50, 50, 40, 30]`` ranks as ``[1, 1, 3, 4]``.
    """

    ranks: List[int] = []
    for position, total in enumerate(totals, start=1):
        if ranks and total == totals[position - 2]:
            ranks.append(ranks[-1])
        else:
            ranks.append(position)
    return ranks


class LeaderboardBuilder:
    def __init__(
        self,
        rosters: RosterRepository,
        engine: ScoringEngine,
        leaderboards: LeaderboardRepository,
        *,
        max_workers: int = 4,
        clock: Clock | None = None,
    ):
        self._rosters = rosters
        self._engine = engine
        self._leaderboards = leaderboards
        self._max_workers = max(1, max_workers)
        self._clock = clock or _utcnow

    def score_all(
        self,
        season_year: int,
        leaderboard_type: Union[str, LeaderboardType],
        period_key: str,
        *,
        as_of: Optional[date] = None,
    ) -> List[ScoreRecord]:
        period = self._engine.resolve_period(leaderboard_type, period_key, as_of=as_of)
        rosters = self._rosters.list_active(season_year)
        if not rosters:
            return []

        def _score(roster):
            try:
                return self._engine.score_roster(roster, period)
            except ValueError as exc:
                logger.warning("Skipping roster %s: %s", roster.roster_id, exc)
                return None

        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(rosters))) as pool:
            results = list(pool.map(_score, rosters))
        return [record for record in results if record is not None]

    def compute(
        self,
        season_year: int,
        leaderboard_type: Union[str, LeaderboardType],
        period_key: str,
        *,
        as_of: Optional[date] = None,
    ) -> List[LeaderboardEntry]:
        """Score every active roster and rank them without publishing."""

        scores = self.score_all(season_year, leaderboard_type, period_key, as_of=as_of)
        ordered = sorted(scores, key=lambda record: (-record.best_seven_total, record.roster_id))
        ranks = competition_ranks([record.best_seven_total for record in ordered])
        calculated_at = self._clock()
        return [
            LeaderboardEntry(
                roster_id=record.roster_id,
                leaderboard_type=record.leaderboard_type,
                period_key=record.period_key,
                rank=rank,
                total_hrs=record.best_seven_total,
                calculated_at=calculated_at,
            )
            for record, rank in zip(ordered, ranks)
        ]

    def build(
        self,
        season_year: int,
        leaderboard_type: Union[str, LeaderboardType],
        period_key: str,
        *,
        as_of: Optional[date] = None,
    ) -> List[LeaderboardEntry]:
        """Recompute one period and atomically replace its published rows."""

        entries = self.compute(season_year, leaderboard_type, period_key, as_of=as_of)
        kind = get_rules(leaderboard_type).leaderboard_type
        self._leaderboards.replace(kind, period_key, entries)
        logger.info("Published %s leaderboard %s with %s rosters", kind.value, period_key, len(entries))
        return entries
