"""Best-seven-of-eight roster scoring over archive snapshots."""

from __future__ import annotations

import logging
import re
import warnings
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Sequence, Tuple, Union

from hrderby.config import SeasonCalendar, get_rules
from hrderby.errors import InvariantViolation
from hrderby.models import COUNTED_PLAYERS, ROSTER_SIZE, LeaderboardType, Roster, ScoreRecord
from hrderby.persistence import PlayerRepository, StatsArchiveRepository

logger = logging.getLogger(__name__)

_YEAR_KEY = re.compile(r"^\d{4}$")


@dataclass(frozen=True)
class ScoringPeriod:
    """Resolved date bounds for one leaderboard period.

    ``baseline_date`` is the date whose value is subtracted (``None`` means a
    zero baseline); ``end_date`` is the date whose value is counted.
    """

    leaderboard_type: LeaderboardType
    period_key: str
    season_year: int
    baseline_date: Optional[date]
    end_date: date
    counting: str


def best_seven(totals: Sequence[int]) -> Tuple[int, int]:
    """Return the sum of the top seven totals and the index left out.

    Ties for the lowest total drop the later roster position.
    """

    if len(totals) != ROSTER_SIZE:
        raise ValueError(f"expected {ROSTER_SIZE} totals, got {len(totals)}")
    order = sorted(range(len(totals)), key=lambda index: (-totals[index], index))
    counted = order[:COUNTED_PLAYERS]
    return sum(totals[index] for index in counted), order[-1]


def _coerce_type(leaderboard_type: Union[str, LeaderboardType]) -> LeaderboardType:
    try:
        return get_rules(leaderboard_type).leaderboard_type
    except KeyError as exc:
        raise ValueError(str(exc.args[0])) from None


class ScoringEngine:
    def __init__(
        self,
        archive: StatsArchiveRepository,
        players: PlayerRepository,
        calendar: SeasonCalendar,
    ):
        self._archive = archive
        self._players = players
        self._calendar = calendar

    @property
    def calendar(self) -> SeasonCalendar:
        return self._calendar

    def resolve_period(
        self,
        leaderboard_type: Union[str, LeaderboardType],
        period_key: str,
        *,
        as_of: Optional[date] = None,
    ) -> ScoringPeriod:
        """Translate a period key into archive date bounds, capped at ``as_of``."""

        kind = _coerce_type(leaderboard_type)
        rules = get_rules(kind)
        calendar = self._calendar
        cap = min(as_of, calendar.season_end) if as_of is not None else calendar.season_end

        if kind is LeaderboardType.OVERALL:
            if not _YEAR_KEY.match(period_key) or int(period_key) != calendar.season_year:
                raise ValueError(f"overall period key must be {calendar.season_year}, got {period_key!r}")
            return ScoringPeriod(kind, period_key, calendar.season_year, None, cap, rules.counting)

        if kind is LeaderboardType.MONTHLY:
            try:
                month = calendar.month(period_key)
            except KeyError as exc:
                raise ValueError(str(exc.args[0])) from None
            baseline = month.start - timedelta(days=1)
            end = max(baseline, min(month.end, cap))
            return ScoringPeriod(kind, period_key, calendar.season_year, baseline, end, rules.counting)

        try:
            snapshot = date.fromisoformat(period_key)
        except ValueError:
            raise ValueError(f"allstar period key must be an ISO date, got {period_key!r}") from None
        if not calendar.opening_day <= snapshot <= calendar.regular_season_end:
            raise ValueError(f"allstar snapshot {period_key} falls outside the {calendar.season_year} regular season")
        return ScoringPeriod(kind, period_key, calendar.season_year, None, min(snapshot, cap), rules.counting)

    def score_roster(self, roster: Roster, period: ScoringPeriod) -> ScoreRecord:
        if roster.season_year != period.season_year:
            raise ValueError(
                f"roster {roster.roster_id} belongs to {roster.season_year}, not {period.season_year}"
            )
        existing = self._players.existing_ids(roster.player_ids)
        totals: list[int] = []
        missing: list[int] = []
        for player_id in roster.player_ids:
            if player_id not in existing:
                missing.append(player_id)
                totals.append(0)
                continue
            totals.append(
                self._archive.cumulative_for_period(
                    player_id,
                    period.season_year,
                    period.baseline_date,
                    period.end_date,
                    period.counting,
                )
            )
        if missing:
            logger.warning("Roster %s references unknown players %s; scoring them as 0", roster.roster_id, missing)
            warnings.warn(
                f"roster {roster.roster_id} references unknown players {missing}",
                InvariantViolation,
                stacklevel=2,
            )

        total, excluded_index = best_seven(totals)
        return ScoreRecord(
            roster_id=roster.roster_id,
            leaderboard_type=period.leaderboard_type,
            period_key=period.period_key,
            best_seven_total=total,
            excluded_player_id=roster.player_ids[excluded_index],
            player_totals=tuple(totals),
            missing_player_ids=tuple(missing),
        )

    def score(
        self,
        roster: Roster,
        leaderboard_type: Union[str, LeaderboardType],
        period_key: str,
        *,
        as_of: Optional[date] = None,
    ) -> ScoreRecord:
        return self.score_roster(roster, self.resolve_period(leaderboard_type, period_key, as_of=as_of))
