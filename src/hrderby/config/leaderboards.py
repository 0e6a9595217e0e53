"""Counting rules for each supported leaderboard type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Literal, Union

from hrderby.models import LeaderboardType

Counting = Literal["total", "regular", "postseason"]


@dataclass(frozen=True)
class LeaderboardRules:
    leaderboard_type: LeaderboardType
    counting: Counting
    period_key_format: str
    snapshot: bool
    description: str


_LEADERBOARD_RULES: Dict[LeaderboardType, LeaderboardRules] = {
    LeaderboardType.OVERALL: LeaderboardRules(
        leaderboard_type=LeaderboardType.OVERALL,
        counting="total",
        period_key_format="YYYY",
        snapshot=False,
        description="Regular season and postseason home runs from opening day to date",
    ),
    LeaderboardType.MONTHLY: LeaderboardRules(
        leaderboard_type=LeaderboardType.MONTHLY,
        counting="regular",
        period_key_format="YYYY-MM",
        snapshot=False,
        description="Regular season home runs hit inside one month window",
    ),
    LeaderboardType.ALLSTAR: LeaderboardRules(
        leaderboard_type=LeaderboardType.ALLSTAR,
        counting="regular",
        period_key_format="YYYY-MM-DD",
        snapshot=True,
        description="Regular season home runs as of the all-star break snapshot",
    ),
}


def iter_rules() -> Iterable[LeaderboardRules]:
    """Return an iterator of all configured rule sets."""

    return _LEADERBOARD_RULES.values()


def get_rules(leaderboard_type: Union[str, LeaderboardType]) -> LeaderboardRules:
    """Fetch rules for a leaderboard type, raising KeyError if missing."""

    try:
        key = LeaderboardType(str(getattr(leaderboard_type, "value", leaderboard_type)).lower())
    except ValueError:
        raise KeyError(f"No leaderboard rules configured for type={leaderboard_type!r}") from None
    return _LEADERBOARD_RULES[key]
