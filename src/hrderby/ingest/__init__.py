"""Input adapters that fetch and reconcile upstream home-run data."""

from .identity import IdentityResolver, ResolutionReport
from .source import (
    CsvFileFetcher,
    SavantLeaderboardFetcher,
    SourceFetcher,
    build_fetcher,
    dedupe_records,
    parse_savant_csv,
)
from .teams import canonical_team

__all__ = [
    "CsvFileFetcher",
    "IdentityResolver",
    "ResolutionReport",
    "SavantLeaderboardFetcher",
    "SourceFetcher",
    "build_fetcher",
    "canonical_team",
    "dedupe_records",
    "parse_savant_csv",
]
