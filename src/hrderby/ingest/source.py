"""Upstream home-run sources that emit normalized, deduplicated records."""

from __future__ import annotations

import csv
import io
import logging
import math
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import httpx
from pydantic import ValidationError

from hrderby.config import SourceSettings
from hrderby.errors import SourceUnavailable
from hrderby.models import UNKNOWN_TEAM, FetchedPlayer, slugify_name

from .teams import canonical_team

logger = logging.getLogger(__name__)

PeriodWindow = Tuple[date, date]

SAVANT_REQUIRED_COLUMNS = ("player_id", "year", "home_run")
CSV_REQUIRED_COLUMNS = ("name", "team", "homeRuns")


class SourceFetcher(Protocol):
    def fetch(self, season_year: int, window: Optional[PeriodWindow] = None) -> List[FetchedPlayer]:
        ...


def dedupe_records(records: Iterable[FetchedPlayer]) -> List[FetchedPlayer]:
    """Keep the last record seen for each external id, in first-seen order."""

    latest: Dict[str, FetchedPlayer] = {}
    for record in records:
        if record.external_player_id in latest:
            logger.debug("Duplicate source row for %s; keeping the later one", record.external_player_id)
        latest[record.external_player_id] = record
    return list(latest.values())


def _parse_count(raw: Optional[str], *, column: str, line: int) -> int:
    text = (raw or "").strip()
    if not text:
        raise SourceUnavailable(f"Row {line}: missing value for {column}")
    try:
        number = float(text)
    except ValueError:
        raise SourceUnavailable(f"Row {line}: {column} value {raw!r} is not numeric") from None
    if not math.isfinite(number) or not number.is_integer():
        raise SourceUnavailable(f"Row {line}: {column} value {raw!r} is not a whole number")
    value = int(number)
    if value < 0:
        raise SourceUnavailable(f"Row {line}: {column} value {raw!r} is negative")
    return value


def _flip_name(raw: str) -> str:
    """Turn ``"Last, First"`` into ``"First Last"``."""

    parts = [part.strip() for part in raw.split(",", 1)]
    if len(parts) == 2 and parts[0] and parts[1]:
        return f"{parts[1]} {parts[0]}"
    return raw.strip()


def _name_column(fieldnames: Sequence[str]) -> Optional[str]:
    for name in fieldnames:
        lowered = name.lower()
        if "last_name" in lowered or lowered in {"player_name", "name"}:
            return name
    return None


def parse_savant_csv(text: str, season_year: int, *, min_home_runs: int = 0) -> List[FetchedPlayer]:
    """Parse the Baseball Savant custom leaderboard CSV export."""

    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    fieldnames = [name.strip() for name in (reader.fieldnames or [])]
    reader.fieldnames = fieldnames
    missing = [column for column in SAVANT_REQUIRED_COLUMNS if column not in fieldnames]
    name_column = _name_column(fieldnames)
    if missing or name_column is None:
        expected = ", ".join(SAVANT_REQUIRED_COLUMNS + ("last_name, first_name",))
        raise SourceUnavailable(f"Unexpected leaderboard columns {fieldnames!r}; expected {expected}")

    records: List[FetchedPlayer] = []
    for line, row in enumerate(reader, start=2):
        if not any(isinstance(value, str) and value.strip() for value in row.values()):
            continue
        year = _parse_count(row.get("year"), column="year", line=line)
        if year != season_year:
            logger.debug("Skipping row %s for season %s (wanted %s)", line, year, season_year)
            continue
        player_id = (row.get("player_id") or "").strip()
        name = _flip_name(row.get(name_column) or "")
        if not player_id or not name:
            raise SourceUnavailable(f"Row {line}: missing player id or name")
        home_runs = _parse_count(row.get("home_run"), column="home_run", line=line)
        if home_runs < min_home_runs:
            continue
        records.append(
            FetchedPlayer(
                external_player_id=f"mlb-{player_id}",
                name=name,
                team_abbr=UNKNOWN_TEAM,
                home_runs=home_runs,
            )
        )
    return dedupe_records(records)


class SavantLeaderboardFetcher:
    """Pull season home-run totals from the Baseball Savant CSV export."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        min_home_runs: int = 0,
        min_plate_appearances: Optional[int] = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url
        self._min_home_runs = min_home_runs
        self._min_plate_appearances = min_plate_appearances
        self._http = client or httpx.Client(timeout=timeout_seconds, headers={"Accept": "text/csv"})

    @classmethod
    def from_settings(cls, settings: SourceSettings) -> "SavantLeaderboardFetcher":
        return cls(
            settings.base_url,
            timeout_seconds=settings.timeout_seconds,
            min_home_runs=settings.min_home_runs,
            min_plate_appearances=settings.min_plate_appearances,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "SavantLeaderboardFetcher":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _params(self, season_year: int) -> dict[str, str]:
        return {
            "year": str(season_year),
            "type": "batter",
            "filter": "",
            # "q" is the qualified-hitter threshold.
            "min": "q" if self._min_plate_appearances is None else str(self._min_plate_appearances),
            "selections": "home_run",
            "chart": "false",
            "x": "home_run",
            "y": "home_run",
            "r": "no",
            "chartType": "beeswarm",
            "sort": "home_run",
            "sortDir": "desc",
            "csv": "true",
        }

    def fetch(self, season_year: int, window: Optional[PeriodWindow] = None) -> List[FetchedPlayer]:
        # The export only carries season-to-date totals; the window is applied downstream.
        try:
            response = self._http.get(self._base_url, params=self._params(season_year))
        except httpx.TimeoutException as exc:
            raise SourceUnavailable(f"Leaderboard request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"Leaderboard request failed: {exc}") from exc
        if response.status_code < 200 or response.status_code >= 300:
            raise SourceUnavailable(
                f"Leaderboard request returned status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            records = parse_savant_csv(response.text, season_year, min_home_runs=self._min_home_runs)
        except (csv.Error, ValidationError) as exc:
            raise SourceUnavailable(f"Leaderboard CSV could not be parsed: {exc}") from exc
        logger.info("Fetched %s players from the leaderboard for %s", len(records), season_year)
        return records


class CsvFileFetcher:
    """Read a local season file with ``name,team,homeRuns[,postseasonHomeRuns]`` rows."""

    def __init__(self, path: Path, *, min_home_runs: int = 0) -> None:
        self.path = Path(path)
        self._min_home_runs = min_home_runs

    @classmethod
    def from_settings(cls, settings: SourceSettings) -> "CsvFileFetcher":
        if settings.csv_path is None:
            raise ValueError("csv_path is required for the CSV source")
        return cls(settings.csv_path, min_home_runs=settings.min_home_runs)

    def close(self) -> None:
        return None

    def fetch(self, season_year: int, window: Optional[PeriodWindow] = None) -> List[FetchedPlayer]:
        try:
            with self.path.open(newline="", encoding="utf-8-sig") as f:
                reader = csv.DictReader(f)
                fieldnames = [name.strip() for name in (reader.fieldnames or [])]
                reader.fieldnames = fieldnames
                missing = [column for column in CSV_REQUIRED_COLUMNS if column not in fieldnames]
                if missing:
                    raise SourceUnavailable(f"{self.path} is missing columns: {', '.join(missing)}")
                records: List[FetchedPlayer] = []
                for line, row in enumerate(reader, start=2):
                    name = (row.get("name") or "").strip()
                    if not name:
                        continue
                    home_runs = _parse_count(row.get("homeRuns"), column="homeRuns", line=line)
                    postseason = 0
                    if (row.get("postseasonHomeRuns") or "").strip():
                        postseason = _parse_count(row.get("postseasonHomeRuns"), column="postseasonHomeRuns", line=line)
                    if home_runs < self._min_home_runs:
                        continue
                    records.append(
                        FetchedPlayer(
                            external_player_id=slugify_name(name),
                            name=name,
                            team_abbr=canonical_team(row.get("team")),
                            home_runs=home_runs,
                            postseason_home_runs=postseason,
                        )
                    )
        except OSError as exc:
            raise SourceUnavailable(f"Could not read {self.path}: {exc}") from exc
        except (csv.Error, UnicodeDecodeError, ValidationError) as exc:
            raise SourceUnavailable(f"Could not parse {self.path}: {exc}") from exc
        logger.info("Loaded %s players from %s for %s", len(records), self.path, season_year)
        return dedupe_records(records)


def build_fetcher(settings: SourceSettings) -> SavantLeaderboardFetcher | CsvFileFetcher:
    if settings.kind == "csv":
        return CsvFileFetcher.from_settings(settings)
    return SavantLeaderboardFetcher.from_settings(settings)
