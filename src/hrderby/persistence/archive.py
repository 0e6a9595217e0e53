"""Per-player home-run time series and season archive rows."""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from typing import Dict, List, Optional, Tuple

from hrderby.errors import ArchiveWriteFailure
from hrderby.models import EligiblePlayer, SeasonArchiveEntry, SnapshotOutcome, StatSnapshot

from .database import Database, utcnow_iso

logger = logging.getLogger(__name__)

_COUNTING_COLUMNS: Dict[str, str] = {
    "total": "hrs_total",
    "regular": "hrs_regular_season",
    "postseason": "hrs_postseason",
}

DEFAULT_ELIGIBILITY_MIN_HRS = 10


class StatsArchiveRepository:
    """Authoritative snapshot history.

    Snapshots are keyed by (player, season, date). Every write has to keep the
    season's running total non-decreasing across dates or it is rejected; the
    one exception is a same-date correction of the most recent entry.
    """

    def __init__(self, database: Database):
        self._db = database

    def record_snapshot(
        self,
        player_id: int,
        season_year: int,
        snapshot_date: date,
        hrs_total: int,
        hrs_regular_season: int,
        hrs_postseason: int = 0,
    ) -> SnapshotOutcome:
        if min(hrs_total, hrs_regular_season, hrs_postseason) < 0:
            raise ValueError("home-run counts must be non-negative")
        if hrs_total != hrs_regular_season + hrs_postseason:
            raise ValueError("hrs_total must equal hrs_regular_season + hrs_postseason")

        day = snapshot_date.isoformat()
        try:
            with self._db.connect(immediate=True) as conn:
                if self._season_closed(conn, season_year):
                    raise ArchiveWriteFailure(f"Season {season_year} is closed; snapshot for player {player_id} refused")
                team_row = conn.execute(
                    "SELECT current_team_abbr FROM players WHERE id = ?", (player_id,)
                ).fetchone()
                if team_row is None:
                    raise ArchiveWriteFailure(f"Player {player_id} does not exist")

                existing = conn.execute(
                    """
                    SELECT * FROM stat_snapshots
                    WHERE player_id = ? AND season_year = ? AND snapshot_date = ?
                    """,
                    (player_id, season_year, day),
                ).fetchone()
                values = (hrs_total, hrs_regular_season, hrs_postseason)
                if existing is not None:
                    current = (existing["hrs_total"], existing["hrs_regular_season"], existing["hrs_postseason"])
                    if current == values:
                        return SnapshotOutcome.UNCHANGED
                previous, following = self._neighbours(conn, player_id, season_year, day)
                # Only the most recent entry may be corrected out of order.
                if existing is None or following is not None:
                    if previous is not None and hrs_total < previous["hrs_total"]:
                        logger.warning(
                            "Rejected regressing snapshot for player %s on %s: %s HR < %s HR on %s",
                            player_id,
                            day,
                            hrs_total,
                            previous["hrs_total"],
                            previous["snapshot_date"],
                        )
                        return SnapshotOutcome.REJECTED
                    if following is not None and hrs_total > following["hrs_total"]:
                        logger.warning(
                            "Rejected back-filled snapshot for player %s on %s: %s HR > %s HR on %s",
                            player_id,
                            day,
                            hrs_total,
                            following["hrs_total"],
                            following["snapshot_date"],
                        )
                        return SnapshotOutcome.REJECTED

                if existing is not None:
                    conn.execute(
                        """
                        UPDATE stat_snapshots
                        SET hrs_total = ?, hrs_regular_season = ?, hrs_postseason = ?, recorded_at = ?
                        WHERE player_id = ? AND season_year = ? AND snapshot_date = ?
                        """,
                        (*values, utcnow_iso(), player_id, season_year, day),
                    )
                    logger.info(
                        "Corrected snapshot for player %s on %s: %s -> %s HR",
                        player_id,
                        day,
                        existing["hrs_total"],
                        hrs_total,
                    )
                    outcome = SnapshotOutcome.REPLACED
                else:
                    conn.execute(
                        """
                        INSERT INTO stat_snapshots (
                            player_id, season_year, snapshot_date, hrs_total,
                            hrs_regular_season, hrs_postseason, recorded_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (player_id, season_year, day, *values, utcnow_iso()),
                    )
                    outcome = SnapshotOutcome.INSERTED

                self._upsert_season_entry(conn, player_id, season_year, team_row["current_team_abbr"])
        except sqlite3.Error as exc:
            raise ArchiveWriteFailure(f"Failed to record snapshot for player {player_id} on {day}: {exc}") from exc
        return outcome

    def value_at(
        self,
        player_id: int,
        season_year: int,
        as_of: date,
        counting: str = "total",
    ) -> int:
        """Last known count at or before ``as_of``; zero before the first snapshot."""

        column = self._column(counting)
        with self._db.connect() as conn:
            row = conn.execute(
                f"""
                SELECT {column} AS value FROM stat_snapshots
                WHERE player_id = ? AND season_year = ? AND snapshot_date <= ?
                ORDER BY snapshot_date DESC LIMIT 1
                """,
                (player_id, season_year, as_of.isoformat()),
            ).fetchone()
        return int(row["value"]) if row is not None else 0

    def cumulative_for_period(
        self,
        player_id: int,
        season_year: int,
        start_date: Optional[date],
        end_date: date,
        counting: str = "total",
    ) -> int:
        """Home runs between the baseline at ``start_date`` and ``end_date``."""

        end_value = self.value_at(player_id, season_year, end_date, counting)
        if start_date is None:
            return end_value
        start_value = self.value_at(player_id, season_year, start_date, counting)
        return max(0, end_value - start_value)

    def player_history(self, player_id: int, season_year: Optional[int] = None) -> List[StatSnapshot]:
        query = "SELECT * FROM stat_snapshots WHERE player_id = ?"
        params: list[int] = [player_id]
        if season_year is not None:
            query += " AND season_year = ?"
            params.append(season_year)
        query += " ORDER BY season_year, snapshot_date"
        with self._db.connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    def season_history(self, player_id: int) -> List[SeasonArchiveEntry]:
        with self._db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM season_archive WHERE player_id = ? ORDER BY season_year DESC",
                (player_id,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def season_entries(self, season_year: int) -> List[SeasonArchiveEntry]:
        with self._db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM season_archive WHERE season_year = ? ORDER BY cumulative_hrs DESC, player_id",
                (season_year,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def eligible_players_for_contest(
        self,
        contest_year: int,
        min_hrs: int = DEFAULT_ELIGIBILITY_MIN_HRS,
    ) -> List[EligiblePlayer]:
        """Players who hit at least ``min_hrs`` in the season before ``contest_year``."""

        season_year = contest_year - 1
        with self._db.connect() as conn:
            rows = conn.execute(
                """
                SELECT a.player_id, a.cumulative_hrs, a.team_abbr_at_season_end, p.display_name
                FROM season_archive a
                JOIN players p ON p.id = a.player_id
                WHERE a.season_year = ? AND a.cumulative_hrs >= ?
                ORDER BY a.cumulative_hrs DESC, p.display_name
                """,
                (season_year, min_hrs),
            ).fetchall()
        return [
            EligiblePlayer(
                player_id=row["player_id"],
                display_name=row["display_name"],
                team_abbr=row["team_abbr_at_season_end"],
                season_year=season_year,
                home_runs=row["cumulative_hrs"],
            )
            for row in rows
        ]

    def is_season_closed(self, season_year: int) -> bool:
        with self._db.connect() as conn:
            return self._season_closed(conn, season_year)

    def close_season(self, season_year: int) -> List[SeasonArchiveEntry]:
        """Freeze archive rows from each player's final snapshot of the season."""

        try:
            with self._db.connect(immediate=True) as conn:
                if self._season_closed(conn, season_year):
                    logger.info("Season %s already closed", season_year)
                else:
                    now = utcnow_iso()
                    player_rows = conn.execute(
                        """
                        SELECT DISTINCT s.player_id, p.current_team_abbr
                        FROM stat_snapshots s JOIN players p ON p.id = s.player_id
                        WHERE s.season_year = ?
                        """,
                        (season_year,),
                    ).fetchall()
                    for row in player_rows:
                        self._upsert_season_entry(conn, row["player_id"], season_year, row["current_team_abbr"])
                    conn.execute(
                        "UPDATE season_archive SET closed_at = ? WHERE season_year = ?",
                        (now, season_year),
                    )
                    conn.execute(
                        "INSERT INTO closed_seasons (season_year, closed_at) VALUES (?, ?)",
                        (season_year, now),
                    )
                    logger.info("Closed season %s with %s archived players", season_year, len(player_rows))
        except sqlite3.Error as exc:
            raise ArchiveWriteFailure(f"Failed to close season {season_year}: {exc}") from exc
        return self.season_entries(season_year)

    def _upsert_season_entry(
        self,
        conn: sqlite3.Connection,
        player_id: int,
        season_year: int,
        team_abbr: str,
    ) -> None:
        latest = conn.execute(
            """
            SELECT hrs_total FROM stat_snapshots
            WHERE player_id = ? AND season_year = ?
            ORDER BY snapshot_date DESC LIMIT 1
            """,
            (player_id, season_year),
        ).fetchone()
        total = latest["hrs_total"] if latest is not None else 0
        conn.execute(
            """
            INSERT INTO season_archive (
                player_id, season_year, cumulative_hrs, team_abbr_at_season_end, updated_at
            ) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (player_id, season_year) DO UPDATE SET
                cumulative_hrs = excluded.cumulative_hrs,
                team_abbr_at_season_end = excluded.team_abbr_at_season_end,
                updated_at = excluded.updated_at
            """,
            (player_id, season_year, total, team_abbr, utcnow_iso()),
        )

    def _neighbours(
        self,
        conn: sqlite3.Connection,
        player_id: int,
        season_year: int,
        day: str,
    ) -> Tuple[Optional[sqlite3.Row], Optional[sqlite3.Row]]:
        previous = conn.execute(
            """
            SELECT hrs_total, snapshot_date FROM stat_snapshots
            WHERE player_id = ? AND season_year = ? AND snapshot_date < ?
            ORDER BY snapshot_date DESC LIMIT 1
            """,
            (player_id, season_year, day),
        ).fetchone()
        following = conn.execute(
            """
            SELECT hrs_total, snapshot_date FROM stat_snapshots
            WHERE player_id = ? AND season_year = ? AND snapshot_date > ?
            ORDER BY snapshot_date ASC LIMIT 1
            """,
            (player_id, season_year, day),
        ).fetchone()
        return previous, following

    def _season_closed(self, conn: sqlite3.Connection, season_year: int) -> bool:
        row = conn.execute("SELECT 1 FROM closed_seasons WHERE season_year = ?", (season_year,)).fetchone()
        return row is not None

    def _column(self, counting: str) -> str:
        try:
            return _COUNTING_COLUMNS[counting]
        except KeyError:
            raise ValueError(f"Unknown counting rule {counting!r}") from None

    def _row_to_snapshot(self, row: sqlite3.Row) -> StatSnapshot:
        return StatSnapshot(
            player_id=row["player_id"],
            season_year=row["season_year"],
            snapshot_date=date.fromisoformat(row["snapshot_date"]),
            hrs_total=row["hrs_total"],
            hrs_regular_season=row["hrs_regular_season"],
            hrs_postseason=row["hrs_postseason"],
        )

    def _row_to_entry(self, row: sqlite3.Row) -> SeasonArchiveEntry:
        return SeasonArchiveEntry(
            player_id=row["player_id"],
            season_year=row["season_year"],
            cumulative_hrs=row["cumulative_hrs"],
            team_abbr_at_season_end=row["team_abbr_at_season_end"],
            closed=row["closed_at"] is not None,
        )
