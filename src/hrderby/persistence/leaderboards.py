from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple

from hrderby.errors import ArchiveWriteFailure
from hrderby.models import LeaderboardEntry, LeaderboardType

from .database import Database, utcnow_iso


class LeaderboardRepository:
    """Materialized standings, replaced wholesale per (type, period)."""

    def __init__(self, database: Database):
        self._db = database

    def replace(
        self,
        leaderboard_type: LeaderboardType,
        period_key: str,
        entries: Iterable[LeaderboardEntry],
    ) -> int:
        """Swap every row for one period in a single transaction."""

        rows = list(entries)
        for entry in rows:
            if entry.leaderboard_type != leaderboard_type or entry.period_key != period_key:
                raise ValueError(
                    f"Entry for {entry.leaderboard_type.value}/{entry.period_key} "
                    f"cannot be published under {leaderboard_type.value}/{period_key}"
                )
        try:
            with self._db.connect(immediate=True) as conn:
                conn.execute(
                    "DELETE FROM leaderboard_entries WHERE leaderboard_type = ? AND period_key = ?",
                    (leaderboard_type.value, period_key),
                )
                conn.executemany(
                    """
                    INSERT INTO leaderboard_entries (
                        leaderboard_type, period_key, roster_id, rank, total_hrs, calculated_at
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            leaderboard_type.value,
                            period_key,
                            entry.roster_id,
                            entry.rank,
                            entry.total_hrs,
                            entry.calculated_at.isoformat(),
                        )
                        for entry in rows
                    ],
                )
        except sqlite3.Error as exc:
            raise ArchiveWriteFailure(
                f"Failed to publish {leaderboard_type.value} leaderboard {period_key}: {exc}"
            ) from exc
        return len(rows)

    def get(self, leaderboard_type: LeaderboardType, period_key: str) -> List[LeaderboardEntry]:
        with self._db.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM leaderboard_entries
                WHERE leaderboard_type = ? AND period_key = ?
                ORDER BY rank, roster_id
                """,
                (leaderboard_type.value, period_key),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def list_periods(self, leaderboard_type: Optional[LeaderboardType] = None) -> List[Tuple[LeaderboardType, str]]:
        query = "SELECT DISTINCT leaderboard_type, period_key FROM leaderboard_entries"
        params: list[str] = []
        if leaderboard_type is not None:
            query += " WHERE leaderboard_type = ?"
            params.append(leaderboard_type.value)
        query += " ORDER BY leaderboard_type, period_key"
        with self._db.connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [(LeaderboardType(row["leaderboard_type"]), row["period_key"]) for row in rows]

    def is_finalized(self, leaderboard_type: LeaderboardType, period_key: str) -> bool:
        with self._db.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM finalized_periods WHERE leaderboard_type = ? AND period_key = ?",
                (leaderboard_type.value, period_key),
            ).fetchone()
        return row is not None

    def finalized_periods(self) -> Set[Tuple[LeaderboardType, str]]:
        with self._db.connect() as conn:
            rows = conn.execute("SELECT leaderboard_type, period_key FROM finalized_periods").fetchall()
        return {(LeaderboardType(row["leaderboard_type"]), row["period_key"]) for row in rows}

    def mark_finalized(self, leaderboard_type: LeaderboardType, period_key: str) -> None:
        with self._db.connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO finalized_periods (leaderboard_type, period_key, finalized_at)
                VALUES (?, ?, ?)
                """,
                (leaderboard_type.value, period_key, utcnow_iso()),
            )

    def _row_to_entry(self, row: sqlite3.Row) -> LeaderboardEntry:
        return LeaderboardEntry(
            roster_id=row["roster_id"],
            leaderboard_type=LeaderboardType(row["leaderboard_type"]),
            period_key=row["period_key"],
            rank=row["rank"],
            total_hrs=row["total_hrs"],
            calculated_at=datetime.fromisoformat(row["calculated_at"]),
        )
