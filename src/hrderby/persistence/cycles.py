from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from hrderby.errors import ArchiveWriteFailure

from .database import Database, parse_ts, utcnow_iso

TERMINAL_STATES = {"completed", "failed", "canceled", "skipped"}


@dataclass
class IngestionCycle:
    cycle_id: str
    season_year: int
    state: str
    phase: str
    attempts: int
    message: Optional[str]
    players_fetched: int
    snapshots_written: int
    leaderboards_published: int
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]


class CycleStore:
    """Audit log of ingestion cycles and the phase each one reached."""

    def __init__(self, database: Database):
        self._db = database

    def create_cycle(
        self,
        *,
        cycle_id: str,
        season_year: int,
        state: str = "running",
        phase: str = "idle",
        message: Optional[str] = None,
    ) -> IngestionCycle:
        return self._upsert_cycle(
            cycle_id=cycle_id,
            season_year=season_year,
            state=state,
            phase=phase,
            message=message,
        )

    def update_cycle(
        self,
        cycle_id: str,
        *,
        state: Optional[str] = None,
        phase: Optional[str] = None,
        attempts: Optional[int] = None,
        message: Optional[str] = None,
        players_fetched: Optional[int] = None,
        snapshots_written: Optional[int] = None,
        leaderboards_published: Optional[int] = None,
    ) -> IngestionCycle:
        return self._upsert_cycle(
            cycle_id=cycle_id,
            state=state,
            phase=phase,
            attempts=attempts,
            message=message,
            players_fetched=players_fetched,
            snapshots_written=snapshots_written,
            leaderboards_published=leaderboards_published,
        )

    def get_cycle(self, cycle_id: str) -> Optional[IngestionCycle]:
        with self._db.connect() as conn:
            row = conn.execute("SELECT * FROM ingestion_cycles WHERE id = ?", (cycle_id,)).fetchone()
        return self._row_to_cycle(row) if row is not None else None

    def list_cycles(self, limit: int = 50, *, season_year: Optional[int] = None) -> List[IngestionCycle]:
        query = "SELECT * FROM ingestion_cycles"
        params: list[int] = []
        if season_year is not None:
            query += " WHERE season_year = ?"
            params.append(season_year)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        with self._db.connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [self._row_to_cycle(row) for row in rows]

    def _upsert_cycle(
        self,
        *,
        cycle_id: str,
        season_year: Optional[int] = None,
        state: Optional[str] = None,
        phase: Optional[str] = None,
        attempts: Optional[int] = None,
        message: Optional[str] = None,
        players_fetched: Optional[int] = None,
        snapshots_written: Optional[int] = None,
        leaderboards_published: Optional[int] = None,
    ) -> IngestionCycle:
        now_iso = utcnow_iso()
        try:
            with self._db.connect() as conn:
                existing = conn.execute("SELECT * FROM ingestion_cycles WHERE id = ?", (cycle_id,)).fetchone()
                if existing is None:
                    if season_year is None or state is None:
                        raise KeyError(f"Cycle {cycle_id} not found")
                    conn.execute(
                        """
                        INSERT INTO ingestion_cycles (
                            id, season_year, state, phase, attempts, message, players_fetched,
                            snapshots_written, leaderboards_published, created_at, updated_at, completed_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            cycle_id,
                            season_year,
                            state,
                            phase or "idle",
                            attempts or 0,
                            message,
                            players_fetched or 0,
                            snapshots_written or 0,
                            leaderboards_published or 0,
                            now_iso,
                            now_iso,
                            now_iso if state in TERMINAL_STATES else None,
                        ),
                    )
                else:
                    state = state if state is not None else existing["state"]
                    completed_at = existing["completed_at"]
                    if state in TERMINAL_STATES and completed_at is None:
                        completed_at = now_iso
                    conn.execute(
                        """
                        UPDATE ingestion_cycles
                        SET state = ?, phase = ?, attempts = ?, message = ?, players_fetched = ?,
                            snapshots_written = ?, leaderboards_published = ?, updated_at = ?,
                            completed_at = ?
                        WHERE id = ?
                        """,
                        (
                            state,
                            phase if phase is not None else existing["phase"],
                            attempts if attempts is not None else existing["attempts"],
                            message if message is not None else existing["message"],
                            players_fetched if players_fetched is not None else existing["players_fetched"],
                            snapshots_written if snapshots_written is not None else existing["snapshots_written"],
                            leaderboards_published
                            if leaderboards_published is not None
                            else existing["leaderboards_published"],
                            now_iso,
                            completed_at,
                            cycle_id,
                        ),
                    )
        except sqlite3.Error as exc:
            raise ArchiveWriteFailure(f"Failed to record ingestion cycle {cycle_id}: {exc}") from exc
        cycle = self.get_cycle(cycle_id)
        if cycle is None:  # pragma: no cover
            raise KeyError(f"Cycle {cycle_id} not found after upsert")
        return cycle

    def _row_to_cycle(self, row: sqlite3.Row) -> IngestionCycle:
        return IngestionCycle(
            cycle_id=row["id"],
            season_year=row["season_year"],
            state=row["state"],
            phase=row["phase"],
            attempts=row["attempts"],
            message=row["message"],
            players_fetched=row["players_fetched"],
            snapshots_written=row["snapshots_written"],
            leaderboards_published=row["leaderboards_published"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            completed_at=parse_ts(row["completed_at"]),
        )
