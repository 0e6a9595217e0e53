from __future__ import annotations

import json
import logging
import sqlite3
from typing import List, Optional

from pydantic import ValidationError

from hrderby.models import Roster

from .database import Database, utcnow_iso

logger = logging.getLogger(__name__)


class RosterRepository:
    """Read access to rosters owned by the team management side.

    ``save`` and ``mark_deleted`` exist for seeding and imports; the pipeline
    itself only reads.
    """

    def __init__(self, database: Database):
        self._db = database

    def list_active(self, season_year: int) -> List[Roster]:
        with self._db.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM rosters
                WHERE season_year = ? AND deleted_at IS NULL
                  AND entry_status IN ('entered', 'locked')
                ORDER BY id
                """,
                (season_year,),
            ).fetchall()
        rosters: List[Roster] = []
        for row in rows:
            try:
                rosters.append(self._row_to_roster(row))
            except ValidationError as exc:
                logger.warning("Skipping malformed roster %s: %s", row["id"], exc.errors()[0]["msg"])
        return rosters

    def get(self, roster_id: str) -> Optional[Roster]:
        with self._db.connect() as conn:
            row = conn.execute("SELECT * FROM rosters WHERE id = ?", (roster_id,)).fetchone()
        return self._row_to_roster(row) if row is not None else None

    def save(self, roster: Roster) -> Roster:
        with self._db.connect() as conn:
            conn.execute(
                """
                INSERT INTO rosters (
                    id, season_year, name, entry_status, player_ids_json, deleted_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    season_year = excluded.season_year,
                    name = excluded.name,
                    entry_status = excluded.entry_status,
                    player_ids_json = excluded.player_ids_json,
                    deleted_at = excluded.deleted_at,
                    updated_at = excluded.updated_at
                """,
                (
                    roster.roster_id,
                    roster.season_year,
                    roster.name,
                    roster.entry_status,
                    json.dumps(list(roster.player_ids)),
                    utcnow_iso() if roster.deleted else None,
                    utcnow_iso(),
                ),
            )
        return roster

    def mark_deleted(self, roster_id: str) -> None:
        with self._db.connect() as conn:
            cursor = conn.execute(
                "UPDATE rosters SET deleted_at = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
                (utcnow_iso(), utcnow_iso(), roster_id),
            )
            if cursor.rowcount == 0:
                raise KeyError(f"Roster {roster_id} not found")

    def _row_to_roster(self, row: sqlite3.Row) -> Roster:
        return Roster(
            roster_id=row["id"],
            season_year=row["season_year"],
            name=row["name"],
            entry_status=row["entry_status"],
            player_ids=tuple(json.loads(row["player_ids_json"])),
            deleted=row["deleted_at"] is not None,
        )
