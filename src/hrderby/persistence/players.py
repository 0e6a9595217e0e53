from __future__ import annotations

import sqlite3
from typing import Iterable, List, Optional, Set

from hrderby.models import UNKNOWN_TEAM, Player, normalize_name

from .database import Database, utcnow_iso


class PlayerRepository:
    """Player identities and the external ids that point at them."""

    def __init__(self, database: Database):
        self._db = database

    def get(self, player_id: int) -> Optional[Player]:
        with self._db.connect() as conn:
            row = conn.execute("SELECT * FROM players WHERE id = ?", (player_id,)).fetchone()
        return self._row_to_player(row) if row is not None else None

    def get_by_external_id(self, external_id: str) -> Optional[Player]:
        with self._db.connect() as conn:
            row = conn.execute(
                """
                SELECT p.* FROM player_identities i
                JOIN players p ON p.id = i.player_id
                WHERE i.external_id = ?
                """,
                (external_id,),
            ).fetchone()
        return self._row_to_player(row) if row is not None else None

    def find_by_name(self, name: str) -> List[Player]:
        with self._db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM players WHERE normalized_name = ? ORDER BY id",
                (normalize_name(name),),
            ).fetchall()
        return [self._row_to_player(row) for row in rows]

    def existing_ids(self, player_ids: Iterable[int]) -> Set[int]:
        ids = list(dict.fromkeys(player_ids))
        if not ids:
            return set()
        placeholders = ", ".join("?" for _ in ids)
        with self._db.connect() as conn:
            rows = conn.execute(f"SELECT id FROM players WHERE id IN ({placeholders})", ids).fetchall()
        return {row["id"] for row in rows}

    def list_players(self) -> List[Player]:
        with self._db.connect() as conn:
            rows = conn.execute("SELECT * FROM players ORDER BY id").fetchall()
        return [self._row_to_player(row) for row in rows]

    def create(
        self,
        *,
        external_id: str,
        display_name: str,
        team_abbr: Optional[str] = None,
        photo_ref: Optional[str] = None,
    ) -> Player:
        now = utcnow_iso()
        with self._db.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO players (
                    external_id, display_name, normalized_name, current_team_abbr,
                    photo_ref, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    external_id,
                    display_name,
                    normalize_name(display_name),
                    team_abbr or UNKNOWN_TEAM,
                    photo_ref,
                    now,
                    now,
                ),
            )
            player_id = cursor.lastrowid
            conn.execute(
                "INSERT INTO player_identities (external_id, player_id, created_at) VALUES (?, ?, ?)",
                (external_id, player_id, now),
            )
        player = self.get(player_id)
        if player is None:  # pragma: no cover
            raise KeyError(f"Player {player_id} not found after insert")
        return player

    def update(
        self,
        player_id: int,
        *,
        display_name: Optional[str] = None,
        team_abbr: Optional[str] = None,
        photo_ref: Optional[str] = None,
    ) -> Player:
        player = self.get(player_id)
        if player is None:
            raise KeyError(f"Player {player_id} not found")
        updated_name = display_name if display_name is not None else player.display_name
        updated_team = team_abbr if team_abbr is not None else player.current_team_abbr
        updated_photo = photo_ref if photo_ref is not None else player.photo_ref
        with self._db.connect() as conn:
            conn.execute(
                """
                UPDATE players
                SET display_name = ?, normalized_name = ?, current_team_abbr = ?,
                    photo_ref = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    updated_name,
                    normalize_name(updated_name),
                    updated_team,
                    updated_photo,
                    utcnow_iso(),
                    player_id,
                ),
            )
        updated = self.get(player_id)
        if updated is None:  # pragma: no cover
            raise KeyError(f"Player {player_id} not found after update")
        return updated

    def link_external_id(self, external_id: str, player_id: int) -> None:
        """Point an additional external id at an existing player."""

        with self._db.connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO player_identities (external_id, player_id, created_at) VALUES (?, ?, ?)",
                (external_id, player_id, utcnow_iso()),
            )

    def _row_to_player(self, row: sqlite3.Row) -> Player:
        return Player(
            player_id=row["id"],
            external_id=row["external_id"],
            display_name=row["display_name"],
            current_team_abbr=row["current_team_abbr"],
            photo_ref=row["photo_ref"],
        )
