"""SQLite connection handling and schema for the pipeline store."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

_DB_PATH_ENV = "HRDERBY_DB_PATH"
DEFAULT_DB_PATH = Path("hrderby.sqlite")


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class Database:
    """Owns the SQLite file and hands out short-lived connections.

    Every ``connect()`` block is one transaction: it commits when the block
    exits normally and rolls back when it raises.
    """

    def __init__(self, db_path: Path | str | None = None):
        self._use_uri = False
        if db_path is None:
            env_db = os.getenv(_DB_PATH_ENV)
            db_path = env_db if env_db else DEFAULT_DB_PATH
        if isinstance(db_path, str) and db_path.startswith("file:"):
            self.db_path: Path | str = db_path
            self._use_uri = True
        else:
            self.db_path = Path(db_path)
        self._ensure_schema()

    def _open(self) -> sqlite3.Connection:
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, uri=self._use_uri, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connect(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        conn = self._open()
        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            self._create_schema(conn)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS players (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                external_id TEXT NOT NULL UNIQUE,
                display_name TEXT NOT NULL,
                normalized_name TEXT NOT NULL,
                current_team_abbr TEXT NOT NULL,
                photo_ref TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_players_normalized_name ON players (normalized_name)")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS player_identities (
                external_id TEXT PRIMARY KEY,
                player_id INTEGER NOT NULL REFERENCES players (id),
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS stat_snapshots (
                player_id INTEGER NOT NULL REFERENCES players (id),
                season_year INTEGER NOT NULL,
                snapshot_date TEXT NOT NULL,
                hrs_total INTEGER NOT NULL CHECK (hrs_total >= 0),
                hrs_regular_season INTEGER NOT NULL CHECK (hrs_regular_season >= 0),
                hrs_postseason INTEGER NOT NULL CHECK (hrs_postseason >= 0),
                recorded_at TEXT NOT NULL,
                PRIMARY KEY (player_id, season_year, snapshot_date)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS season_archive (
                player_id INTEGER NOT NULL REFERENCES players (id),
                season_year INTEGER NOT NULL,
                cumulative_hrs INTEGER NOT NULL,
                team_abbr_at_season_end TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                closed_at TEXT,
                PRIMARY KEY (player_id, season_year)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS closed_seasons (
                season_year INTEGER PRIMARY KEY,
                closed_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS rosters (
                id TEXT PRIMARY KEY,
                season_year INTEGER NOT NULL,
                name TEXT,
                entry_status TEXT NOT NULL,
                player_ids_json TEXT NOT NULL,
                deleted_at TEXT,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS leaderboard_entries (
                leaderboard_type TEXT NOT NULL,
                period_key TEXT NOT NULL,
                roster_id TEXT NOT NULL,
                rank INTEGER NOT NULL,
                total_hrs INTEGER NOT NULL,
                calculated_at TEXT NOT NULL,
                PRIMARY KEY (leaderboard_type, period_key, roster_id)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS finalized_periods (
                leaderboard_type TEXT NOT NULL,
                period_key TEXT NOT NULL,
                finalized_at TEXT NOT NULL,
                PRIMARY KEY (leaderboard_type, period_key)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS ingestion_cycles (
                id TEXT PRIMARY KEY,
                season_year INTEGER NOT NULL,
                state TEXT NOT NULL,
                phase TEXT NOT NULL,
                attempts INTEGER NOT NULL DEFAULT 0,
                message TEXT,
                players_fetched INTEGER NOT NULL DEFAULT 0,
                snapshots_written INTEGER NOT NULL DEFAULT 0,
                leaderboards_published INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                completed_at TEXT
            )
            """
        )
