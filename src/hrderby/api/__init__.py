"""FastAPI application exposing published standings and player history."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query

from hrderby.api.schemas import (
    CycleResponse,
    EligiblePlayerResponse,
    LeaderboardEntryResponse,
    LeaderboardPeriodResponse,
    LeaderboardResponse,
    PlayerHistoryResponse,
    PlayerResponse,
    PlayerSeasonsResponse,
    SeasonSummaryResponse,
    SnapshotResponse,
)
from hrderby.models import LeaderboardType, Player
from hrderby.persistence import (
    CycleStore,
    Database,
    LeaderboardRepository,
    PlayerRepository,
    StatsArchiveRepository,
)


def _player_response(player: Player) -> PlayerResponse:
    return PlayerResponse(**player.model_dump())


def create_app(database: Optional[Database] = None, db_path: Optional[Path] = None) -> FastAPI:
    app = FastAPI(title="hrderby leaderboards")
    database = database or Database(db_path)
    players = PlayerRepository(database)
    archive = StatsArchiveRepository(database)
    leaderboards = LeaderboardRepository(database)
    cycles = CycleStore(database)
    app.state.database = database

    def _fetch_player_or_404(player_id: int) -> Player:
        player = players.get(player_id)
        if player is None:
            raise HTTPException(status_code=404, detail="Player not found")
        return player

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/leaderboards", response_model=List[LeaderboardPeriodResponse])
    async def list_leaderboards(leaderboard_type: Optional[LeaderboardType] = Query(default=None, alias="type")):
        return [
            LeaderboardPeriodResponse(leaderboard_type=kind.value, period_key=key)
            for kind, key in leaderboards.list_periods(leaderboard_type)
        ]

    @app.get("/leaderboards/{leaderboard_type}/{period_key}", response_model=LeaderboardResponse)
    async def get_leaderboard(leaderboard_type: LeaderboardType, period_key: str):
        entries = leaderboards.get(leaderboard_type, period_key)
        return LeaderboardResponse(
            leaderboard_type=leaderboard_type.value,
            period_key=period_key,
            calculated_at=entries[0].calculated_at if entries else None,
            finalized=leaderboards.is_finalized(leaderboard_type, period_key),
            entries=[
                LeaderboardEntryResponse(
                    roster_id=entry.roster_id,
                    rank=entry.rank,
                    total_hrs=entry.total_hrs,
                    calculated_at=entry.calculated_at,
                )
                for entry in entries
            ],
        )

    @app.get("/players/eligible", response_model=List[EligiblePlayerResponse])
    async def eligible_players(
        contest_year: int = Query(..., ge=1872),
        min_hrs: int = Query(default=10, ge=0),
    ):
        return [
            EligiblePlayerResponse(**player.model_dump())
            for player in archive.eligible_players_for_contest(contest_year, min_hrs=min_hrs)
        ]

    @app.get("/players/{player_id}/history", response_model=PlayerHistoryResponse)
    async def get_player_history(player_id: int, season_year: Optional[int] = None):
        player = _fetch_player_or_404(player_id)
        snapshots = archive.player_history(player_id, season_year)
        return PlayerHistoryResponse(
            player=_player_response(player),
            snapshots=[
                SnapshotResponse(**snapshot.model_dump(exclude={"player_id"}))
                for snapshot in snapshots
            ],
        )

    @app.get("/players/{player_id}/seasons", response_model=PlayerSeasonsResponse)
    async def get_player_seasons(player_id: int):
        player = _fetch_player_or_404(player_id)
        return PlayerSeasonsResponse(
            player=_player_response(player),
            seasons=[
                SeasonSummaryResponse(**entry.model_dump(exclude={"player_id"}))
                for entry in archive.season_history(player_id)
            ],
        )

    @app.get("/cycles", response_model=List[CycleResponse])
    async def list_cycles(limit: int = Query(default=20, ge=1, le=500), season_year: Optional[int] = None):
        return [CycleResponse(**asdict(cycle)) for cycle in cycles.list_cycles(limit, season_year=season_year)]

    return app
