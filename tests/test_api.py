from datetime import date, datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from hrderby.api import create_app
from hrderby.models import LeaderboardEntry, LeaderboardType
from hrderby.persistence import (
    CycleStore,
    Database,
    LeaderboardRepository,
    PlayerRepository,
    StatsArchiveRepository,
)

CALCULATED_AT = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def database(tmp_path):
    database = Database(tmp_path / "api.sqlite")
    players = PlayerRepository(database)
    archive = StatsArchiveRepository(database)
    judge = players.create(external_id="mlb-592450", display_name="Aaron Judge", team_abbr="NYY")
    archive.record_snapshot(judge.player_id, 2024, date(2024, 9, 29), 58, 58)
    archive.record_snapshot(judge.player_id, 2025, date(2025, 5, 1), 12, 12)
    archive.record_snapshot(judge.player_id, 2025, date(2025, 5, 2), 13, 13)
    archive.close_season(2024)

    leaderboards = LeaderboardRepository(database)
    leaderboards.replace(
        LeaderboardType.OVERALL,
        "2025",
        [
            LeaderboardEntry(
                roster_id=roster_id,
                leaderboard_type=LeaderboardType.OVERALL,
                period_key="2025",
                rank=rank,
                total_hrs=total,
                calculated_at=CALCULATED_AT,
            )
            for roster_id, rank, total in (("alpha", 1, 90), ("bravo", 1, 90), ("charlie", 3, 70))
        ],
    )
    leaderboards.mark_finalized(LeaderboardType.MONTHLY, "2025-04")

    cycles = CycleStore(database)
    cycles.create_cycle(cycle_id="c1", season_year=2025)
    cycles.update_cycle("c1", state="completed", players_fetched=1, snapshots_written=1, leaderboards_published=1)
    return database


@pytest.fixture
async def client(database):
    app = create_app(database=database)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


@pytest.mark.anyio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_get_leaderboard(client: AsyncClient):
    response = await client.get("/leaderboards/overall/2025")
    assert response.status_code == 200
    payload = response.json()
    assert payload["leaderboard_type"] == "overall"
    assert payload["finalized"] is False
    assert [(row["roster_id"], row["rank"], row["total_hrs"]) for row in payload["entries"]] == [
        ("alpha", 1, 90),
        ("bravo", 1, 90),
        ("charlie", 3, 70),
    ]
    assert payload["calculated_at"].startswith("2025-06-01T12:00:00")


@pytest.mark.anyio
async def test_unpublished_leaderboard_is_empty(client: AsyncClient):
    response = await client.get("/leaderboards/monthly/2025-04")
    assert response.status_code == 200
    payload = response.json()
    assert payload["entries"] == []
    assert payload["calculated_at"] is None
    assert payload["finalized"] is True


@pytest.mark.anyio
async def test_unknown_leaderboard_type(client: AsyncClient):
    response = await client.get("/leaderboards/weekly/2025")
    assert response.status_code == 422


@pytest.mark.anyio
async def test_list_leaderboards(client: AsyncClient):
    response = await client.get("/leaderboards")
    assert response.json() == [{"leaderboard_type": "overall", "period_key": "2025"}]

    response = await client.get("/leaderboards", params={"type": "monthly"})
    assert response.json() == []


@pytest.mark.anyio
async def test_player_history(client: AsyncClient):
    response = await client.get("/players/1/history", params={"season_year": 2025})
    assert response.status_code == 200
    payload = response.json()
    assert payload["player"]["display_name"] == "Aaron Judge"
    assert [row["hrs_total"] for row in payload["snapshots"]] == [12, 13]
    assert payload["snapshots"][0]["snapshot_date"] == "2025-05-01"


@pytest.mark.anyio
async def test_player_history_unknown_player(client: AsyncClient):
    response = await client.get("/players/999/history")
    assert response.status_code == 404
    assert response.json()["detail"] == "Player not found"


@pytest.mark.anyio
async def test_player_seasons(client: AsyncClient):
    response = await client.get("/players/1/seasons")
    assert response.status_code == 200
    seasons = response.json()["seasons"]
    assert [(row["season_year"], row["cumulative_hrs"], row["closed"]) for row in seasons] == [
        (2025, 13, False),
        (2024, 58, True),
    ]


@pytest.mark.anyio
async def test_eligible_players(client: AsyncClient):
    response = await client.get("/players/eligible", params={"contest_year": 2025})
    assert response.status_code == 200
    assert [(row["display_name"], row["home_runs"]) for row in response.json()] == [("Aaron Judge", 58)]

    response = await client.get("/players/eligible", params={"contest_year": 2025, "min_hrs": 60})
    assert response.json() == []


@pytest.mark.anyio
async def test_list_cycles(client: AsyncClient):
    response = await client.get("/cycles", params={"season_year": 2025})
    assert response.status_code == 200
    cycles = response.json()
    assert len(cycles) == 1
    assert cycles[0]["cycle_id"] == "c1"
    assert cycles[0]["state"] == "completed"
    assert cycles[0]["completed_at"] is not None
