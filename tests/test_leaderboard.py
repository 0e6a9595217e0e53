from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from hrderby.config import SeasonCalendar
from hrderby.errors import ArchiveWriteFailure
from hrderby.leaderboard import LeaderboardBuilder, competition_ranks
from hrderby.models import LeaderboardEntry, LeaderboardType, Roster
from hrderby.persistence import (
    Database,
    LeaderboardRepository,
    PlayerRepository,
    RosterRepository,
    StatsArchiveRepository,
)
from hrderby.scoring import ScoringEngine

CALENDAR = SeasonCalendar(
    season_year=2025,
    opening_day=date(2025, 3, 27),
    regular_season_end=date(2025, 9, 28),
)
FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _setup(tmp_path: Path):
    database = Database(tmp_path / "pool.sqlite")
    players = PlayerRepository(database)
    archive = StatsArchiveRepository(database)
    rosters = RosterRepository(database)
    leaderboards = LeaderboardRepository(database)
    engine = ScoringEngine(archive, players, CALENDAR)
    builder = LeaderboardBuilder(rosters, engine, leaderboards, max_workers=3, clock=lambda: FIXED_NOW)
    return players, archive, rosters, leaderboards, builder


def _add_roster(players, archive, rosters, roster_id: str, per_player: int, **kwargs) -> Roster:
    ids = []
    for slot in range(8):
        player = players.create(external_id=f"{roster_id}-{slot}", display_name=f"{roster_id} Player {slot}")
        archive.record_snapshot(player.player_id, 2025, date(2025, 5, 31), per_player, per_player)
        ids.append(player.player_id)
    return rosters.save(Roster(roster_id=roster_id, season_year=2025, player_ids=tuple(ids), **kwargs))


def test_competition_ranks():
    assert competition_ranks([50, 50, 40, 30]) == [1, 1, 3, 4]
    assert competition_ranks([9, 9, 9]) == [1, 1, 1]
    assert competition_ranks([]) == []


def test_build_ranks_and_publishes(tmp_path: Path):
    players, archive, rosters, leaderboards, builder = _setup(tmp_path)
    # Seven counted players per roster: totals 70, 70, 49, 35.
    _add_roster(players, archive, rosters, "bravo", 10)
    _add_roster(players, archive, rosters, "alpha", 10)
    _add_roster(players, archive, rosters, "charlie", 7)
    _add_roster(players, archive, rosters, "delta", 5)

    entries = builder.build(2025, LeaderboardType.OVERALL, "2025", as_of=date(2025, 6, 1))

    assert [(entry.roster_id, entry.rank, entry.total_hrs) for entry in entries] == [
        ("alpha", 1, 70),
        ("bravo", 1, 70),
        ("charlie", 3, 49),
        ("delta", 4, 35),
    ]
    published = leaderboards.get(LeaderboardType.OVERALL, "2025")
    assert published == entries
    assert {entry.calculated_at for entry in published} == {FIXED_NOW}


def test_inactive_rosters_are_left_out(tmp_path: Path):
    players, archive, rosters, leaderboards, builder = _setup(tmp_path)
    _add_roster(players, archive, rosters, "entered", 3)
    _add_roster(players, archive, rosters, "locked", 3, entry_status="locked")
    _add_roster(players, archive, rosters, "draft", 3, entry_status="draft")
    _add_roster(players, archive, rosters, "gone", 3)
    rosters.mark_deleted("gone")

    entries = builder.build(2025, "monthly", "2025-05")

    assert sorted(entry.roster_id for entry in entries) == ["entered", "locked"]


def test_rebuild_replaces_previous_rows(tmp_path: Path):
    players, archive, rosters, leaderboards, builder = _setup(tmp_path)
    _add_roster(players, archive, rosters, "alpha", 4)
    _add_roster(players, archive, rosters, "bravo", 2)
    builder.build(2025, LeaderboardType.OVERALL, "2025")

    rosters.mark_deleted("alpha")
    builder.build(2025, LeaderboardType.OVERALL, "2025")

    published = leaderboards.get(LeaderboardType.OVERALL, "2025")
    assert [(entry.roster_id, entry.rank) for entry in published] == [("bravo", 1)]


def test_periods_are_published_independently(tmp_path: Path):
    players, archive, rosters, leaderboards, builder = _setup(tmp_path)
    _add_roster(players, archive, rosters, "alpha", 4)

    builder.build(2025, LeaderboardType.OVERALL, "2025")
    builder.build(2025, LeaderboardType.MONTHLY, "2025-05")

    assert leaderboards.list_periods() == [
        (LeaderboardType.MONTHLY, "2025-05"),
        (LeaderboardType.OVERALL, "2025"),
    ]


def test_failed_replace_keeps_previous_rows(tmp_path: Path):
    players, archive, rosters, leaderboards, builder = _setup(tmp_path)
    _add_roster(players, archive, rosters, "alpha", 4)
    before = builder.build(2025, LeaderboardType.OVERALL, "2025")

    duplicate = LeaderboardEntry(
        roster_id="dup",
        leaderboard_type=LeaderboardType.OVERALL,
        period_key="2025",
        rank=1,
        total_hrs=1,
        calculated_at=FIXED_NOW,
    )
    with pytest.raises(ArchiveWriteFailure):
        leaderboards.replace(LeaderboardType.OVERALL, "2025", [duplicate, duplicate])

    assert leaderboards.get(LeaderboardType.OVERALL, "2025") == before


def test_replace_refuses_entries_for_another_period(tmp_path: Path):
    _, _, _, leaderboards, _ = _setup(tmp_path)
    entry = LeaderboardEntry(
        roster_id="a",
        leaderboard_type=LeaderboardType.MONTHLY,
        period_key="2025-04",
        rank=1,
        total_hrs=1,
        calculated_at=FIXED_NOW,
    )
    with pytest.raises(ValueError):
        leaderboards.replace(LeaderboardType.MONTHLY, "2025-05", [entry])


def test_finalized_periods(tmp_path: Path):
    _, _, _, leaderboards, _ = _setup(tmp_path)

    leaderboards.mark_finalized(LeaderboardType.MONTHLY, "2025-04")
    leaderboards.mark_finalized(LeaderboardType.MONTHLY, "2025-04")

    assert leaderboards.is_finalized(LeaderboardType.MONTHLY, "2025-04")
    assert not leaderboards.is_finalized(LeaderboardType.MONTHLY, "2025-05")
    assert leaderboards.finalized_periods() == {(LeaderboardType.MONTHLY, "2025-04")}
