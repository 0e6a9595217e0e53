import threading
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from hrderby.config import BackoffSettings, CadenceSettings, PipelineConfig, SeasonCalendar
from hrderby.errors import ArchiveWriteFailure, SourceUnavailable
from hrderby.ingest import CsvFileFetcher, IdentityResolver
from hrderby.leaderboard import LeaderboardBuilder
from hrderby.models import FetchedPlayer, LeaderboardType, Roster
from hrderby.persistence import (
    CycleStore,
    Database,
    LeaderboardRepository,
    PlayerRepository,
    RosterRepository,
    StatsArchiveRepository,
)
from hrderby.scheduler import BackoffPolicy, CyclePhase, Scheduler
from hrderby.scoring import ScoringEngine

SEASON = SeasonCalendar(
    season_year=2025,
    opening_day=date(2025, 3, 27),
    regular_season_end=date(2025, 9, 28),
    allstar_snapshot_date=date(2025, 7, 13),
)


class RecordingAlertSink:
    def __init__(self):
        self.alerts = []

    def notify(self, severity, message, context):
        self.alerts.append((severity, message, dict(context)))


class ScriptedFetcher:
    """Replays a list of results; exceptions in the script are raised."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = 0

    def fetch(self, season_year, window=None):
        self.calls += 1
        outcome = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class BrokenArchive(StatsArchiveRepository):
    def record_snapshot(self, *args, **kwargs):
        raise ArchiveWriteFailure("disk full")


class LockedCycleStore(CycleStore):
    def update_cycle(self, cycle_id, **kwargs):
        raise ArchiveWriteFailure("database is locked")


class UncreatableCycleStore(CycleStore):
    def create_cycle(self, **kwargs):
        raise ArchiveWriteFailure("database is locked")


def _records(home_runs: int):
    return [
        FetchedPlayer(external_player_id=f"mlb-{slot}", name=f"Slugger {slot}", team_abbr="NYY", home_runs=home_runs + slot)
        for slot in range(1, 9)
    ]


class Harness:
    def __init__(self, tmp_path: Path, fetcher, *, archive_cls=StatsArchiveRepository, cycles_cls=CycleStore):
        self.config = PipelineConfig(
            season=SEASON,
            db_path=tmp_path / "pool.sqlite",
            backoff=BackoffSettings(max_attempts=3, base_delay_seconds=5, multiplier=2, max_delay_seconds=60),
            cadence=CadenceSettings(active_interval_seconds=0.01, idle_interval_seconds=0.01),
        )
        self.database = Database(self.config.db_path)
        self.players = PlayerRepository(self.database)
        self.archive = archive_cls(self.database)
        self.rosters = RosterRepository(self.database)
        self.leaderboards = LeaderboardRepository(self.database)
        self.cycles = cycles_cls(self.database)
        engine = ScoringEngine(self.archive, self.players, SEASON)
        builder = LeaderboardBuilder(self.rosters, engine, self.leaderboards, max_workers=2)
        self.alerts = RecordingAlertSink()
        self.sleeps = []
        self.fetcher = fetcher
        self.scheduler = Scheduler(
            fetcher=fetcher,
            resolver=IdentityResolver(self.players),
            archive=self.archive,
            builder=builder,
            leaderboards=self.leaderboards,
            cycle_store=self.cycles,
            alert_sink=self.alerts,
            config=self.config,
            sleep=self.sleeps.append,
        )

    def seed_roster(self):
        ids = tuple(
            self.players.create(external_id=f"mlb-{slot}", display_name=f"Slugger {slot}").player_id
            for slot in range(1, 9)
        )
        self.rosters.save(Roster(roster_id="team-1", season_year=2025, player_ids=ids))


def test_backoff_delay_is_capped():
    policy = BackoffPolicy(max_attempts=3, base_delay_seconds=10, multiplier=2, max_delay_seconds=25)
    assert [policy.delay(attempt) for attempt in (1, 2, 3, 4)] == [10, 20, 25, 25]


def test_successful_cycle_publishes_due_periods(tmp_path: Path):
    harness = Harness(tmp_path, ScriptedFetcher(_records(10)))
    harness.seed_roster()

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))

    assert result.state == "completed"
    assert result.players_fetched == 8
    assert result.snapshots_written == 8
    assert (LeaderboardType.OVERALL, "2025") in result.published
    overall = harness.leaderboards.get(LeaderboardType.OVERALL, "2025")
    # Totals 11..18; the lowest (11) is excluded.
    assert [(entry.roster_id, entry.rank, entry.total_hrs) for entry in overall] == [("team-1", 1, 105)]
    stored = harness.cycles.get_cycle(result.cycle_id)
    assert stored.state == "completed"
    assert stored.leaderboards_published == len(result.published)
    assert harness.scheduler.phase is CyclePhase.IDLE
    assert harness.alerts.alerts == []


def test_exhausted_retries_fail_with_one_alert(tmp_path: Path):
    fetcher = ScriptedFetcher(SourceUnavailable("HTTP 503", status_code=503))
    harness = Harness(tmp_path, fetcher)

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))

    assert result.state == "failed"
    assert fetcher.calls == 3
    assert harness.sleeps == [5.0, 10.0]
    assert len(harness.alerts.alerts) == 1
    severity, _, context = harness.alerts.alerts[0]
    assert severity == "error"
    assert context["attempts"] == 3
    assert harness.scheduler.phase is CyclePhase.IDLE
    stored = harness.cycles.get_cycle(result.cycle_id)
    assert stored.state == "failed"
    assert stored.attempts == 3


def test_recovers_on_second_attempt(tmp_path: Path):
    fetcher = ScriptedFetcher(SourceUnavailable("timeout"), _records(1))
    harness = Harness(tmp_path, fetcher)

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))

    assert result.state == "completed"
    assert result.attempts == 2
    assert harness.sleeps == [5.0]
    assert harness.alerts.alerts == []


def test_failed_cycle_leaves_published_standings_alone(tmp_path: Path):
    fetcher = ScriptedFetcher(_records(10), SourceUnavailable("down"))
    harness = Harness(tmp_path, fetcher)
    harness.seed_roster()
    harness.scheduler.run_cycle(as_of=date(2025, 5, 10))
    before = harness.leaderboards.get(LeaderboardType.OVERALL, "2025")

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 11))

    assert result.state == "failed"
    assert harness.leaderboards.get(LeaderboardType.OVERALL, "2025") == before


def test_archive_failure_fails_the_cycle(tmp_path: Path):
    harness = Harness(tmp_path, ScriptedFetcher(_records(3)), archive_cls=BrokenArchive)

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))

    assert result.state == "failed"
    assert result.phase is CyclePhase.ARCHIVING
    assert "disk full" in result.error
    assert len(harness.alerts.alerts) == 1
    assert harness.leaderboards.list_periods() == []


def test_overlapping_tick_is_skipped(tmp_path: Path):
    started = threading.Event()
    release = threading.Event()

    class BlockingFetcher:
        def fetch(self, season_year, window=None):
            started.set()
            release.wait(5)
            return _records(1)

    harness = Harness(tmp_path, BlockingFetcher())
    results = []
    worker = threading.Thread(target=lambda: results.append(harness.scheduler.run_cycle(as_of=date(2025, 5, 10))))
    worker.start()
    try:
        assert started.wait(5)
        skipped = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))
    finally:
        release.set()
        worker.join(5)

    assert skipped.state == "skipped"
    assert skipped.cycle_id is None
    assert results[0].state == "completed"
    assert len(harness.cycles.list_cycles()) == 1


def test_stop_cancels_without_alert(tmp_path: Path):
    harness = Harness(tmp_path, ScriptedFetcher(_records(1)))
    harness.scheduler.stop()

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))

    assert result.state == "canceled"
    assert harness.fetcher.calls == 0
    assert harness.alerts.alerts == []
    assert harness.cycles.get_cycle(result.cycle_id).state == "canceled"


def test_closed_season_is_skipped(tmp_path: Path):
    harness = Harness(tmp_path, ScriptedFetcher(_records(1)))
    harness.archive.close_season(2025)

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))

    assert result.state == "skipped"
    assert harness.fetcher.calls == 0


def test_periods_due_and_finalization(tmp_path: Path):
    harness = Harness(tmp_path, ScriptedFetcher(_records(1)))
    scheduler = harness.scheduler

    assert scheduler.periods_due(date(2025, 3, 1)) == []
    assert scheduler.periods_due(date(2025, 3, 27)) == [
        (LeaderboardType.OVERALL, "2025"),
        (LeaderboardType.MONTHLY, "2025-03"),
    ]
    assert (LeaderboardType.ALLSTAR, "2025-07-13") in scheduler.periods_due(date(2025, 7, 20))

    scheduler.run_cycle(as_of=date(2025, 6, 5))

    assert harness.leaderboards.is_finalized(LeaderboardType.MONTHLY, "2025-05")
    assert not harness.leaderboards.is_finalized(LeaderboardType.MONTHLY, "2025-06")
    assert scheduler.periods_due(date(2025, 6, 6)) == [
        (LeaderboardType.OVERALL, "2025"),
        (LeaderboardType.MONTHLY, "2025-06"),
    ]


def test_next_interval_follows_active_window(tmp_path: Path):
    scheduler = Harness(tmp_path, ScriptedFetcher(_records(1))).scheduler

    # 13:00 and 01:00 New York time are inside the default noon-to-2am window.
    assert scheduler.next_interval(datetime(2025, 5, 3, 17, 0, tzinfo=timezone.utc)) == 900
    assert scheduler.next_interval(datetime(2025, 5, 4, 5, 0, tzinfo=timezone.utc)) == 900
    assert scheduler.next_interval(datetime(2025, 5, 3, 12, 0, tzinfo=timezone.utc)) == 21_600


def test_run_forever_stops_after_max_cycles(tmp_path: Path):
    harness = Harness(tmp_path, ScriptedFetcher(_records(1)))

    harness.scheduler.run_forever(max_cycles=1)

    assert harness.fetcher.calls == 1
    assert len(harness.cycles.list_cycles()) == 1


@pytest.mark.parametrize("attempt, expected", [(1, 5.0), (2, 10.0), (5, 60.0)])
def test_backoff_from_settings(attempt, expected):
    policy = BackoffPolicy.from_settings(
        BackoffSettings(max_attempts=3, base_delay_seconds=5, multiplier=2, max_delay_seconds=60)
    )
    assert policy.delay(attempt) == expected


def test_cycle_store_errors_fail_the_cycle_without_escaping(tmp_path: Path):
    harness = Harness(tmp_path, ScriptedFetcher(_records(1)), cycles_cls=LockedCycleStore)

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))

    assert result.state == "failed"
    assert "database is locked" in result.error
    assert len(harness.alerts.alerts) == 1
    assert harness.scheduler.phase is CyclePhase.IDLE


def test_cycle_row_creation_error_fails_the_cycle(tmp_path: Path):
    harness = Harness(tmp_path, ScriptedFetcher(_records(1)), cycles_cls=UncreatableCycleStore)

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))

    assert result.state == "failed"
    assert harness.fetcher.calls == 0
    assert len(harness.alerts.alerts) == 1


def test_run_forever_survives_a_failing_tick(tmp_path: Path):
    harness = Harness(tmp_path, ScriptedFetcher(_records(1)))
    scheduler = harness.scheduler
    ticks = []
    real_run_cycle = scheduler.run_cycle

    def flaky_run_cycle(as_of=None):
        ticks.append(as_of)
        if len(ticks) == 1:
            raise ArchiveWriteFailure("database is locked")
        return real_run_cycle(as_of=date(2025, 5, 10))

    scheduler.run_cycle = flaky_run_cycle
    scheduler.run_forever(max_cycles=2)

    assert len(ticks) == 2
    assert harness.fetcher.calls == 1


def test_undecodable_source_file_is_retried(tmp_path: Path):
    path = tmp_path / "season.csv"
    path.write_bytes(b"name,team,homeRuns\n\xff\xfe\xfa,NYY,5\n")
    harness = Harness(tmp_path, CsvFileFetcher(path))

    result = harness.scheduler.run_cycle(as_of=date(2025, 5, 10))

    assert result.state == "failed"
    assert result.attempts == 3
    assert harness.sleeps == [5.0, 10.0]
    assert "source unavailable" in result.error
