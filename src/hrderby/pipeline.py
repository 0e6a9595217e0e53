"""Wire repositories, services and the scheduler from one configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from hrderby.alerts import AlertSink, LoggingAlertSink
from hrderby.config import PipelineConfig
from hrderby.ingest import IdentityResolver, SourceFetcher, build_fetcher
from hrderby.leaderboard import LeaderboardBuilder
from hrderby.persistence import (
    CycleStore,
    Database,
    LeaderboardRepository,
    PlayerRepository,
    RosterRepository,
    StatsArchiveRepository,
)
from hrderby.scheduler import Scheduler
from hrderby.scheduler.service import Clock, Sleep
from hrderby.scoring import ScoringEngine


@dataclass
class Pipeline:
    config: PipelineConfig
    database: Database
    players: PlayerRepository
    archive: StatsArchiveRepository
    rosters: RosterRepository
    leaderboards: LeaderboardRepository
    cycles: CycleStore
    resolver: IdentityResolver
    engine: ScoringEngine
    builder: LeaderboardBuilder
    scheduler: Scheduler
    fetcher: SourceFetcher

    def close(self) -> None:
        close = getattr(self.fetcher, "close", None)
        if close is not None:
            close()


def build_pipeline(
    config: PipelineConfig,
    *,
    database: Optional[Database] = None,
    fetcher: Optional[SourceFetcher] = None,
    alert_sink: Optional[AlertSink] = None,
    clock: Optional[Clock] = None,
    sleep: Optional[Sleep] = None,
) -> Pipeline:
    database = database or Database(config.db_path)
    players = PlayerRepository(database)
    archive = StatsArchiveRepository(database)
    rosters = RosterRepository(database)
    leaderboards = LeaderboardRepository(database)
    cycles = CycleStore(database)
    resolver = IdentityResolver(players)
    engine = ScoringEngine(archive, players, config.season)
    builder = LeaderboardBuilder(rosters, engine, leaderboards, max_workers=config.scoring_workers)
    fetcher = fetcher or build_fetcher(config.source)
    scheduler = Scheduler(
        fetcher=fetcher,
        resolver=resolver,
        archive=archive,
        builder=builder,
        leaderboards=leaderboards,
        cycle_store=cycles,
        alert_sink=alert_sink or LoggingAlertSink(),
        config=config,
        clock=clock,
        sleep=sleep,
    )
    return Pipeline(
        config=config,
        database=database,
        players=players,
        archive=archive,
        rosters=rosters,
        leaderboards=leaderboards,
        cycles=cycles,
        resolver=resolver,
        engine=engine,
        builder=builder,
        scheduler=scheduler,
        fetcher=fetcher,
    )
