"""Cycle orchestration: fetch, resolve, archive, score and publish."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

from hrderby.alerts import AlertSink
from hrderby.config import BackoffSettings, PipelineConfig
from hrderby.errors import ArchiveWriteFailure, CycleAborted, HRDerbyError, SourceUnavailable
from hrderby.ingest import IdentityResolver, SourceFetcher
from hrderby.models import FetchedPlayer, LeaderboardEntry, LeaderboardType, ResolvedPlayer, SnapshotOutcome
from hrderby.persistence import CycleStore, LeaderboardRepository, StatsArchiveRepository
from hrderby.leaderboard import LeaderboardBuilder

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleep = Callable[[float], None]
Period = Tuple[LeaderboardType, str]


class CyclePhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RESOLVING = "resolving"
    ARCHIVING = "archiving"
    SCORING = "scoring"
    PUBLISHING = "publishing"
    FAILED = "failed"


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential retry schedule for source fetches."""

    max_attempts: int = 3
    base_delay_seconds: float = 30.0
    multiplier: float = 2.0
    max_delay_seconds: float = 600.0

    @classmethod
    def from_settings(cls, settings: BackoffSettings) -> "BackoffPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            base_delay_seconds=settings.base_delay_seconds,
            multiplier=settings.multiplier,
            max_delay_seconds=settings.max_delay_seconds,
        )

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""

        raw = self.base_delay_seconds * self.multiplier ** max(0, attempt - 1)
        return min(raw, self.max_delay_seconds)

    def wait(self, retry_state: RetryCallState) -> float:
        return self.delay(retry_state.attempt_number)


@dataclass
class CycleResult:
    season_year: int
    state: str
    cycle_id: Optional[str] = None
    phase: CyclePhase = CyclePhase.IDLE
    attempts: int = 0
    players_fetched: int = 0
    snapshots_written: int = 0
    snapshots_rejected: int = 0
    conflicts: int = 0
    published: List[Period] = field(default_factory=list)
    error: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scheduler:
    """Runs ingestion cycles on a cadence.

    At most one cycle per season runs at a time; a tick that arrives while
    one is running is skipped. Source failures are retried under the backoff
    policy and a cycle that still fails leaves published standings untouched.
    """

    def __init__(
        self,
        *,
        fetcher: SourceFetcher,
        resolver: IdentityResolver,
        archive: StatsArchiveRepository,
        builder: LeaderboardBuilder,
        leaderboards: LeaderboardRepository,
        cycle_store: CycleStore,
        alert_sink: AlertSink,
        config: PipelineConfig,
        backoff: Optional[BackoffPolicy] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ):
        self._fetcher = fetcher
        self._resolver = resolver
        self._archive = archive
        self._builder = builder
        self._leaderboards = leaderboards
        self._cycles = cycle_store
        self._alerts = alert_sink
        self._config = config
        self._backoff = backoff or BackoffPolicy.from_settings(config.backoff)
        self._clock = clock or _utcnow
        self._stop = threading.Event()
        self._sleep = sleep or self._interruptible_sleep
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._phase = CyclePhase.IDLE

    @property
    def phase(self) -> CyclePhase:
        return self._phase

    @property
    def backoff(self) -> BackoffPolicy:
        return self._backoff

    def stop(self) -> None:
        self._stop.set()

    def today(self) -> date:
        return self._clock().astimezone(self._config.tzinfo).date()

    def next_interval(self, now: Optional[datetime] = None) -> float:
        moment = (now or self._clock()).astimezone(self._config.tzinfo)
        cadence = self._config.cadence
        if any(window.contains(moment) for window in cadence.active_windows):
            return cadence.active_interval_seconds
        return cadence.idle_interval_seconds

    def periods_due(self, as_of: date) -> List[Period]:
        """Periods to recompute for a cycle dated ``as_of``."""

        calendar = self._config.season
        if as_of < calendar.opening_day:
            return []
        finalized = self._leaderboards.finalized_periods()
        periods: List[Period] = [(LeaderboardType.OVERALL, str(calendar.season_year))]
        for month in calendar.month_periods():
            key = (LeaderboardType.MONTHLY, month.key)
            if month.start <= as_of and key not in finalized:
                periods.append(key)
        snapshot = calendar.allstar_snapshot_date
        if snapshot is not None and snapshot <= as_of:
            key = (LeaderboardType.ALLSTAR, snapshot.isoformat())
            if key not in finalized:
                periods.append(key)
        return periods

    def run_cycle(self, as_of: Optional[date] = None) -> CycleResult:
        season_year = self._config.season.season_year
        lock = self._season_lock(season_year)
        if not lock.acquire(blocking=False):
            logger.info("Cycle for season %s already running; skipping tick", season_year)
            return CycleResult(season_year=season_year, state="skipped")
        try:
            return self._run_locked(season_year, as_of or self.today())
        finally:
            self._phase = CyclePhase.IDLE
            lock.release()

    def run_forever(self, *, max_cycles: Optional[int] = None) -> None:
        completed = 0
        self._stop.clear()
        while not self._stop.is_set():
            try:
                self.run_cycle()
            except HRDerbyError:
                logger.exception("Cycle tick failed; retrying at the next tick")
            completed += 1
            if max_cycles is not None and completed >= max_cycles:
                break
            interval = self.next_interval()
            logger.info("Next cycle in %.0f seconds", interval)
            if self._stop.wait(interval):
                break

    def _season_lock(self, season_year: int) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(season_year, threading.Lock())

    def _interruptible_sleep(self, seconds: float) -> None:
        self._stop.wait(seconds)

    def _enter(self, result: CycleResult, phase: CyclePhase) -> None:
        if self._stop.is_set():
            raise CycleAborted(f"stop requested before {phase.value}")
        self._phase = phase
        result.phase = phase
        if result.cycle_id is not None:
            self._cycles.update_cycle(result.cycle_id, phase=phase.value)
        logger.debug("Cycle %s entering %s", result.cycle_id, phase.value)

    def _run_locked(self, season_year: int, as_of: date) -> CycleResult:
        result = CycleResult(season_year=season_year, state="running", cycle_id=uuid4().hex)
        if self._archive.is_season_closed(season_year):
            logger.info("Season %s is closed; nothing to ingest", season_year)
            result.state = "skipped"
            result.cycle_id = None
            return result

        started = time.perf_counter()
        try:
            self._cycles.create_cycle(cycle_id=result.cycle_id, season_year=season_year, phase=CyclePhase.IDLE.value)
            self._enter(result, CyclePhase.FETCHING)
            records = self._fetch_with_retry(result, (self._config.season.opening_day, as_of))
            result.players_fetched = len(records)

            self._enter(result, CyclePhase.RESOLVING)
            report = self._resolver.resolve(records)
            result.conflicts = len(report.conflicts)

            self._enter(result, CyclePhase.ARCHIVING)
            self._archive_snapshots(result, report.resolved, as_of)

            self._enter(result, CyclePhase.SCORING)
            pending = self._score_periods(season_year, as_of)

            self._enter(result, CyclePhase.PUBLISHING)
            self._publish(result, pending, as_of)
        except SourceUnavailable as exc:
            self._fail(result, f"source unavailable after {result.attempts} attempts: {exc}")
        except ArchiveWriteFailure as exc:
            self._fail(result, f"archive write failed: {exc}")
        except CycleAborted as exc:
            result.state = "canceled"
            result.error = str(exc)
            logger.info("Cycle %s canceled: %s", result.cycle_id, exc)
            self._record(result, state="canceled", message=str(exc))
        except Exception as exc:
            logger.exception("Cycle %s crashed", result.cycle_id)
            self._fail(result, f"unexpected error: {exc}")
        else:
            result.state = "completed"
            self._record(
                result,
                state="completed",
                phase=CyclePhase.IDLE.value,
                players_fetched=result.players_fetched,
                snapshots_written=result.snapshots_written,
                leaderboards_published=len(result.published),
            )
            logger.info(
                "Cycle %s completed in %.2fs: %s players, %s snapshots written, %s rejected, %s periods published",
                result.cycle_id,
                time.perf_counter() - started,
                result.players_fetched,
                result.snapshots_written,
                result.snapshots_rejected,
                len(result.published),
            )
        return result

    def _fetch_with_retry(self, result: CycleResult, window: Tuple[date, date]) -> List[FetchedPlayer]:
        season_year = self._config.season.season_year
        retrying = Retrying(
            stop=stop_after_attempt(self._backoff.max_attempts),
            retry=retry_if_exception_type(SourceUnavailable),
            wait=self._backoff.wait,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                if self._stop.is_set():
                    raise CycleAborted("stop requested while fetching")
                result.attempts = attempt.retry_state.attempt_number
                self._cycles.update_cycle(result.cycle_id, attempts=result.attempts)
                return self._fetcher.fetch(season_year, window)
        raise SourceUnavailable("fetch retries ended without a result")  # pragma: no cover

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Fetch attempt %s/%s failed: %s; retrying in %.1fs",
            retry_state.attempt_number,
            self._backoff.max_attempts,
            exc,
            delay,
        )

    def _archive_snapshots(self, result: CycleResult, resolved: List[ResolvedPlayer], as_of: date) -> None:
        season_year = self._config.season.season_year
        for item in resolved:
            record = item.record
            outcome = self._archive.record_snapshot(
                item.player_id,
                season_year,
                as_of,
                record.home_runs,
                record.regular_season_home_runs,
                record.postseason_home_runs,
            )
            if outcome in (SnapshotOutcome.INSERTED, SnapshotOutcome.REPLACED):
                result.snapshots_written += 1
            elif outcome is SnapshotOutcome.REJECTED:
                result.snapshots_rejected += 1

    def _score_periods(self, season_year: int, as_of: date) -> List[Tuple[Period, List[LeaderboardEntry]]]:
        pending = []
        for period in self.periods_due(as_of):
            kind, key = period
            pending.append((period, self._builder.compute(season_year, kind, key, as_of=as_of)))
        return pending

    def _publish(
        self,
        result: CycleResult,
        pending: List[Tuple[Period, List[LeaderboardEntry]]],
        as_of: date,
    ) -> None:
        grace = timedelta(days=self._config.period_finalize_grace_days)
        calendar = self._config.season
        for (kind, key), entries in pending:
            self._leaderboards.replace(kind, key, entries)
            result.published.append((kind, key))
            if kind is LeaderboardType.MONTHLY:
                end = calendar.month(key).end
            elif kind is LeaderboardType.ALLSTAR:
                end = date.fromisoformat(key)
            else:
                continue
            if as_of > end + grace:
                self._leaderboards.mark_finalized(kind, key)
                logger.info("Finalized %s leaderboard %s", kind.value, key)

    def _record(self, result: CycleResult, **fields) -> None:
        """Write a terminal audit row, logging storage errors instead of raising."""

        try:
            self._cycles.update_cycle(result.cycle_id, **fields)
        except (ArchiveWriteFailure, KeyError) as exc:
            logger.error("Could not record cycle %s as %s: %s", result.cycle_id, fields.get("state"), exc)

    def _fail(self, result: CycleResult, message: str) -> None:
        result.state = "failed"
        result.error = message
        self._phase = CyclePhase.FAILED
        logger.error("Cycle %s failed during %s: %s", result.cycle_id, result.phase.value, message)
        self._record(
            result,
            state="failed",
            phase=CyclePhase.FAILED.value,
            message=message,
            players_fetched=result.players_fetched,
            snapshots_written=result.snapshots_written,
        )
        self._alerts.notify(
            "error",
            f"Ingestion cycle failed for season {result.season_year}",
            {
                "cycle_id": result.cycle_id,
                "phase": result.phase.value,
                "attempts": result.attempts,
                "error": message,
            },
        )
