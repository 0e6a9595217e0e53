"""Command-line interface for running ingestion cycles and inspecting standings."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from hrderby.config_loader import load_config
from hrderby.errors import HRDerbyError
from hrderby.ingest import CsvFileFetcher, IdentityResolver
from hrderby.logging_config import setup_logging
from hrderby.models import LeaderboardType, Roster, SnapshotOutcome
from hrderby.persistence import Database, PlayerRepository, RosterRepository, StatsArchiveRepository
from hrderby.pipeline import build_pipeline


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from None


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Home-run pool ingestion and leaderboards")
    parser.add_argument("--config", type=Path, default=None, help="Path to pipeline config JSON")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING)")
    parser.add_argument("--log-file", type=Path, default=None, help="Optional log file path")
    sub = parser.add_subparsers(dest="command", required=True)

    run_once = sub.add_parser("run-once", help="Run a single ingestion cycle")
    run_once.add_argument("--as-of", type=_parse_date, default=None, help="Snapshot date (default: today)")

    run = sub.add_parser("run", help="Run cycles on the configured cadence until interrupted")
    run.add_argument("--max-cycles", type=int, default=None, help="Stop after this many cycles")

    import_csv = sub.add_parser("import-csv", help="Import a name,team,homeRuns season file")
    import_csv.add_argument("path", type=Path, help="Season CSV path")
    import_csv.add_argument("--season", type=int, default=None, help="Season year (default: configured season)")
    import_csv.add_argument("--date", type=_parse_date, default=None, help="Snapshot date for the totals")
    import_csv.add_argument("--min-hrs", type=int, default=0, help="Skip players below this total")

    seed = sub.add_parser("seed-rosters", help="Load rosters from a JSON list")
    seed.add_argument("path", type=Path, help="JSON file with roster objects")

    close = sub.add_parser("close-season", help="Freeze a season's archive")
    close.add_argument("season", type=int)

    board = sub.add_parser("leaderboard", help="Print a published leaderboard")
    board.add_argument("type", choices=[kind.value for kind in LeaderboardType])
    board.add_argument("period_key")
    board.add_argument("--rebuild", action="store_true", help="Recompute and publish before printing")

    serve = sub.add_parser("serve", help="Serve the read API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser.parse_args(argv)


def _import_csv(args: argparse.Namespace, database: Database, default_season: int, default_date: date) -> int:
    season = args.season or default_season
    if args.date is None and season != default_season:
        raise ValueError("--date is required when importing a season other than the configured one")
    snapshot_date = args.date or default_date
    fetcher = CsvFileFetcher(args.path, min_home_runs=args.min_hrs)
    records = fetcher.fetch(season)
    report = IdentityResolver(PlayerRepository(database)).resolve(records)
    archive = StatsArchiveRepository(database)
    counts = {outcome: 0 for outcome in SnapshotOutcome}
    for item in report.resolved:
        record = item.record
        outcome = archive.record_snapshot(
            item.player_id,
            season,
            snapshot_date,
            record.home_runs,
            record.regular_season_home_runs,
            record.postseason_home_runs,
        )
        counts[outcome] += 1
    print(
        f"Imported {len(report.resolved)}/{len(records)} players for {season} as of {snapshot_date}: "
        + ", ".join(f"{outcome.value}={count}" for outcome, count in counts.items())
    )
    if report.conflicts:
        print(f"Skipped {len(report.conflicts)} conflicting records")
    return 0


def _seed_rosters(path: Path, database: Database) -> int:
    payload = json.loads(path.read_text(encoding="utf-8"))
    repo = RosterRepository(database)
    saved = 0
    for item in payload:
        try:
            repo.save(Roster.model_validate(item))
        except ValidationError as exc:
            print(f"Skipping roster {item.get('roster_id')!r}: {exc.errors()[0]['msg']}", file=sys.stderr)
            continue
        saved += 1
    print(f"Saved {saved}/{len(payload)} rosters")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    setup_logging(getattr(logging, str(args.log_level).upper(), logging.INFO), args.log_file)

    try:
        config = load_config(args.config)
    except HRDerbyError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.command == "serve":
        import uvicorn

        from hrderby.api import create_app

        uvicorn.run(create_app(db_path=config.db_path), host=args.host, port=args.port)
        return 0

    pipeline = build_pipeline(config)
    try:
        if args.command == "run-once":
            result = pipeline.scheduler.run_cycle(args.as_of)
            print(
                f"Cycle {result.cycle_id or '-'} {result.state}: fetched={result.players_fetched} "
                f"written={result.snapshots_written} rejected={result.snapshots_rejected} "
                f"published={len(result.published)}"
            )
            if result.error:
                print(f"Error: {result.error}")
            return 0 if result.state in ("completed", "skipped") else 1

        if args.command == "run":
            try:
                pipeline.scheduler.run_forever(max_cycles=args.max_cycles)
            except KeyboardInterrupt:
                pipeline.scheduler.stop()
                print("Stopped")
            return 0

        if args.command == "import-csv":
            return _import_csv(args, pipeline.database, config.season.season_year, config.season.regular_season_end)

        if args.command == "seed-rosters":
            return _seed_rosters(args.path, pipeline.database)

        if args.command == "close-season":
            entries = pipeline.archive.close_season(args.season)
            print(f"Closed season {args.season}: {len(entries)} players archived")
            return 0

        if args.command == "leaderboard":
            kind = LeaderboardType(args.type)
            if args.rebuild:
                entries = pipeline.builder.build(config.season.season_year, kind, args.period_key)
            else:
                entries = pipeline.leaderboards.get(kind, args.period_key)
            if not entries:
                print(f"No {kind.value} leaderboard published for {args.period_key}")
                return 0
            print(f"{kind.value} {args.period_key} (calculated {entries[0].calculated_at.isoformat()})")
            for entry in entries:
                print(f"{entry.rank:>4}  {entry.total_hrs:>4}  {entry.roster_id}")
            return 0
    except (HRDerbyError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        pipeline.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
