"""Lightweight REST client for the hrderby read API."""

from __future__ import annotations

import argparse
import json

import httpx


def _print_leaderboard(payload: dict) -> None:
    print(f"{payload['leaderboard_type']} {payload['period_key']} (calculated {payload['calculated_at'] or '-'})")
    for entry in payload["entries"]:
        print(f"{entry['rank']:>4}  {entry['total_hrs']:>4}  {entry['roster_id']}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Interact with the hrderby REST API")
    parser.add_argument("base_url", help="Base URL of the API, e.g. http://localhost:8000")
    parser.add_argument("--leaderboard", nargs=2, metavar=("TYPE", "PERIOD"), help="Print a leaderboard")
    parser.add_argument("--history", type=int, metavar="PLAYER_ID", help="Print a player's snapshot history")
    parser.add_argument("--seasons", type=int, metavar="PLAYER_ID", help="Print a player's season archive")
    parser.add_argument("--eligible", type=int, metavar="CONTEST_YEAR", help="List players eligible for a contest")
    parser.add_argument("--min-hrs", type=int, default=10, help="Home-run bar for --eligible")
    parser.add_argument("--cycles", action="store_true", help="List recent ingestion cycles")
    parser.add_argument("--timeout", type=float, default=10.0, help="Request timeout in seconds")
    args = parser.parse_args()

    if not any([args.leaderboard, args.history, args.seasons, args.eligible, args.cycles]):
        parser.error("choose at least one of --leaderboard, --history, --seasons, --eligible, --cycles")

    with httpx.Client(base_url=args.base_url, timeout=args.timeout) as client:
        if args.leaderboard:
            kind, period = args.leaderboard
            resp = client.get(f"/leaderboards/{kind}/{period}")
            if resp.status_code == 422:
                raise SystemExit(f"unknown leaderboard type {kind!r}")
            resp.raise_for_status()
            _print_leaderboard(resp.json())
        if args.history is not None:
            resp = client.get(f"/players/{args.history}/history")
            if resp.status_code == 404:
                raise SystemExit(f"player {args.history} not found")
            resp.raise_for_status()
            print(json.dumps(resp.json(), indent=2))
        if args.seasons is not None:
            resp = client.get(f"/players/{args.seasons}/seasons")
            if resp.status_code == 404:
                raise SystemExit(f"player {args.seasons} not found")
            resp.raise_for_status()
            print(json.dumps(resp.json(), indent=2))
        if args.eligible is not None:
            resp = client.get("/players/eligible", params={"contest_year": args.eligible, "min_hrs": args.min_hrs})
            resp.raise_for_status()
            for player in resp.json():
                print(f"{player['home_runs']:>4}  {player['display_name']} ({player['team_abbr']})")
        if args.cycles:
            resp = client.get("/cycles")
            resp.raise_for_status()
            print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
