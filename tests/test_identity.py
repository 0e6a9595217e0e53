from pathlib import Path

from hrderby.errors import IdentityConflict
from hrderby.ingest import IdentityResolver
from hrderby.models import FetchedPlayer
from hrderby.persistence import Database, PlayerRepository


class CountingPlayerRepository(PlayerRepository):
    def __init__(self, database: Database):
        super().__init__(database)
        self.writes: list[str] = []

    def create(self, **kwargs):
        self.writes.append("create")
        return super().create(**kwargs)

    def update(self, player_id, **kwargs):
        self.writes.append("update")
        return super().update(player_id, **kwargs)

    def link_external_id(self, external_id, player_id):
        self.writes.append("link")
        return super().link_external_id(external_id, player_id)


def _record(external_id: str, name: str, team: str = "UNK", home_runs: int = 10) -> FetchedPlayer:
    return FetchedPlayer(external_player_id=external_id, name=name, team_abbr=team, home_runs=home_runs)


def _repo(tmp_path: Path) -> CountingPlayerRepository:
    return CountingPlayerRepository(Database(tmp_path / "pool.sqlite"))


def test_resolve_creates_unseen_players(tmp_path: Path):
    players = _repo(tmp_path)
    resolver = IdentityResolver(players)

    report = resolver.resolve([_record("mlb-1", "Aaron Judge", "NYY"), _record("mlb-2", "Cal Raleigh", "SEA")])

    assert report.created == 2
    assert not report.conflicts
    judge = players.get_by_external_id("mlb-1")
    assert judge is not None
    assert judge.current_team_abbr == "NYY"
    assert report.resolved[0].player_id == judge.player_id


def test_resolve_is_idempotent(tmp_path: Path):
    players = _repo(tmp_path)
    resolver = IdentityResolver(players)
    batch = [
        _record("mlb-1", "Aaron Judge", "NYY"),
        _record("mlb-2", "Cal Raleigh", "SEA"),
        _record("kyle-schwarber", "Kyle Schwarber", "PHI"),
    ]

    first = resolver.resolve(batch)
    writes_after_first = list(players.writes)
    second = resolver.resolve(batch)

    assert players.writes == writes_after_first
    assert [item.player_id for item in second.resolved] == [item.player_id for item in first.resolved]
    assert second.created == 0
    assert second.updated == 0
    assert len(players.list_players()) == 3


def test_team_change_is_recorded_but_placeholder_ignored(tmp_path: Path):
    players = _repo(tmp_path)
    resolver = IdentityResolver(players)
    resolver.resolve([_record("mlb-1", "Eugenio Suarez", "ARI")])

    traded = resolver.resolve([_record("mlb-1", "Eugenio Suarez", "SEA")])
    assert traded.updated == 1
    assert players.get_by_external_id("mlb-1").current_team_abbr == "SEA"

    unknown = resolver.resolve([_record("mlb-1", "Eugenio Suarez", "UNK")])
    assert unknown.updated == 0
    assert players.get_by_external_id("mlb-1").current_team_abbr == "SEA"


def test_name_change_overwrites_display_name(tmp_path: Path):
    players = _repo(tmp_path)
    resolver = IdentityResolver(players)
    resolver.resolve([_record("mlb-1", "Jose Ramirez", "CLE")])

    resolver.resolve([_record("mlb-1", "José Ramírez", "CLE")])

    assert players.get_by_external_id("mlb-1").display_name == "José Ramírez"


def test_name_slug_links_to_existing_player(tmp_path: Path):
    players = _repo(tmp_path)
    resolver = IdentityResolver(players)
    original = resolver.resolve([_record("mlb-592450", "Aaron Judge", "NYY")]).resolved[0]

    report = resolver.resolve([_record("aaron-judge", "Aaron Judge", "NYY")])

    assert report.created == 0
    assert report.resolved[0].player_id == original.player_id
    assert players.get_by_external_id("aaron-judge").player_id == original.player_id
    assert len(players.list_players()) == 1


def test_ambiguous_name_is_a_conflict(tmp_path: Path):
    players = _repo(tmp_path)
    resolver = IdentityResolver(players)
    resolver.resolve([_record("mlb-1", "Will Smith", "LAD"), _record("mlb-2", "Will Smith", "TEX")])

    report = resolver.resolve([_record("will-smith", "Will Smith", "LAD"), _record("mlb-3", "Pete Alonso", "NYM")])

    assert len(report.conflicts) == 1
    conflict = report.conflicts[0]
    assert isinstance(conflict, IdentityConflict)
    assert conflict.external_id == "will-smith"
    assert [item.record.name for item in report.resolved] == ["Pete Alonso"]


def test_two_external_ids_for_one_player_in_a_batch(tmp_path: Path):
    players = _repo(tmp_path)
    resolver = IdentityResolver(players)
    resolver.resolve([_record("mlb-592450", "Aaron Judge", "NYY")])

    report = resolver.resolve(
        [_record("mlb-592450", "Aaron Judge", "NYY"), _record("aaron-judge", "Aaron Judge", "NYY")]
    )

    assert len(report.resolved) == 1
    assert [conflict.external_id for conflict in report.conflicts] == ["aaron-judge"]
    assert players.get_by_external_id("aaron-judge") is None
