"""Map upstream records onto stable internal player identities."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from hrderby.errors import IdentityConflict
from hrderby.models import FetchedPlayer, Player, ResolvedPlayer
from hrderby.persistence import PlayerRepository

from .teams import canonical_team, is_known_team

logger = logging.getLogger(__name__)

CANONICAL_EXTERNAL_ID = re.compile(r"^mlb-\d+$")


@dataclass
class ResolutionReport:
    resolved: List[ResolvedPlayer] = field(default_factory=list)
    conflicts: List[IdentityConflict] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(1 for item in self.resolved if item.created)

    @property
    def updated(self) -> int:
        return sum(1 for item in self.resolved if item.updated)


class IdentityResolver:
    """Find or create the player behind each fetched record.

    Records are matched on external id. Ids that are not canonical MLB ids
    (name slugs from file imports) fall back to a unique display-name match.
    Running the same batch twice performs no writes the second time.
    """

    def __init__(self, players: PlayerRepository):
        self._players = players

    def resolve(self, records: Iterable[FetchedPlayer]) -> ResolutionReport:
        report = ResolutionReport()
        claimed: Dict[int, str] = {}
        for record in records:
            try:
                resolved = self._resolve_one(record, claimed)
            except IdentityConflict as exc:
                logger.warning("Skipping %s: %s", exc.external_id, exc)
                report.conflicts.append(exc)
                continue
            claimed[resolved.player_id] = record.external_player_id
            report.resolved.append(resolved)
        logger.info(
            "Resolved %s records (%s new, %s updated, %s conflicts)",
            len(report.resolved),
            report.created,
            report.updated,
            len(report.conflicts),
        )
        return report

    def _resolve_one(self, record: FetchedPlayer, claimed: Dict[int, str]) -> ResolvedPlayer:
        external_id = record.external_player_id
        player = self._players.get_by_external_id(external_id)
        link_alias = False
        if player is None and not CANONICAL_EXTERNAL_ID.match(external_id):
            player = self._match_by_name(record)
            link_alias = player is not None

        if player is not None:
            other = claimed.get(player.player_id)
            if other is not None and other != external_id:
                raise IdentityConflict(
                    external_id,
                    f"{external_id} and {other} both resolve to player {player.player_id}",
                )

        if player is None:
            created = self._players.create(
                external_id=external_id,
                display_name=record.name,
                team_abbr=canonical_team(record.team_abbr),
                photo_ref=record.photo_ref,
            )
            logger.info("Created player %s (%s) for %s", created.player_id, created.display_name, external_id)
            return ResolvedPlayer(player_id=created.player_id, record=record, created=True)

        if link_alias:
            self._players.link_external_id(external_id, player.player_id)
        updated = self._apply_changes(player, record)
        return ResolvedPlayer(player_id=player.player_id, record=record, updated=updated)

    def _match_by_name(self, record: FetchedPlayer) -> Optional[Player]:
        matches = self._players.find_by_name(record.name)
        if len(matches) > 1:
            ids = ", ".join(str(match.player_id) for match in matches)
            raise IdentityConflict(
                record.external_player_id,
                f"name {record.name!r} matches several players ({ids})",
            )
        return matches[0] if matches else None

    def _apply_changes(self, player: Player, record: FetchedPlayer) -> bool:
        changes: dict[str, str] = {}
        if is_known_team(record.team_abbr):
            team = canonical_team(record.team_abbr)
            if team != player.current_team_abbr:
                changes["team_abbr"] = team
        if record.name != player.display_name:
            changes["display_name"] = record.name
        if record.photo_ref and record.photo_ref != player.photo_ref:
            changes["photo_ref"] = record.photo_ref
        if not changes:
            return False
        if "team_abbr" in changes:
            logger.info(
                "Player %s moved from %s to %s",
                player.player_id,
                player.current_team_abbr,
                changes["team_abbr"],
            )
        self._players.update(player.player_id, **changes)
        return True
