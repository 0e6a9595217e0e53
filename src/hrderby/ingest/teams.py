"""MLB team abbreviation normalization."""

from __future__ import annotations

import re
from typing import Optional

from hrderby.models import UNKNOWN_TEAM

MLB_TEAM_ALIAS_GROUPS: dict[str, list[str]] = {
    "ARI": ["ARI", "AZ", "ARIZONA", "ARIZONA DIAMONDBACKS", "DIAMONDBACKS", "DBACKS"],
    "ATH": ["ATH", "OAK", "OAKLAND", "OAKLAND ATHLETICS", "ATHLETICS", "AS"],
    "ATL": ["ATL", "ATLANTA", "ATLANTA BRAVES", "BRAVES"],
    "BAL": ["BAL", "BALTIMORE", "BALTIMORE ORIOLES", "ORIOLES"],
    "BOS": ["BOS", "BOSTON", "BOSTON RED SOX", "RED SOX"],
    "CHC": ["CHC", "CHN", "CHICAGO CUBS", "CUBS"],
    "CWS": ["CWS", "CHW", "CHA", "CHICAGO WHITE SOX", "WHITE SOX"],
    "CIN": ["CIN", "CINCINNATI", "CINCINNATI REDS", "REDS"],
    "CLE": ["CLE", "CLEVELAND", "CLEVELAND GUARDIANS", "GUARDIANS"],
    "COL": ["COL", "COLORADO", "COLORADO ROCKIES", "ROCKIES"],
    "DET": ["DET", "DETROIT", "DETROIT TIGERS", "TIGERS"],
    "HOU": ["HOU", "HOUSTON", "HOUSTON ASTROS", "ASTROS"],
    "KC": ["KC", "KCR", "KCA", "KANSAS CITY", "KANSAS CITY ROYALS", "ROYALS"],
    "LAA": ["LAA", "ANA", "LOS ANGELES ANGELS", "ANGELS"],
    "LAD": ["LAD", "LAN", "LOS ANGELES DODGERS", "DODGERS"],
    "MIA": ["MIA", "FLA", "MIAMI", "MIAMI MARLINS", "MARLINS"],
    "MIL": ["MIL", "MILWAUKEE", "MILWAUKEE BREWERS", "BREWERS"],
    "MIN": ["MIN", "MINNESOTA", "MINNESOTA TWINS", "TWINS"],
    "NYM": ["NYM", "NYN", "NEW YORK METS", "METS"],
    "NYY": ["NYY", "NYA", "NEW YORK YANKEES", "YANKEES"],
    "PHI": ["PHI", "PHILADELPHIA", "PHILADELPHIA PHILLIES", "PHILLIES"],
    "PIT": ["PIT", "PITTSBURGH", "PITTSBURGH PIRATES", "PIRATES"],
    "SD": ["SD", "SDP", "SDN", "SAN DIEGO", "SAN DIEGO PADRES", "PADRES"],
    "SF": ["SF", "SFG", "SFN", "SAN FRANCISCO", "SAN FRANCISCO GIANTS", "GIANTS"],
    "SEA": ["SEA", "SEATTLE", "SEATTLE MARINERS", "MARINERS"],
    "STL": ["STL", "SLN", "ST LOUIS", "ST LOUIS CARDINALS", "CARDINALS"],
    "TB": ["TB", "TBR", "TBA", "TAMPA BAY", "TAMPA BAY RAYS", "RAYS"],
    "TEX": ["TEX", "TEXAS", "TEXAS RANGERS", "RANGERS"],
    "TOR": ["TOR", "TORONTO", "TORONTO BLUE JAYS", "BLUE JAYS"],
    "WSH": ["WSH", "WAS", "WSN", "WASHINGTON", "WASHINGTON NATIONALS", "NATIONALS"],
}


def _team_token(value: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", value.upper())


def _build_alias_lookup() -> dict[str, str]:
    lookup: dict[str, str] = {}
    for abbr, variants in MLB_TEAM_ALIAS_GROUPS.items():
        for variant in variants:
            key = _team_token(variant)
            if key:
                lookup.setdefault(key, abbr)
    return lookup


TEAM_ALIAS_LOOKUP = _build_alias_lookup()


def canonical_team(team: Optional[str]) -> str:
    """Map a team name or abbreviation to its canonical abbreviation.

    Blank values become the ``UNK`` placeholder; unrecognized values are kept
    uppercased so new franchises are not dropped.
    """

    token = _team_token(team or "")
    if not token:
        return UNKNOWN_TEAM
    return TEAM_ALIAS_LOOKUP.get(token, (team or "").strip().upper())


def is_known_team(team: Optional[str]) -> bool:
    return bool(team) and canonical_team(team) != UNKNOWN_TEAM
