"""Shared pytest fixtures for soccerstats tests."""
import sqlite3
from typing import Any, Dict, List, Optional

import pytest

from soccerstats.database import init_database

HOME = {"id": "359", "displayName": "Arsenal", "abbreviation": "ARS", "logo": "https://a.espncdn.com/ars.png"}
AWAY = {"id": "363", "displayName": "Chelsea", "abbreviation": "CHE", "logo": "https://a.espncdn.com/che.png"}


@pytest.fixture
def conn():
    """Fresh in-memory database with the schema applied."""
    connection = sqlite3.connect(":memory:")
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    init_database(connection)
    yield connection
    connection.close()


def athlete(athlete_id: str, name: str, team_id: str, position: str = "F", **extra) -> Dict[str, Any]:
    return {
        "id": athlete_id,
        "displayName": name,
        "position": {"abbreviation": position},
        "team": {"id": team_id},
        **extra,
    }


def goal(team_id: str, *athletes: Dict[str, Any], own_goal: bool = False, penalty: bool = False) -> Dict[str, Any]:
    return {
        "scoringPlay": True,
        "ownGoal": own_goal,
        "penaltyKick": penalty,
        "yellowCard": False,
        "redCard": False,
        "team": {"id": team_id},
        "athletesInvolved": list(athletes),
    }


def card(team_id: Optional[str], player: Dict[str, Any], red: bool = False) -> Dict[str, Any]:
    detail = {
        "scoringPlay": False,
        "yellowCard": not red,
        "redCard": red,
        "athletesInvolved": [player],
    }
    if team_id is not None:
        detail["team"] = {"id": team_id}
    return detail


def team_stats(possession="55.4", shots="14", on_target="6", corners="7", fouls="11") -> List[Dict[str, Any]]:
    return [
        {"name": "possessionPct", "abbreviation": "POSS", "displayValue": possession},
        {"name": "totalShots", "abbreviation": "SH", "displayValue": shots},
        {"name": "shotsOnTarget", "abbreviation": "ST", "displayValue": on_target},
        {"name": "wonCorners", "abbreviation": "CW", "displayValue": corners},
        {"name": "foulsCommitted", "abbreviation": "FC", "displayValue": fouls},
    ]


def make_event(
    event_id: str = "704512",
    date: str = "2025-10-18T14:00Z",
    home: Dict[str, Any] = HOME,
    away: Dict[str, Any] = AWAY,
    home_score: Optional[str] = "2",
    away_score: Optional[str] = "1",
    completed: bool = True,
    state: str = "post",
    season_type: Optional[str] = "12654",
    season_slug: Optional[str] = "2025-26-english-premier-league",
    details: Optional[List[Dict[str, Any]]] = None,
    home_statistics: Optional[List[Dict[str, Any]]] = None,
    away_statistics: Optional[List[Dict[str, Any]]] = None,
    odds: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Build a scoreboard event shaped like the ESPN feed."""
    competitors = [
        {"id": home["id"], "homeAway": "home", "score": home_score, "team": dict(home),
         "statistics": home_statistics or []},
        {"id": away["id"], "homeAway": "away", "score": away_score, "team": dict(away),
         "statistics": away_statistics or []},
    ]
    competition = {
        "id": event_id,
        "date": date,
        "venue": {"fullName": "Emirates Stadium"},
        "competitors": competitors,
        "details": details or [],
        "status": {"type": {"completed": completed, "state": state}},
    }
    if odds is not None:
        competition["odds"] = odds

    season = {"year": 2026}
    if season_type is not None:
        season["type"] = season_type
    if season_slug is not None:
        season["slug"] = season_slug

    return {
        "id": event_id,
        "date": date,
        "name": f"{away['displayName']} at {home['displayName']}",
        "season": season,
        "competitions": [competition],
    }


def moneyline(home: str = "+150", draw: str = "+240", away: str = "-200", provider: str = "DraftKings"):
    return [{
        "provider": {"name": provider},
        "moneyline": {
            "home": {"current": {"odds": home}},
            "draw": {"current": {"odds": draw}},
            "away": {"current": {"odds": away}},
        },
    }]
