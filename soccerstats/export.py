"""Export standings and player tables to CSV for analysis."""
import logging
import sqlite3
from pathlib import Path
from typing import Optional

import pandas as pd

from .queries import get_players_with_stats, get_standings

logger = logging.getLogger(__name__)

STANDINGS_COLUMNS = [
    "team_id", "team", "abbreviation", "league", "played", "wins", "draws", "losses",
    "goals_scored", "goals_conceded", "goal_difference", "points", "shots_on_target", "corners",
]
PLAYER_COLUMNS = [
    "id", "name", "position", "team", "league", "appearances", "goals", "shots_on_target", "rating",
]


def export_standings_csv(conn: sqlite3.Connection, path: Path, league_id: Optional[int] = None) -> Path:
    """Write the standings table to CSV.

    Returns:
        Path to the created CSV file.
    """
    df = pd.DataFrame(get_standings(conn, league_id), columns=STANDINGS_COLUMNS)
    df.insert(0, "position", range(1, len(df) + 1))

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Exported {len(df)} teams to {path}")
    return path


def export_players_csv(conn: sqlite3.Connection, path: Path, league_name: Optional[str] = None) -> Path:
    """Write every player's totals and rating to CSV, best rated first."""
    df = pd.DataFrame(get_players_with_stats(conn, league_name), columns=PLAYER_COLUMNS)
    df = df.sort_values(["rating", "goals", "name"], ascending=[False, False, True])

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Exported {len(df)} players to {path}")
    return path
