"""Database connection, schema and write operations for the soccer stats store.

Write helpers never commit; wrap them in ``transaction(conn)``.
"""
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Generator, Iterable, Optional, Union

from .config import DB_PATH
from .models import (
    PLAYER_STAT_FIELDS,
    League,
    Team,
    Player,
    Match,
    MatchOdds,
    MatchPlayer,
    MatchStatistics,
    PlayerMatchStats,
)

logger = logging.getLogger(__name__)

MATCH_STATUSES = ("scheduled", "live", "completed")


def get_connection(db_path: Union[Path, str] = DB_PATH) -> sqlite3.Connection:
    """Create a database connection with row factory enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for database transactions."""
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_database(conn: sqlite3.Connection) -> None:
    """Initialize the database schema."""
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS leagues (
            id INTEGER PRIMARY KEY,
            external_code TEXT UNIQUE,
            name TEXT NOT NULL,
            slug TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS teams (
            id INTEGER PRIMARY KEY,
            external_id TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            abbreviation TEXT,
            logo_url TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS players (
            id INTEGER PRIMARY KEY,
            external_id TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            position TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        );

        -- Fixtures, keyed by the feed's event id
        CREATE TABLE IF NOT EXISTS matches (
            id INTEGER PRIMARY KEY,
            external_event_id TEXT UNIQUE NOT NULL,
            league_id INTEGER REFERENCES leagues(id),
            home_team_id INTEGER NOT NULL REFERENCES teams(id),
            away_team_id INTEGER NOT NULL REFERENCES teams(id),
            date DATETIME NOT NULL,
            venue TEXT,
            status TEXT NOT NULL DEFAULT 'scheduled'
                CHECK (status IN ('scheduled', 'live', 'completed')),
            home_score INTEGER,
            away_score INTEGER,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            CHECK (home_team_id != away_team_id)
        );

        -- Appearances: immutable once recorded
        CREATE TABLE IF NOT EXISTS match_players (
            id INTEGER PRIMARY KEY,
            match_id INTEGER NOT NULL REFERENCES matches(id),
            player_id INTEGER NOT NULL REFERENCES players(id),
            team_id INTEGER NOT NULL REFERENCES teams(id),
            is_home INTEGER NOT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(match_id, player_id, team_id)
        );

        -- Odds snapshots (append-only)
        CREATE TABLE IF NOT EXISTS match_odds (
            id INTEGER PRIMARY KEY,
            match_id INTEGER NOT NULL REFERENCES matches(id),
            home_odds REAL,
            draw_odds REAL,
            away_odds REAL,
            provider TEXT,
            fetched_at DATETIME NOT NULL
        );

        CREATE TABLE IF NOT EXISTS match_statistics (
            id INTEGER PRIMARY KEY,
            match_id INTEGER NOT NULL REFERENCES matches(id),
            team_id INTEGER NOT NULL REFERENCES teams(id),
            possession REAL,
            shots INTEGER,
            shots_on_target INTEGER,
            corners INTEGER,
            fouls INTEGER,
            yellow_cards INTEGER NOT NULL DEFAULT 0,
            red_cards INTEGER NOT NULL DEFAULT 0,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(match_id, team_id)
        );

        CREATE TABLE IF NOT EXISTS player_match_stats (
            id INTEGER PRIMARY KEY,
            match_id INTEGER NOT NULL REFERENCES matches(id),
            player_id INTEGER NOT NULL REFERENCES players(id),
            team_id INTEGER NOT NULL REFERENCES teams(id),
            goals INTEGER NOT NULL DEFAULT 0,
            shots_on_target INTEGER NOT NULL DEFAULT 0,
            assists INTEGER NOT NULL DEFAULT 0,
            passes INTEGER NOT NULL DEFAULT 0,
            passes_completed INTEGER NOT NULL DEFAULT 0,
            tackles INTEGER NOT NULL DEFAULT 0,
            interceptions INTEGER NOT NULL DEFAULT 0,
            saves INTEGER NOT NULL DEFAULT 0,
            yellow_cards INTEGER NOT NULL DEFAULT 0,
            red_cards INTEGER NOT NULL DEFAULT 0,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(match_id, player_id)
        );

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_matches_date ON matches(date);
        CREATE INDEX IF NOT EXISTS idx_matches_home ON matches(home_team_id);
        CREATE INDEX IF NOT EXISTS idx_matches_away ON matches(away_team_id);
        CREATE INDEX IF NOT EXISTS idx_match_players_player ON match_players(player_id);
        CREATE INDEX IF NOT EXISTS idx_match_odds_match ON match_odds(match_id);
        CREATE INDEX IF NOT EXISTS idx_player_stats_player ON player_match_stats(player_id);
    """)
    conn.commit()


def to_db_datetime(value: datetime) -> str:
    """Store datetimes as UTC ISO strings so they sort and compare lexically."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_db_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _league_from_row(row: sqlite3.Row) -> League:
    return League(id=row["id"], external_code=row["external_code"], name=row["name"], slug=row["slug"])


def _team_from_row(row: sqlite3.Row) -> Team:
    return Team(
        id=row["id"],
        external_id=row["external_id"],
        name=row["name"],
        abbreviation=row["abbreviation"],
        logo_url=row["logo_url"],
    )


def _player_from_row(row: sqlite3.Row) -> Player:
    return Player(id=row["id"], external_id=row["external_id"], name=row["name"], position=row["position"])


def _match_from_row(row: sqlite3.Row) -> Match:
    return Match(
        id=row["id"],
        external_event_id=row["external_event_id"],
        league_id=row["league_id"],
        home_team_id=row["home_team_id"],
        away_team_id=row["away_team_id"],
        date=from_db_datetime(row["date"]),
        venue=row["venue"],
        status=row["status"],
        home_score=row["home_score"],
        away_score=row["away_score"],
    )


# League operations
def upsert_league(
    conn: sqlite3.Connection,
    external_code: Optional[str],
    name: str,
    slug: Optional[str] = None,
) -> League:
    """Get the league for this code, creating it on first sighting.

    An existing league is returned unchanged: the first name stored wins.
    Without a code, a code-less league of the same name is reused.
    """
    if external_code:
        existing = get_league_by_code(conn, external_code)
    else:
        row = conn.execute(
            "SELECT * FROM leagues WHERE external_code IS NULL AND name = ?", (name,)
        ).fetchone()
        existing = _league_from_row(row) if row else None
    if existing:
        return existing

    cursor = conn.execute(
        "INSERT INTO leagues (external_code, name, slug) VALUES (?, ?, ?)",
        (external_code, name, slug)
    )
    logger.info(f"New league '{name}' (code {external_code})")
    return League(id=cursor.lastrowid, external_code=external_code, name=name, slug=slug)


def get_league_by_code(conn: sqlite3.Connection, external_code: str) -> Optional[League]:
    row = conn.execute("SELECT * FROM leagues WHERE external_code = ?", (external_code,)).fetchone()
    return _league_from_row(row) if row else None


# Team operations
def upsert_team(
    conn: sqlite3.Connection,
    external_id: str,
    name: str,
    abbreviation: Optional[str] = None,
    logo_url: Optional[str] = None,
) -> Team:
    """Create or update a team; display fields are last-write-wins."""
    existing = get_team_by_external_id(conn, external_id)
    if existing:
        conn.execute(
            "UPDATE teams SET name = ?, abbreviation = ?, logo_url = ? WHERE id = ?",
            (name, abbreviation, logo_url, existing.id)
        )
        return Team(id=existing.id, external_id=external_id, name=name,
                    abbreviation=abbreviation, logo_url=logo_url)

    cursor = conn.execute(
        "INSERT INTO teams (external_id, name, abbreviation, logo_url) VALUES (?, ?, ?, ?)",
        (external_id, name, abbreviation, logo_url)
    )
    return Team(id=cursor.lastrowid, external_id=external_id, name=name,
                abbreviation=abbreviation, logo_url=logo_url)


def get_team_by_external_id(conn: sqlite3.Connection, external_id: str) -> Optional[Team]:
    row = conn.execute("SELECT * FROM teams WHERE external_id = ?", (external_id,)).fetchone()
    return _team_from_row(row) if row else None


def get_team(conn: sqlite3.Connection, team_id: int) -> Optional[Team]:
    row = conn.execute("SELECT * FROM teams WHERE id = ?", (team_id,)).fetchone()
    return _team_from_row(row) if row else None


# Player operations
def upsert_player(
    conn: sqlite3.Connection,
    external_id: str,
    name: str,
    position: Optional[str] = None,
) -> Player:
    """Create or update a player; name and position are last-write-wins."""
    existing = get_player_by_external_id(conn, external_id)
    if existing:
        conn.execute(
            "UPDATE players SET name = ?, position = ? WHERE id = ?",
            (name, position, existing.id)
        )
        return Player(id=existing.id, external_id=external_id, name=name, position=position)

    cursor = conn.execute(
        "INSERT INTO players (external_id, name, position) VALUES (?, ?, ?)",
        (external_id, name, position)
    )
    return Player(id=cursor.lastrowid, external_id=external_id, name=name, position=position)


def get_player_by_external_id(conn: sqlite3.Connection, external_id: str) -> Optional[Player]:
    row = conn.execute("SELECT * FROM players WHERE external_id = ?", (external_id,)).fetchone()
    return _player_from_row(row) if row else None


def get_player(conn: sqlite3.Connection, player_id: int) -> Optional[Player]:
    row = conn.execute("SELECT * FROM players WHERE id = ?", (player_id,)).fetchone()
    return _player_from_row(row) if row else None


# Match operations
def upsert_match(
    conn: sqlite3.Connection,
    external_event_id: str,
    league_id: Optional[int],
    home_team_id: int,
    away_team_id: int,
    date: datetime,
    venue: Optional[str] = None,
    status: str = "scheduled",
    home_score: Optional[int] = None,
    away_score: Optional[int] = None,
) -> Match:
    """Insert a match, or replace every field of the one with this event id."""
    if status not in MATCH_STATUSES:
        raise ValueError(f"Unknown match status {status!r}")
    if home_team_id == away_team_id:
        raise ValueError(f"Match {external_event_id} has the same team on both sides")

    values = (league_id, home_team_id, away_team_id, to_db_datetime(date),
              venue, status, home_score, away_score)
    existing = get_match_by_event_id(conn, external_event_id)
    if existing:
        conn.execute(
            """
            UPDATE matches SET league_id = ?, home_team_id = ?, away_team_id = ?, date = ?,
                venue = ?, status = ?, home_score = ?, away_score = ?
            WHERE id = ?
            """,
            values + (existing.id,)
        )
        match_id = existing.id
    else:
        cursor = conn.execute(
            """
            INSERT INTO matches (external_event_id, league_id, home_team_id, away_team_id, date,
                venue, status, home_score, away_score)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (external_event_id,) + values
        )
        match_id = cursor.lastrowid

    return Match(
        id=match_id,
        external_event_id=external_event_id,
        league_id=league_id,
        home_team_id=home_team_id,
        away_team_id=away_team_id,
        date=date,
        venue=venue,
        status=status,
        home_score=home_score,
        away_score=away_score,
    )


def get_match_by_event_id(conn: sqlite3.Connection, external_event_id: str) -> Optional[Match]:
    row = conn.execute(
        "SELECT * FROM matches WHERE external_event_id = ?", (external_event_id,)
    ).fetchone()
    return _match_from_row(row) if row else None


def get_latest_match_date(conn: sqlite3.Connection) -> Optional[datetime]:
    """The high-water mark: latest match date in storage, or None when empty."""
    row = conn.execute("SELECT MAX(date) AS latest FROM matches").fetchone()
    if row is None or row["latest"] is None:
        return None
    return from_db_datetime(row["latest"])


def insert_match_player(
    conn: sqlite3.Connection,
    match_id: int,
    player_id: int,
    team_id: int,
    is_home: bool,
) -> MatchPlayer:
    """Record an appearance if absent and return the stored appearance.

    A player already recorded for the other side of this match keeps that
    row; the conflicting appearance is logged and not stored.
    """
    row = conn.execute(
        "SELECT * FROM match_players WHERE match_id = ? AND player_id = ?",
        (match_id, player_id)
    ).fetchone()
    if row:
        if row["team_id"] != team_id:
            logger.warning(
                f"Player {player_id} already appears for team {row['team_id']} in match "
                f"{match_id}; ignoring appearance for team {team_id}"
            )
        return MatchPlayer(id=row["id"], match_id=match_id, player_id=player_id,
                           team_id=row["team_id"], is_home=bool(row["is_home"]))

    cursor = conn.execute(
        "INSERT INTO match_players (match_id, player_id, team_id, is_home) VALUES (?, ?, ?, ?)",
        (match_id, player_id, team_id, int(is_home))
    )
    return MatchPlayer(id=cursor.lastrowid, match_id=match_id, player_id=player_id,
                       team_id=team_id, is_home=is_home)


def insert_match_odds(
    conn: sqlite3.Connection,
    match_id: int,
    home_odds: Optional[float],
    draw_odds: Optional[float],
    away_odds: Optional[float],
    provider: Optional[str] = None,
    fetched_at: Optional[datetime] = None,
) -> MatchOdds:
    """Append a new odds snapshot."""
    fetched_at = fetched_at or datetime.now(timezone.utc)
    cursor = conn.execute(
        """
        INSERT INTO match_odds (match_id, home_odds, draw_odds, away_odds, provider, fetched_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (match_id, home_odds, draw_odds, away_odds, provider, to_db_datetime(fetched_at))
    )
    return MatchOdds(id=cursor.lastrowid, match_id=match_id, home_odds=home_odds,
                     draw_odds=draw_odds, away_odds=away_odds, provider=provider,
                     fetched_at=fetched_at)


def replace_match_statistics(conn: sqlite3.Connection, stats: MatchStatistics) -> int:
    """Replace the statistics row for (match, team)."""
    conn.execute(
        "DELETE FROM match_statistics WHERE match_id = ? AND team_id = ?",
        (stats.match_id, stats.team_id)
    )
    cursor = conn.execute(
        """
        INSERT INTO match_statistics (match_id, team_id, possession, shots, shots_on_target,
            corners, fouls, yellow_cards, red_cards)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (stats.match_id, stats.team_id, stats.possession, stats.shots, stats.shots_on_target,
         stats.corners, stats.fouls, stats.yellow_cards, stats.red_cards)
    )
    return cursor.lastrowid


def upsert_player_match_stats(
    conn: sqlite3.Connection,
    match_id: int,
    player_id: int,
    team_id: int,
    **fields: Optional[int],
) -> PlayerMatchStats:
    """Write one player's stats for a match.

    Each stat given a value replaces the stored one; stats omitted or passed
    as None keep their previous value (0 for a new row). Nothing is added
    to what is already stored.
    """
    unknown = set(fields) - set(PLAYER_STAT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown player stat fields: {sorted(unknown)}")

    row = conn.execute(
        "SELECT * FROM player_match_stats WHERE match_id = ? AND player_id = ?",
        (match_id, player_id)
    ).fetchone()

    merged: Dict[str, int] = {}
    for name in PLAYER_STAT_FIELDS:
        value = fields.get(name)
        if value is None:
            value = (row[name] or 0) if row else 0
        merged[name] = int(value)

    columns = ", ".join(PLAYER_STAT_FIELDS)
    if row:
        assignments = ", ".join(f"{name} = ?" for name in PLAYER_STAT_FIELDS)
        conn.execute(
            f"UPDATE player_match_stats SET {assignments} WHERE id = ?",
            tuple(merged.values()) + (row["id"],)
        )
        stats_id = row["id"]
        team_id = row["team_id"]
    else:
        placeholders = ", ".join("?" for _ in PLAYER_STAT_FIELDS)
        cursor = conn.execute(
            f"INSERT INTO player_match_stats (match_id, player_id, team_id, {columns}) "
            f"VALUES (?, ?, ?, {placeholders})",
            (match_id, player_id, team_id) + tuple(merged.values())
        )
        stats_id = cursor.lastrowid

    return PlayerMatchStats(id=stats_id, match_id=match_id, player_id=player_id, team_id=team_id, **merged)


def replace_player_match_stats(
    conn: sqlite3.Connection,
    match_id: int,
    lines: Iterable[PlayerMatchStats],
) -> int:
    """Delete every player stats row of a match and insert the given ones."""
    conn.execute("DELETE FROM player_match_stats WHERE match_id = ?", (match_id,))
    count = 0
    for line in lines:
        upsert_player_match_stats(
            conn, match_id, line.player_id, line.team_id,
            **{name: getattr(line, name) for name in PLAYER_STAT_FIELDS}
        )
        count += 1
    return count


def count_rows(conn: sqlite3.Connection, table: str) -> int:
    """Row count of one of the store's tables."""
    if table not in ("leagues", "teams", "players", "matches", "match_players",
                     "match_odds", "match_statistics", "player_match_stats"):
        raise ValueError(f"Unknown table {table!r}")
    return conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()["n"]
