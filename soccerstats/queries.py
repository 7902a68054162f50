"""Read-side aggregations over the normalized tables."""
import sqlite3
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .database import to_db_datetime
from .normalize import normalize_league_name

# A match counts as played once it is marked completed or carries both scores;
# the feed does not always flip the status of finished games.
PLAYED = "(m.status = 'completed' OR (m.home_score IS NOT NULL AND m.away_score IS NOT NULL))"


def _now(now: Optional[datetime]) -> str:
    return to_db_datetime(now or datetime.now(timezone.utc))


def _empty_record() -> Dict:
    return {
        "wins": 0,
        "draws": 0,
        "losses": 0,
        "goals_scored": 0,
        "goals_conceded": 0,
        "goal_difference": 0,
        "points": 0,
        "played": 0,
        "shots_on_target": 0,
        "corners": 0,
    }


def _add_result(record: Dict, scored: int, conceded: int) -> None:
    record["played"] += 1
    record["goals_scored"] += scored
    record["goals_conceded"] += conceded
    if scored > conceded:
        record["wins"] += 1
    elif scored == conceded:
        record["draws"] += 1
    else:
        record["losses"] += 1
    record["points"] = record["wins"] * 3 + record["draws"]
    record["goal_difference"] = record["goals_scored"] - record["goals_conceded"]


def get_team_stats(conn: sqlite3.Connection, team_id: int) -> Dict:
    """W/D/L, goals and points over completed matches, plus summed match statistics."""
    record = _empty_record()
    rows = conn.execute("""
        SELECT home_team_id, home_score, away_score
        FROM matches
        WHERE (home_team_id = ? OR away_team_id = ?)
          AND status = 'completed'
          AND home_score IS NOT NULL AND away_score IS NOT NULL
    """, (team_id, team_id)).fetchall()

    for row in rows:
        if row["home_team_id"] == team_id:
            _add_result(record, row["home_score"], row["away_score"])
        else:
            _add_result(record, row["away_score"], row["home_score"])

    totals = conn.execute("""
        SELECT COALESCE(SUM(shots_on_target), 0) AS shots_on_target,
               COALESCE(SUM(corners), 0) AS corners
        FROM match_statistics
        WHERE team_id = ?
    """, (team_id,)).fetchone()
    record["shots_on_target"] = totals["shots_on_target"]
    record["corners"] = totals["corners"]
    return record


def get_standings(conn: sqlite3.Connection, league_id: Optional[int] = None) -> List[Dict]:
    """Table of every team with completed matches, best first.

    Ordered by points, goal difference, goals scored, then name. With a
    league id only that league's matches count.
    """
    params = []
    league_clause = ""
    if league_id is not None:
        league_clause = "AND m.league_id = ?"
        params.append(league_id)

    rows = conn.execute(f"""
        SELECT m.id, m.league_id, m.home_team_id, m.away_team_id, m.home_score, m.away_score
        FROM matches m
        WHERE m.status = 'completed'
          AND m.home_score IS NOT NULL AND m.away_score IS NOT NULL
          {league_clause}
    """, params).fetchall()

    records: Dict[int, Dict] = {}
    leagues: Dict[int, Counter] = {}
    match_ids = []
    for row in rows:
        match_ids.append(row["id"])
        sides = (
            (row["home_team_id"], row["home_score"], row["away_score"]),
            (row["away_team_id"], row["away_score"], row["home_score"]),
        )
        for team_id, scored, conceded in sides:
            _add_result(records.setdefault(team_id, _empty_record()), scored, conceded)
            if row["league_id"] is not None:
                leagues.setdefault(team_id, Counter())[row["league_id"]] += 1

    if not records:
        return []

    stat_rows = conn.execute(f"""
        SELECT s.team_id,
               COALESCE(SUM(s.shots_on_target), 0) AS shots_on_target,
               COALESCE(SUM(s.corners), 0) AS corners
        FROM match_statistics s
        JOIN matches m ON s.match_id = m.id
        WHERE m.status = 'completed' {league_clause}
        GROUP BY s.team_id
    """, params).fetchall()
    for row in stat_rows:
        if row["team_id"] in records:
            records[row["team_id"]]["shots_on_target"] = row["shots_on_target"]
            records[row["team_id"]]["corners"] = row["corners"]

    names = {row["id"]: row for row in conn.execute("SELECT id, name, abbreviation FROM teams")}
    league_names = {row["id"]: row["name"] for row in conn.execute("SELECT id, name FROM leagues")}

    standings = []
    for team_id, record in records.items():
        team = names[team_id]
        primary = leagues.get(team_id)
        primary_league_id = primary.most_common(1)[0][0] if primary else None
        standings.append({
            "team_id": team_id,
            "team": team["name"],
            "abbreviation": team["abbreviation"],
            "league_id": primary_league_id,
            "league": league_names.get(primary_league_id),
            **record,
        })

    standings.sort(key=lambda s: (-s["points"], -s["goal_difference"], -s["goals_scored"], s["team"]))
    return standings


def get_recent_matches(
    conn: sqlite3.Connection,
    team_id: int,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> List[Dict]:
    """Played matches of a team before `now`, newest first, with the team's stats row."""
    rows = conn.execute(f"""
        SELECT m.id, m.date, m.status, m.venue,
               m.home_team_id, ht.name AS home_team,
               m.away_team_id, at.name AS away_team,
               m.home_score, m.away_score,
               s.possession, s.shots, s.shots_on_target, s.corners, s.fouls,
               s.yellow_cards, s.red_cards
        FROM matches m
        JOIN teams ht ON m.home_team_id = ht.id
        JOIN teams at ON m.away_team_id = at.id
        LEFT JOIN match_statistics s ON s.match_id = m.id AND s.team_id = ?
        WHERE (m.home_team_id = ? OR m.away_team_id = ?)
          AND m.date < ?
          AND {PLAYED}
        ORDER BY m.date DESC
        LIMIT ?
    """, (team_id, team_id, team_id, _now(now), limit)).fetchall()

    results = []
    for row in rows:
        match = dict(row)
        match["is_home"] = row["home_team_id"] == team_id
        if row["home_score"] is not None and row["away_score"] is not None:
            scored, conceded = (
                (row["home_score"], row["away_score"]) if match["is_home"]
                else (row["away_score"], row["home_score"])
            )
            match["result"] = "W" if scored > conceded else "D" if scored == conceded else "L"
        else:
            match["result"] = None
        results.append(match)
    return results


def get_head_to_head(
    conn: sqlite3.Connection,
    team1_id: int,
    team2_id: int,
    limit: int = 5,
    now: Optional[datetime] = None,
) -> Dict:
    """Wins for each side and draws over the last `limit` played meetings."""
    rows = conn.execute(f"""
        SELECT m.id, m.date, m.home_team_id, m.away_team_id, m.home_score, m.away_score
        FROM matches m
        WHERE ((m.home_team_id = ? AND m.away_team_id = ?)
            OR (m.home_team_id = ? AND m.away_team_id = ?))
          AND m.date < ?
          AND {PLAYED}
        ORDER BY m.date DESC
        LIMIT ?
    """, (team1_id, team2_id, team2_id, team1_id, _now(now), limit)).fetchall()

    summary = {"team1_wins": 0, "team2_wins": 0, "draws": 0, "matches": []}
    for row in rows:
        # Completed without a score: nothing to compare
        if row["home_score"] is None or row["away_score"] is None:
            continue

        team1_is_home = row["home_team_id"] == team1_id
        team1_score = row["home_score"] if team1_is_home else row["away_score"]
        team2_score = row["away_score"] if team1_is_home else row["home_score"]

        if team1_score > team2_score:
            summary["team1_wins"] += 1
        elif team2_score > team1_score:
            summary["team2_wins"] += 1
        else:
            summary["draws"] += 1

        summary["matches"].append({
            **dict(row),
            "team1_is_home": team1_is_home,
            "team1_score": team1_score,
            "team2_score": team2_score,
        })
    return summary


def get_upcoming_matches(conn: sqlite3.Connection, now: Optional[datetime] = None) -> List[Dict]:
    """Scheduled fixtures from `now` on, soonest first."""
    rows = conn.execute("""
        SELECT m.id, m.date, m.venue, l.name AS league,
               ht.name AS home_team, at.name AS away_team
        FROM matches m
        JOIN teams ht ON m.home_team_id = ht.id
        JOIN teams at ON m.away_team_id = at.id
        LEFT JOIN leagues l ON m.league_id = l.id
        WHERE m.date >= ? AND m.status = 'scheduled'
        ORDER BY m.date
    """, (_now(now),)).fetchall()
    return [dict(row) for row in rows]


def player_rating(goals: int, shots_on_target: int, appearances: int) -> float:
    """Heuristic 0-10 player rating.

    5.0 base, +0.5 per goal, shots on target and appearances each worth at
    most 2.0, clamped to [0, 10] and rounded to one decimal.
    """
    rating = 5.0
    rating += goals * 0.5
    rating += min(shots_on_target * 0.2, 2.0)
    rating += min(appearances * 0.1, 2.0)
    rating = max(0.0, min(rating, 10.0))
    return round(rating, 1)


def get_player_stats(conn: sqlite3.Connection, player_id: int) -> Dict:
    appearances = conn.execute(
        "SELECT COUNT(*) AS n FROM match_players WHERE player_id = ?", (player_id,)
    ).fetchone()["n"]

    totals = conn.execute("""
        SELECT COALESCE(SUM(goals), 0) AS goals,
               COALESCE(SUM(shots_on_target), 0) AS shots_on_target,
               COALESCE(SUM(assists), 0) AS assists,
               COALESCE(SUM(yellow_cards), 0) AS yellow_cards,
               COALESCE(SUM(red_cards), 0) AS red_cards
        FROM player_match_stats
        WHERE player_id = ?
    """, (player_id,)).fetchone()

    latest = conn.execute("""
        SELECT mp.team_id
        FROM match_players mp
        JOIN matches m ON mp.match_id = m.id
        WHERE mp.player_id = ?
        ORDER BY m.date DESC
        LIMIT 1
    """, (player_id,)).fetchone()

    stats = dict(totals)
    stats["appearances"] = appearances
    stats["current_team_id"] = latest["team_id"] if latest else None
    stats["rating"] = player_rating(stats["goals"], stats["shots_on_target"], appearances)
    return stats


def get_player_recent_matches(
    conn: sqlite3.Connection,
    player_id: int,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> List[Dict]:
    """Recent played matches of the player's current team, with the player's own line.

    Player columns are None for matches the player did not appear in.
    """
    current_team_id = get_player_stats(conn, player_id)["current_team_id"]
    if current_team_id is None:
        return []

    matches = get_recent_matches(conn, current_team_id, limit, now)
    if not matches:
        return matches

    placeholders = ",".join("?" for _ in matches)
    lines = {
        row["match_id"]: row
        for row in conn.execute(f"""
            SELECT match_id, goals, assists, shots_on_target, yellow_cards, red_cards
            FROM player_match_stats
            WHERE player_id = ? AND match_id IN ({placeholders})
        """, [player_id] + [m["id"] for m in matches])
    }
    appeared = {
        row["match_id"]
        for row in conn.execute(f"""
            SELECT match_id FROM match_players
            WHERE player_id = ? AND match_id IN ({placeholders})
        """, [player_id] + [m["id"] for m in matches])
    }

    results = []
    for match in matches:
        line = lines.get(match["id"])
        results.append({
            "match_id": match["id"],
            "date": match["date"],
            "home_team": match["home_team"],
            "away_team": match["away_team"],
            "home_score": match["home_score"],
            "away_score": match["away_score"],
            "result": match["result"],
            "appeared": match["id"] in appeared,
            "goals": line["goals"] if line else None,
            "assists": line["assists"] if line else None,
            "shots_on_target": line["shots_on_target"] if line else None,
            "yellow_cards": line["yellow_cards"] if line else None,
            "red_cards": line["red_cards"] if line else None,
        })
    return results


def get_players_with_stats(conn: sqlite3.Connection, league_name: Optional[str] = None) -> List[Dict]:
    """Every player with appearances, totals, current team and rating.

    `league_name` is canonicalized before filtering, so "Spanish La Liga"
    and "La Liga" select the same players.
    """
    params = []
    league_filter = ""
    if league_name:
        league_filter = """
            WHERE p.id IN (
                SELECT mp.player_id
                FROM match_players mp
                JOIN matches m ON mp.match_id = m.id
                JOIN leagues l ON m.league_id = l.id
                WHERE l.name = ?
            )
        """
        params.append(normalize_league_name(league_name))

    players = conn.execute(f"""
        SELECT p.id, p.name, p.position,
               (SELECT COUNT(*) FROM match_players mp WHERE mp.player_id = p.id) AS appearances,
               (SELECT COALESCE(SUM(goals), 0) FROM player_match_stats s
                 WHERE s.player_id = p.id) AS goals,
               (SELECT COALESCE(SUM(shots_on_target), 0) FROM player_match_stats s
                 WHERE s.player_id = p.id) AS shots_on_target
        FROM players p
        {league_filter}
        ORDER BY p.name
    """, params).fetchall()

    # Newest appearance first, so the first row per player is the current one
    current: Dict[int, sqlite3.Row] = {}
    for row in conn.execute("""
        SELECT mp.player_id, t.name AS team, l.name AS league
        FROM match_players mp
        JOIN matches m ON mp.match_id = m.id
        JOIN teams t ON mp.team_id = t.id
        LEFT JOIN leagues l ON m.league_id = l.id
        ORDER BY m.date DESC
    """):
        current.setdefault(row["player_id"], row)

    results = []
    for player in players:
        latest = current.get(player["id"])
        results.append({
            "id": player["id"],
            "name": player["name"],
            "position": player["position"],
            "team": latest["team"] if latest else None,
            "league": latest["league"] if latest else None,
            "goals": player["goals"],
            "shots_on_target": player["shots_on_target"],
            "appearances": player["appearances"],
            "rating": player_rating(player["goals"], player["shots_on_target"], player["appearances"]),
        })
    return results


def get_league_summary(conn: sqlite3.Connection) -> List[Dict]:
    """Every stored league with its match count and distinct player count."""
    rows = conn.execute("""
        SELECT l.id, l.external_code, l.name, l.slug,
               COUNT(DISTINCT m.id) AS matches,
               COUNT(DISTINCT mp.player_id) AS players
        FROM leagues l
        LEFT JOIN matches m ON m.league_id = l.id
        LEFT JOIN match_players mp ON mp.match_id = m.id
        GROUP BY l.id
        ORDER BY matches DESC, l.name
    """).fetchall()
    return [dict(row) for row in rows]
