"""Turn raw scoreboard events into rows in the soccer stats store."""
import logging
import sqlite3
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import ATHLETE_STAT_PATTERNS, TEAM_STAT_FIELDS
from .database import (
    transaction,
    upsert_league,
    upsert_team,
    upsert_player,
    upsert_match,
    insert_match_player,
    insert_match_odds,
    replace_match_statistics,
    replace_player_match_stats,
)
from .feed import (
    FeedAthlete,
    FeedCompetitor,
    FeedEvent,
    IncompleteEventError,
    parse_event,
)
from .models import PLAYER_STAT_FIELDS, Match, MatchStatistics, PlayerMatchStats
from .normalize import american_to_decimal, normalize_league_name, to_float, to_int

logger = logging.getLogger(__name__)


def classify_athlete_stat(
    name: str,
    abbreviation: str,
    patterns: Sequence[Dict[str, Any]] = ATHLETE_STAT_PATTERNS,
) -> Optional[str]:
    """Guess which player stat a ranked athlete list represents.

    Best effort: returns the player_match_stats column of the first matching
    pattern, or None when the list is not one we track.
    """
    name = (name or "").lower()
    abbreviation = (abbreviation or "").lower()

    for pattern in patterns:
        excluded = any(token in name for token in pattern.get("name_none", ()))
        if name and not excluded:
            for group in pattern.get("name_all", ()):
                if all(token in name for token in group):
                    return pattern["field"]
        if abbreviation:
            if any(token in abbreviation for token in pattern.get("abbr_contains", ())):
                return pattern["field"]
            if abbreviation in pattern.get("abbr_exact", ()):
                return pattern["field"]
    return None


def read_team_statistics(competitor: FeedCompetitor) -> Dict[str, Optional[float]]:
    """Map the competitor's named stats onto match_statistics columns."""
    values: Dict[str, Optional[float]] = {column: None for column in TEAM_STAT_FIELDS.values()}
    for stat in competitor.statistics:
        column = TEAM_STAT_FIELDS.get(stat.name)
        if column is None:
            continue
        value = to_float(stat.display_value)
        if value is not None:
            values[column] = value
    return values


class _EventPlayers:
    """Players touched while reading one event, and what they were credited.

    Ranked lists and play-by-play counts are kept apart and merged by taking
    the larger value per stat, so a goal seen in both is counted once.
    """

    def __init__(self, conn: sqlite3.Connection, match: Match, team_ids: Dict[str, int]):
        self.conn = conn
        self.match = match
        self.team_ids = team_ids
        self.player_ids: Dict[str, int] = {}
        self.player_teams: Dict[int, int] = {}
        self.from_lists: Dict[int, Dict[str, int]] = defaultdict(dict)
        self.from_details: Dict[int, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def touch(self, athlete: FeedAthlete, competitor: FeedCompetitor) -> int:
        """Upsert the player and record the appearance; returns the player id."""
        player_id = self.player_ids.get(athlete.external_id)
        if player_id is None:
            player_id = upsert_player(self.conn, athlete.external_id, athlete.name, athlete.position).id
            self.player_ids[athlete.external_id] = player_id

        if player_id not in self.player_teams:
            team_id = self.team_ids[competitor.team.external_id]
            appearance = insert_match_player(self.conn, self.match.id, player_id, team_id, competitor.is_home)
            self.player_teams[player_id] = appearance.team_id
        return player_id

    def credit_list_value(self, player_id: int, field: str, value: Optional[float]) -> None:
        # Presence in a ranked list counts as at least one occurrence.
        amount = to_int(value) if value is not None else 1
        if amount is None:
            amount = 1
        current = self.from_lists[player_id].get(field, 0)
        self.from_lists[player_id][field] = max(current, amount)

    def credit_detail(self, player_id: int, field: str) -> None:
        self.from_details[player_id][field] += 1

    def lines(self) -> List[PlayerMatchStats]:
        lines = []
        for player_id, team_id in self.player_teams.items():
            listed = self.from_lists.get(player_id, {})
            counted = self.from_details.get(player_id, {})
            values = {
                name: max(listed.get(name, 0), counted.get(name, 0))
                for name in PLAYER_STAT_FIELDS
            }
            lines.append(PlayerMatchStats(id=None, match_id=self.match.id, player_id=player_id,
                                          team_id=team_id, **values))
        return lines


def _store_parsed_event(conn: sqlite3.Connection, event: FeedEvent) -> Match:
    # 1. League
    league_id = None
    if event.league_code or event.league_slug:
        league = upsert_league(
            conn,
            event.league_code,
            normalize_league_name(event.league_slug),
            event.league_slug,
        )
        league_id = league.id

    # 2. Teams
    team_ids: Dict[str, int] = {}
    for competitor in event.competitors:
        team = upsert_team(
            conn,
            competitor.team.external_id,
            competitor.team.name,
            competitor.team.abbreviation,
            competitor.team.logo_url,
        )
        team_ids[competitor.team.external_id] = team.id

    # 3-4. Match
    match = upsert_match(
        conn,
        event.external_id,
        league_id,
        team_ids[event.home.team.external_id],
        team_ids[event.away.team.external_id],
        event.date,
        venue=event.venue,
        status=event.status,
        home_score=event.home.score,
        away_score=event.away.score,
    )

    # 6a. Ranked athlete lists attached to team statistics
    players = _EventPlayers(conn, match, team_ids)
    for competitor in event.competitors:
        for stat in competitor.statistics:
            if not stat.athletes:
                continue
            field = classify_athlete_stat(stat.name, stat.abbreviation)
            for athlete in stat.athletes:
                side = event.competitor_for_team(athlete.team_external_id) or competitor
                player_id = players.touch(athlete, side)
                if field:
                    players.credit_list_value(player_id, field, athlete.value)

    # 6b / 8. Play-by-play: goals, assists and cards
    team_cards = {team_id: {"yellow_cards": 0, "red_cards": 0} for team_id in team_ids.values()}
    for detail in event.details:
        for index, athlete in enumerate(detail.athletes):
            side = (event.competitor_for_team(athlete.team_external_id)
                    or event.competitor_for_team(detail.team_external_id))
            if side is None:
                continue
            player_id = players.touch(athlete, side)
            if detail.credits_goal and index == 0:
                players.credit_detail(player_id, "goals")
            if detail.credits_goal and index == 1:
                players.credit_detail(player_id, "assists")
            if detail.yellow_card:
                players.credit_detail(player_id, "yellow_cards")
            if detail.red_card:
                players.credit_detail(player_id, "red_cards")

        if detail.yellow_card or detail.red_card:
            side = event.competitor_for_team(detail.team_external_id)
            if side is None and detail.athletes:
                side = event.competitor_for_team(detail.athletes[0].team_external_id)
            if side is not None:
                cards = team_cards[team_ids[side.team.external_id]]
                cards["yellow_cards"] += int(detail.yellow_card)
                cards["red_cards"] += int(detail.red_card)

    # 7. Odds snapshot
    if event.odds is not None:
        insert_match_odds(
            conn,
            match.id,
            american_to_decimal(event.odds.home),
            american_to_decimal(event.odds.draw),
            american_to_decimal(event.odds.away),
            provider=event.odds.provider,
        )

    # 9. Team statistics, one row per side
    for competitor in event.competitors:
        team_id = team_ids[competitor.team.external_id]
        values = read_team_statistics(competitor)
        replace_match_statistics(conn, MatchStatistics(
            id=None,
            match_id=match.id,
            team_id=team_id,
            possession=values["possession"],
            shots=to_int(values["shots"]),
            shots_on_target=to_int(values["shots_on_target"]),
            corners=to_int(values["corners"]),
            fouls=to_int(values["fouls"]),
            **team_cards[team_id],
        ))

    # 10. Player stats for this match, rebuilt from scratch
    count = replace_player_match_stats(conn, match.id, players.lines())
    logger.debug(f"Stored event {event.external_id} as match {match.id} with {count} player rows")
    return match


def store_event(conn: sqlite3.Connection, payload: Dict[str, Any]) -> bool:
    """Store one raw scoreboard event.

    Returns False when the event lacks the data needed for a match (nothing
    is written). Malformed payloads and storage errors propagate; all writes
    for the event are rolled back in that case.
    """
    try:
        event = parse_event(payload)
    except IncompleteEventError as e:
        logger.debug(f"Skipping event: {e}")
        return False

    with transaction(conn):
        _store_parsed_event(conn, event)
    return True


def _event_id(payload: Any) -> str:
    if isinstance(payload, dict) and payload.get("id") is not None:
        return str(payload["id"])
    return "<unknown>"


def store_events(conn: sqlite3.Connection, events: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """Store a batch of events; one failing event never stops the rest."""
    stats = {"events": 0, "stored": 0, "skipped": 0, "errors": 0}

    for payload in events:
        stats["events"] += 1
        try:
            if store_event(conn, payload):
                stats["stored"] += 1
            else:
                stats["skipped"] += 1
        except Exception as e:
            logger.error(f"Error storing event {_event_id(payload)}: {e}")
            stats["errors"] += 1

    return stats
