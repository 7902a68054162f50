"""Typed records for the ESPN scoreboard payload.

The scoreboard JSON is loosely structured: most sections are optional and
numeric values arrive as strings, numbers or not at all. Everything the
ingester needs is read here, once, into plain dataclasses; the extractor
never touches the raw dicts.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .normalize import to_float, to_int


class MalformedEventError(ValueError):
    """The event payload is not shaped like a scoreboard event."""


class IncompleteEventError(ValueError):
    """The event is well formed but lacks what is needed to store a match."""


@dataclass
class FeedTeam:
    external_id: str
    name: str
    abbreviation: Optional[str] = None
    logo_url: Optional[str] = None


@dataclass
class FeedAthlete:
    external_id: str
    name: str
    position: Optional[str] = None
    team_external_id: Optional[str] = None
    value: Optional[float] = None  # first readable of value / stat / displayValue


@dataclass
class FeedStatistic:
    name: str
    abbreviation: str
    display_value: Optional[str]
    athletes: List[FeedAthlete] = field(default_factory=list)


@dataclass
class FeedCompetitor:
    team: FeedTeam
    home_away: Optional[str]
    score: Optional[int] = None
    statistics: List[FeedStatistic] = field(default_factory=list)

    @property
    def is_home(self) -> bool:
        return self.home_away == "home"


@dataclass
class FeedDetail:
    """One play-by-play entry (goal, card, substitution...)."""
    scoring_play: bool = False
    own_goal: bool = False
    penalty_kick: bool = False
    yellow_card: bool = False
    red_card: bool = False
    team_external_id: Optional[str] = None
    athletes: List[FeedAthlete] = field(default_factory=list)

    @property
    def credits_goal(self) -> bool:
        return self.scoring_play and not self.own_goal and not self.penalty_kick


@dataclass
class FeedOdds:
    """Moneyline prices as the feed gives them (American format strings)."""
    provider: Optional[str]
    home: Optional[str]
    draw: Optional[str]
    away: Optional[str]


@dataclass
class FeedEvent:
    external_id: str
    date: datetime
    home: FeedCompetitor
    away: FeedCompetitor
    league_code: Optional[str] = None
    league_slug: Optional[str] = None
    venue: Optional[str] = None
    completed: bool = False
    state: Optional[str] = None
    details: List[FeedDetail] = field(default_factory=list)
    odds: Optional[FeedOdds] = None

    @property
    def competitors(self) -> List[FeedCompetitor]:
        return [self.home, self.away]

    @property
    def status(self) -> str:
        if self.completed:
            return "completed"
        if self.state == "in":
            return "live"
        return "scheduled"

    def competitor_for_team(self, team_external_id: Optional[str]) -> Optional[FeedCompetitor]:
        """The competitor whose team has this feed id, if any."""
        if not team_external_id:
            return None
        for competitor in self.competitors:
            if competitor.team.external_id == team_external_id:
                return competitor
        return None


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def parse_feed_date(value: Any) -> datetime:
    """Parse an ESPN timestamp ("2025-10-18T14:00Z") into an aware UTC datetime."""
    text = _text(value)
    if text is None:
        raise MalformedEventError("event has no date")
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise MalformedEventError(f"unreadable event date {text!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_athlete(raw: Any) -> Optional[FeedAthlete]:
    """Athlete entries without an id cannot be keyed and are dropped."""
    raw = _mapping(raw)
    external_id = _text(raw.get("id"))
    if external_id is None:
        return None

    position = raw.get("position")
    if isinstance(position, dict):
        position = position.get("abbreviation") or position.get("displayName") or position.get("name")

    value = None
    for key in ("value", "stat", "displayValue"):
        value = to_float(raw.get(key))
        if value is not None:
            break

    name = _text(raw.get("displayName")) or _text(raw.get("fullName")) or _text(raw.get("shortName"))
    return FeedAthlete(
        external_id=external_id,
        name=name or external_id,
        position=_text(position),
        team_external_id=_text(_mapping(raw.get("team")).get("id")),
        value=value,
    )


def _athletes(raw_list: Any) -> List[FeedAthlete]:
    athletes = (parse_athlete(a) for a in _list(raw_list))
    return [a for a in athletes if a is not None]


def parse_statistic(raw: Any) -> Optional[FeedStatistic]:
    raw = _mapping(raw)
    name = _text(raw.get("name"))
    abbreviation = _text(raw.get("abbreviation"))
    if name is None and abbreviation is None:
        return None
    return FeedStatistic(
        name=name or "",
        abbreviation=abbreviation or "",
        display_value=_text(raw.get("displayValue")),
        athletes=_athletes(raw.get("athletes")),
    )


def parse_competitor(raw: Any) -> FeedCompetitor:
    raw = _mapping(raw)
    team = _mapping(raw.get("team"))
    team_id = _text(team.get("id")) or _text(raw.get("id"))
    if team_id is None:
        raise MalformedEventError("competitor has no team id")

    statistics = (parse_statistic(s) for s in _list(raw.get("statistics")))
    return FeedCompetitor(
        team=FeedTeam(
            external_id=team_id,
            name=_text(team.get("displayName")) or _text(team.get("name")) or team_id,
            abbreviation=_text(team.get("abbreviation")),
            logo_url=_text(team.get("logo")),
        ),
        home_away=_text(raw.get("homeAway")),
        score=to_int(raw.get("score")),
        statistics=[s for s in statistics if s is not None],
    )


def parse_detail(raw: Any) -> FeedDetail:
    raw = _mapping(raw)
    return FeedDetail(
        scoring_play=bool(raw.get("scoringPlay")),
        own_goal=bool(raw.get("ownGoal")),
        penalty_kick=bool(raw.get("penaltyKick")),
        yellow_card=bool(raw.get("yellowCard")),
        red_card=bool(raw.get("redCard")),
        team_external_id=_text(_mapping(raw.get("team")).get("id")),
        athletes=_athletes(raw.get("athletesInvolved")),
    )


def parse_odds(raw_odds: Any) -> Optional[FeedOdds]:
    """Read the first odds entry's current moneyline, if there is one."""
    entries = _list(raw_odds)
    if not entries:
        return None
    entry = _mapping(entries[0])
    moneyline = _mapping(entry.get("moneyline"))
    if not moneyline:
        return None

    def current(side: str) -> Optional[str]:
        return _text(_mapping(_mapping(moneyline.get(side)).get("current")).get("odds"))

    return FeedOdds(
        provider=_text(_mapping(entry.get("provider")).get("name")),
        home=current("home"),
        draw=current("draw"),
        away=current("away"),
    )


def parse_event(payload: Any) -> FeedEvent:
    """Validate one raw scoreboard event and convert it to a FeedEvent.

    Raises:
        MalformedEventError: the payload is not an event (no id, no date,
            competitor without a team).
        IncompleteEventError: no competition, fewer than two competitors,
            no home/away designation, or the same team on both sides.
    """
    if not isinstance(payload, dict):
        raise MalformedEventError(f"event payload is {type(payload).__name__}, not an object")

    external_id = _text(payload.get("id"))
    if external_id is None:
        raise MalformedEventError("event has no id")

    competitions = _list(payload.get("competitions"))
    if not competitions:
        raise IncompleteEventError(f"event {external_id} has no competition")
    competition = _mapping(competitions[0])

    raw_competitors = _list(competition.get("competitors"))
    if len(raw_competitors) < 2:
        raise IncompleteEventError(f"event {external_id} has fewer than two competitors")

    competitors = [parse_competitor(c) for c in raw_competitors]
    home = next((c for c in competitors if c.home_away == "home"), None)
    away = next((c for c in competitors if c.home_away == "away"), None)
    if home is None or away is None:
        raise IncompleteEventError(f"event {external_id} has no home/away designation")
    if home.team.external_id == away.team.external_id:
        raise IncompleteEventError(f"event {external_id} lists team {home.team.external_id} on both sides")

    status = _mapping(competition.get("status")) or _mapping(payload.get("status"))
    status_type = _mapping(status.get("type"))
    venue = _mapping(competition.get("venue")) or _mapping(payload.get("venue"))
    season = _mapping(payload.get("season"))

    return FeedEvent(
        external_id=external_id,
        date=parse_feed_date(payload.get("date") or competition.get("date")),
        home=home,
        away=away,
        league_code=_text(season.get("type")) or _text(season.get("slug")),
        league_slug=_text(season.get("slug")),
        venue=_text(venue.get("fullName")) or _text(venue.get("displayName")),
        completed=bool(status_type.get("completed")),
        state=_text(status_type.get("state")),
        details=[parse_detail(d) for d in _list(competition.get("details"))],
        odds=parse_odds(competition.get("odds")),
    )
