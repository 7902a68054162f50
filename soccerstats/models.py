"""Data models for the soccer stats store."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


PLAYER_STAT_FIELDS = (
    "goals",
    "shots_on_target",
    "assists",
    "passes",
    "passes_completed",
    "tackles",
    "interceptions",
    "saves",
    "yellow_cards",
    "red_cards",
)


@dataclass
class League:
    """Represents a competition. The name is fixed once first stored."""
    id: Optional[int]
    external_code: Optional[str]
    name: str
    slug: Optional[str] = None


@dataclass
class Team:
    """Represents a club or national side."""
    id: Optional[int]
    external_id: str
    name: str
    abbreviation: Optional[str] = None
    logo_url: Optional[str] = None


@dataclass
class Player:
    """Represents a player."""
    id: Optional[int]
    external_id: str
    name: str
    position: Optional[str] = None


@dataclass
class Match:
    """Represents a single fixture."""
    id: Optional[int]
    external_event_id: str
    league_id: Optional[int]
    home_team_id: int
    away_team_id: int
    date: datetime
    venue: Optional[str] = None
    status: str = "scheduled"  # scheduled, live, completed
    home_score: Optional[int] = None
    away_score: Optional[int] = None


@dataclass
class MatchPlayer:
    """A player's appearance for one team in one match."""
    id: Optional[int]
    match_id: int
    player_id: int
    team_id: int
    is_home: bool


@dataclass
class MatchStatistics:
    """Team-level statistics for one side of a match."""
    id: Optional[int]
    match_id: int
    team_id: int
    possession: Optional[float] = None
    shots: Optional[int] = None
    shots_on_target: Optional[int] = None
    corners: Optional[int] = None
    fouls: Optional[int] = None
    yellow_cards: int = 0
    red_cards: int = 0


@dataclass
class MatchOdds:
    """A decimal moneyline snapshot for a match."""
    id: Optional[int]
    match_id: int
    home_odds: Optional[float]
    draw_odds: Optional[float]
    away_odds: Optional[float]
    provider: Optional[str] = None
    fetched_at: Optional[datetime] = None


@dataclass
class PlayerMatchStats:
    """Per-match statistics for one player."""
    id: Optional[int]
    match_id: int
    player_id: int
    team_id: int
    goals: int = 0
    shots_on_target: int = 0
    assists: int = 0
    passes: int = 0
    passes_completed: int = 0
    tackles: int = 0
    interceptions: int = 0
    saves: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
