"""Tests for converting raw scoreboard events into feed records."""
from datetime import datetime, timezone

import pytest

from soccerstats.feed import (
    IncompleteEventError,
    MalformedEventError,
    parse_athlete,
    parse_event,
    parse_feed_date,
    parse_odds,
)

from conftest import AWAY, HOME, athlete, card, goal, make_event, moneyline, team_stats


# =============================================================================
# EVENT STRUCTURE
# =============================================================================

class TestParseEvent:
    """Top-level event parsing and validation."""

    def test_completed_event(self):
        event = parse_event(make_event(home_statistics=team_stats()))

        assert event.external_id == "704512"
        assert event.date == datetime(2025, 10, 18, 14, 0, tzinfo=timezone.utc)
        assert event.home.team.name == "Arsenal"
        assert event.away.team.external_id == "363"
        assert event.home.score == 2
        assert event.away.score == 1
        assert event.status == "completed"
        assert event.venue == "Emirates Stadium"
        assert event.league_code == "12654"
        assert event.league_slug == "2025-26-english-premier-league"
        assert len(event.home.statistics) == 5

    def test_competitor_order_does_not_matter(self):
        payload = make_event()
        payload["competitions"][0]["competitors"].reverse()
        event = parse_event(payload)
        assert event.home.team.external_id == HOME["id"]
        assert event.away.team.external_id == AWAY["id"]

    def test_live_and_scheduled_status(self):
        live = parse_event(make_event(completed=False, state="in"))
        scheduled = parse_event(make_event(completed=False, state="pre", home_score=None, away_score=None))
        assert live.status == "live"
        assert scheduled.status == "scheduled"
        assert scheduled.home.score is None

    def test_league_code_falls_back_to_slug(self):
        event = parse_event(make_event(season_type=None))
        assert event.league_code == "2025-26-english-premier-league"

    def test_optional_sections_absent(self):
        payload = make_event()
        competition = payload["competitions"][0]
        del competition["details"]
        del competition["venue"]
        del competition["status"]
        del payload["season"]
        for competitor in competition["competitors"]:
            del competitor["statistics"]

        event = parse_event(payload)
        assert event.details == []
        assert event.venue is None
        assert event.status == "scheduled"
        assert event.league_code is None
        assert event.odds is None

    def test_details_parsed(self):
        scorer = athlete("1001", "Bukayo Saka", HOME["id"])
        booked = athlete("2002", "Moises Caicedo", AWAY["id"], position="M")
        event = parse_event(make_event(details=[goal(HOME["id"], scorer), card(AWAY["id"], booked)]))

        assert len(event.details) == 2
        assert event.details[0].credits_goal
        assert event.details[0].athletes[0].name == "Bukayo Saka"
        assert event.details[1].yellow_card
        assert not event.details[1].credits_goal

    def test_own_goal_and_penalty_do_not_credit(self):
        scorer = athlete("1001", "Bukayo Saka", HOME["id"])
        event = parse_event(make_event(details=[
            goal(HOME["id"], scorer, own_goal=True),
            goal(HOME["id"], scorer, penalty=True),
        ]))
        assert not any(d.credits_goal for d in event.details)

    def test_competitor_for_team(self):
        event = parse_event(make_event())
        assert event.competitor_for_team(AWAY["id"]) is event.away
        assert event.competitor_for_team("999") is None
        assert event.competitor_for_team(None) is None


class TestRejectedEvents:
    """Events without enough data are incomplete; broken payloads are malformed."""

    def test_single_competitor(self):
        payload = make_event()
        payload["competitions"][0]["competitors"].pop()
        with pytest.raises(IncompleteEventError):
            parse_event(payload)

    def test_missing_home_away_tag(self):
        payload = make_event()
        for competitor in payload["competitions"][0]["competitors"]:
            del competitor["homeAway"]
        with pytest.raises(IncompleteEventError):
            parse_event(payload)

    def test_no_competitions(self):
        payload = make_event()
        payload["competitions"] = []
        with pytest.raises(IncompleteEventError):
            parse_event(payload)

    def test_same_team_both_sides(self):
        with pytest.raises(IncompleteEventError):
            parse_event(make_event(away=HOME))

    @pytest.mark.parametrize("payload", [None, [], "event"])
    def test_not_an_object(self, payload):
        with pytest.raises(MalformedEventError):
            parse_event(payload)

    def test_missing_id(self):
        payload = make_event()
        del payload["id"]
        with pytest.raises(MalformedEventError):
            parse_event(payload)

    def test_unreadable_date(self):
        with pytest.raises(MalformedEventError):
            parse_event(make_event(date="next saturday"))


# =============================================================================
# FIELD PARSERS
# =============================================================================

class TestFieldParsers:

    def test_feed_date_without_seconds(self):
        assert parse_feed_date("2025-10-18T19:30Z") == datetime(2025, 10, 18, 19, 30, tzinfo=timezone.utc)

    def test_athlete_value_fallbacks(self):
        assert parse_athlete(athlete("1", "A", "359", value=3)).value == 3.0
        assert parse_athlete(athlete("1", "A", "359", displayValue="2")).value == 2.0
        assert parse_athlete(athlete("1", "A", "359")).value is None

    def test_athlete_without_id_dropped(self):
        assert parse_athlete({"displayName": "Nobody"}) is None

    def test_athlete_position_string(self):
        assert parse_athlete({"id": "5", "displayName": "X", "position": "G"}).position == "G"

    def test_odds_first_entry(self):
        odds = parse_odds(moneyline() + moneyline(home="+500", provider="Other"))
        assert odds.provider == "DraftKings"
        assert (odds.home, odds.draw, odds.away) == ("+150", "+240", "-200")

    def test_odds_without_moneyline(self):
        assert parse_odds([{"provider": {"name": "X"}, "details": "ARS -1.5"}]) is None
        assert parse_odds(None) is None
