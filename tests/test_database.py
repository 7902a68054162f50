"""Tests for the entity store and match repository."""
import sqlite3
from datetime import datetime, timezone

import pytest

from soccerstats.database import (
    count_rows,
    get_latest_match_date,
    get_match_by_event_id,
    get_team_by_external_id,
    insert_match_odds,
    insert_match_player,
    replace_match_statistics,
    replace_player_match_stats,
    transaction,
    upsert_league,
    upsert_match,
    upsert_player,
    upsert_player_match_stats,
    upsert_team,
)
from soccerstats.models import MatchStatistics, PlayerMatchStats

KICKOFF = datetime(2025, 10, 18, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixture_ids(conn):
    """A league, two teams and one scheduled match between them."""
    league = upsert_league(conn, "12654", "Premier League", "2025-26-english-premier-league")
    home = upsert_team(conn, "359", "Arsenal", "ARS")
    away = upsert_team(conn, "363", "Chelsea", "CHE")
    match = upsert_match(conn, "704512", league.id, home.id, away.id, KICKOFF)
    conn.commit()
    return {"league": league.id, "home": home.id, "away": away.id, "match": match.id}


# =============================================================================
# ENTITY STORE
# =============================================================================

class TestEntityStore:

    def test_league_first_write_wins(self, conn):
        first = upsert_league(conn, "12654", "Premier League", "2025-26-english-premier-league")
        second = upsert_league(conn, "12654", "English Premier League", "other-slug")

        assert second.id == first.id
        assert second.name == "Premier League"
        assert count_rows(conn, "leagues") == 1

    def test_league_without_code_reused_by_name(self, conn):
        first = upsert_league(conn, None, "Mystery Cup")
        second = upsert_league(conn, None, "Mystery Cup")
        assert first.id == second.id
        assert count_rows(conn, "leagues") == 1

    def test_team_last_write_wins(self, conn):
        first = upsert_team(conn, "359", "Arsenal", "ARS")
        second = upsert_team(conn, "359", "Arsenal FC", "AFC", "https://logo")

        assert first.id == second.id
        stored = get_team_by_external_id(conn, "359")
        assert stored.name == "Arsenal FC"
        assert stored.abbreviation == "AFC"
        assert stored.logo_url == "https://logo"

    def test_player_last_write_wins(self, conn):
        first = upsert_player(conn, "1001", "B. Saka", "F")
        second = upsert_player(conn, "1001", "Bukayo Saka", "M")
        assert first.id == second.id
        assert tuple(conn.execute("SELECT name, position FROM players").fetchone()) == ("Bukayo Saka", "M")


# =============================================================================
# MATCH REPOSITORY
# =============================================================================

class TestMatches:

    def test_upsert_replaces_all_fields(self, conn, fixture_ids):
        upsert_match(
            conn, "704512", fixture_ids["league"], fixture_ids["home"], fixture_ids["away"],
            KICKOFF, venue="Emirates Stadium", status="completed", home_score=2, away_score=1,
        )
        match = get_match_by_event_id(conn, "704512")

        assert match.id == fixture_ids["match"]
        assert match.status == "completed"
        assert (match.home_score, match.away_score) == (2, 1)
        assert match.venue == "Emirates Stadium"
        assert count_rows(conn, "matches") == 1

    def test_rejects_unknown_status(self, conn, fixture_ids):
        with pytest.raises(ValueError):
            upsert_match(conn, "1", None, fixture_ids["home"], fixture_ids["away"], KICKOFF, status="postponed")

    def test_rejects_same_team(self, conn, fixture_ids):
        with pytest.raises(ValueError):
            upsert_match(conn, "1", None, fixture_ids["home"], fixture_ids["home"], KICKOFF)

    def test_latest_match_date(self, conn, fixture_ids):
        later = datetime(2025, 11, 2, 16, 30, tzinfo=timezone.utc)
        upsert_match(conn, "704600", None, fixture_ids["away"], fixture_ids["home"], later)
        assert get_latest_match_date(conn) == later

    def test_latest_match_date_empty(self, conn):
        assert get_latest_match_date(conn) is None

    def test_transaction_rolls_back(self, conn, fixture_ids):
        with pytest.raises(RuntimeError):
            with transaction(conn):
                upsert_team(conn, "999", "Rolled Back")
                raise RuntimeError("boom")
        assert get_team_by_external_id(conn, "999") is None


class TestMatchChildren:

    def test_match_player_recorded_once(self, conn, fixture_ids):
        player = upsert_player(conn, "1001", "Bukayo Saka")
        first = insert_match_player(conn, fixture_ids["match"], player.id, fixture_ids["home"], True)
        again = insert_match_player(conn, fixture_ids["match"], player.id, fixture_ids["home"], True)

        assert first.id == again.id
        assert count_rows(conn, "match_players") == 1

    def test_match_player_keeps_first_side(self, conn, fixture_ids):
        player = upsert_player(conn, "1001", "Bukayo Saka")
        insert_match_player(conn, fixture_ids["match"], player.id, fixture_ids["home"], True)
        conflict = insert_match_player(conn, fixture_ids["match"], player.id, fixture_ids["away"], False)

        assert conflict.team_id == fixture_ids["home"]
        assert conflict.is_home is True
        assert count_rows(conn, "match_players") == 1

    def test_odds_append_only(self, conn, fixture_ids):
        insert_match_odds(conn, fixture_ids["match"], 2.5, 3.4, 1.5, provider="DraftKings")
        insert_match_odds(conn, fixture_ids["match"], 2.4, 3.5, 1.55, provider="DraftKings")
        assert count_rows(conn, "match_odds") == 2

    def test_match_statistics_replaced(self, conn, fixture_ids):
        stats = MatchStatistics(id=None, match_id=fixture_ids["match"], team_id=fixture_ids["home"],
                                possession=55.0, shots=12, shots_on_target=5, corners=6, fouls=9)
        replace_match_statistics(conn, stats)
        stats.shots_on_target = 7
        replace_match_statistics(conn, stats)

        rows = conn.execute("SELECT shots_on_target FROM match_statistics").fetchall()
        assert [r["shots_on_target"] for r in rows] == [7]

    def test_match_statistics_unique_per_team(self, conn, fixture_ids):
        conn.execute("INSERT INTO match_statistics (match_id, team_id) VALUES (?, ?)",
                     (fixture_ids["match"], fixture_ids["home"]))
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO match_statistics (match_id, team_id) VALUES (?, ?)",
                         (fixture_ids["match"], fixture_ids["home"]))


class TestPlayerMatchStats:

    def test_values_replace_not_accumulate(self, conn, fixture_ids):
        player = upsert_player(conn, "1001", "Bukayo Saka")
        upsert_player_match_stats(conn, fixture_ids["match"], player.id, fixture_ids["home"], goals=1)
        stored = upsert_player_match_stats(conn, fixture_ids["match"], player.id, fixture_ids["home"], goals=2)
        assert stored.goals == 2
        assert count_rows(conn, "player_match_stats") == 1

    def test_none_keeps_previous_value(self, conn, fixture_ids):
        player = upsert_player(conn, "1001", "Bukayo Saka")
        upsert_player_match_stats(conn, fixture_ids["match"], player.id, fixture_ids["home"],
                                  goals=1, assists=1)
        stored = upsert_player_match_stats(conn, fixture_ids["match"], player.id, fixture_ids["home"],
                                           goals=None, shots_on_target=3)
        assert (stored.goals, stored.assists, stored.shots_on_target) == (1, 1, 3)

    def test_unknown_field_rejected(self, conn, fixture_ids):
        player = upsert_player(conn, "1001", "Bukayo Saka")
        with pytest.raises(ValueError):
            upsert_player_match_stats(conn, fixture_ids["match"], player.id, fixture_ids["home"], xg=1)

    def test_replace_drops_missing_players(self, conn, fixture_ids):
        saka = upsert_player(conn, "1001", "Bukayo Saka")
        rice = upsert_player(conn, "1002", "Declan Rice")
        upsert_player_match_stats(conn, fixture_ids["match"], saka.id, fixture_ids["home"], goals=1)
        upsert_player_match_stats(conn, fixture_ids["match"], rice.id, fixture_ids["home"], assists=1)

        count = replace_player_match_stats(conn, fixture_ids["match"], [
            PlayerMatchStats(id=None, match_id=fixture_ids["match"], player_id=saka.id,
                             team_id=fixture_ids["home"], goals=2),
        ])

        assert count == 1
        rows = conn.execute("SELECT player_id, goals FROM player_match_stats").fetchall()
        assert [(r["player_id"], r["goals"]) for r in rows] == [(saka.id, 2)]

    def test_count_rows_rejects_unknown_table(self, conn):
        with pytest.raises(ValueError):
            count_rows(conn, "sqlite_master")
