"""CLI entry point for the soccer stats ingester."""
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.logging import RichHandler

from .config import DB_PATH
from .database import get_connection, get_team, init_database
from .espn_api import ESPNClient
from .export import export_players_csv, export_standings_csv
from .queries import (
    get_head_to_head,
    get_league_summary,
    get_players_with_stats,
    get_recent_matches,
    get_standings,
    get_team_stats,
)
from .sync import fetch_day, run_startup_sync, sync_date_range

console = Console()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(console=console, rich_tracebacks=True)]
)
logger = logging.getLogger(__name__)


def _parse_day(value: str):
    for fmt in ("%Y-%m-%d", "%Y%m%d"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise click.BadParameter(f"'{value}' is not a date (YYYY-MM-DD or YYYYMMDD)")


def _open_database():
    """Open the database, creating the schema on first use."""
    conn = get_connection()
    init_database(conn)
    return conn


def _print_stats(title: str, stats: dict):
    console.print(f"\n[bold green]{title}[/bold green]")
    for key, value in stats.items():
        console.print(f"  {key.replace('_', ' ').capitalize()}: {value}")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug):
    """Soccer stats ingestion and query CLI."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
def init():
    """Initialize the database."""
    console.print("[bold]Initializing database...[/bold]")
    conn = get_connection()
    init_database(conn)
    conn.close()
    console.print(f"[green]Database initialized at {DB_PATH}[/green]")


@cli.command()
def sync():
    """Backfill past games up to today, then fetch upcoming fixtures."""
    console.print("[bold]Syncing games from ESPN...[/bold]")
    result = run_startup_sync()

    if result is None:
        console.print("[yellow]Sync did not run to completion, see the log above.[/yellow]")
        return

    _print_stats("Past games", result["past"])
    _print_stats("Upcoming games", result["upcoming"])


@cli.command("fetch-day")
@click.argument("day")
def fetch_day_cmd(day):
    """Fetch and store every event of one DAY."""
    target = _parse_day(day)

    conn = _open_database()
    client = ESPNClient()

    try:
        stats = fetch_day(conn, client, target)
    except Exception as e:
        console.print(f"[red]Error fetching {target.isoformat()}: {e}[/red]")
        sys.exit(1)
    finally:
        client.close()
        conn.close()

    _print_stats(f"Fetched {target.isoformat()}", stats)


@cli.command("fetch-range")
@click.argument("start")
@click.argument("end")
def fetch_range(start, end):
    """Fetch every day from START to END inclusive, one request per day."""
    start_day, end_day = _parse_day(start), _parse_day(end)
    if end_day < start_day:
        raise click.BadParameter("END must not be before START")

    console.print(f"[bold]Fetching games from {start_day} to {end_day}...[/bold]")
    conn = _open_database()
    client = ESPNClient()

    try:
        stats = sync_date_range(conn, client, start_day, end_day)
    finally:
        client.close()
        conn.close()

    _print_stats("Collection complete!", stats)


@cli.command()
@click.option("--league-id", "-l", type=int, default=None, help="Only count this league's matches")
def standings(league_id):
    """Show the standings table."""
    conn = _open_database()
    rows = get_standings(conn, league_id)
    conn.close()

    if not rows:
        console.print("[yellow]No completed matches found. Run sync first.[/yellow]")
        return

    table = Table(title="Standings")
    table.add_column("#", justify="right")
    table.add_column("Team", style="cyan")
    table.add_column("League")
    table.add_column("P", justify="right")
    table.add_column("W", justify="right")
    table.add_column("D", justify="right")
    table.add_column("L", justify="right")
    table.add_column("GF", justify="right")
    table.add_column("GA", justify="right")
    table.add_column("GD", justify="right")
    table.add_column("Pts", justify="right", style="green")

    for position, row in enumerate(rows, 1):
        table.add_row(
            str(position),
            row["team"][:25],
            (row["league"] or "-")[:20],
            str(row["played"]),
            str(row["wins"]),
            str(row["draws"]),
            str(row["losses"]),
            str(row["goals_scored"]),
            str(row["goals_conceded"]),
            f"{row['goal_difference']:+d}",
            str(row["points"]),
        )

    console.print(table)


@cli.command("team-form")
@click.argument("team_id", type=int)
@click.option("--limit", "-n", default=10, help="Number of matches to show")
def team_form(team_id, limit):
    """Show a team's record and recent matches."""
    conn = _open_database()
    team = get_team(conn, team_id)
    if team is None:
        conn.close()
        console.print(f"[red]No team with id {team_id}[/red]")
        sys.exit(1)

    record = get_team_stats(conn, team_id)
    matches = get_recent_matches(conn, team_id, limit)
    conn.close()

    console.print(f"[bold]{team.name}[/bold]")
    console.print(
        f"  W {record['wins']}  D {record['draws']}  L {record['losses']}  "
        f"GF {record['goals_scored']}  GA {record['goals_conceded']}  Pts {record['points']}"
    )
    console.print(f"  Shots on target: {record['shots_on_target']}  Corners: {record['corners']}")

    if not matches:
        console.print("[yellow]No played matches found.[/yellow]")
        return

    table = Table(title="Recent Matches")
    table.add_column("Date")
    table.add_column("Home Team", style="cyan")
    table.add_column("Score", justify="center")
    table.add_column("Away Team", style="cyan")
    table.add_column("Result", justify="center")
    table.add_column("SOT", justify="right")
    table.add_column("Corners", justify="right")

    for match in matches:
        result_color = {"W": "green", "D": "yellow", "L": "red"}.get(match["result"], "white")
        table.add_row(
            match["date"][:10],
            match["home_team"][:20],
            f"{match['home_score']}-{match['away_score']}",
            match["away_team"][:20],
            f"[{result_color}]{match['result'] or '-'}[/{result_color}]",
            str(match["shots_on_target"]) if match["shots_on_target"] is not None else "-",
            str(match["corners"]) if match["corners"] is not None else "-",
        )

    console.print(table)


@cli.command("head-to-head")
@click.argument("team1_id", type=int)
@click.argument("team2_id", type=int)
def head_to_head(team1_id, team2_id):
    """Compare two teams over their last five meetings."""
    conn = _open_database()
    team1, team2 = get_team(conn, team1_id), get_team(conn, team2_id)
    if team1 is None or team2 is None:
        conn.close()
        console.print("[red]Both team ids must exist[/red]")
        sys.exit(1)

    summary = get_head_to_head(conn, team1_id, team2_id)
    conn.close()

    console.print(f"[bold]{team1.name} vs {team2.name}[/bold]")
    console.print(
        f"  {team1.name}: {summary['team1_wins']}  "
        f"Draws: {summary['draws']}  {team2.name}: {summary['team2_wins']}"
    )

    if not summary["matches"]:
        console.print("[yellow]No meetings found.[/yellow]")
        return

    table = Table(title="Last Meetings")
    table.add_column("Date")
    table.add_column(team1.name[:20], justify="right", style="cyan")
    table.add_column(team2.name[:20], justify="right", style="cyan")
    table.add_column("Venue")

    for match in summary["matches"]:
        table.add_row(
            match["date"][:10],
            str(match["team1_score"]),
            str(match["team2_score"]),
            "home" if match["team1_is_home"] else "away",
        )

    console.print(table)


@cli.command()
@click.option("--league", "-l", default=None, help="League name, e.g. 'Premier League'")
@click.option("--limit", "-n", default=25, help="Number of players to show")
def players(league, limit):
    """Show players ranked by rating."""
    conn = _open_database()
    rows = get_players_with_stats(conn, league)
    conn.close()

    if not rows:
        console.print("[yellow]No players found.[/yellow]")
        return

    rows.sort(key=lambda p: (-p["rating"], -p["goals"], p["name"]))

    table = Table(title=f"Players{f' - {league}' if league else ''}")
    table.add_column("Name", style="cyan")
    table.add_column("Pos")
    table.add_column("Team")
    table.add_column("League")
    table.add_column("Apps", justify="right")
    table.add_column("Goals", justify="right")
    table.add_column("SOT", justify="right")
    table.add_column("Rating", justify="right", style="green")

    for row in rows[:limit]:
        table.add_row(
            row["name"][:25],
            row["position"] or "-",
            (row["team"] or "-")[:20],
            (row["league"] or "-")[:20],
            str(row["appearances"]),
            str(row["goals"]),
            str(row["shots_on_target"]),
            f"{row['rating']:.1f}",
        )

    console.print(table)


@cli.command()
def leagues():
    """List stored leagues with match and player counts."""
    conn = _open_database()
    rows = get_league_summary(conn)
    conn.close()

    if not rows:
        console.print("[yellow]No leagues found. Run sync first.[/yellow]")
        return

    table = Table(title="Leagues")
    table.add_column("ID", justify="right")
    table.add_column("Code")
    table.add_column("Name", style="cyan")
    table.add_column("Slug")
    table.add_column("Matches", justify="right")
    table.add_column("Players", justify="right")

    for row in rows:
        table.add_row(
            str(row["id"]),
            row["external_code"] or "-",
            row["name"],
            row["slug"] or "-",
            str(row["matches"]),
            str(row["players"]),
        )

    console.print(table)


@cli.command()
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
def export(output_dir):
    """Export standings and players to CSV files in OUTPUT_DIR."""
    conn = _open_database()
    standings_path = export_standings_csv(conn, output_dir / "standings.csv")
    players_path = export_players_csv(conn, output_dir / "players.csv")
    conn.close()

    console.print("[bold green]Export complete![/bold green]")
    console.print(f"  Standings: {standings_path}")
    console.print(f"  Players: {players_path}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
