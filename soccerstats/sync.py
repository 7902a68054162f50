"""Ingestion scheduling: which days to fetch, and the per-day fetch loop."""
import os
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Generator, Iterable, List, Optional, Union

from .config import (
    BACKFILL_DEFAULT_DAYS,
    BACKFILL_MAX_DAYS,
    DB_PATH,
    SYNC_LOCK_PATH,
    UPCOMING_DAYS,
)
from .database import get_connection, get_latest_match_date, init_database
from .espn_api import ESPNClient
from .extractor import store_events

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def backfill_dates(
    latest: Optional[date],
    today: date,
    default_days: int = BACKFILL_DEFAULT_DAYS,
    max_days: int = BACKFILL_MAX_DAYS,
) -> List[date]:
    """Days to fetch to catch storage up to today.

    Starts the day after the latest stored match (or `default_days` before
    today on an empty store) and runs through today inclusive, walking at
    most `max_days` days from the start. Nothing is fetched when the start
    is today or later.
    """
    if latest is None:
        start = today - timedelta(days=default_days)
    else:
        start = latest + timedelta(days=1)

    if start >= today:
        return []

    count = min((today - start).days + 1, max_days)
    return [start + timedelta(days=offset) for offset in range(count)]


def upcoming_dates(today: date, days: int = UPCOMING_DAYS) -> List[date]:
    """Today plus the following days, `days` in total."""
    return [today + timedelta(days=offset) for offset in range(days)]


def date_range(start: date, end: date) -> List[date]:
    """Every day from start to end, inclusive."""
    if end < start:
        raise ValueError(f"Range end {end} is before start {start}")
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def fetch_day(conn: sqlite3.Connection, client: ESPNClient, day: date) -> Dict[str, int]:
    """Fetch one day's events and store them.

    Feed errors (including exhausted retries) propagate to the caller;
    per-event failures are counted in the returned stats.
    """
    events = client.get_events(day)
    if not events:
        logger.info(f"No events for {day.isoformat()}")
        return {"events": 0, "stored": 0, "skipped": 0, "errors": 0}

    logger.info(f"Found {len(events)} events for {day.isoformat()}, storing...")
    return store_events(conn, events)


def sync_dates(
    conn: sqlite3.Connection,
    client: ESPNClient,
    days: Iterable[date],
    label: str = "games",
) -> Dict[str, int]:
    """Fetch each day in order; a day whose fetch fails is logged and skipped."""
    totals = {"days": 0, "failed_days": 0, "events": 0, "stored": 0, "skipped": 0, "errors": 0}

    for day in days:
        totals["days"] += 1
        logger.info(f"Fetching {label} for {day.isoformat()}...")
        try:
            stats = fetch_day(conn, client, day)
        except Exception as e:
            logger.error(f"Error fetching {label} for {day.isoformat()}: {e}")
            totals["failed_days"] += 1
            continue

        for key, value in stats.items():
            totals[key] += value

    logger.info(
        f"Finished {label}: {totals['stored']} stored, {totals['skipped']} skipped, "
        f"{totals['errors']} errors over {totals['days']} days ({totals['failed_days']} failed)"
    )
    return totals


def sync_past_games(
    conn: sqlite3.Connection,
    client: ESPNClient,
    today: Optional[date] = None,
) -> Dict[str, int]:
    """Backfill from the high-water mark up to today."""
    today = today or utc_today()
    latest = get_latest_match_date(conn)

    if latest is None:
        logger.info(f"No stored matches, fetching the past {BACKFILL_DEFAULT_DAYS} days")
        days = backfill_dates(None, today)
    else:
        days = backfill_dates(latest.date(), today)
        if not days:
            logger.info(f"Latest match is {latest.isoformat()}, no past games to fetch")
        else:
            logger.info(f"Latest match is {latest.isoformat()}, fetching from {days[0].isoformat()}")

    return sync_dates(conn, client, days, "past games")


def sync_upcoming_games(
    conn: sqlite3.Connection,
    client: ESPNClient,
    today: Optional[date] = None,
) -> Dict[str, int]:
    """Fetch the fixed forward window, whatever is already stored."""
    today = today or utc_today()
    return sync_dates(conn, client, upcoming_dates(today), "upcoming games")


def sync_date_range(
    conn: sqlite3.Connection,
    client: ESPNClient,
    start: date,
    end: date,
) -> Dict[str, int]:
    """Explicit historical backfill, one request per day."""
    return sync_dates(conn, client, date_range(start, end), "games")


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _create_lock_file(path: Path) -> int:
    fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_RDWR, 0o644)
    os.write(fd, str(os.getpid()).encode("utf-8"))
    return fd


@contextmanager
def sync_lock(path: Union[Path, str] = SYNC_LOCK_PATH) -> Generator[bool, None, None]:
    """Single-writer guard for ingestion.

    Yields True when this process holds the lock and False when another
    live process does. A lock file left by a dead process is reclaimed.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        fd = _create_lock_file(path)
    except FileExistsError:
        contents = path.read_text(encoding="utf-8").strip()
        stale_pid = int(contents) if contents.isdigit() else None
        if stale_pid is None or _pid_alive(stale_pid):
            logger.info(f"Sync lock {path} is held by process {contents or '?'}")
            yield False
            return
        logger.warning(f"Reclaiming sync lock {path} left by process {stale_pid}")
        path.unlink()
        try:
            fd = _create_lock_file(path)
        except FileExistsError:
            yield False
            return

    try:
        yield True
    finally:
        os.close(fd)
        path.unlink(missing_ok=True)


def run_startup_sync(
    conn: Optional[sqlite3.Connection] = None,
    client: Optional[ESPNClient] = None,
    today: Optional[date] = None,
    lock_path: Union[Path, str] = SYNC_LOCK_PATH,
) -> Optional[Dict[str, Dict[str, int]]]:
    """Past games, then upcoming games. Never raises.

    Returns the stats of both passes, or None when another sync holds the
    lock or the run failed.
    """
    logger.info("Starting game sync...")
    own_conn = conn is None
    own_client = client is None

    try:
        with sync_lock(lock_path) as acquired:
            if not acquired:
                logger.info("Another sync is running, skipping")
                return None

            if own_conn:
                conn = get_connection(DB_PATH)
            init_database(conn)
            if own_client:
                client = ESPNClient()

            today = today or utc_today()
            result = {
                "past": sync_past_games(conn, client, today),
                "upcoming": sync_upcoming_games(conn, client, today),
            }
            logger.info("Game sync completed")
            return result
    except Exception:
        logger.exception("Game sync failed")
        return None
    finally:
        if own_client and client is not None:
            client.close()
        if own_conn and conn is not None:
            conn.close()
