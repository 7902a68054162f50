"""Client for the ESPN soccer scoreboard feed."""
import time
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .config import (
    ESPN_SCOREBOARD_URL,
    MAX_RETRIES,
    REQUEST_DELAY_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_BASE_SECONDS,
    RETRY_MAX_SECONDS,
    USER_AGENT,
)

logger = logging.getLogger(__name__)


class FeedError(RuntimeError):
    """The feed answered with something other than a usable scoreboard."""


class RateLimiter:
    """Keeps at least `min_interval` seconds between consecutive requests."""

    def __init__(self, min_interval: float):
        self.interval = max(min_interval, 0.0)
        self._last_request_time = 0.0

    def wait(self):
        """Block until a request can be made within rate limits."""
        now = time.monotonic()
        time_since_last = now - self._last_request_time
        if time_since_last < self.interval:
            time.sleep(self.interval - time_since_last)
        self._last_request_time = time.monotonic()


def is_transient_error(error: BaseException) -> bool:
    """Timeouts, connection failures, HTTP 429 and 5xx are worth retrying."""
    if isinstance(error, (requests.Timeout, requests.ConnectionError)):
        return True
    if isinstance(error, requests.HTTPError) and error.response is not None:
        status = error.response.status_code
        return status == 429 or status >= 500
    return False


def format_feed_date(day: date) -> str:
    """Format a day as the feed's YYYYMMDD `dates` value."""
    return day.strftime("%Y%m%d")


def format_feed_range(start: date, end: date) -> str:
    """Format an inclusive range as YYYYMMDD-YYYYMMDD."""
    return f"{format_feed_date(start)}-{format_feed_date(end)}"


class ESPNClient:
    """Client for the ESPN scoreboard endpoint."""

    def __init__(
        self,
        base_url: str = ESPN_SCOREBOARD_URL,
        min_interval: float = REQUEST_DELAY_SECONDS,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = RETRY_BASE_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.rate_limiter = RateLimiter(min_interval)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
        self._retrying = Retrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=backoff_base, max=RETRY_MAX_SECONDS),
            retry=retry_if_exception(is_transient_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        self._requests_made = 0

    @property
    def requests_made(self) -> int:
        """Number of HTTP requests sent, retries included."""
        return self._requests_made

    def _make_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Make a single rate-limited request to the feed."""
        self.rate_limiter.wait()
        logger.debug(f"Making request to {self.base_url} with {params}")
        self._requests_made += 1
        response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise FeedError(f"Scoreboard response is not JSON: {e}") from e

    def get_scoreboard(self, dates: Optional[str] = None) -> Dict[str, Any]:
        """Fetch the scoreboard document, retrying transient failures.

        Args:
            dates: YYYYMMDD or YYYYMMDD-YYYYMMDD; None asks for the feed's current day.

        Raises:
            requests.RequestException: retries exhausted or a non-transient HTTP error.
            FeedError: the body is not a scoreboard object.
        """
        params = {"dates": dates} if dates else {}
        data = self._retrying(self._make_request, params)
        if not isinstance(data, dict):
            raise FeedError(f"Scoreboard response is {type(data).__name__}, not an object")
        return data

    def get_events(self, day: date) -> List[Dict[str, Any]]:
        """Raw events for one calendar day (empty when the feed has none)."""
        data = self.get_scoreboard(format_feed_date(day))
        events = data.get("events")
        if events is None:
            return []
        if not isinstance(events, list):
            raise FeedError(f"Scoreboard 'events' is {type(events).__name__}, not a list")
        return events

    def close(self):
        self.session.close()
