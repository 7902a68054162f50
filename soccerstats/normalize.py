"""League name canonicalization and lenient numeric parsing of feed values."""
import logging
import math
import re
from typing import Mapping, Optional

from .config import LEAGUE_SYNONYMS

logger = logging.getLogger(__name__)

SEASON_PREFIX = re.compile(r"^\d{4}-\d{2}-")
UNKNOWN_LEAGUE = "Unknown League"

_unmapped_seen = set()


def normalize_league_name(raw: Optional[str], synonyms: Mapping[str, str] = LEAGUE_SYNONYMS) -> str:
    """Resolve a season slug or free-text league name to its canonical name.

    "2025-26-english-premier-league" -> "Premier League"
    "2025-26-mystery-cup"            -> "Mystery Cup"
    """
    if not raw or not raw.strip():
        return UNKNOWN_LEAGUE

    without_year = SEASON_PREFIX.sub("", raw.strip())
    words = [w for w in re.split(r"[-\s]+", without_year) if w]
    long_form = " ".join(w[:1].upper() + w[1:] for w in words)

    canonical = synonyms.get(long_form)
    if canonical is not None:
        return canonical

    if long_form not in _unmapped_seen:
        _unmapped_seen.add(long_form)
        logger.debug(f"No synonym for league '{long_form}' (from '{raw}'), using as-is")
    return long_form


def to_float(value) -> Optional[float]:
    """Coerce a feed value to float, or None when it cannot be read."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip().rstrip("%"))
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def to_int(value) -> Optional[int]:
    """Coerce a feed value to int, or None when it cannot be read."""
    number = to_float(value)
    if number is None:
        return None
    return int(round(number))


def american_to_decimal(american_odds) -> Optional[float]:
    """Convert American moneyline odds to decimal odds.

    +150 -> 2.5, -200 -> 1.5. Anything unparseable (or zero) gives None.
    """
    odds = to_float(american_odds)
    if odds is None or odds == 0:
        return None
    if odds > 0:
        return 1 + odds / 100
    return 1 + 100 / abs(odds)
