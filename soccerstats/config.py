"""Configuration and settings for the soccer stats ingester."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"
DB_PATH = Path(os.getenv("SOCCERSTATS_DB_PATH", str(DATA_DIR / "soccer.db")))
SYNC_LOCK_PATH = Path(os.getenv("SOCCERSTATS_LOCK_PATH", str(DATA_DIR / "sync.lock")))

# Ensure data directory exists
DATA_DIR.mkdir(exist_ok=True)

# Feed configuration
ESPN_SCOREBOARD_URL = os.getenv(
    "ESPN_SCOREBOARD_URL",
    "https://site.api.espn.com/apis/site/v2/sports/soccer/all/scoreboard",
)
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

# Rate limiting and retries
REQUEST_DELAY_SECONDS = float(os.getenv("REQUEST_DELAY_SECONDS", "0.2"))
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_BASE_SECONDS = 1.0
RETRY_MAX_SECONDS = 30.0

# Scheduling windows (days)
BACKFILL_DEFAULT_DAYS = 90  # lookback when storage is empty
BACKFILL_MAX_DAYS = 90      # cap on days walked in one backfill run
UPCOMING_DAYS = 8           # today plus the next seven days

# Long-form league names (after slug title-casing) -> canonical name.
# Names missing from this table are used as-is.
LEAGUE_SYNONYMS = {
    "English Premier League": "Premier League",
    "Spanish La Liga": "La Liga",
    "Laliga": "La Liga",
    "Italian Serie A": "Serie A",
    "German Bundesliga": "Bundesliga",
    "French Ligue 1": "Ligue 1",
    "French Ligue 2": "Ligue 2",
    "Argentine Liga Professional": "Liga Professional",
    "Liga Professional": "Liga Professional",
    "Liga Profesional": "Liga Professional",
    "Liga Profesional De Futbol": "Liga Professional",
    "Liga Profesional Argentina": "Liga Professional",
    "Torneo Clausura": "Liga Professional",
    "Major League Soccer": "MLS",
}

# Team-level stat names from competitor.statistics -> match_statistics column
TEAM_STAT_FIELDS = {
    "possessionPct": "possession",
    "totalShots": "shots",
    "shotsOnTarget": "shots_on_target",
    "wonCorners": "corners",
    "foulsCommitted": "fouls",
}

# Classification of athlete-ranked stat lists into player_match_stats columns.
# Matched against the lower-cased stat name / abbreviation, in order; the
# first rule that matches wins. A rule matches when the name contains every
# token of one of its `name_all` groups and none of `name_none`, or the
# abbreviation contains one of `abbr_contains`, or equals one of `abbr_exact`.
ATHLETE_STAT_PATTERNS = [
    {
        "field": "shots_on_target",
        "name_all": [("shot", "target")],
        "abbr_contains": ("sot",),
    },
    {
        "field": "assists",
        "name_all": [("assist",)],
        "abbr_contains": ("ast",),
        "abbr_exact": ("a",),
    },
    {
        "field": "passes",
        "name_all": [("pass",)],
        "name_none": ("complete",),
        "abbr_contains": ("pass",),
    },
    {
        "field": "passes_completed",
        "name_all": [("pass", "complete"), ("completed pass",)],
        "abbr_contains": ("comp",),
    },
    {
        "field": "tackles",
        "name_all": [("tackle",)],
        "abbr_contains": ("tkl",),
        "abbr_exact": ("tk",),
    },
    {
        "field": "interceptions",
        "name_all": [("intercept",)],
        "abbr_contains": ("int",),
        "abbr_exact": ("i",),
    },
    {
        "field": "saves",
        "name_all": [("save",)],
        "abbr_contains": ("sv",),
        "abbr_exact": ("s",),
    },
]
