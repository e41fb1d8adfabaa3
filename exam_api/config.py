"""Application configuration and constants."""
import logging
import os
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Directories
DATA_DIR = Path(os.environ.get("EXAM_DATA_DIR", Path.cwd() / "data" / "exams"))
DATA_DIR.mkdir(parents=True, exist_ok=True)

# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DB_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get(
    "DATABASE_URL", f"sqlite:///{DB_DIR / 'exam_attempts.db'}"
)

# Authentication (tokens are issued elsewhere, we only verify them)
SECRET_KEY = os.environ.get(
    "SECRET_KEY",
    "CHANGE_ME_IN_PRODUCTION_USE_openssl_rand_hex_32"
)
ALGORITHM = "HS256"

# Rankings
RANKING_REFRESH_INTERVAL_SECONDS = _parse_int_env(
    "RANKING_REFRESH_INTERVAL_SECONDS", 15 * 60
)
RANKING_INITIAL_DELAY_SECONDS = _parse_int_env("RANKING_INITIAL_DELAY_SECONDS", 60)
LEADERBOARD_DEFAULT_LIMIT = _parse_int_env("LEADERBOARD_DEFAULT_LIMIT", 50)

# Logging
LOG_LEVEL = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
if not isinstance(LOG_LEVEL, int):
    LOG_LEVEL = logging.INFO

# Exams
SUPPORTED_LANGUAGES = ("en", "hi")
