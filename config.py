"""
Global configuration for the Trending Statuses engine.

Scoring parameters live in the trends options YAML (see trends/options.py).
This module only holds environment-driven settings and defaults.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

# ── Paths ──
PROJECT_ROOT = Path(__file__).parent
DATA_DIR = Path(os.getenv("TRENDS_DATA_DIR", PROJECT_ROOT / "data"))
DB_PATH = Path(os.getenv("TRENDS_DB_PATH", DATA_DIR / "trends.db"))
TRENDS_OPTIONS_PATH = Path(os.getenv("TRENDS_OPTIONS_PATH", PROJECT_ROOT / "trends.yaml"))

# Ensure data directory exists
DATA_DIR.mkdir(parents=True, exist_ok=True)

# ── Usage Tracking ──
# Unset = in-process tracker (only suitable for a single worker process)
REDIS_URL = os.getenv("REDIS_URL")

# ── Refresh Job ──
REFRESH_WORKERS = int(os.getenv("REFRESH_WORKERS", "4"))
REFRESH_PARALLEL_MIN_CANDIDATES = int(os.getenv("REFRESH_PARALLEL_MIN_CANDIDATES", "500"))
REFRESH_INTERVAL_MINUTES = int(os.getenv("REFRESH_INTERVAL_MINUTES", "5"))
REVIEW_INTERVAL_MINUTES = int(os.getenv("REVIEW_INTERVAL_MINUTES", "60"))

# ── API ──
API_DEFAULT_LIMIT = int(os.getenv("API_DEFAULT_LIMIT", "20"))
API_MAX_LIMIT = int(os.getenv("API_MAX_LIMIT", "40"))

# ── Logging ──
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
