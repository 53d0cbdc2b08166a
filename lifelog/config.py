from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
REPO_ROOT = BASE_DIR.parent


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


# Remote document host used by the file-fetch proxy. "{file_id}" is replaced
# with the URL-quoted identifier.
REMOTE_FILE_URL = os.environ.get(
    "LIFELOG_REMOTE_FILE_URL",
    "https://drive.google.com/uc?export=download&id={file_id}",
)
FETCH_TIMEOUT_SEC = float(os.environ.get("LIFELOG_FETCH_TIMEOUT_SEC", "30"))
FETCH_MAX_BYTES = int(os.environ.get("LIFELOG_FETCH_MAX_BYTES", str(50 * 1024 * 1024)))
FETCH_USER_AGENT = os.environ.get("LIFELOG_FETCH_USER_AGENT", "lifelog/1.0")

# Source exports are pipe-delimited with a header row
CSV_DELIMITER = os.environ.get("LIFELOG_CSV_DELIMITER", "|")

DEFAULT_TOP_N = int(os.environ.get("LIFELOG_DEFAULT_TOP_N", "10"))
PODCAST_TOP_N = int(os.environ.get("LIFELOG_PODCAST_TOP_N", "5"))

# Proportion breakdowns roll the tail into one "Other" slice beyond this
PROPORTION_MAX_CATEGORIES = int(os.environ.get("LIFELOG_PROPORTION_MAX_CATEGORIES", "8"))

CACHE_TTL_SEC = int(os.environ.get("LIFELOG_CACHE_TTL_SEC", "300"))
CACHE_MAX_SIZE = int(os.environ.get("LIFELOG_CACHE_MAX_SIZE", "256"))

CORS_ORIGINS = _parse_list(
    os.environ.get("LIFELOG_CORS_ORIGINS"), ["http://localhost:5173"]
)

# Drop timestamps in or before 1970 when slicing by date (epoch-zero exports)
STRICT_DATES = _parse_bool(os.environ.get("LIFELOG_STRICT_DATES"), default=True)
