from __future__ import annotations

import logging
import os


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}.") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number, got {raw!r}.") from exc


# Rendering budgets per chart kind
BAR_LINE_MAX_POINTS = _env_int("VIZ_BAR_LINE_MAX_POINTS", 500)
PIE_MAX_POINTS = _env_int("VIZ_PIE_MAX_POINTS", 20)
SCATTER_MAX_POINTS = _env_int("VIZ_SCATTER_MAX_POINTS", 10_000)
MAX_VISUAL_POINTS = 50_000

# Progressive disclosure: share of the budget shown at zoom 0.0
MIN_ZOOM_RATIO = _env_float("VIZ_MIN_ZOOM_RATIO", 0.2)
MIN_POINT_BUDGET = 2

# Table paging
MAX_PAGE_SIZE = 1000
DEFAULT_PAGE_SIZE = _env_int("VIZ_DEFAULT_PAGE_SIZE", 100)
LARGE_DATASET_ROWS = _env_int("VIZ_LARGE_DATASET_ROWS", 100_000)

# Categorical reduction safety ceiling
MAX_GROUP_CARDINALITY = _env_int("VIZ_MAX_GROUP_CARDINALITY", 1_000_000)

# Dataset loading
MAX_UPLOAD_BYTES = _env_int("VIZ_MAX_UPLOAD_BYTES", 200 * 1024 * 1024)
SUPPORTED_EXTENSIONS = {".csv", ".xlsx", ".json"}
CSV_ENCODINGS = ("utf-8-sig", "utf-8", "cp1252", "latin-1")
DATETIME_PARSE_THRESHOLD = 0.8

# Result cache
CACHE_VERSION = "v1"
CACHE_MAX_ENTRIES = _env_int("VIZ_CACHE_MAX_ENTRIES", 256)
CACHE_TTL_SECONDS = _env_int("VIZ_CACHE_TTL_SECONDS", 3600)
REDIS_URL = os.getenv("REDIS_URL", "").strip()

# Background execution
QUERY_WORKERS = _env_int("VIZ_QUERY_WORKERS", 4)

LOG_LEVEL = os.getenv("VIZ_LOG_LEVEL", "INFO").strip().upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
    )


def validate_config() -> None:
    """Validate configuration values at startup."""
    positive = {
        "VIZ_BAR_LINE_MAX_POINTS": BAR_LINE_MAX_POINTS,
        "VIZ_PIE_MAX_POINTS": PIE_MAX_POINTS,
        "VIZ_SCATTER_MAX_POINTS": SCATTER_MAX_POINTS,
        "VIZ_DEFAULT_PAGE_SIZE": DEFAULT_PAGE_SIZE,
        "VIZ_MAX_GROUP_CARDINALITY": MAX_GROUP_CARDINALITY,
        "VIZ_CACHE_MAX_ENTRIES": CACHE_MAX_ENTRIES,
        "VIZ_QUERY_WORKERS": QUERY_WORKERS,
    }
    for name, value in positive.items():
        if value <= 0:
            raise ValueError(f"{name} must be positive, got {value}.")
    for name, value in (
        ("VIZ_BAR_LINE_MAX_POINTS", BAR_LINE_MAX_POINTS),
        ("VIZ_PIE_MAX_POINTS", PIE_MAX_POINTS),
        ("VIZ_SCATTER_MAX_POINTS", SCATTER_MAX_POINTS),
    ):
        if value < MIN_POINT_BUDGET or value > MAX_VISUAL_POINTS:
            raise ValueError(f"{name} must be between {MIN_POINT_BUDGET} and {MAX_VISUAL_POINTS}, got {value}.")
    if not 0.0 < MIN_ZOOM_RATIO <= 1.0:
        raise ValueError(f"VIZ_MIN_ZOOM_RATIO must be in (0, 1], got {MIN_ZOOM_RATIO}.")
    if DEFAULT_PAGE_SIZE > MAX_PAGE_SIZE:
        raise ValueError(f"VIZ_DEFAULT_PAGE_SIZE cannot exceed {MAX_PAGE_SIZE}.")
