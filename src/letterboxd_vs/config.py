"""
Configuration constants for letterboxd-vs.

This module centralizes the tunable parameters of the scraper and the cache.
Values can be overridden via environment variables.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """
    Safely parse float from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated float value
    """
    try:
        val = float(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Safely parse integer from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated integer value
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_bool_env(key: str, default: bool) -> bool:
    """Parse a yes/no style environment variable, falling back to the default."""
    raw = os.environ.get(key)
    if raw is None:
        return default

    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    logger.warning(f"Invalid {key}='{raw}', using default {default}")
    return default


# Source site
LETTERBOXD_BASE = os.environ.get("LETTERBOXD_BASE_URL", "https://letterboxd.com").rstrip("/")
USER_AGENT = "Mozilla/5.0 (compatible; letterboxd-vs/0.1)"

# Cache Configuration
CACHE_DIR = Path(os.environ.get("LETTERBOXD_CACHE_DIR", "cache"))

# Scraper Configuration
DEFAULT_MAX_CONCURRENT = _get_int_env("LETTERBOXD_MAX_CONCURRENT", 5, min_val=1)
HTTP_TIMEOUT = _get_float_env("LETTERBOXD_HTTP_TIMEOUT", 30.0, min_val=1.0)  # seconds

# Abort a whole user fetch on a malformed grid item (False: skip and log it)
STRICT_PARSING = _get_bool_env("LETTERBOXD_STRICT_PARSING", True)
