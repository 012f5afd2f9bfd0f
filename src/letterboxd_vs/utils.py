"""Utility functions for letterboxd_vs."""

import re
import logging

logger = logging.getLogger(__name__)

_USERNAME_DISALLOWED = re.compile(r'[^a-z0-9_-]')


def validate_username(username: str) -> str:
    """
    Sanitize a Letterboxd username.

    Returns lowercased alphanumeric + underscores/hyphens only, which also makes
    it safe to use as a URL path segment and a cache file name.
    Raises ValueError if nothing usable is left.
    """
    sanitized = _USERNAME_DISALLOWED.sub('', username.strip().lower())
    if not sanitized:
        raise ValueError(f"Invalid username: {username!r}")
    if sanitized != username.lower():
        logger.warning(f"Username '{username}' sanitized to '{sanitized}'")
    return sanitized
