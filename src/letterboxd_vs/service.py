"""
Cached retrieval of users' films and the two-user comparisons built on it.

All I/O goes through an explicitly passed LetterboxdContext so callers (the
CLI, tests) decide which scraper and cache are used.
"""
import json
import asyncio
import logging
from dataclasses import dataclass

from .cache import FileCache
from .compare import SharedFilm, difference, intersection
from .scraper import AsyncLetterboxdScraper, Film, LetterboxdError

logger = logging.getLogger(__name__)


class CacheCorruptError(LetterboxdError):
    def __init__(self, key: str, reason: str):
        super().__init__(f"corrupt cache entry for {key}: {reason}")
        self.key = key


@dataclass
class LetterboxdContext:
    """Scraper and cache shared by every retrieval of one run."""

    scraper: AsyncLetterboxdScraper
    cache: FileCache
    progress: bool = False


def films_to_json(films: list[Film]) -> str:
    return json.dumps([film.to_dict() for film in films], ensure_ascii=False)


def films_from_json(raw: str) -> list[Film]:
    """Inverse of films_to_json. Raises ValueError/KeyError on bad input."""
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON list, got {type(data).__name__}")
    films = []
    for item in data:
        if not isinstance(item, dict):
            raise ValueError(f"expected a JSON object per film, got {type(item).__name__}")
        films.append(Film.from_dict(item))
    return films


async def cached_get_films(ctx: LetterboxdContext, username: str) -> list[Film]:
    """
    Return a user's films from the cache, scraping and caching them on a miss.

    A cache entry that cannot be decoded raises CacheCorruptError rather than
    being refetched. Failing to write the cache is logged and does not fail
    the call.
    """
    cached = ctx.cache.get(username)
    if cached is not None:
        logger.info(f"cache hit for {username}")
        try:
            return films_from_json(cached)
        except (ValueError, KeyError, TypeError) as exc:
            raise CacheCorruptError(username, str(exc)) from exc

    logger.info(f"cache miss for {username}")
    films = await ctx.scraper.get_films_of_user(username, progress=ctx.progress)

    try:
        ctx.cache.insert(username, films_to_json(films))
    except OSError as exc:
        logger.error(f"Failed to cache films for {username}: {exc}")

    return films


async def _get_both(ctx: LetterboxdContext, user1: str, user2: str) -> tuple[list[Film], list[Film]]:
    tasks = [
        asyncio.create_task(cached_get_films(ctx, user1)),
        asyncio.create_task(cached_get_films(ctx, user2)),
    ]
    try:
        films1, films2 = await asyncio.gather(*tasks)
    except BaseException:
        # The first failure wins; the other retrieval is abandoned
        for task in tasks:
            task.cancel()
        raise
    return films1, films2


async def get_difference(ctx: LetterboxdContext, user1: str, user2: str) -> list[Film]:
    """Films user1 watched and user2 did not, best rated first."""
    logger.info(f"get_difference({user1}, {user2})")
    films1, films2 = await _get_both(ctx, user1, user2)
    return difference(films1, films2)


async def get_intersection(ctx: LetterboxdContext, user1: str, user2: str) -> list[SharedFilm]:
    """Films both users watched, with user2's rating alongside user1's film."""
    logger.info(f"get_intersection({user1}, {user2})")
    films1, films2 = await _get_both(ctx, user1, user2)
    return intersection(films1, films2)
