import argparse
import asyncio
import json
import logging
import sys

import httpx

from .cache import FileCache
from .compare import SharedFilm
from .config import CACHE_DIR, DEFAULT_MAX_CONCURRENT, STRICT_PARSING
from .scraper import AsyncLetterboxdScraper, Film, LetterboxdError, Rating, UserNotFound
from .service import LetterboxdContext, cached_get_films, get_difference, get_intersection
from .utils import validate_username

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_USER_NOT_FOUND = 2


def _rating_str(rating: Rating | None) -> str:
    return str(rating) if rating is not None else "-"


def _rating_json(rating: Rating | None) -> float | None:
    return rating.stars if rating is not None else None


def _film_json(film: Film) -> dict:
    return {
        "id": film.id,
        "name": film.name,
        "url": film.url,
        "poster": film.poster,
        "rating": _rating_json(film.rating),
    }


async def _run_with_context(args: argparse.Namespace, fn, *usernames: str):
    """Open a scraper + cache for the duration of one command."""
    cache = FileCache(args.cache_dir)
    async with AsyncLetterboxdScraper(
        max_concurrent=args.max_concurrent,
        strict=not args.lenient,
    ) as scraper:
        ctx = LetterboxdContext(scraper=scraper, cache=cache, progress=args.progress)
        return await fn(ctx, *usernames)


def cmd_films(args: argparse.Namespace) -> None:
    """List one user's watched films."""
    username = validate_username(args.username)
    films = asyncio.run(_run_with_context(args, cached_get_films, username))
    films = films[:args.limit] if args.limit else films

    if args.format == "json":
        print(json.dumps({"user": username, "films": [_film_json(f) for f in films]}, indent=2, ensure_ascii=False))
        return

    logger.info(f"\n{username} has watched {len(films)} films:")
    for i, film in enumerate(films, 1):
        logger.info(f"{i:4}. {film.name} {_rating_str(film.rating)}")
        logger.info(f"      {film.url}")


def cmd_vs(args: argparse.Namespace) -> None:
    """Films the first user watched that the second user has not."""
    user1 = validate_username(args.user1)
    user2 = validate_username(args.user2)
    diff: list[Film] = asyncio.run(_run_with_context(args, get_difference, user1, user2))
    total = len(diff)
    diff = diff[:args.limit] if args.limit else diff

    if args.format == "json":
        output = {
            "user1": user1,
            "user2": user2,
            "total": total,
            "films": [_film_json(f) for f in diff],
        }
        print(json.dumps(output, indent=2, ensure_ascii=False))
        return

    logger.info(f"\n{total} films watched by {user1} but not by {user2}:")
    for i, film in enumerate(diff, 1):
        logger.info(f"{i:4}. {film.name} {_rating_str(film.rating)}")
        logger.info(f"      {film.url}")


def cmd_and(args: argparse.Namespace) -> None:
    """Films both users watched, with both ratings."""
    user1 = validate_username(args.user1)
    user2 = validate_username(args.user2)
    shared: list[SharedFilm] = asyncio.run(_run_with_context(args, get_intersection, user1, user2))
    total = len(shared)
    shared = shared[:args.limit] if args.limit else shared

    if args.format == "json":
        output = {
            "user1": user1,
            "user2": user2,
            "total": total,
            # "rating" is user1's, "other_rating" is user2's
            "films": [
                {**_film_json(pair.film), "other_rating": _rating_json(pair.other_rating)}
                for pair in shared
            ],
        }
        print(json.dumps(output, indent=2, ensure_ascii=False))
        return

    logger.info(f"\n{total} films watched by both {user1} and {user2}:")
    for i, (film, other_rating) in enumerate(shared, 1):
        logger.info(f"{i:4}. {film.name}")
        logger.info(f"      {user1}: {_rating_str(film.rating)} | {user2}: {_rating_str(other_rating)}")


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be 0 or greater, got {number}")
    return number


def _add_output_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    parser.add_argument("--limit", type=_non_negative_int, default=0, help="Only show the first N films (0 = all)")


def main():
    parser = argparse.ArgumentParser(description="Compare the films two Letterboxd users have watched")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--cache-dir", default=CACHE_DIR, help=f"Directory for cached film lists (default: {CACHE_DIR})")
    parser.add_argument("--max-concurrent", type=int, default=DEFAULT_MAX_CONCURRENT,
                        help="Max concurrent page requests per user")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar while scraping")
    parser.add_argument("--lenient", action="store_true", default=not STRICT_PARSING,
                        help="Skip malformed films instead of failing the whole user")
    subparsers = parser.add_subparsers(dest="command", required=True)

    films_parser = subparsers.add_parser("films", help="List a user's watched films")
    films_parser.add_argument("username", help="Letterboxd username")
    _add_output_args(films_parser)
    films_parser.set_defaults(func=cmd_films)

    vs_parser = subparsers.add_parser("vs", help="Films USER1 watched that USER2 has not")
    vs_parser.add_argument("user1", help="Letterboxd username")
    vs_parser.add_argument("user2", help="Letterboxd username to compare against")
    _add_output_args(vs_parser)
    vs_parser.set_defaults(func=cmd_vs)

    and_parser = subparsers.add_parser("and", help="Films both users watched")
    and_parser.add_argument("user1", help="Letterboxd username")
    and_parser.add_argument("user2", help="Letterboxd username")
    _add_output_args(and_parser)
    and_parser.set_defaults(func=cmd_and)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        args.func(args)
    except UserNotFound as exc:
        logger.error(f"Letterboxd user '{exc.username}' was not found")
        sys.exit(EXIT_USER_NOT_FOUND)
    except (LetterboxdError, httpx.HTTPError, OSError, ValueError) as exc:
        logger.error(f"{type(exc).__name__}: {exc}")
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
