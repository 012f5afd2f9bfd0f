"""
Set comparisons between two users' watched films.

Both views are pure functions of two already scraped lists. Films match by
Letterboxd id only, and every ordering puts unrated films after rated ones.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from .scraper import Film, Rating

logger = logging.getLogger(__name__)


class SharedFilm(NamedTuple):
    """A film both users watched: user 1's record plus user 2's rating."""

    film: Film
    other_rating: Rating | None


def _rating_key(rating: Rating | None) -> tuple[bool, int]:
    # (False, 0) sorts below every rated value, so None lands last when reversed
    if rating is None:
        return (False, 0)
    return (True, rating.value)


def difference(films1: list[Film], films2: list[Film]) -> list[Film]:
    """
    Films in films1 whose id is absent from films2.

    Sorted by rating descending, unrated films last; ties keep films1 order.
    """
    watched_by_2 = {film.id for film in films2}
    diff = [film for film in films1 if film.id not in watched_by_2]
    diff.sort(key=lambda film: _rating_key(film.rating), reverse=True)
    logger.debug(f"difference: {len(diff)} of {len(films1)} films not in the other list")
    return diff


def intersection(films1: list[Film], films2: list[Film]) -> list[SharedFilm]:
    """
    Films present in both lists, paired with the rating from films2.

    Sorted by the films1 rating descending, then by the films2 rating
    descending; unrated sorts last on both keys and ties keep films1 order.
    """
    by_id_2 = {film.id: film for film in films2}
    shared = [
        SharedFilm(film, by_id_2[film.id].rating)
        for film in films1
        if film.id in by_id_2
    ]
    shared.sort(
        key=lambda pair: (*_rating_key(pair.film.rating), *_rating_key(pair.other_rating)),
        reverse=True,
    )
    logger.debug(f"intersection: {len(shared)} shared films")
    return shared
