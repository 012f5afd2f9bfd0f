import httpx
import logging
import asyncio
from dataclasses import dataclass
from selectolax.parser import HTMLParser, Node
from tqdm import tqdm
from .config import (
    LETTERBOXD_BASE,
    USER_AGENT,
    HTTP_TIMEOUT,
    DEFAULT_MAX_CONCURRENT,
    STRICT_PARSING,
)

logger = logging.getLogger(__name__)


class LetterboxdError(Exception):
    """Base class for every error raised while retrieving a user's films."""


class UserNotFound(LetterboxdError):
    def __init__(self, username: str):
        super().__init__(f"user not found: {username}")
        self.username = username


class HtmlParseError(LetterboxdError):
    """The page markup does not have the shape the parser expects."""


class PaginationElementNotFound(HtmlParseError):
    def __init__(self):
        super().__init__("error while getting the number of pages")


class MissingExpectedField(HtmlParseError):
    def __init__(self, field: str):
        super().__init__(f"missing attr {field}")
        self.field = field


class UnrecognizedRatingGlyph(HtmlParseError):
    def __init__(self, text: str):
        super().__init__(f"unknown rating: '{text}'")
        self.text = text


class InvalidNumber(HtmlParseError):
    def __init__(self, field: str, text: str):
        super().__init__(f"expected a number for {field}, got '{text}'")
        self.field = field
        self.text = text


# Half-star glyphs, index + 1 is the rating value
_RATING_GLYPHS = (
    "½", "★", "★½", "★★", "★★½",
    "★★★", "★★★½", "★★★★", "★★★★½", "★★★★★",
)
_GLYPH_TO_VALUE = {glyph: i for i, glyph in enumerate(_RATING_GLYPHS, start=1)}
NO_RATING = "no rating"


@dataclass(frozen=True, order=True)
class Rating:
    """
    A half-star rating: 1 is ½ star, 10 is five stars.

    Films without a rating carry ``None`` instead of a Rating.
    """
    value: int

    @classmethod
    def from_display_string(cls, text: str) -> "Rating":
        """Parse the star glyphs Letterboxd renders inside ``span.rating``."""
        value = _GLYPH_TO_VALUE.get(text.strip())
        if value is None:
            raise UnrecognizedRatingGlyph(text)
        return cls(value)

    def to_display_string(self) -> str:
        if 1 <= self.value <= len(_RATING_GLYPHS):
            return _RATING_GLYPHS[self.value - 1]
        logger.debug(f"got no rating: {self.value}")
        return NO_RATING

    @property
    def stars(self) -> float:
        return self.value / 2

    def __str__(self) -> str:
        return self.to_display_string()


@dataclass(frozen=True, eq=False)
class Film:
    """
    One watched film of a user.

    Identity is the Letterboxd film id only: two Film objects with the same id
    compare equal and hash alike even if name, url, poster or rating differ.
    """
    id: int
    name: str
    url: str
    poster: str
    rating: Rating | None = None

    def __eq__(self, other):
        if not isinstance(other, Film):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "poster": self.poster,
            "rating": self.rating.value if self.rating is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Film":
        """Inverse of to_dict. Raises ValueError/KeyError on anything to_dict cannot produce."""
        film_id = data["id"]
        if type(film_id) is not int:
            raise ValueError(f"film id must be an integer, got {film_id!r}")
        for key in ("name", "url", "poster"):
            if not isinstance(data[key], str):
                raise ValueError(f"film {key} must be a string, got {data[key]!r}")
        rating = data.get("rating")
        if rating is not None and (type(rating) is not int or not 1 <= rating <= 10):
            raise ValueError(f"rating must be an integer in 1..10 or null, got {rating!r}")
        return cls(
            id=film_id,
            name=data["name"],
            url=data["url"],
            poster=data["poster"],
            rating=Rating(rating) if rating is not None else None,
        )


def _require_attr(node: Node | None, attr: str) -> str:
    if node is None:
        raise MissingExpectedField(attr)
    value = node.attributes.get(attr)
    if value is None:
        raise MissingExpectedField(attr)
    return value


def _parse_number(text: str, field: str) -> int:
    cleaned = text.strip().replace(",", "")
    if not (cleaned.isascii() and cleaned.isdigit()):
        raise InvalidNumber(field, text)
    return int(cleaned)


def parse_film_item(item: Node) -> Film:
    """
    Build a Film from one ``li.griditem`` of a user's films page.

    Shared by every page fetch; performs no I/O so it can be tested against
    fixed markup.
    """
    data = item.css_first("div.react-component")
    poster = item.css_first("img")

    film_id = _parse_number(_require_attr(data, "data-film-id"), "data-film-id")
    name = _require_attr(poster, "alt")
    slug = _require_attr(data, "data-item-slug")
    poster_url = _require_attr(poster, "src")

    # No rating span means the film was logged without a rating
    rating = None
    rating_span = item.css_first("span.rating")
    if rating_span is not None:
        rating = Rating.from_display_string(rating_span.text(strip=True))

    return Film(
        id=film_id,
        name=name,
        url=f"{LETTERBOXD_BASE}/film/{slug}",
        poster=poster_url,
        rating=rating,
    )


def parse_films_page(tree: HTMLParser, strict: bool = True) -> list[Film]:
    """
    Parse every film on a films page.

    With strict=False a malformed item is logged and skipped instead of
    failing the whole page.
    """
    films = []
    for item in tree.css("li.griditem"):
        try:
            films.append(parse_film_item(item))
        except HtmlParseError as exc:
            if strict:
                raise
            logger.warning(f"Skipping malformed film item: {exc}")
    return films


def get_page_count(tree: HTMLParser) -> int:
    """
    Number of film pages advertised by the pagination control of page 1.

    Profiles that fit on one page render no pagination control at all.
    """
    pagination = tree.css_first("div.pagination")
    if pagination is None:
        return 1

    links = pagination.css("li.paginate-page > a")
    if not links:
        raise PaginationElementNotFound()
    return _parse_number(links[-1].text(strip=True), "pagination")


def _dedupe_films(pages: list[list[Film]], username: str) -> list[Film]:
    """Concatenate pages in order; the first occurrence of a film id wins."""
    films: dict[int, Film] = {}
    for page_films in pages:
        for film in page_films:
            if film.id in films:
                logger.warning(f"Duplicate film {film.id} ({film.name}) in {username}'s list, keeping first")
                continue
            films[film.id] = film
    return list(films.values())


class AsyncLetterboxdScraper:
    """Async scraper for a user's watched films with bounded page fan-out."""

    BASE = LETTERBOXD_BASE

    def __init__(
        self,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        strict: bool = STRICT_PARSING,
        client: httpx.AsyncClient | None = None,
    ):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self.strict = strict
        self.client = client
        self._owns_client = client is None

    async def __aenter__(self):
        """Async context manager entry."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
                timeout=HTTP_TIMEOUT,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.client and self._owns_client:
            await self.client.aclose()
            self.client = None
        return False

    def _page_url(self, username: str, page: int) -> str:
        return f"{self.BASE}/{username}/films/page/{page}/"

    async def _get(self, url: str) -> str | None:
        """
        Fetch one page body.

        Returns None when Letterboxd answers 404; any other error status or
        transport failure raises the httpx exception unchanged.
        """
        if not self.client:
            raise RuntimeError("AsyncLetterboxdScraper must be used as an async context manager")

        logger.debug(f"Fetching {url}")
        resp = await self.client.get(url)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.text

    async def get_films_from_page(self, username: str, page: int) -> list[Film]:
        """Fetch and parse a single films page."""
        body = await self._get(self._page_url(username, page))
        if body is None:
            # The profile disappeared after page 1 was served
            raise UserNotFound(username)
        films = parse_films_page(HTMLParser(body), strict=self.strict)
        logger.debug(f"  {username} page {page}: {len(films)} films")
        return films

    async def get_films_of_user(self, username: str, progress: bool = False) -> list[Film]:
        """
        Scrape every watched film of a user.

        Page 1 is fetched first to learn the page count; the remaining pages are
        fetched concurrently, at most ``max_concurrent`` at a time. Any failure
        aborts the whole user and cancels the pages still in flight.

        Raises:
            UserNotFound: page 1 answered 404 (nothing else is fetched)
            HtmlParseError: page markup did not match the expected shape
            httpx.HTTPError: transport failure or non-404 error status
        """
        logger.info(f"Scraping {username}'s films...")
        first_body = await self._get(self._page_url(username, 1))
        if first_body is None:
            raise UserNotFound(username)

        first_tree = HTMLParser(first_body)
        n_pages = get_page_count(first_tree)
        logger.info(f"  {username}: {n_pages} page(s)")

        semaphore = asyncio.Semaphore(self.max_concurrent)

        with tqdm(total=n_pages, desc=username, unit="page", disable=not progress) as bar:
            first_films = parse_films_page(first_tree, strict=self.strict)
            bar.update(1)

            async def _fetch(page: int) -> list[Film]:
                async with semaphore:
                    films = await self.get_films_from_page(username, page)
                bar.update(1)
                return films

            tasks = [asyncio.create_task(_fetch(page)) for page in range(2, n_pages + 1)]
            try:
                other_pages = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                raise

        films = _dedupe_films([first_films, *other_pages], username)
        n_rated = sum(1 for f in films if f.rating is not None)
        logger.info(f"Total: {len(films)} films ({n_rated} rated) for {username}")
        return films
