import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


def _film_item_html(film_id, slug, name, rating=None, poster=None):
    poster = poster or f"https://a.ltrbxd.com/resized/{slug}-0-70-0-105.jpg"
    rating_html = ""
    if rating is not None:
        rating_html = f'<p class="poster-viewingdata"><span class="rating"> {rating} </span></p>'
    return f"""
    <li class="griditem">
      <div class="react-component" data-film-id="{film_id}" data-item-slug="{slug}">
        <div class="poster film-poster"><img alt="{name}" src="{poster}" /></div>
      </div>
      {rating_html}
    </li>
    """


def _films_page_html(items, pages=None):
    pagination = ""
    if pages:
        links = "".join(
            f'<li class="paginate-page"><a href="/alice/films/page/{n}/">{n}</a></li>'
            for n in range(2, pages + 1)
        )
        pagination = (
            '<div class="pagination"><div class="paginate-pages"><ul>'
            '<li class="paginate-page paginate-current"><span>1</span></li>'
            f"{links}</ul></div></div>"
        )
    return f"<html><body><ul class='poster-list'>{''.join(items)}</ul>{pagination}</body></html>"


@pytest.fixture
def film_item():
    """Builder for one li.griditem as rendered on a films page."""
    return _film_item_html


@pytest.fixture
def films_page():
    """Builder for a films page; pages=N adds a pagination control up to page N."""
    return _films_page_html


@pytest.fixture
def fresh_config(monkeypatch, tmp_path):
    """
    Reload config with a temporary cache directory to keep tests isolated.
    """
    monkeypatch.setenv("LETTERBOXD_CACHE_DIR", str(tmp_path / "cache"))
    import letterboxd_vs.config as config

    importlib.reload(config)
    return config
