from letterboxd_vs.compare import SharedFilm, difference, intersection
from letterboxd_vs.scraper import Film, Rating


def _film(film_id, rating=None, name=None):
    name = name or f"Film {film_id}"
    return Film(
        id=film_id,
        name=name,
        url=f"https://letterboxd.com/film/film-{film_id}",
        poster=f"https://img/{film_id}.jpg",
        rating=Rating(rating) if rating is not None else None,
    )


def _ids_and_ratings(films):
    return [(f.id, f.rating.value if f.rating else None) for f in films]


def test_difference_orders_by_rating_with_unrated_last():
    films1 = [_film(1, 6), _film(2), _film(3, 8)]

    diff = difference(films1, [])

    assert _ids_and_ratings(diff) == [(3, 8), (1, 6), (2, None)]


def test_difference_excludes_films_in_second_list():
    films1 = [_film(1, 10), _film(2, 4), _film(3), _film(4, 7)]
    # Same ids, different metadata: still the same films
    films2 = [_film(2, 1, name="Renamed"), _film(3, 9), _film(99, 5)]

    diff = difference(films1, films2)

    ids2 = {f.id for f in films2}
    ids1 = {f.id for f in films1}
    assert all(f.id in ids1 and f.id not in ids2 for f in diff)
    assert [f.id for f in diff] == [1, 4]


def test_difference_keeps_input_order_on_ties():
    films1 = [_film(5, 6), _film(1), _film(3, 6), _film(2)]

    assert [f.id for f in difference(films1, [])] == [5, 3, 1, 2]


def test_intersection_breaks_ties_on_second_rating():
    films1 = [_film(1, 8), _film(2, 8)]
    films2 = [_film(1, 4), _film(2, 10)]

    shared = intersection(films1, films2)

    assert [(s.film.id, s.film.rating.value, s.other_rating.value) for s in shared] == [
        (2, 8, 10),
        (1, 8, 4),
    ]


def test_intersection_unrated_sorts_last_on_both_keys():
    films1 = [_film(1), _film(2, 6), _film(3, 6), _film(4, 6), _film(5, 9)]
    films2 = [_film(1, 10), _film(2), _film(3, 3), _film(4, 7), _film(5)]

    shared = intersection(films1, films2)

    assert [s.film.id for s in shared] == [5, 4, 3, 2, 1]


def test_intersection_pairs_first_users_film_with_second_users_rating():
    films1 = [_film(1, 2, name="Mine")]
    films2 = [_film(1, 9, name="Theirs"), _film(2, 5)]

    (pair,) = intersection(films1, films2)

    assert isinstance(pair, SharedFilm)
    assert pair.film.name == "Mine"
    assert pair.film.rating == Rating(2)
    assert pair.other_rating == Rating(9)


def test_empty_inputs_give_empty_outputs():
    films = [_film(1, 5)]

    assert difference([], films) == []
    assert difference([], []) == []
    assert intersection([], films) == []
    assert intersection(films, []) == []
    assert [f.id for f in difference(films, [])] == [1]


def test_difference_and_intersection_partition_the_first_list():
    films1 = [_film(i, (i % 10) + 1 if i % 3 else None) for i in range(1, 30)]
    films2 = [_film(i, 5) for i in range(1, 30, 2)]

    diff_ids = {f.id for f in difference(films1, films2)}
    shared_ids = {s.film.id for s in intersection(films1, films2)}

    assert diff_ids.isdisjoint(shared_ids)
    assert diff_ids | shared_ids == {f.id for f in films1}
