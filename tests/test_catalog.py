# MoziWatch test scripts
from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qs, urlsplit

import pytest
import responses

from mw_platform.catalog import (
    CatalogAdapter,
    CatalogUnavailable,
    CinemaDatasetCache,
    CinemaFilters,
    DiscoverFilters,
    best_trailer,
    filter_cinema,
)
from mw_platform.models import CinemaEntity, Screening
from providers.metadata._meta_TMDB import TmdbProvider

TMDB = "https://api.themoviedb.org/3"


def _query(call: Any) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(call.request.url).query).items()}


def _adapter(load_cfg: Callable[[], dict[str, Any]]) -> CatalogAdapter:
    return CatalogAdapter(TmdbProvider(load_cfg), load_cfg)


def _cinema(id_: int, title: str, rows: list[tuple[str, str, str]], **kw: Any) -> CinemaEntity:
    ent = CinemaEntity(id=id_, title=title, **kw)
    ent.set_screenings(Screening("c", "C", city, d, t) for city, d, t in rows)
    return ent


# --- discover / search ---------------------------------------------------------

@responses.activate
def test_discover_movie_maps_filters_to_query(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(
        responses.GET,
        f"{TMDB}/discover/movie",
        json={"page": 2, "total_pages": 9, "total_results": 170, "results": [{"id": 1, "title": "A"}]},
    )
    filters = DiscoverFilters(genres=[28, 12], certification="16", providers=[8, 119], min_rating=7, year_from=2000, year_to=2010)
    page = _adapter(load_cfg).discover("movie", filters, page=2)

    q = _query(responses.calls[0])
    assert q["api_key"] == "test-key"
    assert q["language"] == "hu-HU"
    assert q["with_genres"] == "28,12"
    assert q["with_watch_providers"] == "8|119"
    assert q["certification"] == "16" and q["certification_country"] == "HU"
    assert q["vote_average.gte"] == "7" and q["vote_count.gte"] == "50"
    assert q["primary_release_date.gte"] == "2000-01-01"
    assert q["primary_release_date.lte"] == "2010-12-31"
    assert q["sort_by"] == "popularity.desc"
    assert q["watch_region"] == "HU" and q["with_watch_monetization_types"] == "flatrate"
    assert (page.page, page.total_pages, page.total_results) == (2, 9, 170)
    assert page.results[0].media_type == "movie"


@responses.activate
def test_discover_tv_uses_air_dates_and_skips_certification(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(responses.GET, f"{TMDB}/discover/tv", json={"results": [{"id": 3, "name": "Dark", "first_air_date": "2017-12-01"}]})
    page = _adapter(load_cfg).discover("tv", DiscoverFilters(certification="16", year_from=2015))

    q = _query(responses.calls[0])
    assert "certification" not in q
    assert q["first_air_date.gte"] == "2015-01-01"
    assert page.results[0].title == "Dark"
    assert page.results[0].release_date == "2017-12-01"


@responses.activate
def test_search_excludes_adult_and_skips_blank_queries(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(responses.GET, f"{TMDB}/search/movie", json={"results": [{"id": 550, "title": "Harcosok klubja"}]})
    adapter = _adapter(load_cfg)
    assert adapter.search("movie", "   ").results == []
    assert len(responses.calls) == 0

    page = adapter.search("movie", "harcosok")
    assert _query(responses.calls[0])["include_adult"] == "false"
    assert page.results[0].id == 550


@responses.activate
def test_new_releases_covers_last_three_months(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(responses.GET, f"{TMDB}/discover/movie", json={"results": []})
    _adapter(load_cfg).new_releases(today=date(2025, 6, 30))
    q = _query(responses.calls[0])
    assert q["primary_release_date.gte"] == "2025-04-01"
    assert q["primary_release_date.lte"] == "2025-06-30"
    assert q["sort_by"] == "release_date.desc"


def test_feed_rejects_unknown_combinations(load_cfg: Callable[[], dict[str, Any]]) -> None:
    with pytest.raises(ValueError):
        _adapter(load_cfg).feed("upcoming", "tv")


# --- filter metadata / details -------------------------------------------------

@responses.activate
def test_watch_providers_follow_allow_list_order(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(
        responses.GET,
        f"{TMDB}/watch/providers/movie",
        json={"results": [{"provider_id": 8, "provider_name": "Netflix"}, {"provider_id": 555}, {"provider_id": 1899, "provider_name": "Max"}]},
    )
    rows = _adapter(load_cfg).watch_providers("movie")
    assert [r["provider_id"] for r in rows] == [1899, 8]


@responses.activate
def test_certifications_fall_back_to_us(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(
        responses.GET,
        f"{TMDB}/certification/movie/list",
        json={"certifications": {"US": [{"certification": "PG-13", "meaning": "", "order": 3}]}},
    )
    assert _adapter(load_cfg).certifications()[0]["certification"] == "PG-13"


@responses.activate
def test_title_watch_providers_region_then_us_then_none(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(responses.GET, f"{TMDB}/movie/1/watch/providers", json={"results": {"HU": {"flatrate": [{"provider_id": 8}]}, "US": {}}})
    responses.add(responses.GET, f"{TMDB}/movie/2/watch/providers", json={"results": {"US": {"rent": [{"provider_id": 2}]}}})
    responses.add(responses.GET, f"{TMDB}/movie/3/watch/providers", json={"results": {"DE": {}}})
    adapter = _adapter(load_cfg)
    assert adapter.title_watch_providers("movie", 1) == {"flatrate": [{"provider_id": 8}]}
    assert adapter.title_watch_providers("movie", 2) == {"rent": [{"provider_id": 2}]}
    assert adapter.title_watch_providers("movie", 3) is None


@responses.activate
def test_videos_fall_back_to_default_language(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(responses.GET, f"{TMDB}/tv/9/videos", json={"results": []})
    responses.add(responses.GET, f"{TMDB}/tv/9/videos", json={"results": [{"site": "YouTube", "type": "Trailer", "key": "abc"}]})
    vids = _adapter(load_cfg).videos("tv", 9)
    assert [v["key"] for v in vids] == ["abc"]
    assert [_query(c)["language"] for c in responses.calls] == ["hu-HU", "en-US"]


def test_best_trailer_preference_order() -> None:
    clip = {"site": "YouTube", "type": "Clip", "key": "clip"}
    vimeo = {"site": "Vimeo", "type": "Trailer", "key": "vimeo", "official": True}
    teaser = {"site": "YouTube", "type": "Teaser", "key": "teaser"}
    official = {"site": "YouTube", "type": "Trailer", "key": "official", "official": True}
    assert best_trailer([clip, vimeo, teaser, official])["key"] == "official"
    assert best_trailer([clip, vimeo, teaser])["key"] == "teaser"
    assert best_trailer([vimeo, clip])["key"] == "clip"
    assert best_trailer([vimeo]) is None


# --- transport -----------------------------------------------------------------

@responses.activate
def test_server_errors_are_retried(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(responses.GET, f"{TMDB}/genre/movie/list", status=503)
    responses.add(responses.GET, f"{TMDB}/genre/movie/list", status=429, headers={"Retry-After": "0"})
    responses.add(responses.GET, f"{TMDB}/genre/movie/list", json={"genres": [{"id": 28, "name": "Akció"}]})
    assert _adapter(load_cfg).genres("movie") == [{"id": 28, "name": "Akció"}]
    assert len(responses.calls) == 3


@responses.activate
def test_responses_are_cached_until_fresh_requested(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(responses.GET, f"{TMDB}/movie/1/watch/providers", json={"results": {"HU": {}}})
    tmdb = TmdbProvider(load_cfg)
    tmdb.title_watch_providers("movie", 1)
    tmdb.title_watch_providers("movie", 1)
    assert len(responses.calls) == 1
    tmdb.title_watch_providers("movie", 1, fresh=True)
    assert len(responses.calls) == 2


@responses.activate
def test_not_found_surfaces_as_unavailable(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(responses.GET, f"{TMDB}/movie/999", status=404, json={"status_message": "not found"})
    with pytest.raises(CatalogUnavailable) as ei:
        _adapter(load_cfg).details("movie", 999)
    assert ei.value.status == 404


def test_missing_api_key_is_unavailable(config_base: Path) -> None:
    from mw_platform.config_base import load_config

    with pytest.raises(CatalogUnavailable):
        _adapter(load_config).genres("movie")


# --- theaters mode -------------------------------------------------------------

def test_city_and_date_filter_sorted_by_screenings() -> None:
    few = _cinema(1, "Kevés", [("Budapest", "2025-06-01", "18:00")])
    many = _cinema(2, "Sok", [("Budapest", "2025-06-01", "10:00"), ("Budapest", "2025-06-01", "20:00"), ("Debrecen", "2025-06-01", "19:00")])
    other_day = _cinema(3, "Másnap", [("Budapest", "2025-06-02", "18:00")])
    other_city = _cinema(4, "Szeged", [("Szeged", "2025-06-01", "18:00")])

    rows = filter_cinema([few, many, other_day, other_city], CinemaFilters(city="Budapest", date="2025-06-01"))
    assert [e.id for e in rows] == [2, 1]
    for e in rows:
        assert "Budapest" in e.cities and "2025-06-01" in e.dates


def test_genre_rating_filters_and_title_collation() -> None:
    a = _cinema(1, "Zebra", [("Pécs", "2025-06-01", "18:00")], genre_ids=[18], vote_average=8.0)
    b = _cinema(2, "Ágyú", [("Pécs", "2025-06-01", "18:00")], genre_ids=[28, 18], vote_average=6.5)
    c = _cinema(3, "Alma", [("Pécs", "2025-06-01", "18:00")], genre_ids=[35], vote_average=9.0)

    assert [e.id for e in filter_cinema([a, b, c], CinemaFilters(genres=[18, 99], sort_by="title.asc"))] == [2, 1]
    assert [e.id for e in filter_cinema([a, b, c], CinemaFilters(min_rating=7, sort_by="vote_average.desc"))] == [3, 1]
    assert [e.id for e in filter_cinema([a, b, c], CinemaFilters(sort_by="title.asc"))] == [2, 3, 1]


def test_unknown_sort_falls_back_to_screening_count() -> None:
    a = _cinema(1, "A", [("Pécs", "2025-06-01", "18:00")])
    b = _cinema(2, "B", [("Pécs", "2025-06-01", "18:00"), ("Pécs", "2025-06-01", "20:00")])
    assert [e.id for e in filter_cinema([a, b], CinemaFilters(sort_by="popularity.desc"))] == [2, 1]


def test_release_date_sort_handles_partial_dates() -> None:
    a = _cinema(1, "A", [], release_date="2024")
    b = _cinema(2, "B", [], release_date="2024-06-01")
    c = _cinema(3, "C", [], release_date="")
    assert [e.id for e in filter_cinema([a, b, c], CinemaFilters(sort_by="primary_release_date.desc"))] == [2, 1, 3]


def test_dataset_cache_loads_once_until_refresh() -> None:
    calls: list[int] = []

    def loader() -> dict[str, Any]:
        calls.append(1)
        return {"lastUpdated": f"v{len(calls)}", "movies": [{"id": 1, "title": "A", "screenings": {}}]}

    cache = CinemaDatasetCache(loader)
    assert len(cache.get() or []) == 1
    cache.get()
    assert len(calls) == 1 and cache.last_updated == "v1"
    cache.refresh()
    assert len(calls) == 2 and cache.last_updated == "v2"
    cache.reset()
    assert not cache.loaded
    cache.get()
    assert len(calls) == 3


def test_cinema_entities_read_dataset_file(load_cfg: Callable[[], dict[str, Any]], config_base: Path) -> None:
    data_dir = config_base / "data"
    data_dir.mkdir()
    (data_dir / "cinema.json").write_text(
        json.dumps(
            {
                "lastUpdated": "2025-06-01T06:00:00.000Z",
                "count": 2,
                "movies": [
                    {"id": 10, "title": "Egy", "screenings": {"Budapest": [{"cinemaId": "1", "cinemaName": "Aréna", "date": "2025-06-01", "time": "18:00"}]}},
                    {"id": 11, "title": "Kettő", "screenings": {"Győr": [{"cinemaId": "2", "cinemaName": "Győr Plaza", "date": "2025-06-01", "time": "18:00"}]}},
                ],
            }
        ),
        encoding="utf-8",
    )
    page = _adapter(load_cfg).get_cinema_entities(CinemaFilters(city="Budapest"))
    assert [e.id for e in page.results] == [10]
    assert page.total_results == 1


@responses.activate
def test_missing_dataset_falls_back_to_now_playing(load_cfg: Callable[[], dict[str, Any]]) -> None:
    responses.add(responses.GET, f"{TMDB}/movie/now_playing", json={"page": 1, "total_pages": 1, "results": [{"id": 77, "title": "Most"}]})
    page = _adapter(load_cfg).get_cinema_entities(CinemaFilters(city="Budapest"))
    assert [e.id for e in page.results] == [77]
    assert _query(responses.calls[0])["region"] == "HU"
