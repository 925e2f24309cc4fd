# providers/metadata/_meta_TMDB.py
# MoziWatch - TMDb REST client (catalog, search, providers, videos)
# Copyright (c) 2025-2026 MoziWatch
from __future__ import annotations

import hashlib
import random
import time
from email.utils import parsedate_to_datetime
from typing import Any, Callable

import requests

from _logging import log

BASE = "https://api.themoviedb.org/3"
IMG_BASE = "https://image.tmdb.org/t/p"


class ProviderError(RuntimeError):
    """TMDb transport or HTTP failure after the retry budget is spent."""

    def __init__(self, message: str, status: int | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class TmdbProvider:
    name = "TMDB"
    UA = "MoziWatch/1.0"

    def __init__(self, load_cfg: Callable[[], dict[str, Any]]) -> None:
        self.load_cfg = load_cfg
        self._cache: dict[str, tuple[float, Any]] = {}

    # --- config -------------------------------------------------------------

    def _tmdb_cfg(self) -> dict[str, Any]:
        return dict((self.load_cfg() or {}).get("tmdb") or {})

    def _apikey(self) -> str:
        api_key = (self._tmdb_cfg().get("api_key") or "").strip()
        if not api_key:
            raise ProviderError("TMDb API key is missing")
        return api_key

    @property
    def language(self) -> str:
        return str(self._tmdb_cfg().get("language") or "hu-HU")

    @property
    def fallback_language(self) -> str:
        return str(self._tmdb_cfg().get("fallback_language") or "en-US")

    @property
    def region(self) -> str:
        return str(self._tmdb_cfg().get("region") or "HU").upper()

    @property
    def fallback_region(self) -> str:
        return str(self._tmdb_cfg().get("fallback_region") or "US").upper()

    def _timeout(self) -> float:
        try:
            return float(self._tmdb_cfg().get("timeout", 15))
        except (TypeError, ValueError):
            return 15.0

    def _ttl_seconds(self) -> int:
        md = (self.load_cfg() or {}).get("metadata") or {}
        try:
            hours = int(md.get("ttl_hours", 6))
        except (TypeError, ValueError):
            hours = 6
        return max(1, hours) * 3600

    def _backoff_params(self) -> tuple[int, float, float]:
        md = (self.load_cfg() or {}).get("metadata") or {}
        max_retries = int(md.get("backoff_max_retries", 4))
        base_ms = int(md.get("backoff_base_ms", 500))
        max_ms = int(md.get("backoff_max_ms", 4000))
        return max(0, max_retries), max(0.0, base_ms / 1000.0), max(0.0, max_ms / 1000.0)

    def _retry_delay(self, attempt: int, base_s: float, max_s: float) -> float:
        delay = min(max_s, base_s * (2**attempt))
        return delay + random.uniform(0.0, min(0.25, delay))

    def _seconds_from_retry_after(self, header: str | None) -> float | None:
        if not header:
            return None
        header = header.strip()
        if header.isdigit():
            return float(header)
        try:
            dt = parsedate_to_datetime(header)
            return max(0.0, dt.timestamp() - time.time())
        except (TypeError, ValueError):
            return None

    def clear_cache(self) -> None:
        self._cache.clear()

    # --- transport ----------------------------------------------------------

    def _get(self, path: str, params: dict[str, Any] | None = None, *, fresh: bool = False) -> Any:
        url = BASE + path
        q = {"language": self.language}
        q.update({k: v for k, v in (params or {}).items() if v is not None})
        ck = url + "?" + "&".join(sorted(f"{k}={v}" for k, v in q.items()))
        h = hashlib.sha1(ck.encode("utf-8")).hexdigest()
        q["api_key"] = self._apikey()

        now = time.time()
        hit = self._cache.get(h)
        if not fresh and hit and (now - hit[0]) < self._ttl_seconds():
            return hit[1]

        max_retries, base_s, max_s = self._backoff_params()
        attempt = 0
        while True:
            try:
                r = requests.get(
                    url,
                    params=q,
                    headers={"User-Agent": self.UA, "Accept": "application/json"},
                    timeout=self._timeout(),
                )
                status = r.status_code

                if status == 429 and attempt < max_retries:
                    retry_after = self._seconds_from_retry_after(r.headers.get("Retry-After", ""))
                    delay = retry_after if retry_after is not None else self._retry_delay(attempt, base_s, max_s)
                    log(f"TMDb rate limited at {path}; retry in {delay:.2f}s", level="DEBUG", module="TMDB")
                    time.sleep(delay)
                    attempt += 1
                    continue

                if 500 <= status < 600 and attempt < max_retries:
                    time.sleep(self._retry_delay(attempt, base_s, max_s))
                    attempt += 1
                    continue

                r.raise_for_status()
                data = r.json()
                self._cache[h] = (time.time(), data)
                return data

            except requests.exceptions.HTTPError as e:
                status = getattr(e.response, "status_code", None)
                lvl = "INFO" if status == 404 else "WARNING"
                log(f"TMDb request failed ({status or 'n/a'}) at {path}", level=lvl, module="TMDB")
                raise ProviderError(f"TMDb API error: {status}", status=status, url=url) from e
            except ValueError as e:
                log(f"TMDb returned invalid JSON at {path}: {e}", level="WARNING", module="TMDB")
                raise ProviderError("TMDb returned invalid JSON", url=url) from e
            except requests.exceptions.RequestException as e:
                if attempt >= max_retries:
                    log(f"TMDb request failed (n/a) at {path}: {e}", level="WARNING", module="TMDB")
                    raise ProviderError(f"TMDb unreachable: {e}", url=url) from e
                time.sleep(self._retry_delay(attempt, base_s, max_s))
                attempt += 1

    # --- endpoints ----------------------------------------------------------

    def discover(self, media_type: str, params: dict[str, Any]) -> dict[str, Any]:
        return self._get(f"/discover/{media_type}", params)

    def search(
        self,
        media_type: str,
        query: str,
        page: int = 1,
        *,
        year: int | None = None,
        region: str | None = None,
    ) -> dict[str, Any]:
        q: dict[str, Any] = {"query": query, "page": page, "include_adult": "false"}
        if year:
            q["year" if media_type == "movie" else "first_air_date_year"] = year
        if region:
            q["region"] = region
        return self._get(f"/search/{media_type}", q)

    def movie_list(self, feed: str, page: int = 1) -> dict[str, Any]:
        return self._get(f"/movie/{feed}", {"page": page, "region": self.region})

    def tv_list(self, feed: str, page: int = 1) -> dict[str, Any]:
        return self._get(f"/tv/{feed}", {"page": page})

    def trending(self, media_type: str, window: str = "week") -> dict[str, Any]:
        params = {"region": self.region} if media_type == "movie" else {}
        return self._get(f"/trending/{media_type}/{window}", params)

    def genres(self, media_type: str) -> list[dict[str, Any]]:
        return list(self._get(f"/genre/{media_type}/list").get("genres") or [])

    def watch_providers(self, media_type: str) -> list[dict[str, Any]]:
        data = self._get(f"/watch/providers/{media_type}", {"watch_region": self.region})
        return list(data.get("results") or [])

    def certifications(self, media_type: str = "movie") -> dict[str, list[dict[str, Any]]]:
        return dict(self._get(f"/certification/{media_type}/list").get("certifications") or {})

    def details(self, media_type: str, tmdb_id: Any) -> dict[str, Any]:
        return self._get(f"/{media_type}/{tmdb_id}")

    def title_watch_providers(self, media_type: str, tmdb_id: Any, *, fresh: bool = False) -> dict[str, Any]:
        data = self._get(f"/{media_type}/{tmdb_id}/watch/providers", fresh=fresh)
        return dict(data.get("results") or {})

    def videos(self, media_type: str, tmdb_id: Any, language: str | None = None) -> list[dict[str, Any]]:
        data = self._get(f"/{media_type}/{tmdb_id}/videos", {"language": language or self.language})
        return list(data.get("results") or [])


def build(load_cfg: Callable[[], dict[str, Any]]) -> TmdbProvider:
    return TmdbProvider(load_cfg)


PROVIDER = TmdbProvider
