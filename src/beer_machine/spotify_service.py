from __future__ import annotations

import asyncio

import spotipy
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import RequestException, Timeout
from spotipy.exceptions import SpotifyException

from beer_machine.cache import Cache
from beer_machine.errors import EnrichmentUnavailableError
from beer_machine.logging import get_logger
from beer_machine.models import Playlist, PlaylistTracks
from beer_machine.results import Found, LookupResult, Missing, Unavailable
from beer_machine.token_manager import TokenManager

logger = get_logger(__name__)

PLAYLIST_CACHE_KEY_PREFIX = "spotify:playlist"
PLAYLIST_CACHE_TTL_SECONDS = 300

# Seconds slept before retry n is n * _RETRY_BACKOFF_SECONDS.
_RETRY_BACKOFF_SECONDS = 0.5


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, SpotifyException):
        status = exc.http_status or 0
        return status == 429 or status >= 500
    return isinstance(exc, (RequestsConnectionError, Timeout))


def _playlist_from_item(item: dict) -> Playlist:
    images = item.get("images") or []
    tracks = item.get("tracks")
    return Playlist(
        name=item["name"],
        url=(item.get("external_urls") or {}).get("spotify"),
        image_url=images[0].get("url") if images and images[0] else None,
        owner=(item.get("owner") or {}).get("display_name"),
        tracks=PlaylistTracks(href=tracks.get("href"), total=tracks.get("total")) if tracks else None,
    )


def first_matching_playlist(items: list[dict | None], term: str) -> dict | None:
    """Return the first playlist whose name contains ``term``, ignoring case."""
    needle = term.lower()
    for item in items:
        # Spotify pads playlist search results with nulls for removed playlists.
        if not item or not item.get("name"):
            continue
        if needle in item["name"].lower():
            return item
    return None


class PlaylistSearchService:
    """Look up a Spotify playlist named after a beer style.

    Successful lookups are cached for ``cache_ttl`` seconds. Misses are not
    cached, so a playlist published later is picked up on the next request.
    """

    def __init__(
        self,
        tokens: TokenManager,
        cache: Cache,
        search_limit: int = 3,
        cache_ttl: int = PLAYLIST_CACHE_TTL_SECONDS,
        max_retries: int = 0,
        requests_timeout: float = 5.0,
    ) -> None:
        self._tokens = tokens
        self._cache = cache
        self._search_limit = search_limit
        self._cache_ttl = cache_ttl
        self._max_retries = max_retries
        self._requests_timeout = requests_timeout

    @staticmethod
    def cache_key(term: str) -> str:
        return f"{PLAYLIST_CACHE_KEY_PREFIX}:{term}"

    async def lookup(self, term: str) -> LookupResult:
        try:
            playlist = await self.search(term)
        except EnrichmentUnavailableError as exc:
            return Unavailable(reason=str(exc), error=exc)
        if playlist is None:
            return Missing(term=term)
        return Found(playlist=playlist)

    async def search(self, term: str) -> Playlist | None:
        cache_key = self.cache_key(term)

        cached = await self._read_cache(cache_key)
        if cached is not None:
            logger.info("Found cached playlist", query=term)
            return cached

        token = await self._tokens.get_valid_token()
        items = await self._search_with_retries(term, token)

        if not items:
            logger.warning("No Spotify playlists found", query=term)
            return None

        try:
            match = first_matching_playlist(items, term)
            playlist = _playlist_from_item(match) if match is not None else None
        except (KeyError, TypeError, AttributeError) as exc:
            raise EnrichmentUnavailableError("Spotify returned a malformed playlist.", cause=exc) from exc

        if playlist is None:
            logger.warning("No Spotify playlist name contains the query", query=term)
            return None

        await self._write_cache(cache_key, playlist)
        return playlist

    def _make_client(self, token: str) -> spotipy.Spotify:
        # Retries are handled by _search_with_retries, not by spotipy.
        return spotipy.Spotify(
            auth=token,
            requests_timeout=self._requests_timeout,
            retries=0,
            status_retries=0,
        )

    def _search_page(self, term: str, token: str) -> list:
        page = self._make_client(token).search(q=term, type="playlist", limit=self._search_limit)
        return ((page or {}).get("playlists") or {}).get("items") or []

    async def _search_with_retries(self, term: str, token: str) -> list:
        attempt = 0
        while True:
            try:
                return await asyncio.to_thread(self._search_page, term, token)
            except (SpotifyException, RequestException) as exc:
                if attempt < self._max_retries and _is_transient(exc):
                    attempt += 1
                    logger.warning(
                        "Transient Spotify search failure, retrying",
                        query=term,
                        attempt=attempt,
                        error=str(exc),
                    )
                    await asyncio.sleep(_RETRY_BACKOFF_SECONDS * attempt)
                    continue
                logger.error("Failed to search Spotify playlists", query=term, error=str(exc))
                raise EnrichmentUnavailableError(
                    "Failed to communicate with Spotify API.", cause=exc
                ) from exc
            except (AttributeError, TypeError, ValueError) as exc:
                raise EnrichmentUnavailableError(
                    "Spotify returned an unreadable search response.", cause=exc
                ) from exc

    async def _read_cache(self, key: str) -> Playlist | None:
        try:
            cached = await self._cache.get(key)
            return Playlist.from_dict(cached) if cached else None
        except Exception:
            logger.exception("Cache read error", key=key)
            return None

    async def _write_cache(self, key: str, playlist: Playlist) -> None:
        try:
            await self._cache.set(key, playlist.to_dict(), self._cache_ttl)
            logger.info("Cached Spotify playlist", key=key, ttl=self._cache_ttl)
        except Exception:
            logger.exception("Cache write error", key=key)
