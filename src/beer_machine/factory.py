"""Assemble the pairing service from settings."""

from __future__ import annotations

from beer_machine.cache import Cache, build_cache
from beer_machine.catalog import HttpStyleCatalog, InMemoryStyleCatalog, StyleCatalog
from beer_machine.config import Settings
from beer_machine.pairing import PairingService
from beer_machine.spotify_service import PlaylistSearchService
from beer_machine.token_manager import TokenManager


def build_catalog(settings: Settings) -> StyleCatalog:
    if settings.catalog_url:
        return HttpStyleCatalog(settings.catalog_url, timeout=settings.catalog_timeout)
    return InMemoryStyleCatalog.default()


def build_playlist_search(settings: Settings, cache: Cache) -> PlaylistSearchService:
    client_id, client_secret = settings.require_spotify_credentials()
    tokens = TokenManager(
        client_id,
        client_secret,
        cache,
        token_url=settings.spotify_token_url,
        timeout=settings.spotify_timeout,
    )
    return PlaylistSearchService(
        tokens,
        cache,
        search_limit=settings.spotify_search_limit,
        cache_ttl=settings.playlist_cache_ttl,
        max_retries=settings.spotify_max_retries,
        requests_timeout=settings.spotify_timeout,
    )


def build_pairing_service(
    settings: Settings,
    catalog: StyleCatalog | None = None,
    cache: Cache | None = None,
    with_playlists: bool = True,
) -> PairingService:
    cache = cache if cache is not None else build_cache(settings)
    playlists = build_playlist_search(settings, cache) if with_playlists else None
    return PairingService(
        catalog if catalog is not None else build_catalog(settings),
        playlists,
        catalog_timeout=settings.catalog_timeout,
        enrichment_timeout=settings.enrichment_timeout,
        prefiltered=settings.catalog_prefiltered,
    )
