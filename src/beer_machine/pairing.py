from __future__ import annotations

import asyncio
from typing import Protocol

from beer_machine.catalog import StyleCatalog
from beer_machine.errors import CatalogUnavailableError, StyleNotFoundError
from beer_machine.logging import get_logger
from beer_machine.matcher import pick_winner, resolve
from beer_machine.models import BeerPairing, Playlist, StyleCandidate
from beer_machine.results import Found, LookupResult, Missing, Unavailable

logger = get_logger(__name__)


class PlaylistLookup(Protocol):
    async def lookup(self, term: str) -> LookupResult: ...


class PairingService:
    """Pick the beer style for a temperature and attach a playlist to it.

    A catalog failure fails the request. A playlist failure never does: the
    pairing is returned with ``playlist=None`` instead.
    """

    def __init__(
        self,
        catalog: StyleCatalog,
        playlists: PlaylistLookup | None,
        catalog_timeout: float = 5.0,
        enrichment_timeout: float = 10.0,
        prefiltered: bool = False,
    ) -> None:
        self._catalog = catalog
        self._playlists = playlists
        self._catalog_timeout = catalog_timeout
        self._enrichment_timeout = enrichment_timeout
        self._prefiltered = prefiltered

    async def get_pairing(self, temperature: float) -> BeerPairing:
        logger.info("Requesting best beer style", temperature=temperature)

        candidates = await self._fetch_candidates(temperature)
        matches = resolve(temperature, candidates)
        if not matches:
            raise StyleNotFoundError(temperature)

        best_style = pick_winner(matches)
        logger.info("Best style found, searching for playlist", style=best_style.name, ties=len(matches))

        playlist = await self._find_playlist(best_style.name)
        return BeerPairing(beer_style=best_style.name, playlist=playlist)

    async def _fetch_candidates(self, temperature: float) -> list[StyleCandidate]:
        if self._prefiltered:
            request = self._catalog.find_styles_near(temperature)
        else:
            request = self._catalog.find_all_styles()
        try:
            candidates = await asyncio.wait_for(request, timeout=self._catalog_timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Beer catalog timed out", timeout=self._catalog_timeout)
            raise CatalogUnavailableError(
                f"Beer catalog did not answer within {self._catalog_timeout}s."
            ) from exc
        return list(candidates or [])

    async def _find_playlist(self, style_name: str) -> Playlist | None:
        if self._playlists is None:
            return None

        try:
            result = await asyncio.wait_for(
                self._playlists.lookup(style_name), timeout=self._enrichment_timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                "Playlist lookup timed out, proceeding without a playlist",
                style=style_name,
                timeout=self._enrichment_timeout,
            )
            return None
        except Exception:
            logger.exception(
                "Failed to fetch playlist, proceeding without a playlist", style=style_name
            )
            return None

        match result:
            case Found(playlist=playlist):
                return playlist
            case Missing():
                return None
            case Unavailable(reason=reason):
                logger.error(
                    "Failed to fetch playlist, proceeding without a playlist",
                    style=style_name,
                    reason=reason,
                )
                return None
        return None
