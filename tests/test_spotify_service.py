import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from requests.exceptions import ConnectionError as RequestsConnectionError
from spotipy.exceptions import SpotifyException

from beer_machine.cache import MemoryCache
from beer_machine.errors import AuthenticationError, EnrichmentUnavailableError
from beer_machine.models import Playlist
from beer_machine.results import Found, Missing, Unavailable
from beer_machine.spotify_service import PlaylistSearchService, first_matching_playlist
from beer_machine.token_manager import TokenManager
from fakes import FakeClock, playlist_item


def _search_page(*items) -> dict:
    return {"playlists": {"items": list(items)}}


def _make_spotify_exception(status: int) -> SpotifyException:
    return SpotifyException(http_status=status, code=-1, msg="https://api.spotify.com/v1/search")


def _make_service(max_retries: int = 0) -> tuple[PlaylistSearchService, MagicMock, MemoryCache]:
    tokens = MagicMock()
    tokens.get_valid_token = AsyncMock(return_value="token-1")
    cache = MemoryCache(clock=FakeClock())
    service = PlaylistSearchService(tokens, cache, search_limit=3, max_retries=max_retries)
    return service, tokens, cache


class FirstMatchingPlaylistTests(unittest.TestCase):
    def test_match_is_case_insensitive_substring(self) -> None:
        items = [playlist_item("Chill Vibes"), playlist_item("best ipa songs")]
        self.assertEqual(first_matching_playlist(items, "IPA")["name"], "best ipa songs")

    def test_skips_null_items(self) -> None:
        items = [None, playlist_item("IPA Nights")]
        self.assertEqual(first_matching_playlist(items, "ipa")["name"], "IPA Nights")

    def test_returns_none_when_nothing_qualifies(self) -> None:
        self.assertIsNone(first_matching_playlist([playlist_item("Chill Vibes")], "IPA"))


class PlaylistSearchTests(unittest.IsolatedAsyncioTestCase):
    async def test_maps_first_qualifying_playlist_and_caches_it(self) -> None:
        service, tokens, cache = _make_service()
        page = _search_page(playlist_item("Rainy Day"), playlist_item("Dunkel Beer Hall", "dk1", total=33))

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(return_value=page)
            playlist = await service.search("Dunkel")

        self.assertEqual(playlist.name, "Dunkel Beer Hall")
        self.assertEqual(playlist.url, "https://open.spotify.com/playlist/dk1")
        self.assertEqual(playlist.image_url, "https://i.scdn.co/image/dk1")
        self.assertEqual(playlist.owner, "Beer Lover")
        self.assertEqual(playlist.tracks.total, 33)
        self.assertEqual(spotify_cls.call_args.kwargs["auth"], "token-1")
        spotify_cls.return_value.search.assert_called_once_with(q="Dunkel", type="playlist", limit=3)
        self.assertEqual(await cache.get("spotify:playlist:Dunkel"), playlist.to_dict())
        self.assertAlmostEqual(await cache.ttl("spotify:playlist:Dunkel"), 300)

    async def test_cache_hit_skips_token_and_search(self) -> None:
        service, tokens, cache = _make_service()
        cached = Playlist(name="IPA Forever", url="https://open.spotify.com/playlist/x")
        await cache.set("spotify:playlist:IPA", cached.to_dict(), ttl=300)

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            playlist = await service.search("IPA")

        self.assertEqual(playlist, cached)
        tokens.get_valid_token.assert_not_awaited()
        spotify_cls.assert_not_called()

    async def test_non_matching_results_return_none_without_caching(self) -> None:
        service, _, cache = _make_service()

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(return_value=_search_page(playlist_item("Chill Vibes")))
            first = await service.search("IPA")
            second = await service.search("IPA")

        self.assertIsNone(first)
        self.assertIsNone(second)
        self.assertEqual(len(cache), 0)
        self.assertEqual(spotify_cls.return_value.search.call_count, 2)

    async def test_empty_results_return_none(self) -> None:
        service, _, cache = _make_service()

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(return_value={"playlists": {"items": []}})
            self.assertIsNone(await service.search("IPA"))

        self.assertEqual(len(cache), 0)

    async def test_http_error_surfaces_as_enrichment_unavailable(self) -> None:
        service, _, _ = _make_service()

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(side_effect=_make_spotify_exception(500))
            with self.assertRaises(EnrichmentUnavailableError) as ctx:
                await service.search("IPA")

        self.assertIsInstance(ctx.exception.cause, SpotifyException)

    async def test_authentication_error_propagates(self) -> None:
        service, tokens, _ = _make_service()
        tokens.get_valid_token = AsyncMock(side_effect=AuthenticationError("nope"))

        with self.assertRaises(AuthenticationError):
            await service.search("IPA")

    async def test_cache_read_failure_falls_back_to_search(self) -> None:
        service, _, cache = _make_service()
        cache.get = AsyncMock(side_effect=RuntimeError("cache down"))

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(return_value=_search_page(playlist_item("IPA Jams")))
            playlist = await service.search("IPA")

        self.assertEqual(playlist.name, "IPA Jams")


@patch("beer_machine.spotify_service._RETRY_BACKOFF_SECONDS", 0)
class RetryTests(unittest.IsolatedAsyncioTestCase):
    async def test_no_retry_by_default(self) -> None:
        service, _, _ = _make_service()

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(side_effect=_make_spotify_exception(503))
            with self.assertRaises(EnrichmentUnavailableError):
                await service.search("IPA")

        self.assertEqual(spotify_cls.return_value.search.call_count, 1)

    async def test_transient_failures_retried_up_to_limit(self) -> None:
        service, _, _ = _make_service(max_retries=2)
        side_effects = [RequestsConnectionError("reset"), _make_spotify_exception(429), _search_page(playlist_item("IPA Jams"))]

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(side_effect=side_effects)
            playlist = await service.search("IPA")

        self.assertEqual(playlist.name, "IPA Jams")
        self.assertEqual(spotify_cls.return_value.search.call_count, 3)

    async def test_client_errors_not_retried(self) -> None:
        service, _, _ = _make_service(max_retries=3)

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(side_effect=_make_spotify_exception(400))
            with self.assertRaises(EnrichmentUnavailableError):
                await service.search("IPA")

        self.assertEqual(spotify_cls.return_value.search.call_count, 1)


class LookupTests(unittest.IsolatedAsyncioTestCase):
    async def test_found(self) -> None:
        service, _, _ = _make_service()
        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(return_value=_search_page(playlist_item("IPA Jams")))
            result = await service.lookup("IPA")

        self.assertIsInstance(result, Found)
        self.assertEqual(result.playlist.name, "IPA Jams")

    async def test_missing(self) -> None:
        service, _, _ = _make_service()
        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(return_value=_search_page())
            result = await service.lookup("IPA")

        self.assertEqual(result, Missing(term="IPA"))

    async def test_unavailable(self) -> None:
        service, tokens, _ = _make_service()
        tokens.get_valid_token = AsyncMock(side_effect=AuthenticationError("Could not authenticate with Spotify."))

        result = await service.lookup("IPA")

        self.assertIsInstance(result, Unavailable)
        self.assertIn("authenticate", result.reason)

    async def test_cache_outage_still_finds_playlist(self) -> None:
        cache = MemoryCache(clock=FakeClock())
        cache.get = AsyncMock(side_effect=ConnectionError("redis down"))
        cache.set = AsyncMock(side_effect=ConnectionError("redis down"))
        response = MagicMock()
        response.status_code = 200
        response.json = MagicMock(return_value={"access_token": "token-1", "expires_in": 3600})
        session = MagicMock()
        session.post = MagicMock(return_value=response)
        tokens = TokenManager("client-id", "client-secret", cache, "https://accounts.example.com/api/token", session=session)
        service = PlaylistSearchService(tokens, cache)

        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(return_value=_search_page(playlist_item("IPA Jams")))
            result = await service.lookup("IPA")

        self.assertIsInstance(result, Found)
        self.assertEqual(result.playlist.name, "IPA Jams")

    async def test_malformed_search_item_is_unavailable(self) -> None:
        service, _, _ = _make_service()
        with patch("beer_machine.spotify_service.spotipy.Spotify") as spotify_cls:
            spotify_cls.return_value.search = MagicMock(
                return_value=_search_page("IPA Jams", {"name": 42}),
            )
            result = await service.lookup("IPA")

        self.assertIsInstance(result, Unavailable)
        self.assertIsInstance(result.error, EnrichmentUnavailableError)


if __name__ == "__main__":
    unittest.main()
