"""Spotify client-credentials token with a shared-cache lifecycle.

The token and its absolute expiry live in the cache under two keys so that
every worker sharing the cache reuses the same token. A token is considered
expired ``TOKEN_SAFETY_MARGIN`` seconds before Spotify says it is.
"""

from __future__ import annotations

import asyncio
import base64
import enum
import time
from typing import Callable

import requests

from beer_machine.cache import Cache
from beer_machine.errors import AuthenticationError
from beer_machine.logging import get_logger
from beer_machine.models import AccessToken

logger = get_logger(__name__)

TOKEN_CACHE_KEY = "spotify:access_token"
EXPIRATION_CACHE_KEY = "spotify:token_expiration"
TOKEN_SAFETY_MARGIN = 300


class TokenState(enum.Enum):
    NO_VALID_TOKEN = "no_valid_token"
    HAS_VALID_TOKEN = "has_valid_token"


def basic_auth_header(client_id: str, client_secret: str) -> str:
    credentials = base64.b64encode(f"{client_id}:{client_secret}".encode("utf-8")).decode("ascii")
    return f"Basic {credentials}"


class TokenManager:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        cache: Cache,
        token_url: str,
        clock: Callable[[], float] = time.time,
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._cache = cache
        self._token_url = token_url
        self._clock = clock
        self._timeout = timeout
        self._session = session or requests.Session()
        self._state = TokenState.NO_VALID_TOKEN

    @property
    def state(self) -> TokenState:
        return self._state

    async def get_valid_token(self) -> str:
        token = await self._read_cached_token()
        if token is not None and token.is_valid(self._clock()):
            self._state = TokenState.HAS_VALID_TOKEN
            return token.value

        self._state = TokenState.NO_VALID_TOKEN
        logger.info("Access token is missing or expired, fetching a new one")
        return await self.fetch_new_token()

    async def fetch_new_token(self) -> str:
        try:
            payload = await asyncio.to_thread(self._request_token)
            value = payload["access_token"]
            expires_in = int(payload["expires_in"])
        except AuthenticationError:
            raise
        except requests.exceptions.RequestException as exc:
            logger.error("Spotify token request failed", error=str(exc))
            raise AuthenticationError("Could not authenticate with Spotify.", cause=exc) from exc
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Spotify token response is malformed", error=repr(exc))
            raise AuthenticationError("Spotify returned an invalid token response.", cause=exc) from exc

        if not isinstance(value, str) or not value:
            raise AuthenticationError("Spotify returned an empty access token.")

        # Lifetimes at or under the margin still serve the current request.
        lifetime = max(1, expires_in - TOKEN_SAFETY_MARGIN)
        token = AccessToken(value=value, expires_at=self._clock() + lifetime)

        await self._write_cached_token(token, lifetime)
        self._state = TokenState.HAS_VALID_TOKEN

        logger.info("Fetched a new Spotify access token", lifetime=lifetime)
        return token.value

    async def _read_cached_token(self) -> AccessToken | None:
        try:
            cached_token = await self._cache.get(TOKEN_CACHE_KEY)
            cached_expiration = await self._cache.get(EXPIRATION_CACHE_KEY)
            if not cached_token or cached_expiration is None:
                return None
            return AccessToken(value=cached_token, expires_at=float(cached_expiration))
        except Exception:
            logger.exception("Token cache read error")
            return None

    async def _write_cached_token(self, token: AccessToken, lifetime: int) -> None:
        try:
            await self._cache.set(TOKEN_CACHE_KEY, token.value, lifetime)
            await self._cache.set(EXPIRATION_CACHE_KEY, token.expires_at, lifetime)
        except Exception:
            logger.exception("Token cache write error")

    def _request_token(self) -> dict:
        response = self._session.post(
            self._token_url,
            data={"grant_type": "client_credentials"},
            headers={
                "Authorization": basic_auth_header(self._client_id, self._client_secret),
                "Content-Type": "application/x-www-form-urlencoded",
            },
            timeout=self._timeout,
        )
        if response.status_code >= 400:
            logger.error("Spotify token endpoint rejected the request", status=response.status_code)
            raise AuthenticationError(
                f"Spotify token endpoint returned HTTP {response.status_code}."
            )
        return response.json()
