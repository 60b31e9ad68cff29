from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from beer_machine.errors import ConfigurationError

DEFAULT_TOKEN_URL = "https://accounts.spotify.com/api/token"

_CREDENTIAL_VARS = ("SPOTIPY_CLIENT_ID", "SPOTIPY_CLIENT_SECRET")


def load_local_env_file(env_path: str = ".env") -> None:
    """Load key=value pairs from a local .env file into process env.

    Existing environment variables are preserved and not overwritten.
    """

    path = Path(env_path)
    if not path.exists():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")

        if key and key not in os.environ:
            os.environ[key] = value


def _env_str(name: str, fallback: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return fallback
    return raw.strip()


def _env_int(name: str, fallback: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def _env_float(name: str, fallback: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return fallback
    try:
        return float(raw)
    except ValueError:
        return fallback


def _env_bool(name: str, fallback: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return fallback
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True, slots=True)
class Settings:
    spotify_client_id: str | None = None
    spotify_client_secret: str | None = None
    spotify_token_url: str = DEFAULT_TOKEN_URL
    spotify_search_limit: int = 3
    spotify_timeout: float = 5.0
    spotify_max_retries: int = 0
    playlist_cache_ttl: int = 300
    catalog_url: str | None = None
    catalog_prefiltered: bool = False
    catalog_timeout: float = 5.0
    enrichment_timeout: float = 10.0
    redis_url: str | None = None
    log_level: str = "INFO"
    log_format: str = "text"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            spotify_client_id=_env_str("SPOTIPY_CLIENT_ID"),
            spotify_client_secret=_env_str("SPOTIPY_CLIENT_SECRET"),
            spotify_token_url=_env_str("SPOTIFY_TOKEN_URL", DEFAULT_TOKEN_URL),
            spotify_search_limit=max(1, _env_int("SPOTIFY_SEARCH_LIMIT", 3)),
            spotify_timeout=_env_float("SPOTIFY_TIMEOUT", 5.0),
            spotify_max_retries=max(0, _env_int("SPOTIFY_MAX_RETRIES", 0)),
            playlist_cache_ttl=_env_int("PLAYLIST_CACHE_TTL", 300),
            catalog_url=_env_str("CATALOG_URL"),
            catalog_prefiltered=_env_bool("CATALOG_PREFILTERED", False),
            catalog_timeout=_env_float("CATALOG_TIMEOUT", 5.0),
            enrichment_timeout=_env_float("ENRICHMENT_TIMEOUT", 10.0),
            redis_url=_env_str("REDIS_URL"),
            log_level=_env_str("LOG_LEVEL", "INFO"),
            log_format=_env_str("LOG_FORMAT", "text"),
            host=_env_str("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
        )

    def require_spotify_credentials(self) -> tuple[str, str]:
        missing = [
            name
            for name, value in zip(_CREDENTIAL_VARS, (self.spotify_client_id, self.spotify_client_secret))
            if not value
        ]
        if missing:
            missing_list = ", ".join(missing)
            raise ConfigurationError(
                f"Missing Spotify credentials: {missing_list}. "
                "Set them in environment variables or local .env file."
            )
        return self.spotify_client_id, self.spotify_client_secret
