"""Sources of beer style candidates.

The pairing service only needs two reads from the catalog: every style, or
the styles the catalog itself considers closest to a temperature. Both
return fresh ``StyleCandidate`` lists on every call.
"""

from __future__ import annotations

import asyncio
import json
import math
from pathlib import Path
from typing import Iterable, Protocol

import requests

from beer_machine.errors import CatalogUnavailableError
from beer_machine.logging import get_logger
from beer_machine.matcher import resolve
from beer_machine.models import StyleCandidate

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100

_DEFAULT_STYLES_PATH = Path(__file__).parent / "data" / "beer_styles.json"


class StyleCatalog(Protocol):
    async def find_all_styles(self) -> list[StyleCandidate]: ...

    async def find_styles_near(self, temperature: float) -> list[StyleCandidate]: ...


def _candidates_from_records(records: Iterable[dict]) -> list[StyleCandidate]:
    return [StyleCandidate.from_record(record) for record in records]


def paginate_styles(
    styles: list[StyleCandidate],
    page: int = 1,
    limit: int = 10,
    name: str | None = None,
) -> tuple[list[StyleCandidate], dict]:
    """Filter by name (case-insensitive contains), order by name and slice one page."""
    if name:
        needle = name.lower()
        styles = [style for style in styles if needle in style.name.lower()]
    ordered = sorted(styles, key=lambda style: style.name)

    total = len(ordered)
    start = (page - 1) * limit
    meta = {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }
    return ordered[start : start + limit], meta


class InMemoryStyleCatalog:
    def __init__(self, candidates: Iterable[StyleCandidate]) -> None:
        self._candidates = list(candidates)

    @classmethod
    def from_json(cls, path: str | Path) -> InMemoryStyleCatalog:
        records = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(_candidates_from_records(records))

    @classmethod
    def default(cls) -> InMemoryStyleCatalog:
        """Catalog seeded with the style table shipped with the package."""
        return cls.from_json(_DEFAULT_STYLES_PATH)

    async def find_all_styles(self) -> list[StyleCandidate]:
        return list(self._candidates)

    async def find_styles_near(self, temperature: float) -> list[StyleCandidate]:
        return resolve(temperature, self._candidates)


class HttpStyleCatalog:
    """Reads styles from the beer catalog service over HTTP.

    Listing endpoints answer with the envelope
    ``{"status", "message", "data": [...], "meta": {"totalPages", ...}}``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._page_size = page_size
        self._session = session or requests.Session()

    async def find_all_styles(self) -> list[StyleCandidate]:
        return await asyncio.to_thread(self._fetch_all)

    async def find_styles_near(self, temperature: float) -> list[StyleCandidate]:
        body = await asyncio.to_thread(
            self._get, "/beer-styles/best-match", {"temperature": temperature}
        )
        return self._parse_records(body)

    def _fetch_all(self) -> list[StyleCandidate]:
        styles: list[StyleCandidate] = []
        page = 1
        while True:
            body = self._get("/beer-styles", {"page": page, "limit": self._page_size})
            styles.extend(self._parse_records(body))
            total_pages = int((body.get("meta") or {}).get("totalPages") or 1)
            if page >= total_pages:
                break
            page += 1
        logger.debug("Fetched beer styles from catalog", count=len(styles), pages=page)
        return styles

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.get(url, params=params, timeout=self._timeout)
        except requests.exceptions.RequestException as exc:
            logger.error("Beer catalog request failed", url=url, error=str(exc))
            raise CatalogUnavailableError(f"Beer catalog is unreachable: {exc}") from exc

        # The catalog answers 404 when a listing is empty.
        if response.status_code == 404:
            return {"data": [], "meta": {"totalPages": 1}}
        if response.status_code >= 400:
            logger.error("Beer catalog returned an error", url=url, status=response.status_code)
            raise CatalogUnavailableError(f"Beer catalog returned HTTP {response.status_code}.")

        try:
            body = response.json()
        except ValueError as exc:
            raise CatalogUnavailableError("Beer catalog returned invalid JSON.") from exc
        if not isinstance(body, dict):
            raise CatalogUnavailableError("Beer catalog returned an unexpected payload.")
        return body

    @staticmethod
    def _parse_records(body: dict) -> list[StyleCandidate]:
        records = body.get("data") or []
        try:
            return _candidates_from_records(records)
        except (KeyError, TypeError, ValueError) as exc:
            raise CatalogUnavailableError("Beer catalog returned malformed style records.") from exc
