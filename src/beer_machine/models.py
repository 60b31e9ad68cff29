from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def _to_float(value: Any) -> float | None:
    # The catalog serializes decimal columns as strings ("4.0"), plain numbers
    # come through untouched.
    if value is None or value == "":
        return None
    return float(value)


def _pick(record: dict, *keys: str) -> Any:
    for key in keys:
        if key in record:
            return record[key]
    return None


@dataclass(frozen=True, slots=True)
class StyleCandidate:
    id: int | None
    name: str
    min_temperature: float | None
    max_temperature: float | None
    description: str | None = None

    @property
    def has_bounds(self) -> bool:
        return self.min_temperature is not None and self.max_temperature is not None

    @property
    def midpoint(self) -> float | None:
        if not self.has_bounds:
            return None
        return (self.min_temperature + self.max_temperature) / 2

    @classmethod
    def from_record(cls, record: dict) -> StyleCandidate:
        """Build a candidate from a catalog record (camelCase or snake_case keys)."""
        raw_id = record.get("id")
        return cls(
            id=int(raw_id) if raw_id is not None else None,
            name=str(record["name"]),
            min_temperature=_to_float(_pick(record, "minTemperature", "min_temperature")),
            max_temperature=_to_float(_pick(record, "maxTemperature", "max_temperature")),
            description=record.get("description"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "minTemperature": self.min_temperature,
            "maxTemperature": self.max_temperature,
            "averageTemperature": self.midpoint,
            "description": self.description,
        }


@dataclass(slots=True)
class PlaylistTracks:
    href: str | None
    total: int | None


@dataclass(slots=True)
class Playlist:
    name: str
    url: str | None
    image_url: str | None = None
    owner: str | None = None
    tracks: PlaylistTracks | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "url": self.url,
            "imageUrl": self.image_url,
            "owner": self.owner,
            "tracks": (
                {"href": self.tracks.href, "total": self.tracks.total} if self.tracks else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Playlist:
        tracks = data.get("tracks")
        return cls(
            name=data["name"],
            url=data.get("url"),
            image_url=data.get("imageUrl"),
            owner=data.get("owner"),
            tracks=PlaylistTracks(href=tracks.get("href"), total=tracks.get("total")) if tracks else None,
        )


@dataclass(frozen=True, slots=True)
class AccessToken:
    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(slots=True)
class BeerPairing:
    beer_style: str
    playlist: Playlist | None

    def to_dict(self) -> dict:
        return {
            "beerStyle": self.beer_style,
            "playlist": self.playlist.to_dict() if self.playlist else None,
        }
