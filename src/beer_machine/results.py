"""Tagged outcomes returned across the playlist lookup boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from beer_machine.models import Playlist


@dataclass(frozen=True, slots=True)
class Found:
    playlist: Playlist


@dataclass(frozen=True, slots=True)
class Missing:
    term: str


@dataclass(frozen=True, slots=True)
class Unavailable:
    reason: str
    error: Exception | None = None


LookupResult = Union[Found, Missing, Unavailable]
