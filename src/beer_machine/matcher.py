from __future__ import annotations

import locale
import math
from typing import Iterable

from beer_machine.models import StyleCandidate


def style_distance(temperature: float, candidate: StyleCandidate) -> float | None:
    midpoint = candidate.midpoint
    if midpoint is None:
        return None
    return abs(temperature - midpoint)


def resolve(temperature: float, candidates: Iterable[StyleCandidate]) -> list[StyleCandidate]:
    """Return every style whose midpoint is closest to ``temperature``.

    Styles missing either bound never match. Ties are compared with exact
    float equality and come back in input order; picking one of them is
    left to the caller.
    """
    if not math.isfinite(temperature):
        raise ValueError(f"Temperature must be a finite number, got {temperature!r}")

    best: list[StyleCandidate] = []
    best_distance = math.inf

    for candidate in candidates:
        distance = style_distance(temperature, candidate)
        if distance is None:
            continue
        if distance < best_distance:
            best_distance = distance
            best = [candidate]
        elif distance == best_distance:
            best.append(candidate)
    return best


def _name_sort_key(candidate: StyleCandidate) -> tuple[str, str]:
    return locale.strxfrm(candidate.name.casefold()), candidate.name


def pick_winner(matches: list[StyleCandidate]) -> StyleCandidate:
    if not matches:
        raise ValueError("Cannot pick a winner from an empty match list")
    if len(matches) == 1:
        return matches[0]
    return sorted(matches, key=_name_sort_key)[0]
