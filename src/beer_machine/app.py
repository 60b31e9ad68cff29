from __future__ import annotations

import argparse
import asyncio
import math
import sys

from beer_machine.catalog import InMemoryStyleCatalog
from beer_machine.config import Settings, _env_float, load_local_env_file
from beer_machine.errors import BeerMachineError, StyleNotFoundError
from beer_machine.factory import build_pairing_service
from beer_machine.logging import setup_logging
from beer_machine.models import BeerPairing


def _finite_temperature(value: str) -> float:
    try:
        temperature = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid temperature: {value!r}") from None
    if not math.isfinite(temperature):
        raise argparse.ArgumentTypeError(f"temperature must be a finite number, got {value!r}")
    return temperature


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Beer style and playlist pairing by temperature")
    parser.add_argument(
        "--temperature",
        type=_finite_temperature,
        # String defaults go through type, so a non-finite TEMPERATURE is rejected too.
        default=str(_env_float("TEMPERATURE", 0.0)),
        help="Serving temperature in Celsius (defaults to TEMPERATURE env or 0)",
    )
    parser.add_argument(
        "--styles-file",
        help="JSON file with beer styles to use instead of the configured catalog",
    )
    parser.add_argument(
        "--no-playlist",
        action="store_true",
        help="Skip the Spotify playlist lookup",
    )
    return parser.parse_args(argv)


def format_pairing(pairing: BeerPairing) -> str:
    lines = [f"Beer style: {pairing.beer_style}"]
    playlist = pairing.playlist
    if playlist is None:
        lines.append("Playlist:   none found")
        return "\n".join(lines)

    lines.append(f"Playlist:   {playlist.name}")
    if playlist.owner:
        lines.append(f"Owner:      {playlist.owner}")
    if playlist.url:
        lines.append(f"URL:        {playlist.url}")
    if playlist.tracks and playlist.tracks.total is not None:
        lines.append(f"Tracks:     {playlist.tracks.total}")
    return "\n".join(lines)


def run(args: argparse.Namespace, settings: Settings) -> BeerPairing:
    catalog = InMemoryStyleCatalog.from_json(args.styles_file) if args.styles_file else None
    service = build_pairing_service(settings, catalog=catalog, with_playlists=not args.no_playlist)
    return asyncio.run(service.get_pairing(args.temperature))


def main(argv: list[str] | None = None) -> int:
    load_local_env_file()
    args = parse_args(argv)
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_format)

    try:
        pairing = run(args, settings)
    except StyleNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except BeerMachineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    print(format_pairing(pairing))
    return 0


if __name__ == "__main__":
    sys.exit(main())
