"""Exceptions raised across the pairing service."""

from __future__ import annotations


class BeerMachineError(Exception):
    """Base class for every error this package raises on purpose."""


class ConfigurationError(BeerMachineError, ValueError):
    pass


class StyleNotFoundError(BeerMachineError):
    """No beer style in the catalog suits the requested temperature."""

    def __init__(self, temperature: float) -> None:
        self.temperature = temperature
        super().__init__(f"No suitable beer style found for temperature {temperature}°C.")


class CatalogUnavailableError(BeerMachineError):
    """The style catalog could not be reached or answered with garbage.

    Unlike enrichment failures this one fails the pairing request.
    """


class EnrichmentUnavailableError(BeerMachineError):
    """The playlist lookup could not be completed."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class AuthenticationError(EnrichmentUnavailableError):
    """Client-credentials exchange with Spotify failed."""
