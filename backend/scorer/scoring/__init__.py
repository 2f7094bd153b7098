"""Pickleball scoring engine, court derivation and pre-game setup."""

from . import pickleball, positions, lineup

__all__ = [
    "lineup",
    "pickleball",
    "positions",
]
