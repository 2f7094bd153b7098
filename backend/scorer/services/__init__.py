"""Collaborators around the scoring engine: validation, storage, match loading
and result submission."""

from .validation import ValidationError, validate_roster, validate_score_adjustment
from .storage import KeyValueStore, MemoryStore, RedisStore, create_store

__all__ = [
    "ValidationError",
    "validate_roster",
    "validate_score_adjustment",
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
    "create_store",
]
