"""Crash recovery for games in progress.

The live state of each session is written through to the store after every
change, so a restarted scorer can pick a game back up where it stopped.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, NamedTuple, Optional

from ..scoring.pickleball import GameState
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "offlineGameState"


class SavedGame(NamedTuple):
    state: GameState
    starting_state: Optional[GameState]
    started_at: Optional[datetime]


def _key(match_id: str) -> str:
    return f"{KEY_PREFIX}:{match_id}"


class OfflineStateKeeper:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def save(
        self,
        state: GameState,
        *,
        starting_state: Optional[GameState] = None,
        started_at: Optional[datetime] = None,
    ) -> None:
        if not state.match_id:
            return
        record: Dict[str, Any] = {
            "state": state.to_dict(),
            "startingState": starting_state.to_dict() if starting_state else None,
            "startedAt": started_at.isoformat() if started_at else None,
        }
        await self.store.set(_key(state.match_id), record)

    async def restore(self, match_id: str) -> Optional[SavedGame]:
        record = await self.store.get(_key(match_id))
        if not isinstance(record, dict) or not record.get("state"):
            return None
        try:
            started_raw = record.get("startedAt")
            starting_raw = record.get("startingState")
            return SavedGame(
                state=GameState.from_dict(record["state"]),
                starting_state=GameState.from_dict(starting_raw) if starting_raw else None,
                started_at=datetime.fromisoformat(started_raw) if started_raw else None,
            )
        except (KeyError, TypeError, ValueError):
            logger.warning("Saved game for match %s is unreadable; ignoring it", match_id)
            return None

    async def clear(self, match_id: str) -> None:
        await self.store.delete(_key(match_id))
