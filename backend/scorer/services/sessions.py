"""Referee sessions: one live engine per loaded match.

Each ``RefereeSession`` owns its ``MatchEngine``; the HTTP layer serializes
access to a session through ``RefereeSession.lock``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ..config import DEFAULT_REFEREE_ID
from ..exceptions import GameNotCompleted, MatchAlreadyQueued, SessionNotFound
from ..schemas import MatchData, MatchOut, SetupOut, SubmissionResult, normalize_match_id
from ..scoring.lineup import MatchSetup
from ..scoring.pickleball import COMPLETED, SETUP, GameState, MatchEngine
from ..scoring.positions import court_layout, derive_positions, score_display
from ..time_utils import format_duration, utcnow
from .match_source import MatchSource
from .offline import OfflineStateKeeper
from .submission import build_submission
from .submitter import ScoreSubmitter
from .validation import validate_roster

logger = logging.getLogger(__name__)


class RefereeSession:
    def __init__(
        self,
        match: MatchData,
        *,
        submitter: ScoreSubmitter,
        keeper: Optional[OfflineStateKeeper] = None,
        referee_id: Optional[str] = DEFAULT_REFEREE_ID,
        engine: Optional[MatchEngine] = None,
    ) -> None:
        self.match = match
        self.submitter = submitter
        self.keeper = keeper
        self.referee_id = referee_id
        self.setup = MatchSetup(match)
        self.engine = engine or MatchEngine()
        self.engine.on_finish = self._on_finish
        self.lock = asyncio.Lock()
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None
        self.engine.load(
            match.matchId,
            match.gameMode,
            {
                "maxScore": match.maxScore,
                "tournament": match.tournament,
                "round": match.round,
            },
        )

    @property
    def match_id(self) -> str:
        return self.match.matchId

    @property
    def state(self) -> GameState:
        return self.engine.state

    def _on_finish(self, state: GameState) -> None:
        self.finished_at = utcnow()
        logger.info(
            "Match %s finished after %s", state.match_id, self.game_duration()
        )

    # ------------------------------------------------------------------
    # Game flow
    # ------------------------------------------------------------------

    async def start(self) -> GameState:
        if await self.submitter.is_queued(self.match_id):
            raise MatchAlreadyQueued(self.match_id)
        state = self.engine.start(self.setup.build_lineup())
        self.started_at = utcnow()
        self.finished_at = None
        await self.persist()
        return state

    async def touch(self, side: str) -> bool:
        applied = self.engine.apply_touch(side)
        if applied:
            await self.persist()
        return applied

    async def undo(self) -> bool:
        undone = self.engine.undo()
        if undone:
            if self.state.game_status != COMPLETED:
                self.finished_at = None
            await self.persist()
        return undone

    async def reset(self) -> bool:
        if not self.engine.reset():
            return False
        self.started_at = utcnow()
        self.finished_at = None
        await self.persist()
        return True

    async def adjust_score(self, **values: Any) -> bool:
        adjusted = self.engine.adjust_score(**values)
        if adjusted:
            if self.state.game_status != COMPLETED:
                self.finished_at = None
            await self.persist()
        return adjusted

    def resume(
        self,
        state: GameState,
        *,
        starting_state: Optional[GameState] = None,
        started_at: Optional[datetime] = None,
    ) -> GameState:
        resumed = self.engine.resume(state, starting_state)
        self.started_at = started_at or utcnow()
        if resumed.game_status == COMPLETED:
            self.finished_at = utcnow()
        return resumed

    async def persist(self) -> None:
        if self.keeper is None:
            return
        await self.keeper.save(
            self.state,
            starting_state=self.engine.starting_state,
            started_at=self.started_at,
        )

    def game_duration(self) -> str:
        if self.started_at is None:
            return "0:00"
        end = self.finished_at or utcnow()
        return format_duration((end - self.started_at).total_seconds())

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, *, later: bool = False, referee_id: Optional[str] = None) -> SubmissionResult:
        """Send the finished game, or queue it when deferred or offline."""

        if self.state.game_status != COMPLETED:
            raise GameNotCompleted(self.match_id)

        submission = build_submission(
            self.state,
            starting_state=self.engine.starting_state,
            game_duration=self.game_duration(),
            referee_id=referee_id or self.referee_id,
        )
        result = await self.submitter.submit_on_game_end(submission, later=later)
        if (result.success or result.queued) and self.keeper is not None:
            await self.keeper.clear(self.match_id)
        return result

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def setup_view(self) -> SetupOut:
        setup = self.setup
        return SetupOut(
            matchId=self.match_id,
            gameMode=self.match.gameMode,
            tournament=self.match.tournament,
            round=self.match.round,
            maxScore=self.engine.max_score,
            teamAssignment=setup.team_assignment,
            servingTeam=setup.serving_team,
            server=setup.server.name if setup.server else None,
            receiver=setup.receiver.name if setup.receiver else None,
            left=[p.name for p in setup.roster("left")],
            right=[p.name for p in setup.roster("right")],
            ready=setup.ready,
        )

    def view(self) -> MatchOut:
        state = self.state
        return MatchOut(
            state=state.to_dict(),
            display=score_display(state),
            maxScore=self.engine.max_score,
            winner=self.engine.winner,
            positions=derive_positions(state).to_dict(),
            layout=court_layout(state),
            canUndo=len(self.engine.history) > 0,
            gameDuration=self.game_duration(),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"setup": self.setup_view().model_dump()}
        if self.state.game_status != SETUP:
            data["game"] = self.view().model_dump()
        return data


class SessionRegistry:
    """Live sessions keyed by match id."""

    def __init__(
        self,
        source: MatchSource,
        submitter: ScoreSubmitter,
        *,
        keeper: Optional[OfflineStateKeeper] = None,
        referee_id: Optional[str] = DEFAULT_REFEREE_ID,
    ) -> None:
        self.source = source
        self.submitter = submitter
        self.keeper = keeper
        self.referee_id = referee_id
        self._sessions: Dict[str, RefereeSession] = {}

    def __contains__(self, match_id: str) -> bool:
        return normalize_match_id(match_id) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, match_id: str) -> RefereeSession:
        key = normalize_match_id(match_id)
        session = self._sessions.get(key)
        if session is None:
            raise SessionNotFound(key)
        return session

    async def _open(self, match_id: str) -> RefereeSession:
        key = normalize_match_id(match_id)
        if await self.submitter.is_queued(key):
            raise MatchAlreadyQueued(key)

        match = await self.source.load_match(key)
        validate_roster(
            match.gameMode,
            {
                team: [p.name for p in match.team_players(team)]
                for team in ("A", "B")
            },
        )
        return RefereeSession(
            match,
            submitter=self.submitter,
            keeper=self.keeper,
            referee_id=self.referee_id,
        )

    async def load(self, match_id: str) -> RefereeSession:
        """Fetch a match and open a fresh session, replacing any previous one."""

        session = await self._open(match_id)
        self._sessions[session.match_id] = session
        logger.info(
            "Loaded match %s (%s, %d players)",
            session.match_id,
            session.match.gameMode,
            len(session.match.players),
        )
        return session

    async def resume(self, match_id: str) -> RefereeSession:
        """Reopen a game saved before a restart."""

        key = normalize_match_id(match_id)
        if self.keeper is None:
            raise SessionNotFound(key)
        saved = await self.keeper.restore(key)
        if saved is None:
            raise SessionNotFound(key)

        session = await self._open(key)
        session.resume(
            saved.state,
            starting_state=saved.starting_state,
            started_at=saved.started_at,
        )
        self._sessions[key] = session
        logger.info("Resumed saved game for match %s", key)
        return session

    async def close(self, match_id: str) -> None:
        key = normalize_match_id(match_id)
        if self._sessions.pop(key, None) is None:
            raise SessionNotFound(key)
        if self.keeper is not None:
            await self.keeper.clear(key)
