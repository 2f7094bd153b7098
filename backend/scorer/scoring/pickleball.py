"""Pickleball rally engine for live court-side scoring.

Side-out scoring to a target number of points (default 11) with a win-by-2
requirement. Only the serving team can score; losing a rally on serve is a
side-out. In doubles each team gets two servers per hand, except that the
first hand of the game starts with server #2.

The engine tracks which court half each doubles player occupies, which team
serves and from which service court, and keeps a bounded undo history.
It performs no I/O.
"""

from __future__ import annotations

import copy
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..config import DEFAULT_MAX_SCORE, HISTORY_LIMIT, WIN_BY_MARGIN
from ..services.validation import validate_score_adjustment

logger = logging.getLogger(__name__)

LEFT = "left"
RIGHT = "right"
SIDES = (LEFT, RIGHT)

TOP = "top"
BOTTOM = "bottom"
POSITIONS = (TOP, BOTTOM)

SINGLES = "singles"
DOUBLES = "doubles"
GAME_MODES = (SINGLES, DOUBLES)

SETUP = "setup"
ACTIVE = "active"
COMPLETED = "completed"

# Court half a team serves from at an even score (its right-hand court).
RIGHT_HAND_POSITION = {LEFT: BOTTOM, RIGHT: TOP}


def other_side(side: str) -> str:
    return RIGHT if side == LEFT else LEFT


def opposite_position(position: Optional[str]) -> str:
    return BOTTOM if position == TOP else TOP


def service_court(score: int) -> str:
    """Even scores serve from the right-hand court, odd from the left."""
    return RIGHT if score % 2 == 0 else LEFT


def is_game_won(left: int, right: int, max_score: float, win_by: int = WIN_BY_MARGIN) -> bool:
    return (left >= max_score or right >= max_score) and abs(left - right) >= win_by


@dataclass
class Player:
    name: str
    player_id: Optional[str] = None
    position: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"playerId": self.player_id, "name": self.name}
        if self.position is not None:
            data["position"] = self.position
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        return cls(
            name=data["name"],
            player_id=data.get("playerId"),
            position=data.get("position"),
        )


@dataclass
class Team:
    score: int = 0
    players: List[Player] = field(default_factory=list)

    def swap_positions(self) -> None:
        if len(self.players) == 2:
            first, second = self.players
            first.position, second.position = second.position, first.position

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "players": [p.to_dict() for p in self.players]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Team":
        return cls(
            score=int(data.get("score", 0)),
            players=[Player.from_dict(p) for p in data.get("players", [])],
        )


@dataclass
class Serving:
    team: str = LEFT
    # Number shown in the score call ("5-3-1"); not necessarily the highlighted slot.
    player: int = 1
    side: str = RIGHT
    # Highlighted server slot after a manual adjustment; None follows ``player``.
    active_server: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"team": self.team, "player": self.player, "side": self.side}
        if self.active_server is not None:
            data["activeServer"] = self.active_server
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Serving":
        return cls(
            team=data.get("team", LEFT),
            player=int(data.get("player", 1)),
            side=data.get("side", RIGHT),
            active_server=data.get("activeServer"),
        )


def _empty_teams() -> Dict[str, Team]:
    return {LEFT: Team(), RIGHT: Team()}


@dataclass
class GameState:
    match_id: Optional[str] = None
    game_mode: Optional[str] = None
    teams: Dict[str, Team] = field(default_factory=_empty_teams)
    serving: Serving = field(default_factory=Serving)
    game_status: str = SETUP
    match_configuration: Optional[Dict[str, Any]] = None

    @property
    def is_doubles(self) -> bool:
        return self.game_mode == DOUBLES

    @property
    def serving_team(self) -> Team:
        return self.teams[self.serving.team]

    @property
    def receiving_team(self) -> Team:
        return self.teams[other_side(self.serving.team)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matchId": self.match_id,
            "gameMode": self.game_mode,
            "teams": {side: self.teams[side].to_dict() for side in SIDES},
            "serving": self.serving.to_dict(),
            "gameStatus": self.game_status,
            "matchConfiguration": copy.deepcopy(self.match_configuration),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameState":
        teams = data.get("teams") or {}
        return cls(
            match_id=data.get("matchId"),
            game_mode=data.get("gameMode"),
            teams={side: Team.from_dict(teams.get(side) or {}) for side in SIDES},
            serving=Serving.from_dict(data.get("serving") or {}),
            game_status=data.get("gameStatus", SETUP),
            match_configuration=copy.deepcopy(data.get("matchConfiguration")),
        )


@dataclass(frozen=True)
class GameSnapshot:
    """Immutable copy of a ``GameState``; every restore hands out a fresh copy."""

    _state: GameState = field(repr=False)

    @classmethod
    def capture(cls, state: GameState) -> "GameSnapshot":
        return cls(copy.deepcopy(state))

    def restore(self) -> GameState:
        return copy.deepcopy(self._state)


class GameHistory:
    """Bounded undo stack; the oldest snapshot is dropped once full."""

    def __init__(self, limit: int = HISTORY_LIMIT) -> None:
        if limit <= 0:
            raise ValueError("history limit must be positive")
        self._snapshots: deque[GameSnapshot] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._snapshots.maxlen or 0

    def push(self, state: GameState) -> None:
        self._snapshots.append(GameSnapshot.capture(state))

    def pop(self) -> Optional[GameState]:
        if not self._snapshots:
            return None
        return self._snapshots.pop().restore()

    def peek(self) -> Optional[GameState]:
        if not self._snapshots:
            return None
        return self._snapshots[-1].restore()

    def clear(self) -> None:
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)


@dataclass
class Lineup:
    """Starting teams mapped onto court sides, ready for ``MatchEngine.start``."""

    left: List[Player]
    right: List[Player]
    serving_team: str = LEFT


FinishCallback = Callable[[GameState], None]


class MatchEngine:
    """Owns one live ``GameState`` and applies rallies and referee corrections."""

    def __init__(
        self,
        state: Optional[GameState] = None,
        *,
        default_max_score: int = DEFAULT_MAX_SCORE,
        win_by: int = WIN_BY_MARGIN,
        history_limit: int = HISTORY_LIMIT,
        on_finish: Optional[FinishCallback] = None,
    ) -> None:
        self.state = state or GameState()
        self.history = GameHistory(history_limit)
        self.default_max_score = default_max_score
        self.win_by = win_by
        self.on_finish = on_finish
        self._start_snapshot: Optional[GameSnapshot] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(
        self,
        match_id: str,
        game_mode: str,
        match_configuration: Optional[Dict[str, Any]] = None,
    ) -> GameState:
        """Discard any game in progress and prepare a fresh ``setup`` state."""

        if game_mode not in GAME_MODES:
            raise ValueError(f"unsupported game mode: {game_mode!r}")

        self.state = GameState(
            match_id=match_id,
            game_mode=game_mode,
            match_configuration=copy.deepcopy(match_configuration),
        )
        self.history.clear()
        self._start_snapshot = None
        return self.state

    def start(self, lineup: Lineup) -> GameState:
        state = self.state
        if state.game_mode not in GAME_MODES:
            raise RuntimeError("a match must be loaded before the game starts")
        if lineup.serving_team not in SIDES:
            raise ValueError(f"invalid serving team: {lineup.serving_team!r}")

        expected = 2 if state.is_doubles else 1
        for side, players in ((LEFT, lineup.left), (RIGHT, lineup.right)):
            if len(players) != expected:
                raise ValueError(
                    f"{state.game_mode} requires {expected} player(s) on the {side} side"
                )

        state.teams = {
            LEFT: Team(players=copy.deepcopy(lineup.left)),
            RIGHT: Team(players=copy.deepcopy(lineup.right)),
        }
        # First service of a doubles game belongs to server #2.
        state.serving = Serving(
            team=lineup.serving_team,
            player=2 if state.is_doubles else 1,
        )
        self._update_serving_side()
        state.game_status = ACTIVE

        self.history.clear()
        self._start_snapshot = GameSnapshot.capture(state)
        logger.info(
            "Game started for match %s (%s), %s serving",
            state.match_id,
            state.game_mode,
            lineup.serving_team,
        )
        return state

    def reset(self) -> bool:
        """Return to 0-0 with the starting lineup and an empty history."""

        if self._start_snapshot is None:
            return False
        self.state = self._start_snapshot.restore()
        self.history.clear()
        logger.info("Game reset for match %s", self.state.match_id)
        return True

    def resume(
        self, state: GameState, starting_state: Optional[GameState] = None
    ) -> GameState:
        """Adopt a previously saved live state, e.g. after an offline restart.

        Without ``starting_state`` a later ``reset`` returns to ``state``.
        """

        if state.game_status not in (ACTIVE, COMPLETED):
            raise ValueError("only a started game can be resumed")
        self.state = copy.deepcopy(state)
        self.history.clear()
        self._start_snapshot = GameSnapshot.capture(starting_state or self.state)
        return self.state

    @property
    def starting_state(self) -> Optional[GameState]:
        if self._start_snapshot is None:
            return None
        return self._start_snapshot.restore()

    # ------------------------------------------------------------------
    # Rallies
    # ------------------------------------------------------------------

    def apply_touch(self, side: str) -> bool:
        """Resolve one rally won by the team on ``side``.

        Returns ``False`` without touching the state when the game is not
        active or ``side`` is not a court half.
        """

        state = self.state
        if state.game_status != ACTIVE:
            logger.debug("Ignoring %r touch while game is %s", side, state.game_status)
            return False
        if side not in SIDES:
            logger.debug("Ignoring touch on unknown side %r", side)
            return False

        self.history.push(state)

        if side == state.serving.team:
            self._score_point(side)
        else:
            self._side_out()

        self.check_completion()
        return True

    def _score_point(self, team: str) -> None:
        self.state.teams[team].score += 1
        if self.state.is_doubles:
            # The server alternates service courts with the partner on every point.
            self.state.teams[team].swap_positions()
        self._update_serving_side()

    def _side_out(self) -> None:
        serving = self.state.serving
        serving.active_server = None

        if not self.state.is_doubles:
            serving.team = other_side(serving.team)
        elif serving.player == 1:
            serving.player = 2
        else:
            serving.team = other_side(serving.team)
            self._promote_right_hand_server(serving.team)
            serving.player = 1

        self._update_serving_side()

    def _promote_right_hand_server(self, team: str) -> None:
        """Make the player in the team's right-hand court server #1 (index 0)."""

        players = self.state.teams[team].players
        position = RIGHT_HAND_POSITION[team]
        if len(players) == 2 and players[1].position == position:
            players[0], players[1] = players[1], players[0]

    def _update_serving_side(self) -> None:
        serving = self.state.serving
        serving.side = service_court(self.state.teams[serving.team].score)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    @property
    def max_score(self) -> float:
        config = self.state.match_configuration or {}
        value = config.get("maxScore")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return self.default_max_score
        if not math.isfinite(value) or value <= 0:
            return self.default_max_score
        return value

    @property
    def winner(self) -> Optional[str]:
        left = self.state.teams[LEFT].score
        right = self.state.teams[RIGHT].score
        if left == right:
            return None
        return LEFT if left > right else RIGHT

    def check_completion(self) -> bool:
        state = self.state
        if state.game_status == SETUP:
            return False

        left = state.teams[LEFT].score
        right = state.teams[RIGHT].score
        if is_game_won(left, right, self.max_score, self.win_by):
            if state.game_status != COMPLETED:
                state.game_status = COMPLETED
                logger.info(
                    "Game completed for match %s: %d-%d", state.match_id, left, right
                )
                if self.on_finish is not None:
                    self.on_finish(state)
            return True

        if state.game_status == COMPLETED:
            state.game_status = ACTIVE
        return False

    # ------------------------------------------------------------------
    # Referee corrections
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        previous = self.history.pop()
        if previous is None:
            return False
        self.state = previous
        return True

    def adjust_score(
        self,
        left_score: Any,
        right_score: Any,
        serving_team: Any,
        server_number: Any = 1,
        active_server: Any = None,
    ) -> bool:
        """Overwrite scores and server details after a referee correction.

        The display server number and the highlighted active server are set
        independently, so the call can read "5-3-1" while server #2 is
        highlighted. Invalid input raises ``ValidationError`` before anything
        is written.
        """

        state = self.state
        if state.game_status == SETUP:
            return False

        values = validate_score_adjustment(
            left_score, right_score, serving_team, server_number, active_server
        )

        self.history.push(state)

        state.teams[LEFT].score = values["left_score"]
        state.teams[RIGHT].score = values["right_score"]
        state.serving.team = values["serving_team"]
        state.serving.player = values["server_number"]
        state.serving.active_server = values["active_server"] if state.is_doubles else 1
        self._update_serving_side()

        logger.info(
            "Score adjusted for match %s to %d-%d-%d (%s serving)",
            state.match_id,
            values["left_score"],
            values["right_score"],
            values["server_number"],
            values["serving_team"],
        )
        self.check_completion()
        return True
