from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .time_utils import require_utc

Side = Literal["left", "right"]
Position = Literal["top", "bottom"]
GameMode = Literal["singles", "doubles"]


def normalize_match_id(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError("matchId must be a string")
    trimmed = value.strip().upper()
    if not trimmed:
        raise ValueError("matchId must not be empty")
    return trimmed


# ---------------------------------------------------------------------------
# Match Source
# ---------------------------------------------------------------------------

class RosterPlayer(BaseModel):
    playerId: str
    name: str = Field(..., min_length=1)
    team: Literal["A", "B"]
    ranking: Optional[float] = None

    @field_validator("team", mode="before")
    @classmethod
    def _normalize_team(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class MatchData(BaseModel):
    matchId: str
    gameMode: GameMode
    players: List[RosterPlayer]
    tournament: Optional[str] = None
    round: Optional[str] = None
    # Kept loose on purpose: unusable values fall back to the default target.
    maxScore: Any = None

    @field_validator("matchId", mode="before")
    @classmethod
    def _validate_match_id(cls, value: Any) -> str:
        return normalize_match_id(value)

    @field_validator("gameMode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    def team_players(self, team: str) -> List[RosterPlayer]:
        return [p for p in self.players if p.team == team]


# ---------------------------------------------------------------------------
# Submission payload
# ---------------------------------------------------------------------------

class PlayerOut(BaseModel):
    playerId: Optional[str] = None
    name: str
    position: Optional[Position] = None


class FinalScore(BaseModel):
    left: int = Field(..., ge=0)
    right: int = Field(..., ge=0)


class TeamPlayers(BaseModel):
    left: List[PlayerOut]
    right: List[PlayerOut]


class StartingPlayer(BaseModel):
    playerId: Optional[str] = None
    name: str
    team: Side
    position: Optional[Position] = None
    serverNumber: Optional[int] = None


class StartingConfiguration(BaseModel):
    startingServer: StartingPlayer
    startingReceiver: Optional[StartingPlayer] = None
    crossCourtServing: Optional[bool] = None


class ScoreSubmission(BaseModel):
    matchId: str
    gameMode: GameMode
    finalScore: FinalScore
    winner: Side
    players: TeamPlayers
    startingConfiguration: Optional[StartingConfiguration] = None
    gameDuration: str = "0:00"
    timestamp: datetime
    refereeId: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _validate_timestamp(cls, value: datetime) -> datetime:
        return require_utc(value, field_name="timestamp")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class PendingSubmission(ScoreSubmission):
    id: str
    status: str = "pending"


class SubmissionReceipt(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool = True
    submissionId: Optional[str] = None
    message: Optional[str] = None


class SubmissionResult(BaseModel):
    success: bool
    submissionId: Optional[str] = None
    queued: bool = False
    attempts: int = 0
    error: Optional[str] = None
    code: Optional[str] = None


class AuditEntry(BaseModel):
    matchId: str
    status: Literal["success", "failed", "queued"]
    timestamp: datetime
    submissionId: Optional[str] = None
    error: Optional[str] = None
    errorCode: Optional[str] = None


class BatchResult(BaseModel):
    processed: int = 0
    successful: int = 0

    @property
    def failed(self) -> int:
        return self.processed - self.successful


# ---------------------------------------------------------------------------
# Referee input
# ---------------------------------------------------------------------------

class TouchIn(BaseModel):
    side: Side


class ServingTeamIn(BaseModel):
    side: Side


class PlayerPickIn(BaseModel):
    side: Side
    name: str = Field(..., min_length=1)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class ScoreAdjustmentIn(BaseModel):
    # Range checks happen in the engine so a rejection leaves state untouched.
    leftScore: Any
    rightScore: Any
    servingTeam: Any
    serverNumber: Any = 1
    activeServer: Any = None


class SubmitIn(BaseModel):
    later: bool = False
    refereeId: Optional[str] = None


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

class SetupOut(BaseModel):
    matchId: str
    gameMode: GameMode
    tournament: Optional[str] = None
    round: Optional[str] = None
    maxScore: float
    teamAssignment: Dict[str, Side]
    servingTeam: Optional[Side] = None
    server: Optional[str] = None
    receiver: Optional[str] = None
    left: List[str]
    right: List[str]
    ready: bool


class MatchOut(BaseModel):
    state: Dict[str, Any]
    display: str
    maxScore: float
    winner: Optional[Side] = None
    positions: Dict[str, Any]
    layout: Dict[str, Dict[str, Optional[str]]]
    canUndo: bool
    gameDuration: str

    @model_validator(mode="after")
    def _winner_only_when_completed(self) -> "MatchOut":
        if self.state.get("gameStatus") != "completed":
            self.winner = None
        return self
