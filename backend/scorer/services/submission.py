"""Submission sinks: deliver a finished game's result to the tournament system."""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Tuple

import httpx
import ulid
from pydantic import ValidationError as PydanticValidationError

from ..config import (
    DEMO_SUCCESS_RATE,
    SCORES_ENDPOINT,
    SUBMISSION_TIMEOUT_SECONDS,
    TOURNAMENT_API_TOKEN,
)
from ..exceptions import SubmissionError
from ..schemas import ScoreSubmission, StartingConfiguration, SubmissionReceipt
from ..scoring.pickleball import LEFT, RIGHT, GameState
from ..scoring.positions import starting_server_info
from ..time_utils import utcnow

logger = logging.getLogger(__name__)

NETWORK_ERROR = "NETWORK_ERROR"
TIMEOUT_ERROR = "TIMEOUT_ERROR"
UNAUTHORIZED = "UNAUTHORIZED"
API_NOT_FOUND = "API_NOT_FOUND"
SERVER_ERROR = "SERVER_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"

_STATUS_ERRORS: Dict[int, Tuple[str, str, str]] = {
    401: (UNAUTHORIZED, "Authentication failed - invalid token (401)", "auth"),
    403: (UNAUTHORIZED, "Authentication failed - access denied (403)", "auth"),
    404: (API_NOT_FOUND, "Tournament API endpoint not found (404)", "api"),
}


def classify_status(status: int, body: str = "") -> SubmissionError:
    """Map an HTTP error status from the tournament API to a ``SubmissionError``."""

    if status in _STATUS_ERRORS:
        code, message, kind = _STATUS_ERRORS[status]
        return SubmissionError(code, message, kind=kind, status=status)
    if status >= 500:
        return SubmissionError(
            SERVER_ERROR,
            f"Tournament server error ({status}) - try again later",
            kind="server",
            status=status,
        )
    detail = body.strip() or "unexpected response"
    return SubmissionError(
        UNKNOWN_ERROR, f"HTTP {status}: {detail}", kind="unknown", status=status
    )


def classify_exception(exc: Exception) -> SubmissionError:
    if isinstance(exc, SubmissionError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return SubmissionError(
            TIMEOUT_ERROR,
            "Request timeout - server took too long to respond",
            kind="timeout",
        )
    if isinstance(exc, httpx.TransportError):
        return SubmissionError(
            NETWORK_ERROR,
            "Network connection failed - check internet connection",
            kind="network",
        )
    return SubmissionError(
        UNKNOWN_ERROR, str(exc) or "Unknown submission error", kind="unknown"
    )


CONNECTIVITY_ERRORS = frozenset({NETWORK_ERROR, TIMEOUT_ERROR})


def is_connectivity_error(error: SubmissionError) -> bool:
    return error.code in CONNECTIVITY_ERRORS


class SubmissionSink(Protocol):
    def is_online(self) -> bool: ...

    async def submit(self, payload: Dict[str, Any]) -> SubmissionReceipt: ...


class HttpSubmissionSink:
    """POSTs results to the tournament scores endpoint."""

    def __init__(
        self,
        endpoint: str = SCORES_ENDPOINT,
        *,
        token: Optional[str] = TOURNAMENT_API_TOKEN,
        timeout: float = SUBMISSION_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self.token = token
        self.timeout = timeout
        self.online = True
        self._client = client

    def is_online(self) -> bool:
        return self.online

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(
                self.endpoint, json=payload, headers=self._headers(), timeout=self.timeout
            )
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.endpoint, json=payload, headers=self._headers())

    async def submit(self, payload: Dict[str, Any]) -> SubmissionReceipt:
        """POST one result.

        The sink goes offline when the tournament API cannot be reached and
        comes back online with the next HTTP response of any status.
        """

        try:
            response = await self._post(payload)
        except httpx.HTTPError as exc:
            error = classify_exception(exc)
            if is_connectivity_error(error) and self.online:
                logger.warning("Tournament API unreachable (%s); sink offline", error.code)
                self.online = False
            raise error from exc

        if not self.online:
            logger.info("Tournament API reachable again; sink online")
        self.online = True

        if response.is_error:
            raise classify_status(response.status_code, response.text)

        try:
            return SubmissionReceipt.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise SubmissionError(
                UNKNOWN_ERROR, "Tournament API returned an unreadable response"
            ) from exc


_DEMO_FAILURES = (
    lambda: classify_status(500),
    lambda: classify_exception(httpx.ReadTimeout("Network timeout")),
    lambda: classify_status(401),
    lambda: classify_status(404),
)


class DemoSubmissionSink:
    """Simulated tournament API that succeeds with probability ``success_rate``."""

    def __init__(
        self,
        success_rate: float = DEMO_SUCCESS_RATE,
        *,
        rng: Optional[random.Random] = None,
        delay: float = 0.0,
    ) -> None:
        self.success_rate = success_rate
        self.rng = rng or random.Random()
        self.delay = delay
        self.online = True

    def is_online(self) -> bool:
        return self.online

    async def submit(self, payload: Dict[str, Any]) -> SubmissionReceipt:
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.rng.random() < self.success_rate:
            self.online = True
            return SubmissionReceipt(
                success=True,
                submissionId=f"SUB-{ulid.new()}",
                message="Score submitted to tournament system",
            )
        error = self.rng.choice(_DEMO_FAILURES)()
        self.online = not is_connectivity_error(error)
        raise error


def build_submission(
    state: GameState,
    *,
    starting_state: Optional[GameState] = None,
    game_duration: str = "0:00",
    referee_id: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> ScoreSubmission:
    """Assemble the result payload for a finished game."""

    left = state.teams[LEFT].score
    right = state.teams[RIGHT].score
    starting = starting_server_info(starting_state) if starting_state else None

    return ScoreSubmission(
        matchId=state.match_id or "UNKNOWN",
        gameMode=state.game_mode,
        finalScore={"left": left, "right": right},
        winner=LEFT if left > right else RIGHT,
        players={
            side: [p.to_dict() for p in state.teams[side].players]
            for side in (LEFT, RIGHT)
        },
        startingConfiguration=(
            StartingConfiguration.model_validate(starting) if starting else None
        ),
        gameDuration=game_duration,
        timestamp=timestamp or utcnow(),
        refereeId=referee_id,
    )
