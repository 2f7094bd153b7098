"""Where scheduled matches come from.

``FixtureMatchSource`` serves the built-in demo matches; ``HttpMatchSource``
fetches them from the tournament backend.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..config import MATCHES_ENDPOINT, SUBMISSION_TIMEOUT_SECONDS, TOURNAMENT_API_TOKEN
from ..exceptions import MatchNotFound, MatchSourceUnavailable
from ..schemas import MatchData, normalize_match_id

logger = logging.getLogger(__name__)


DEMO_MATCHES: Dict[str, Dict[str, Any]] = {
    "MATCH-001": {
        "matchId": "MATCH-001",
        "gameMode": "singles",
        "players": [
            {"playerId": "P001", "name": "John Smith", "team": "A", "ranking": 4.2},
            {"playerId": "P002", "name": "Sarah Johnson", "team": "B", "ranking": 4.1},
        ],
        "tournament": "Summer Championship",
        "round": "Quarterfinals",
        "maxScore": 15,
    },
    "MATCH-002": {
        "matchId": "MATCH-002",
        "gameMode": "doubles",
        "players": [
            {"playerId": "P101", "name": "Mike Wilson", "team": "A", "ranking": 4.5},
            {"playerId": "P102", "name": "Lisa Chen", "team": "A", "ranking": 4.3},
            {"playerId": "P201", "name": "David Brown", "team": "B", "ranking": 4.4},
            {"playerId": "P202", "name": "Emma Davis", "team": "B", "ranking": 4.2},
        ],
        "tournament": "Doubles Tournament",
        "round": "Semifinals",
        "maxScore": 21,
    },
    # No maxScore: plays to the default target.
    "MATCH-003": {
        "matchId": "MATCH-003",
        "gameMode": "singles",
        "players": [
            {"playerId": "P301", "name": "Alex Rodriguez", "team": "A", "ranking": 4.0},
            {"playerId": "P302", "name": "Maria Garcia", "team": "B", "ranking": 3.8},
        ],
        "tournament": "Default Rules Tournament",
        "round": "Finals",
    },
}


class MatchSource(Protocol):
    async def load_match(self, match_id: str) -> MatchData: ...


class FixtureMatchSource:
    def __init__(self, matches: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self._matches = {
            normalize_match_id(key): value
            for key, value in (DEMO_MATCHES if matches is None else matches).items()
        }

    def match_ids(self) -> Iterable[str]:
        return list(self._matches)

    async def load_match(self, match_id: str) -> MatchData:
        key = normalize_match_id(match_id)
        data = self._matches.get(key)
        if data is None:
            raise MatchNotFound(key, available=list(self._matches))
        return MatchData.model_validate(data)


class HttpMatchSource:
    """Loads matches from ``GET {endpoint}/{matchId}`` on the tournament API."""

    def __init__(
        self,
        endpoint: str = MATCHES_ENDPOINT,
        *,
        token: Optional[str] = TOURNAMENT_API_TOKEN,
        timeout: float = SUBMISSION_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = client

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, headers=self._headers(), timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, headers=self._headers())

    async def load_match(self, match_id: str) -> MatchData:
        key = normalize_match_id(match_id)
        url = f"{self.endpoint}/{key}"
        try:
            response = await self._get(url)
        except httpx.HTTPError as exc:
            logger.warning("Match source request for %s failed: %s", key, exc)
            raise MatchSourceUnavailable(key, str(exc) or type(exc).__name__) from exc

        if response.status_code == 404:
            raise MatchNotFound(key)
        if response.is_error:
            logger.warning(
                "Match source returned HTTP %d for %s", response.status_code, key
            )
            raise MatchSourceUnavailable(key, f"HTTP {response.status_code}")

        try:
            return MatchData.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            logger.warning("Match source returned malformed data for %s", key)
            raise MatchSourceUnavailable(key, "malformed match data") from exc
