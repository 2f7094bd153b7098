from typing import Optional

from fastapi import HTTPException
from pydantic import BaseModel


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class MatchNotFound(DomainException):
    def __init__(self, match_id: str, available: list[str] | None = None) -> None:
        detail = f"match '{match_id}' not found"
        if available:
            detail += f"; try {' or '.join(available)}"
        super().__init__(
            status_code=404,
            title="Match not found",
            detail=detail,
            code="match_not_found",
        )
        self.match_id = match_id


class MatchAlreadyQueued(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=409,
            title="Match already queued",
            detail=(
                f"match '{match_id}' is already in the submission queue; "
                "process the queue first"
            ),
            code="match_already_queued",
        )
        self.match_id = match_id


class SessionNotFound(DomainException):
    def __init__(self, match_id: str) -> None:
        super().__init__(
            status_code=404,
            title="No scoring session",
            detail=f"match '{match_id}' has not been loaded",
            code="session_not_found",
        )


class GameNotCompleted(DomainException):
    def __init__(self, match_id: str | None) -> None:
        super().__init__(
            status_code=409,
            title="Game not completed",
            detail=f"match '{match_id}' has not finished yet",
            code="game_not_completed",
        )


class SubmissionError(DomainException):
    """A score submission failed; ``code`` classifies the cause for operators."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        kind: str = "unknown",
        status: int | None = None,
    ) -> None:
        super().__init__(
            status_code=502,
            title="Submission failed",
            detail=message,
            code=code,
        )
        self.kind = kind
        self.status = status


class MatchSourceUnavailable(DomainException):
    def __init__(self, match_id: str, reason: str) -> None:
        super().__init__(
            status_code=503,
            title="Match source unavailable",
            detail=f"could not load match '{match_id}': {reason}",
            code="match_source_unavailable",
        )
        self.match_id = match_id


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
