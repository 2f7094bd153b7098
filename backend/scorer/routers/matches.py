# backend/scorer/routers/matches.py
from typing import Any

from fastapi import APIRouter, Depends, Response

from ..deps import get_referee_session, get_registry
from ..exceptions import http_problem
from ..schemas import (
    MatchOut,
    PlayerPickIn,
    ScoreAdjustmentIn,
    ServingTeamIn,
    SetupOut,
    SubmissionResult,
    SubmitIn,
    TouchIn,
)
from ..scoring.pickleball import SETUP
from ..services.sessions import RefereeSession, SessionRegistry
from ..services.validation import ValidationError

# Resource-only prefix; versioning is added in main.py
router = APIRouter(prefix="/matches", tags=["matches"])


def _require_setup(session: RefereeSession) -> None:
    if session.state.game_status != SETUP:
        raise http_problem(
            status_code=409,
            detail="the game has already started; reload the match to change the setup",
            code="match_in_progress",
        )


def _require_started(session: RefereeSession) -> None:
    if session.state.game_status == SETUP:
        raise http_problem(
            status_code=409,
            detail="the game has not started yet",
            code="game_not_started",
        )


# ---------------------------------------------------------------------------
# Loading and setup
# ---------------------------------------------------------------------------

@router.post("/{mid}/load", response_model=SetupOut)
async def load_match(mid: str, registry: SessionRegistry = Depends(get_registry)):
    try:
        session = await registry.load(mid)
    except ValidationError as exc:
        raise http_problem(
            status_code=422,
            detail=str(exc),
            code="match_invalid_participants",
        )
    return session.setup_view()


@router.post("/{mid}/setup/serving-team", response_model=SetupOut)
async def select_serving_team(
    mid: str,
    body: ServingTeamIn,
    session: RefereeSession = Depends(get_referee_session),
):
    async with session.lock:
        _require_setup(session)
        session.setup.select_serving_team(body.side)
        return session.setup_view()


@router.post("/{mid}/setup/players", response_model=SetupOut)
async def select_player(
    mid: str,
    body: PlayerPickIn,
    session: RefereeSession = Depends(get_referee_session),
):
    async with session.lock:
        _require_setup(session)
        try:
            session.setup.select_player(body.side, body.name)
        except ValidationError as exc:
            raise http_problem(
                status_code=422,
                detail=str(exc),
                code="setup_unknown_player",
            )
        return session.setup_view()


@router.post("/{mid}/setup/switch-sides", response_model=SetupOut)
async def switch_sides(mid: str, session: RefereeSession = Depends(get_referee_session)):
    async with session.lock:
        _require_setup(session)
        session.setup.switch_sides()
        return session.setup_view()


# ---------------------------------------------------------------------------
# Live game
# ---------------------------------------------------------------------------

@router.post("/{mid}/start", response_model=MatchOut)
async def start_game(mid: str, session: RefereeSession = Depends(get_referee_session)):
    async with session.lock:
        _require_setup(session)
        await session.start()
        return session.view()


@router.get("/{mid}")
async def get_match(mid: str, session: RefereeSession = Depends(get_referee_session)) -> dict[str, Any]:
    return session.to_dict()


@router.post("/{mid}/touch", response_model=MatchOut)
async def touch(
    mid: str,
    body: TouchIn,
    session: RefereeSession = Depends(get_referee_session),
):
    async with session.lock:
        # Touches outside an active game are ignored, not rejected.
        await session.touch(body.side)
        return session.view()


@router.post("/{mid}/undo", response_model=MatchOut)
async def undo(mid: str, session: RefereeSession = Depends(get_referee_session)):
    async with session.lock:
        if not await session.undo():
            raise http_problem(
                status_code=409,
                detail="there is nothing to undo",
                code="nothing_to_undo",
            )
        return session.view()


@router.post("/{mid}/reset", response_model=MatchOut)
async def reset(mid: str, session: RefereeSession = Depends(get_referee_session)):
    async with session.lock:
        if not await session.reset():
            _require_started(session)
        return session.view()


@router.put("/{mid}/score", response_model=MatchOut)
async def adjust_score(
    mid: str,
    body: ScoreAdjustmentIn,
    session: RefereeSession = Depends(get_referee_session),
):
    async with session.lock:
        _require_started(session)
        try:
            await session.adjust_score(
                left_score=body.leftScore,
                right_score=body.rightScore,
                serving_team=body.servingTeam,
                server_number=body.serverNumber,
                active_server=body.activeServer,
            )
        except ValidationError as exc:
            raise http_problem(
                status_code=422,
                detail=str(exc),
                code="match_invalid_score",
            )
        return session.view()


@router.post("/{mid}/submit", response_model=SubmissionResult)
async def submit(
    mid: str,
    body: SubmitIn | None = None,
    session: RefereeSession = Depends(get_referee_session),
):
    body = body or SubmitIn()
    async with session.lock:
        return await session.submit(later=body.later, referee_id=body.refereeId)


@router.post("/{mid}/resume", response_model=MatchOut)
async def resume(mid: str, registry: SessionRegistry = Depends(get_registry)):
    session = await registry.resume(mid)
    return session.view()


@router.delete("/{mid}", status_code=204)
async def close_match(mid: str, registry: SessionRegistry = Depends(get_registry)):
    await registry.close(mid)
    return Response(status_code=204)
