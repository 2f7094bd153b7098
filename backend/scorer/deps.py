from fastapi import Depends, Request

from .services.sessions import RefereeSession, SessionRegistry
from .services.submitter import ScoreSubmitter


def get_registry(request: Request) -> SessionRegistry:
    """Provide the app's session registry for FastAPI dependencies."""

    return request.app.state.registry


def get_submitter(request: Request) -> ScoreSubmitter:
    return request.app.state.submitter


def get_referee_session(
    mid: str, registry: SessionRegistry = Depends(get_registry)
) -> RefereeSession:
    return registry.get(mid)
