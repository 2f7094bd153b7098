import os
import sys
from typing import Any, Dict, List, Optional

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Keep module-level app construction away from real services during tests.
os.environ.setdefault("ALLOWED_ORIGINS", "")
os.environ.pop("REDIS_URL", None)
os.environ.pop("SENTRY_DSN", None)

from scorer.exceptions import SubmissionError  # noqa: E402
from scorer.schemas import SubmissionReceipt  # noqa: E402
from scorer.scoring.pickleball import LEFT, Lineup, MatchEngine, Player  # noqa: E402
from scorer.services.storage import MemoryStore  # noqa: E402
from scorer.services.submission import build_submission  # noqa: E402


class RecordingSink:
    """Submission sink that replays scripted outcomes and records payloads.

    ``outcomes`` holds ``True`` for a success or a ``SubmissionError`` to
    raise; once exhausted every further call succeeds.
    """

    def __init__(self, outcomes: Optional[List[Any]] = None, *, online: bool = True) -> None:
        self.outcomes = list(outcomes or [])
        self.online = online
        self.payloads: List[Dict[str, Any]] = []

    def is_online(self) -> bool:
        return self.online

    async def submit(self, payload: Dict[str, Any]) -> SubmissionReceipt:
        self.payloads.append(payload)
        outcome = self.outcomes.pop(0) if self.outcomes else True
        if isinstance(outcome, SubmissionError):
            raise outcome
        return SubmissionReceipt(success=True, submissionId=f"SUB-{len(self.payloads)}")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def server_error():
    def make(message: str = "Tournament server error (500) - try again later"):
        return SubmissionError("SERVER_ERROR", message, kind="server", status=500)

    return make


@pytest.fixture
def make_sink():
    return RecordingSink


@pytest.fixture
def submission():
    def make(match_id: str = "MATCH-001", left: int = 11, right: int = 6):
        engine = MatchEngine()
        engine.load(match_id, "singles")
        engine.start(
            Lineup(left=[Player("John Smith", "P001")], right=[Player("Sarah Johnson", "P002")])
        )
        engine.adjust_score(left, right, LEFT)
        return build_submission(engine.state, starting_state=engine.starting_state)

    return make
