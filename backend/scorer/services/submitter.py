"""Delivery, retry and bookkeeping for finished-game results.

Two persisted lists back the submitter:

``scoreSubmissionQueue``
    Results held back while offline or deferred by the referee. Drained by
    ``process_queue``; only confirmed deliveries leave the queue.
``pendingSubmissions``
    Results whose delivery failed, one entry per match (a resubmission
    replaces the earlier entry).

Every delivery attempt is recorded in the in-process audit log, which keeps
the most recent ``AUDIT_LOG_LIMIT`` entries.
"""

from __future__ import annotations

import logging
from asyncio import Lock
from collections import deque
from typing import Any, Deque, Dict, List, Optional

import ulid

from ..config import AUDIT_LOG_LIMIT, SUBMISSION_RETRY_ATTEMPTS
from ..exceptions import SubmissionError
from ..schemas import (
    AuditEntry,
    BatchResult,
    PendingSubmission,
    ScoreSubmission,
    SubmissionResult,
)
from ..time_utils import utcnow
from .storage import KeyValueStore
from .submission import SubmissionSink

logger = logging.getLogger(__name__)

QUEUE_KEY = "scoreSubmissionQueue"
PENDING_KEY = "pendingSubmissions"


class ScoreSubmitter:
    def __init__(
        self,
        sink: SubmissionSink,
        store: KeyValueStore,
        *,
        max_attempts: int = SUBMISSION_RETRY_ATTEMPTS,
        audit_limit: int = AUDIT_LOG_LIMIT,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.sink = sink
        self.store = store
        self.max_attempts = max_attempts
        self._audit: Deque[AuditEntry] = deque(maxlen=audit_limit)
        self._lock = Lock()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def submit_on_game_end(
        self, submission: ScoreSubmission, *, later: bool = False
    ) -> SubmissionResult:
        """Deliver a finished game with retries, or queue it.

        The result is queued when the referee defers it, when the sink is
        offline, or when the sink goes offline during the attempts. Any
        other failure lands in the pending list.
        """

        if later or not self.sink.is_online():
            await self.queue(submission)
            return SubmissionResult(success=False, queued=True)

        result = SubmissionResult(success=False)
        for attempt in range(1, self.max_attempts + 1):
            result = await self._attempt(submission)
            result.attempts = attempt
            if result.success or not self.sink.is_online():
                break
            logger.info(
                "Submission attempt %d/%d for match %s failed",
                attempt,
                self.max_attempts,
                submission.matchId,
            )

        if result.success:
            await self._drop_pending(submission.matchId)
        elif not self.sink.is_online():
            await self.queue(submission)
            result.queued = True
        else:
            await self.save_pending(submission)
        return result

    async def queue(self, submission: ScoreSubmission) -> None:
        """Hold a result for later delivery."""

        async with self._lock:
            queued = await self._load(QUEUE_KEY)
            queued.append(submission.to_payload())
            await self.store.set(QUEUE_KEY, queued)
        self._log(submission.matchId, "queued")
        logger.info("Queued submission for match %s", submission.matchId)

    async def _attempt(self, submission: ScoreSubmission) -> SubmissionResult:
        try:
            receipt = await self.sink.submit(submission.to_payload())
        except SubmissionError as exc:
            self._log(submission.matchId, "failed", error=exc.detail, error_code=exc.code)
            logger.warning(
                "Score submission failed for match %s: %s (%s)",
                submission.matchId,
                exc.detail,
                exc.code,
            )
            return SubmissionResult(success=False, error=exc.detail, code=exc.code)

        self._log(submission.matchId, "success", submission_id=receipt.submissionId)
        logger.info(
            "Score submitted for match %s (submission %s)",
            submission.matchId,
            receipt.submissionId,
        )
        return SubmissionResult(success=True, submissionId=receipt.submissionId)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def queued(self) -> List[ScoreSubmission]:
        return [ScoreSubmission.model_validate(item) for item in await self._load(QUEUE_KEY)]

    async def is_queued(self, match_id: str) -> bool:
        return any(item.get("matchId") == match_id for item in await self._load(QUEUE_KEY))

    async def process_queue(self) -> BatchResult:
        async with self._lock:
            queued = await self._load(QUEUE_KEY)
            remaining: List[Dict[str, Any]] = []
            result = BatchResult()
            for item in queued:
                result.processed += 1
                outcome = await self._attempt(ScoreSubmission.model_validate(item))
                if outcome.success:
                    result.successful += 1
                else:
                    remaining.append(item)
            await self.store.set(QUEUE_KEY, remaining)

        logger.info(
            "Processed %d queued submission(s): %d delivered, %d kept",
            result.processed,
            result.successful,
            result.failed,
        )
        return result

    async def process_queue_item(self, index: int) -> SubmissionResult:
        """Deliver one queued result; it leaves the queue only on success.

        Raises ``IndexError`` when ``index`` does not name a queued result.
        """

        async with self._lock:
            queued = await self._load(QUEUE_KEY)
            if not 0 <= index < len(queued):
                raise IndexError(index)
            outcome = await self._attempt(ScoreSubmission.model_validate(queued[index]))
            if outcome.success:
                del queued[index]
                await self.store.set(QUEUE_KEY, queued)
        return outcome

    async def clear_queue(self) -> None:
        async with self._lock:
            await self.store.delete(QUEUE_KEY)

    # ------------------------------------------------------------------
    # Pending list
    # ------------------------------------------------------------------

    async def pending(self) -> List[PendingSubmission]:
        return [
            PendingSubmission.model_validate(item) for item in await self._load(PENDING_KEY)
        ]

    async def save_pending(self, submission: ScoreSubmission) -> PendingSubmission:
        """Store a result for manual resubmission, replacing any entry for its match."""

        entry = PendingSubmission(
            **submission.model_dump(), id=f"PENDING-{ulid.new()}", status="pending"
        )
        async with self._lock:
            pending = await self._load(PENDING_KEY)
            payload = entry.to_payload()
            for i, item in enumerate(pending):
                if item.get("matchId") == entry.matchId:
                    pending[i] = payload
                    break
            else:
                pending.append(payload)
            await self.store.set(PENDING_KEY, pending)
        return entry

    async def retry_pending(self) -> BatchResult:
        async with self._lock:
            pending = await self._load(PENDING_KEY)
            remaining: List[Dict[str, Any]] = []
            result = BatchResult()
            for item in pending:
                result.processed += 1
                outcome = await self._attempt(_as_submission(item))
                if outcome.success:
                    result.successful += 1
                else:
                    remaining.append(item)
            await self.store.set(PENDING_KEY, remaining)
        return result

    async def resubmit_pending(self, index: int) -> SubmissionResult:
        async with self._lock:
            pending = await self._load(PENDING_KEY)
            if not 0 <= index < len(pending):
                raise IndexError(index)
            outcome = await self._attempt(_as_submission(pending[index]))
            if outcome.success:
                del pending[index]
                await self.store.set(PENDING_KEY, pending)
        return outcome

    async def clear_pending(self) -> None:
        async with self._lock:
            await self.store.delete(PENDING_KEY)

    async def _drop_pending(self, match_id: str) -> None:
        async with self._lock:
            pending = await self._load(PENDING_KEY)
            kept = [item for item in pending if item.get("matchId") != match_id]
            if len(kept) != len(pending):
                await self.store.set(PENDING_KEY, kept)

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def audit_log(self) -> List[AuditEntry]:
        return list(self._audit)

    def _log(
        self,
        match_id: str,
        status: str,
        *,
        submission_id: Optional[str] = None,
        error: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self._audit.append(
            AuditEntry(
                matchId=match_id,
                status=status,
                timestamp=utcnow(),
                submissionId=submission_id,
                error=error,
                errorCode=error_code,
            )
        )

    async def _load(self, key: str) -> List[Dict[str, Any]]:
        value = await self.store.get(key)
        return list(value) if isinstance(value, list) else []


def _as_submission(item: Dict[str, Any]) -> ScoreSubmission:
    data = {k: v for k, v in item.items() if k not in ("id", "status")}
    return ScoreSubmission.model_validate(data)
