# backend/scorer/routers/submissions.py
from fastapi import APIRouter, Depends, Response

from ..deps import get_submitter
from ..exceptions import http_problem
from ..schemas import (
    AuditEntry,
    BatchResult,
    PendingSubmission,
    ScoreSubmission,
    SubmissionResult,
)
from ..services.submitter import ScoreSubmitter

router = APIRouter(prefix="/submissions", tags=["submissions"])


def _missing(kind: str, index: int):
    return http_problem(
        status_code=404,
        detail=f"no {kind} submission at index {index}",
        code=f"{kind}_submission_not_found",
    )


def _batch(result: BatchResult) -> dict[str, int]:
    return {
        "processed": result.processed,
        "successful": result.successful,
        "failed": result.failed,
    }


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------

@router.get("/queue", response_model=list[ScoreSubmission])
async def list_queue(submitter: ScoreSubmitter = Depends(get_submitter)):
    return await submitter.queued()


@router.delete("/queue", status_code=204)
async def clear_queue(submitter: ScoreSubmitter = Depends(get_submitter)):
    await submitter.clear_queue()
    return Response(status_code=204)


@router.post("/queue/process")
async def process_queue(submitter: ScoreSubmitter = Depends(get_submitter)):
    return _batch(await submitter.process_queue())


@router.post("/queue/{index}", response_model=SubmissionResult)
async def process_queue_item(index: int, submitter: ScoreSubmitter = Depends(get_submitter)):
    try:
        return await submitter.process_queue_item(index)
    except IndexError:
        raise _missing("queued", index)


# ---------------------------------------------------------------------------
# Pending
# ---------------------------------------------------------------------------

@router.get("/pending", response_model=list[PendingSubmission])
async def list_pending(submitter: ScoreSubmitter = Depends(get_submitter)):
    return await submitter.pending()


@router.delete("/pending", status_code=204)
async def clear_pending(submitter: ScoreSubmitter = Depends(get_submitter)):
    await submitter.clear_pending()
    return Response(status_code=204)


@router.post("/pending/retry")
async def retry_pending(submitter: ScoreSubmitter = Depends(get_submitter)):
    return _batch(await submitter.retry_pending())


@router.post("/pending/{index}", response_model=SubmissionResult)
async def resubmit_pending(index: int, submitter: ScoreSubmitter = Depends(get_submitter)):
    try:
        return await submitter.resubmit_pending(index)
    except IndexError:
        raise _missing("pending", index)


@router.get("/audit", response_model=list[AuditEntry])
async def audit_log(submitter: ScoreSubmitter = Depends(get_submitter)):
    return submitter.audit_log()
