from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.core.security import get_current_user
from app.models.user import User
from app.routers.views import case_result_view, parse_uuid, submission_view
from app.schemas.submission import SubmissionDetail, SubmissionListResponse, SubmitRequest, SubmitResponse
from app.services.judge0 import Judge0Client, UnsupportedLanguage, get_execution_client
from app.services.store import LearningStore, get_store
from app.services.submissions import (
    EvaluationFailed,
    SubmissionAlreadyFinal,
    SubmissionService,
    TaskLocked,
    TaskNotFound,
)

router = APIRouter(tags=["submissions"])


@router.post("/tasks/{task_id}/submit", response_model=SubmitResponse)
def submit_task(
    task_id: str,
    body: SubmitRequest,
    store: LearningStore = Depends(get_store),
    client: Judge0Client = Depends(get_execution_client),
    user: User = Depends(get_current_user),
    _: object = rate_limit(key_prefix="submit", limit=settings.submit_rate_limit_per_minute, window_seconds=60),
):
    tid = parse_uuid(task_id, field="task_id")
    service = SubmissionService(store, client)

    try:
        outcome = service.submit(user_id=user.id, task_id=tid, code=body.code, language=body.language)
    except TaskNotFound as e:
        raise HTTPException(status_code=404, detail="task not found") from e
    except TaskLocked as e:
        raise HTTPException(
            status_code=403,
            detail={"error_code": "task_locked", "error_message": "complete the previous task first"},
        ) from e
    except SubmissionAlreadyFinal as e:
        raise HTTPException(status_code=409, detail="submission already evaluated") from e
    except EvaluationFailed as e:
        error_code = "unsupported_language" if isinstance(e.__cause__, UnsupportedLanguage) else "execution_failed"
        raise HTTPException(
            status_code=400,
            detail={
                "error_code": error_code,
                "error_message": e.message,
                "submission_id": str(e.submission.id),
            },
        ) from e

    report = outcome.report
    return {
        "submission": submission_view(outcome.submission),
        "results": [case_result_view(r) for r in report.results],
        "total_passed": report.total_passed,
        "total_tests": report.total_cases,
        "xp_awarded": outcome.xp_awarded,
        "achievements": [a.name for a in outcome.achievements],
    }


@router.get("/submissions", response_model=SubmissionListResponse)
def my_submissions(
    task_id: str | None = None,
    store: LearningStore = Depends(get_store),
    user: User = Depends(get_current_user),
):
    tid = parse_uuid(task_id, field="task_id") if task_id else None
    return {"items": [submission_view(s) for s in store.submissions_by_user(user.id, tid)]}


@router.get("/submissions/{submission_id}", response_model=SubmissionDetail)
def get_submission(submission_id: str, store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    sub = store.get_submission(parse_uuid(submission_id, field="submission_id"))
    if sub is None or sub.user_id != user.id:
        raise HTTPException(status_code=404, detail="submission not found")
    return submission_view(sub, with_code=True)
