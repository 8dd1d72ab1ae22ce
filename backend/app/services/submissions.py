from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import List

from app.core.config import settings
from app.models.achievement import Achievement
from app.models.audit import LearningEventType
from app.models.course import Task
from app.models.submission import Submission, SubmissionStatus
from app.services.achievements import AchievementEngine
from app.services.evaluator import CaseInput, EvaluationReport, evaluate
from app.services.judge0 import ExecutionError, Judge0Client
from app.services.progress import ProgressTracker
from app.services.store import LearningStore
from app.services.xp import award_xp, record_activity_and_award_xp

logger = logging.getLogger(__name__)


class TaskNotFound(Exception):
    pass


class TaskLocked(Exception):
    pass


class SubmissionNotFound(Exception):
    pass


class SubmissionAlreadyFinal(Exception):
    pass


class EvaluationFailed(Exception):
    """The evaluation could not run at all; the submission is already stored as compilation_error."""

    def __init__(self, submission: Submission, message: str):
        super().__init__(message)
        self.submission = submission
        self.message = message


@dataclass
class SubmissionOutcome:
    submission: Submission
    report: EvaluationReport
    xp_awarded: int = 0
    achievements: List[Achievement] = field(default_factory=list)


class SubmissionService:
    """Drives one submission from intake to a terminal verdict.

    The row is committed before Judge0 is contacted, so an interrupted evaluation
    still leaves a record. The verdict and every side effect of an accepted
    submission are committed together, before the caller gets an answer.
    """

    def __init__(self, store: LearningStore, client: Judge0Client):
        self.store = store
        self.client = client
        self.progress = ProgressTracker(store)
        self.achievements = AchievementEngine(store)

    def submit(self, *, user_id: uuid.UUID, task_id: uuid.UUID, code: str, language: str) -> SubmissionOutcome:
        task = self.store.get_task(task_id)
        if task is None or not task.is_active:
            raise TaskNotFound(str(task_id))
        if not self.progress.is_unlocked(user_id, task):
            raise TaskLocked(str(task_id))

        submission = self.store.add_submission(
            Submission(
                user_id=user_id,
                task_id=task.id,
                code=code,
                language=language,
                status=None,
                test_cases_passed=0,
                total_test_cases=0,
            )
        )
        record_activity_and_award_xp(self.store, user_id=user_id, xp=0)
        self.store.add_event(user_id, LearningEventType.task_submitted, task.id, meta={"submission_id": str(submission.id)})
        self.store.commit()

        return self.evaluate(submission.id)

    def evaluate(self, submission_id: uuid.UUID) -> SubmissionOutcome:
        submission = self.store.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFound(str(submission_id))
        if submission.status is not None:
            raise SubmissionAlreadyFinal(str(submission_id))

        task = self.store.get_task(submission.task_id)
        if task is None:
            raise TaskNotFound(str(submission.task_id))

        cases = [
            CaseInput(input=tc.input or "", expected_output=tc.expected_output or "", is_hidden=bool(tc.is_hidden))
            for tc in self.store.test_cases_by_task(task.id)
        ]

        try:
            report = evaluate(
                self.client,
                code=submission.code,
                language=submission.language,
                test_cases=cases,
                time_limit=task.time_limit or 30,
                memory_limit_kb=int(task.memory_limit or 256) * 1024,
            )
        except ExecutionError as e:
            logger.warning("submission %s could not be evaluated: %s", submission.id, e)
            self._finalize(
                submission,
                SubmissionStatus.compilation_error,
                test_cases_passed=0,
                total_test_cases=len(cases),
                error_message=str(e),
            )
            self.store.commit()
            raise EvaluationFailed(submission, str(e)) from e

        if report.all_passed:
            return self._accept(submission, task, report)

        self._finalize(
            submission,
            SubmissionStatus.wrong_answer,
            test_cases_passed=report.total_passed,
            total_test_cases=report.total_cases,
            execution_time=report.slowest_time,
            memory_used=report.peak_memory,
            judge0_token=report.last_token,
        )
        self.store.commit()
        return SubmissionOutcome(submission=submission, report=report)

    def _finalize(self, submission: Submission, status: SubmissionStatus, **values) -> None:
        if not self.store.finalize_submission(submission.id, status=status, **values):
            self.store.rollback()
            raise SubmissionAlreadyFinal(str(submission.id))

    def _accept(self, submission: Submission, task: Task, report: EvaluationReport) -> SubmissionOutcome:
        self._finalize(
            submission,
            SubmissionStatus.accepted,
            test_cases_passed=report.total_passed,
            total_test_cases=report.total_cases,
            execution_time=report.slowest_time,
            memory_used=report.peak_memory,
            judge0_token=report.last_token,
        )

        completion = self.progress.complete_task(submission.user_id, task)

        xp = int(task.xp_reward or settings.default_task_xp)
        award_xp(self.store, user_id=submission.user_id, xp=xp)

        unlocked = self.achievements.check_task_milestones(submission.user_id)
        self.store.commit()

        logger.info(
            "submission accepted id=%s user=%s task=%s xp=%s achievements=%s",
            submission.id,
            submission.user_id,
            task.id,
            xp,
            len(unlocked),
        )
        return SubmissionOutcome(
            submission=submission,
            report=report,
            xp_awarded=xp + int(completion["module_xp"]) + sum(int(a.xp_reward or 0) for a in unlocked),
            achievements=unlocked,
        )
