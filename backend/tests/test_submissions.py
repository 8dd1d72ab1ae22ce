import uuid

import pytest
from sqlalchemy import func, select

from app.db.session import SessionLocal
from app.models.achievement import Achievement, UserAchievement
from app.models.progress import UserProgress
from app.models.submission import Submission, SubmissionStatus
from app.models.user import User
from app.services.judge0 import ExecutionResult, ExecutionStatus, ServiceUnavailable


def _xp(user_id) -> int:
    with SessionLocal() as db:
        return int(db.scalar(select(User.xp).where(User.id == user_id)))


def _submission_count(user_id, task_id) -> int:
    with SessionLocal() as db:
        return int(
            db.scalar(
                select(func.count(Submission.id)).where(Submission.user_id == user_id, Submission.task_id == task_id)
            )
        )


def _submit(client, headers, task_id, code="print(input().upper())", language="python"):
    return client.post(f"/tasks/{task_id}/submit", json={"code": code, "language": language}, headers=headers)


def test_all_cases_pass_accepts_and_awards_once(client, learner, course_tree, fake_judge0):
    task_id = course_tree.task_ids[0]
    before = _xp(learner.id)

    r = _submit(client, learner.headers, task_id)
    assert r.status_code == 200
    body = r.json()

    assert body["submission"]["status"] == "accepted"
    assert body["total_passed"] == 3
    assert body["total_tests"] == 3
    assert body["submission"]["test_cases_passed"] == 3
    assert body["submission"]["total_test_cases"] == 3
    assert len(fake_judge0.calls) == 3
    assert [c["stdin"] for c in fake_judge0.calls] == ["abc", "hello", "xyz"]
    assert fake_judge0.calls[0]["cpu_time_limit_seconds"] == 5
    assert fake_judge0.calls[0]["memory_limit_kb"] == 128 * 1024

    # Hidden case is scored but its data stays server-side.
    hidden = body["results"][2]
    assert hidden["is_hidden"] is True
    assert hidden["passed"] is True
    assert hidden["input"] is None and hidden["expected_output"] is None and hidden["actual_output"] is None
    assert body["results"][0]["actual_output"] == "ABC"

    # Task XP (50) plus the first-task milestone (25).
    assert body["xp_awarded"] == 75
    assert "First Steps" in body["achievements"]
    assert _xp(learner.id) == before + 75

    with SessionLocal() as db:
        rows = db.scalars(
            select(UserProgress).where(UserProgress.user_id == learner.id, UserProgress.task_id == task_id)
        ).all()
        assert len(rows) == 1
        assert rows[0].is_completed
        assert rows[0].course_id == course_tree.course_id
        assert rows[0].module_id == course_tree.module_id

        granted = db.scalar(
            select(func.count(UserAchievement.id))
            .join(Achievement, Achievement.id == UserAchievement.achievement_id)
            .where(UserAchievement.user_id == learner.id, Achievement.name == "First Steps")
        )
        assert granted == 1


def test_second_acceptance_does_not_regrant_achievement(client, learner, course_tree, fake_judge0):
    task_id = course_tree.task_ids[0]
    assert _submit(client, learner.headers, task_id).status_code == 200

    r = _submit(client, learner.headers, task_id)
    assert r.status_code == 200
    assert r.json()["submission"]["status"] == "accepted"
    assert r.json()["achievements"] == []

    with SessionLocal() as db:
        progress_rows = db.scalar(
            select(func.count(UserProgress.id)).where(UserProgress.user_id == learner.id, UserProgress.task_id == task_id)
        )
        assert progress_rows == 1
        unlocks = db.scalar(select(func.count(UserAchievement.id)).where(UserAchievement.user_id == learner.id))
        assert unlocks == 1


def test_partial_pass_is_wrong_answer_without_side_effects(client, learner, course_tree, fake_judge0):
    task_id = course_tree.task_ids[0]

    def _fails_last(code, stdin):
        if stdin == "xyz":
            return ExecutionResult(token="t", status=ExecutionStatus(id=3, description="Accepted"), stdout="xyz")
        return ExecutionResult(token="t", status=ExecutionStatus(id=3, description="Accepted"), stdout=stdin.upper())

    fake_judge0.responder = _fails_last
    before = _xp(learner.id)

    r = _submit(client, learner.headers, task_id)
    assert r.status_code == 200
    body = r.json()
    assert body["submission"]["status"] == "wrong_answer"
    assert body["total_passed"] == 2
    assert body["total_tests"] == 3
    assert body["xp_awarded"] == 0
    assert _xp(learner.id) == before

    with SessionLocal() as db:
        n = db.scalar(select(func.count(UserProgress.id)).where(UserProgress.user_id == learner.id))
        assert n == 0


def test_locked_task_is_forbidden_and_creates_nothing(client, learner, course_tree, fake_judge0):
    second = course_tree.task_ids[1]
    before = _xp(learner.id)

    r = _submit(client, learner.headers, second)
    assert r.status_code == 403
    assert r.json()["ok"] is False
    assert r.json()["error_code"] == "task_locked"

    assert _submission_count(learner.id, second) == 0
    assert fake_judge0.calls == []
    assert _xp(learner.id) == before


def test_next_task_unlocks_after_acceptance(client, learner, course_tree, fake_judge0):
    first, second = course_tree.task_ids
    assert _submit(client, learner.headers, first).json()["submission"]["status"] == "accepted"

    r = _submit(client, learner.headers, second)
    assert r.status_code == 200
    assert r.json()["submission"]["status"] == "accepted"


def test_missing_task_is_not_found(client, learner, fake_judge0):
    r = _submit(client, learner.headers, uuid.uuid4())
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"


def test_invalid_payload_is_rejected_before_any_record(client, learner, course_tree, fake_judge0):
    task_id = course_tree.task_ids[0]

    r = _submit(client, learner.headers, task_id, code="")
    assert r.status_code == 422
    assert r.json()["error_code"] == "validation_error"

    r = _submit(client, learner.headers, task_id, language="brainfuck")
    assert r.status_code == 422

    assert _submission_count(learner.id, task_id) == 0
    assert fake_judge0.calls == []


def test_unauthenticated_submit_is_rejected(client, course_tree, fake_judge0):
    r = client.post(f"/tasks/{course_tree.task_ids[0]}/submit", json={"code": "x", "language": "java"})
    assert r.status_code == 401
    assert r.json()["error_code"] == "unauthorized"


def test_service_outage_on_every_case_is_wrong_answer(client, learner, course_tree, fake_judge0):
    fake_judge0.responder = lambda code, stdin: ServiceUnavailable("Judge0 API error: 503")

    r = _submit(client, learner.headers, course_tree.task_ids[0])
    assert r.status_code == 200
    body = r.json()
    assert body["submission"]["status"] == "wrong_answer"
    assert body["total_passed"] == 0
    assert all(res["status"].startswith("Error:") for res in body["results"])


def test_evaluation_failure_is_stored_as_compilation_error(client, learner, course_tree, fake_judge0, monkeypatch):
    import app.services.submissions as submissions_mod
    from app.services.judge0 import ExecutionError

    def _boom(*args, **kwargs):
        raise ExecutionError("Judge0 API error: bad gateway")

    monkeypatch.setattr(submissions_mod, "evaluate", _boom)

    task_id = course_tree.task_ids[0]
    r = _submit(client, learner.headers, task_id)
    assert r.status_code == 400
    body = r.json()
    assert body["error_code"] == "execution_failed"
    assert "bad gateway" in body["error_message"]

    with SessionLocal() as db:
        sub = db.get(Submission, uuid.UUID(body["submission_id"]))
        assert sub is not None
        assert sub.status == SubmissionStatus.compilation_error
        assert sub.test_cases_passed == 0
        assert sub.total_test_cases == 3
        assert "bad gateway" in (sub.error_message or "")


def test_submission_listing_and_detail_are_owner_scoped(client, learner, course_tree, fake_judge0, admin_headers):
    task_id = course_tree.task_ids[0]
    sid = _submit(client, learner.headers, task_id).json()["submission"]["id"]

    r = client.get("/submissions", headers=learner.headers)
    assert r.status_code == 200
    assert sid in [s["id"] for s in r.json()["items"]]

    r = client.get(f"/submissions?task_id={task_id}", headers=learner.headers)
    assert [s["id"] for s in r.json()["items"]] == [sid]

    r = client.get(f"/submissions/{sid}", headers=learner.headers)
    assert r.status_code == 200
    assert r.json()["code"] == "print(input().upper())"

    r = client.get(f"/submissions/{sid}", headers=admin_headers)
    assert r.status_code == 404


def test_terminal_submission_is_never_rescored(client, learner, course_tree, fake_judge0):
    from app.services.store import SqlAlchemyStore
    from app.services.submissions import SubmissionAlreadyFinal, SubmissionService

    sid = _submit(client, learner.headers, course_tree.task_ids[0]).json()["submission"]["id"]
    calls_before = len(fake_judge0.calls)

    with SessionLocal() as db:
        service = SubmissionService(SqlAlchemyStore(db), fake_judge0)
        with pytest.raises(SubmissionAlreadyFinal):
            service.evaluate(uuid.UUID(sid))

        sub = db.get(Submission, uuid.UUID(sid))
        assert sub.status == SubmissionStatus.accepted
        assert sub.test_cases_passed == 3

    assert len(fake_judge0.calls) == calls_before
    assert _xp(learner.id) == 75
