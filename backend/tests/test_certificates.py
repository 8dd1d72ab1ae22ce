import re
import uuid

from sqlalchemy import func, select

from app.db.session import SessionLocal
from app.models.certificate import Certificate
from app.models.user import User


def _solve_course(client, headers, course_tree):
    for task_id in course_tree.task_ids:
        r = client.post(f"/tasks/{task_id}/submit", json={"code": "ok", "language": "java"}, headers=headers)
        assert r.json()["submission"]["status"] == "accepted"


def _issue(client, headers, course_id):
    return client.post("/certificates", json={"course_id": str(course_id)}, headers=headers)


def test_issue_after_completing_every_module(client, learner, course_tree, fake_judge0):
    _solve_course(client, learner.headers, course_tree)
    with SessionLocal() as db:
        before = int(db.scalar(select(User.xp).where(User.id == learner.id)))

    r = _issue(client, learner.headers, course_tree.course_id)
    assert r.status_code == 200
    body = r.json()

    number = body["certificate"]["certificate_number"]
    assert re.match(r"^DIGI-\d+-[A-Z0-9]{6}$", number)
    assert body["certificate"]["verification_url"].endswith(f"/certificates/verify/{number}")
    assert body["certificate"]["course_id"] == str(course_tree.course_id)

    # Course XP plus the course-completion achievement.
    assert body["xp_awarded"] == 500 + 200
    assert body["achievements"] == ["Course Conqueror"]

    with SessionLocal() as db:
        assert int(db.scalar(select(User.xp).where(User.id == learner.id))) == before + 700

    r = client.get("/certificates/me", headers=learner.headers)
    assert [c["certificate_number"] for c in r.json()] == [number]


def test_second_issue_is_conflict_and_keeps_one_row(client, learner, course_tree, fake_judge0):
    _solve_course(client, learner.headers, course_tree)
    first = _issue(client, learner.headers, course_tree.course_id).json()["certificate"]["certificate_number"]

    r = _issue(client, learner.headers, course_tree.course_id)
    assert r.status_code == 409
    body = r.json()
    assert body["error_code"] == "certificate_already_issued"
    assert body["certificate_number"] == first

    with SessionLocal() as db:
        n = db.scalar(
            select(func.count(Certificate.id)).where(
                Certificate.user_id == learner.id, Certificate.course_id == course_tree.course_id
            )
        )
        assert n == 1


def test_incomplete_course_is_rejected(client, learner, course_tree, fake_judge0):
    client.post(f"/tasks/{course_tree.task_ids[0]}/submit", json={"code": "ok", "language": "java"}, headers=learner.headers)

    r = _issue(client, learner.headers, course_tree.course_id)
    assert r.status_code == 400
    assert r.json()["error_code"] == "course_not_completed"
    assert client.get("/certificates/me", headers=learner.headers).json() == []


def test_unknown_or_malformed_course(client, learner):
    r = _issue(client, learner.headers, uuid.uuid4())
    assert r.status_code == 404
    assert r.json()["error_code"] == "not_found"

    r = _issue(client, learner.headers, "not-a-uuid")
    assert r.status_code == 400


def test_verify_is_public(client, learner, course_tree, fake_judge0):
    _solve_course(client, learner.headers, course_tree)
    number = _issue(client, learner.headers, course_tree.course_id).json()["certificate"]["certificate_number"]

    r = client.get(f"/certificates/verify/{number}")
    assert r.status_code == 200
    body = r.json()
    assert body["valid"] is True
    assert body["certificate_number"] == number
    assert body["user_name"] == "Test Learner"
    assert body["course_level"] == "beginner"
    assert body["course_title"].startswith("Course ")

    r = client.get("/certificates/verify/DIGI-0-NOPE00")
    assert r.status_code == 404
