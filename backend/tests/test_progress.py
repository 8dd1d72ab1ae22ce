import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.security import hash_password
from app.models.course import Task
from app.models.progress import UserProgress, progress_scope_key
from app.models.user import User, UserRole
from app.services.progress import ProgressTracker
from app.services.store import SqlAlchemyStore


def _user(db) -> User:
    u = User(
        email=f"p_{uuid.uuid4().hex[:8]}@digitio.io",
        first_name="Pat",
        last_name="Progress",
        role=UserRole.student,
        xp=0,
        level=1,
        streak=0,
        password_hash=hash_password("x" * 8),
    )
    db.add(u)
    db.commit()
    return u


def test_scope_key_spells_out_missing_ids():
    cid = uuid.uuid4()
    assert progress_scope_key(cid) == f"{cid}:-:-"
    assert progress_scope_key(cid, None, None) != progress_scope_key(cid, uuid.uuid4(), None)


def test_first_task_open_second_locked_until_first_done(db, course_tree):
    user = _user(db)
    store = SqlAlchemyStore(db)
    tracker = ProgressTracker(store)
    first, second = (db.get(Task, tid) for tid in course_tree.task_ids)

    assert tracker.is_unlocked(user.id, first)
    assert not tracker.is_unlocked(user.id, second)

    tracker.complete_task(user.id, first)
    store.commit()

    assert tracker.is_unlocked(user.id, second)


def test_unlock_follows_order_not_creation(db, course_tree):
    user = _user(db)
    store = SqlAlchemyStore(db)
    tracker = ProgressTracker(store)

    # Created last but ordered first.
    early = Task(module_id=course_tree.module_id, title="Warm-up", order=0, xp_reward=10)
    db.add(early)
    db.commit()

    first = db.get(Task, course_tree.task_ids[0])
    assert tracker.is_unlocked(user.id, early)
    assert not tracker.is_unlocked(user.id, first)


def test_task_order_is_unique_within_module(db, course_tree):
    db.add(Task(module_id=course_tree.module_id, title="Clash", order=1, xp_reward=10))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

    tasks = SqlAlchemyStore(db).tasks_by_module(course_tree.module_id)
    assert [t.id for t in tasks] == course_tree.task_ids


def test_upsert_progress_is_idempotent(db, course_tree):
    user = _user(db)
    store = SqlAlchemyStore(db)

    assert store.upsert_progress(user.id, course_tree.course_id, course_tree.module_id, course_tree.task_ids[0])
    assert not store.upsert_progress(user.id, course_tree.course_id, course_tree.module_id, course_tree.task_ids[0])
    # Course-level and module-level records are distinct from each other and from the task record.
    assert store.upsert_progress(user.id, course_tree.course_id)
    assert not store.upsert_progress(user.id, course_tree.course_id)
    store.commit()

    n = db.scalar(select(func.count(UserProgress.id)).where(UserProgress.user_id == user.id))
    assert n == 2


def test_module_rolls_up_once_and_credits_module_xp(db, course_tree):
    user = _user(db)
    store = SqlAlchemyStore(db)
    tracker = ProgressTracker(store)
    first, second = (db.get(Task, tid) for tid in course_tree.task_ids)

    out1 = tracker.complete_task(user.id, first)
    assert out1["module_completed"] is False
    assert out1["module_xp"] == 0

    out2 = tracker.complete_task(user.id, second)
    assert out2["module_completed"] is True
    assert out2["module_xp"] == 100

    again = tracker.complete_task(user.id, second)
    assert again["module_completed"] is False
    assert again["task_first_completion"] is False
    store.commit()

    db.refresh(user)
    assert user.xp == 100
    assert store.completed_module_ids(user.id, course_tree.course_id) == {course_tree.module_id}


def test_course_progress_and_module_view(client, learner, course_tree, fake_judge0):
    r = client.get(f"/modules/{course_tree.module_id}", headers=learner.headers)
    assert r.status_code == 200
    tasks = r.json()["tasks"]
    assert [t["is_unlocked"] for t in tasks] == [True, False]
    assert "solution" not in tasks[0]["task"]

    client.post(
        f"/tasks/{course_tree.task_ids[0]}/submit",
        json={"code": "ok", "language": "java"},
        headers=learner.headers,
    )

    r = client.get(f"/modules/{course_tree.module_id}", headers=learner.headers)
    tasks = r.json()["tasks"]
    assert [t["is_unlocked"] for t in tasks] == [True, True]
    assert tasks[0]["is_completed"] is True
    assert tasks[0]["latest_submission"]["status"] == "accepted"

    r = client.get(f"/progress/courses/{course_tree.course_id}", headers=learner.headers)
    assert r.status_code == 200
    body = r.json()
    assert body["total_modules"] == 1
    assert body["modules"][0]["completed_tasks"] == 1
    assert body["completed"] is False

    r = client.get("/progress", headers=learner.headers)
    assert [p["task_id"] for p in r.json()["items"]] == [str(course_tree.task_ids[0])]


def test_task_detail_hides_hidden_cases_and_locks(client, learner, course_tree):
    first, second = course_tree.task_ids

    r = client.get(f"/tasks/{first}", headers=learner.headers)
    assert r.status_code == 200
    body = r.json()
    assert len(body["test_cases"]) == 2
    assert "solution" not in body

    r = client.get(f"/tasks/{second}", headers=learner.headers)
    assert r.status_code == 403


def test_dashboard_aggregates(client, learner, course_tree, fake_judge0):
    client.post(
        f"/tasks/{course_tree.task_ids[0]}/submit",
        json={"code": "ok", "language": "java"},
        headers=learner.headers,
    )

    r = client.get("/dashboard", headers=learner.headers)
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["email"] == learner.email
    assert body["user"]["xp"] == 75
    assert body["user"]["streak"] == 1
    assert body["completed_tasks"] == 1
    assert [a["achievement"]["name"] for a in body["achievements"]] == ["First Steps"]
    assert body["certificates"] == []
