import sys
from pathlib import Path
import uuid
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db import session as session_module
from app.main import create_app

# Import models so that they are registered in Base.metadata before create_all.
from app.models.user import User, UserRole
from app.models.course import Course, CourseLevel, Module, Task, TestCase
from app.models.submission import Submission  # noqa: F401
from app.models.progress import UserProgress  # noqa: F401
from app.models.achievement import Achievement, AchievementCondition, UserAchievement  # noqa: F401
from app.models.certificate import Certificate  # noqa: F401
from app.models.audit import LearningEvent  # noqa: F401
from app.services.judge0 import ExecutionResult, ExecutionStatus, get_execution_client, language_id_for


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ex: int | None = None):
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def delete(self, key: str):
        self._data.pop(key, None)
        return 1

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))


# Configure test DB (SQLite in-memory) at import time so all tests importing
# app.db.session.SessionLocal will get the patched version.
_engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

Base.metadata.create_all(bind=_engine)
session_module.engine = _engine
session_module.SessionLocal = session_module.sessionmaker(autocommit=False, autoflush=False, bind=_engine)


def _seed_achievements() -> None:
    from sqlalchemy import select

    with session_module.SessionLocal() as db:
        if db.scalar(select(Achievement).limit(1)) is not None:
            return
        db.add_all(
            [
                Achievement(
                    name="First Steps",
                    description="Complete your first task",
                    xp_reward=25,
                    condition_type=AchievementCondition.tasks_completed,
                    threshold=1,
                ),
                Achievement(
                    name="Java Apprentice",
                    description="Complete 5 tasks",
                    xp_reward=100,
                    condition_type=AchievementCondition.tasks_completed,
                    threshold=5,
                ),
                Achievement(
                    name="Course Conqueror",
                    description="Complete your first course",
                    xp_reward=200,
                    condition_type=AchievementCondition.course_completed,
                    threshold=1,
                ),
            ]
        )
        db.commit()


_seed_achievements()


# Stub Redis at import time (rate limiting + readiness probe).
_mem_redis = _MemoryRedis()
import app.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import app.core.rate_limit as rate_limit_module
rate_limit_module.get_redis = lambda: _mem_redis

import app.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis


def accepted(stdout: str, *, token: str | None = None) -> ExecutionResult:
    return ExecutionResult(
        token=token or uuid.uuid4().hex,
        status=ExecutionStatus(id=3, description="Accepted"),
        stdout=stdout,
        time="0.05",
        memory=2048,
    )


def _upper_solution(code: str, stdin: str):
    # Reference behaviour for the seeded tasks: print stdin upper-cased.
    if "bug" in code:
        return accepted(stdin)
    return accepted(stdin.upper() + "\n")


class FakeJudge0:
    def __init__(self):
        self.responder = _upper_solution
        self.calls: list[dict] = []

    def run(self, code, language, stdin=None, cpu_time_limit_seconds=None, memory_limit_kb=None):
        language_id_for(language)
        self.calls.append(
            {
                "code": code,
                "language": language,
                "stdin": stdin,
                "cpu_time_limit_seconds": cpu_time_limit_seconds,
                "memory_limit_kb": memory_limit_kb,
            }
        )
        out = self.responder(code, stdin or "")
        if isinstance(out, Exception):
            raise out
        return out


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    _mem_redis._data.clear()
    yield


@pytest.fixture(scope="session")
def client():
    app = create_app()

    # Ensure app dependencies use our session factory.
    def _get_db_override():
        db = session_module.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[session_module.get_db] = _get_db_override
    return TestClient(app)


@pytest.fixture()
def db():
    with session_module.SessionLocal() as session:
        yield session


@pytest.fixture()
def fake_judge0(client):
    fake = FakeJudge0()
    client.app.dependency_overrides[get_execution_client] = lambda: fake
    yield fake
    client.app.dependency_overrides.pop(get_execution_client, None)


def _register(client, *, email: str, password: str) -> None:
    r = client.post(
        "/auth/register",
        json={"email": email, "first_name": "Test", "last_name": "Learner", "password": password},
    )
    assert r.status_code in (200, 409)


def _login(client, *, email: str, password: str) -> str:
    r = client.post(
        "/auth/token",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert r.status_code == 200
    return r.json()["access_token"]


@pytest.fixture()
def learner(client, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "allow_public_register", True)
    email = f"learner_{uuid.uuid4().hex[:8]}@digitio.io"
    password = "testpass123"
    _register(client, email=email, password=password)
    token = _login(client, email=email, password=password)

    with session_module.SessionLocal() as s:
        user_id = s.query(User.id).filter(User.email == email).scalar()
    return SimpleNamespace(id=user_id, email=email, headers={"Authorization": f"Bearer {token}"})


@pytest.fixture()
def user_token(learner):
    return learner.headers["Authorization"].split(" ", 1)[1]


@pytest.fixture()
def auth_headers(learner):
    return learner.headers


@pytest.fixture()
def admin_headers(client):
    from app.core.security import hash_password

    email = f"admin_{uuid.uuid4().hex[:8]}@digitio.io"
    password = "adminpass123"
    with session_module.SessionLocal() as s:
        s.add(
            User(
                email=email,
                first_name="Ada",
                last_name="Admin",
                role=UserRole.admin,
                xp=0,
                level=1,
                streak=0,
                password_hash=hash_password(password),
            )
        )
        s.commit()
    return {"Authorization": f"Bearer {_login(client, email=email, password=password)}"}


@pytest.fixture()
def course_tree():
    """One course, one module, two chained tasks with three cases each (the last one hidden)."""
    with session_module.SessionLocal() as s:
        course = Course(
            title=f"Course {uuid.uuid4().hex[:6]}",
            description="test course",
            level=CourseLevel.beginner,
            order=1,
            xp_reward=500,
        )
        s.add(course)
        s.flush()

        module = Module(course_id=course.id, title="Strings", description=None, content=None, order=1, xp_reward=100)
        s.add(module)
        s.flush()

        tasks = []
        for order in (1, 2):
            t = Task(
                module_id=module.id,
                title=f"Upper {order}",
                description="print stdin upper-cased",
                starter_code="",
                solution="secret",
                xp_reward=50,
                time_limit=5,
                memory_limit=128,
                order=order,
            )
            s.add(t)
            s.flush()
            for idx, (stdin, expected, hidden) in enumerate(
                [("abc", "ABC", False), ("hello", "HELLO", False), ("xyz", "XYZ", True)], start=1
            ):
                s.add(TestCase(task_id=t.id, input=stdin, expected_output=expected, is_hidden=hidden, order=idx))
            tasks.append(t)
        s.commit()

        return SimpleNamespace(
            course_id=course.id,
            module_id=module.id,
            task_ids=[t.id for t in tasks],
        )
