from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import HTTPException

from app.models.achievement import Achievement, UserAchievement
from app.models.certificate import Certificate
from app.models.course import Course, Module, Task, TestCase
from app.models.progress import UserProgress
from app.models.submission import Submission
from app.models.user import User
from app.services.evaluator import CaseResult


def parse_uuid(value: str, *, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"invalid {field}") from e


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts else None


def _enum_value(v) -> str | None:
    if v is None:
        return None
    return getattr(v, "value", str(v))


def user_view(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.full_name,
        "role": _enum_value(user.role),
        "xp": int(user.xp or 0),
        "level": int(user.level or 1),
        "streak": int(user.streak or 0),
    }


def course_view(c: Course) -> dict:
    return {
        "id": str(c.id),
        "title": c.title,
        "description": c.description,
        "level": _enum_value(c.level),
        "order": int(c.order or 0),
        "xp_reward": int(c.xp_reward or 0),
    }


def module_view(m: Module) -> dict:
    return {
        "id": str(m.id),
        "course_id": str(m.course_id),
        "title": m.title,
        "description": m.description,
        "content": m.content,
        "order": int(m.order or 0),
        "xp_reward": int(m.xp_reward or 0),
    }


def task_view(t: Task) -> dict:
    # The reference solution stays server-side.
    return {
        "id": str(t.id),
        "module_id": str(t.module_id),
        "title": t.title,
        "description": t.description,
        "difficulty": _enum_value(t.difficulty),
        "starter_code": t.starter_code,
        "xp_reward": int(t.xp_reward or 0),
        "time_limit": int(t.time_limit or 30),
        "memory_limit": int(t.memory_limit or 256),
        "order": int(t.order or 0),
    }


def test_case_view(tc: TestCase) -> dict:
    return {
        "id": str(tc.id),
        "input": tc.input or "",
        "expected_output": tc.expected_output or "",
        "order": int(tc.order or 0),
    }


def submission_view(s: Submission, *, with_code: bool = False) -> dict:
    out = {
        "id": str(s.id),
        "task_id": str(s.task_id),
        "language": s.language,
        "status": _enum_value(s.status),
        "test_cases_passed": int(s.test_cases_passed or 0),
        "total_test_cases": int(s.total_test_cases or 0),
        "execution_time": s.execution_time,
        "memory_used": s.memory_used,
        "error_message": s.error_message,
        "created_at": _iso(s.created_at),
        "finished_at": _iso(s.finished_at),
    }
    if with_code:
        out["code"] = s.code
    return out


def case_result_view(r: CaseResult) -> dict:
    if r.is_hidden:
        return {
            "input": None,
            "expected_output": None,
            "actual_output": None,
            "passed": r.passed,
            "status": r.status,
            "is_hidden": True,
            "time": r.time,
            "memory": r.memory,
        }
    return {
        "input": r.input,
        "expected_output": r.expected_output,
        "actual_output": r.actual_output,
        "passed": r.passed,
        "status": r.status,
        "is_hidden": False,
        "time": r.time,
        "memory": r.memory,
    }


def progress_view(p: UserProgress) -> dict:
    return {
        "course_id": str(p.course_id),
        "module_id": str(p.module_id) if p.module_id else None,
        "task_id": str(p.task_id) if p.task_id else None,
        "is_completed": bool(p.is_completed),
        "completed_at": _iso(p.completed_at),
    }


def achievement_view(a: Achievement) -> dict:
    return {
        "id": str(a.id),
        "name": a.name,
        "description": a.description,
        "icon": a.icon,
        "xp_reward": int(a.xp_reward or 0),
        "condition_type": _enum_value(a.condition_type),
        "threshold": int(a.threshold or 1),
        "course_level": _enum_value(a.course_level),
    }


def user_achievement_view(ua: UserAchievement, a: Achievement) -> dict:
    return {"achievement": achievement_view(a), "unlocked_at": _iso(ua.unlocked_at)}


def certificate_view(c: Certificate) -> dict:
    return {
        "id": str(c.id),
        "course_id": str(c.course_id),
        "certificate_number": c.certificate_number,
        "verification_url": c.verification_url,
        "issued_at": _iso(c.issued_at),
    }
