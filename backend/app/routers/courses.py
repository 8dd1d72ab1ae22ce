from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from app.core.security import get_current_user, require_roles
from app.models.course import Course, Module, Task, TestCase
from app.models.user import User, UserRole
from app.routers.views import (
    course_view,
    module_view,
    parse_uuid,
    submission_view,
    task_view,
    test_case_view,
)
from app.schemas.course import (
    CourseCreate,
    CourseDetail,
    CourseOut,
    ModuleCreate,
    ModuleDetail,
    ModuleOut,
    TaskCreate,
    TaskDetail,
    TaskOut,
    TestCaseCreate,
)
from app.services.progress import ProgressTracker
from app.services.store import LearningStore, get_store

router = APIRouter(tags=["courses"])

logger = logging.getLogger(__name__)


def _active_course(store: LearningStore, course_id: str) -> Course:
    course = store.get_course(parse_uuid(course_id, field="course_id"))
    if course is None or not course.is_active:
        raise HTTPException(status_code=404, detail="course not found")
    return course


def _active_module(store: LearningStore, module_id: str) -> Module:
    module = store.get_module(parse_uuid(module_id, field="module_id"))
    if module is None or not module.is_active:
        raise HTTPException(status_code=404, detail="module not found")
    return module


def _active_task(store: LearningStore, task_id: str) -> Task:
    task = store.get_task(parse_uuid(task_id, field="task_id"))
    if task is None or not task.is_active:
        raise HTTPException(status_code=404, detail="task not found")
    return task


@router.get("/courses", response_model=list[CourseOut])
def list_courses(store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    return [course_view(c) for c in store.list_courses()]


@router.get("/courses/{course_id}", response_model=CourseDetail)
def get_course(course_id: str, store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    course = _active_course(store, course_id)
    return {**course_view(course), "modules": [module_view(m) for m in store.modules_by_course(course.id)]}


@router.get("/modules/{module_id}", response_model=ModuleDetail)
def get_module(module_id: str, store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    module = _active_module(store, module_id)
    items = ProgressTracker(store).module_tasks_status(user.id, module.id)
    return {
        **module_view(module),
        "tasks": [
            {
                "task": task_view(i["task"]),
                "is_unlocked": i["is_unlocked"],
                "is_completed": i["is_completed"],
                "latest_submission": submission_view(i["latest_submission"]) if i["latest_submission"] else None,
            }
            for i in items
        ],
    }


@router.get("/tasks/{task_id}", response_model=TaskDetail)
def get_task(task_id: str, store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    task = _active_task(store, task_id)
    tracker = ProgressTracker(store)
    if not tracker.is_unlocked(user.id, task):
        raise HTTPException(status_code=403, detail={"error_code": "task_locked", "error_message": "task is locked"})

    return {
        **task_view(task),
        "is_completed": task.id in store.completed_task_ids(user.id, [task.id]),
        "test_cases": [test_case_view(tc) for tc in store.test_cases_by_task(task.id, include_hidden=False)],
        "submissions": [submission_view(s) for s in store.submissions_by_user(user.id, task.id)],
    }


@router.post("/admin/courses", response_model=CourseOut)
def create_course(
    body: CourseCreate,
    store: LearningStore = Depends(get_store),
    user: User = Depends(require_roles(UserRole.admin)),
):
    course = store.add_course(
        Course(
            title=body.title.strip(),
            description=body.description,
            level=body.level,
            order=body.order,
            xp_reward=body.xp_reward,
        )
    )
    store.commit()
    logger.info("course created id=%s by=%s", course.id, user.id)
    return course_view(course)


@router.post("/admin/courses/{course_id}/modules", response_model=ModuleOut)
def create_module(
    course_id: str,
    body: ModuleCreate,
    store: LearningStore = Depends(get_store),
    user: User = Depends(require_roles(UserRole.admin)),
):
    course = _active_course(store, course_id)
    module = store.add_module(
        Module(
            course_id=course.id,
            title=body.title.strip(),
            description=body.description,
            content=body.content,
            order=body.order,
            xp_reward=body.xp_reward,
        )
    )
    store.commit()
    logger.info("module created id=%s course=%s by=%s", module.id, course.id, user.id)
    return module_view(module)


@router.post("/admin/modules/{module_id}/tasks", response_model=TaskOut)
def create_task(
    module_id: str,
    body: TaskCreate,
    store: LearningStore = Depends(get_store),
    user: User = Depends(require_roles(UserRole.admin)),
):
    module = _active_module(store, module_id)
    try:
        task = store.add_task(
            Task(
                module_id=module.id,
                title=body.title.strip(),
                description=body.description,
                difficulty=body.difficulty,
                starter_code=body.starter_code,
                solution=body.solution,
                xp_reward=body.xp_reward,
                time_limit=body.time_limit,
                memory_limit=body.memory_limit,
                order=body.order,
            )
        )
    except IntegrityError as e:
        store.rollback()
        raise HTTPException(status_code=409, detail=f"module already has a task at order {body.order}") from e
    for idx, tc in enumerate(body.test_cases):
        store.add_test_case(
            TestCase(
                task_id=task.id,
                input=tc.input,
                expected_output=tc.expected_output,
                is_hidden=tc.is_hidden,
                order=tc.order or idx,
            )
        )
    store.commit()
    logger.info("task created id=%s module=%s cases=%d by=%s", task.id, module.id, len(body.test_cases), user.id)
    return task_view(task)


@router.post("/admin/tasks/{task_id}/test-cases")
def add_test_case(
    task_id: str,
    body: TestCaseCreate,
    store: LearningStore = Depends(get_store),
    user: User = Depends(require_roles(UserRole.admin)),
):
    task = _active_task(store, task_id)
    tc = store.add_test_case(
        TestCase(
            task_id=task.id,
            input=body.input,
            expected_output=body.expected_output,
            is_hidden=body.is_hidden,
            order=body.order,
        )
    )
    store.commit()
    return {"ok": True, "id": str(tc.id), "is_hidden": bool(tc.is_hidden)}
