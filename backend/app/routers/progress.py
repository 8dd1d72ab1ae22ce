from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from app.core.security import get_current_user
from app.models.user import User
from app.routers.views import (
    certificate_view,
    course_view,
    parse_uuid,
    progress_view,
    user_achievement_view,
    user_view,
)
from app.schemas.progress import CourseProgressResponse, DashboardResponse, ProgressListResponse
from app.services.progress import ProgressTracker
from app.services.store import LearningStore, get_store

router = APIRouter(tags=["progress"])


@router.get("/progress", response_model=ProgressListResponse)
def my_progress(
    course_id: str | None = None,
    store: LearningStore = Depends(get_store),
    user: User = Depends(get_current_user),
):
    cid = parse_uuid(course_id, field="course_id") if course_id else None
    return {"items": [progress_view(p) for p in store.user_progress(user.id, cid)]}


@router.get("/progress/courses/{course_id}", response_model=CourseProgressResponse)
def course_progress(course_id: str, store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    cid = parse_uuid(course_id, field="course_id")
    course = store.get_course(cid)
    if course is None or not course.is_active:
        raise HTTPException(status_code=404, detail="course not found")
    return ProgressTracker(store).course_progress(user.id, cid)


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(store: LearningStore = Depends(get_store), user: User = Depends(get_current_user)):
    return {
        "user": user_view(user),
        "courses": [course_view(c) for c in store.list_courses()],
        "progress": [progress_view(p) for p in store.user_progress(user.id)],
        "achievements": [user_achievement_view(ua, a) for ua, a in store.user_achievements(user.id)],
        "certificates": [certificate_view(c) for c in store.user_certificates(user.id)],
        "completed_tasks": store.count_completed_tasks(user.id),
    }
