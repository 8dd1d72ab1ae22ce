from __future__ import annotations

from pydantic import BaseModel

from app.schemas.achievement import UserAchievementOut
from app.schemas.certificate import CertificateOut
from app.schemas.course import CourseOut


class ProgressItem(BaseModel):
    course_id: str
    module_id: str | None
    task_id: str | None
    is_completed: bool
    completed_at: str | None


class ProgressListResponse(BaseModel):
    items: list[ProgressItem]


class ModuleProgressItem(BaseModel):
    module_id: str
    title: str
    order: int
    total_tasks: int
    completed_tasks: int
    completed: bool


class CourseProgressResponse(BaseModel):
    course_id: str
    total_modules: int
    completed_modules: int
    completed: bool
    modules: list[ModuleProgressItem]


class DashboardUser(BaseModel):
    id: str
    email: str
    name: str
    role: str
    xp: int
    level: int
    streak: int


class DashboardResponse(BaseModel):
    user: DashboardUser
    courses: list[CourseOut]
    progress: list[ProgressItem]
    achievements: list[UserAchievementOut]
    certificates: list[CertificateOut]
    completed_tasks: int
