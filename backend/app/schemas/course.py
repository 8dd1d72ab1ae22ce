from __future__ import annotations

from pydantic import BaseModel, Field

from app.models.course import CourseLevel, TaskDifficulty
from app.schemas.submission import SubmissionOut


class CourseOut(BaseModel):
    id: str
    title: str
    description: str | None
    level: str
    order: int
    xp_reward: int


class ModuleOut(BaseModel):
    id: str
    course_id: str
    title: str
    description: str | None
    content: str | None = None
    order: int
    xp_reward: int


class CourseDetail(CourseOut):
    modules: list[ModuleOut]


class TaskOut(BaseModel):
    id: str
    module_id: str
    title: str
    description: str | None
    difficulty: str
    starter_code: str | None
    xp_reward: int
    time_limit: int
    memory_limit: int
    order: int


class TestCaseOut(BaseModel):
    id: str
    input: str
    expected_output: str
    order: int


class TaskStatusItem(BaseModel):
    task: TaskOut
    is_unlocked: bool
    is_completed: bool
    latest_submission: SubmissionOut | None = None


class ModuleDetail(ModuleOut):
    tasks: list[TaskStatusItem]


class TaskDetail(TaskOut):
    is_completed: bool
    test_cases: list[TestCaseOut]
    submissions: list[SubmissionOut]


class CourseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    level: CourseLevel = CourseLevel.beginner
    order: int = 0
    xp_reward: int = Field(default=500, ge=0)


class ModuleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    content: str | None = None
    order: int = 0
    xp_reward: int = Field(default=0, ge=0)


class TestCaseCreate(BaseModel):
    input: str = ""
    expected_output: str = ""
    is_hidden: bool = False
    order: int = 0


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    difficulty: TaskDifficulty = TaskDifficulty.easy
    starter_code: str | None = None
    solution: str | None = None
    xp_reward: int = Field(default=50, ge=0)
    time_limit: int = Field(default=30, ge=1, le=60)
    memory_limit: int = Field(default=256, ge=16, le=1024)
    order: int = 0
    test_cases: list[TestCaseCreate] = []
