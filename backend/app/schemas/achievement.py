from __future__ import annotations

from pydantic import BaseModel, Field

from app.models.achievement import AchievementCondition
from app.models.course import CourseLevel


class AchievementOut(BaseModel):
    id: str
    name: str
    description: str | None
    icon: str | None
    xp_reward: int
    condition_type: str
    threshold: int
    course_level: str | None = None


class UserAchievementOut(BaseModel):
    achievement: AchievementOut
    unlocked_at: str


class AchievementCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    icon: str | None = None
    xp_reward: int = Field(default=0, ge=0)
    condition_type: AchievementCondition
    threshold: int = Field(default=1, ge=1)
    course_level: CourseLevel | None = None


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    name: str
    xp: int
    level: int
    streak: int


class LeaderboardResponse(BaseModel):
    items: list[LeaderboardEntry]
