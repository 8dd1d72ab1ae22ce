from app.models.user import User, UserRole
from app.models.course import Course, CourseLevel, Module, Task, TaskDifficulty, TestCase
from app.models.submission import Submission, SubmissionStatus
from app.models.progress import UserProgress
from app.models.achievement import Achievement, AchievementCondition, UserAchievement
from app.models.certificate import Certificate
from app.models.audit import LearningEvent, LearningEventType

__all__ = [
    "User",
    "UserRole",
    "Course",
    "CourseLevel",
    "Module",
    "Task",
    "TaskDifficulty",
    "TestCase",
    "Submission",
    "SubmissionStatus",
    "UserProgress",
    "Achievement",
    "AchievementCondition",
    "UserAchievement",
    "Certificate",
    "LearningEvent",
    "LearningEventType",
]
