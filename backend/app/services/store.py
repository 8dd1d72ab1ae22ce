from __future__ import annotations

import abc
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from fastapi import Depends
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.achievement import Achievement, AchievementCondition, UserAchievement
from app.models.audit import LearningEvent, LearningEventType
from app.models.certificate import Certificate
from app.models.course import Course, CourseLevel, Module, Task, TestCase
from app.models.progress import UserProgress, progress_scope_key
from app.models.submission import Submission, SubmissionStatus
from app.models.user import User


class LearningStore(abc.ABC):
    """Persistence capabilities used by the learning services.

    Writes are staged in the current unit of work; callers decide when to
    ``commit``. ``increment_xp`` is a single atomic UPDATE, never a
    read-modify-write of a loaded row.
    """

    # users
    @abc.abstractmethod
    def get_user(self, user_id: uuid.UUID) -> User | None: ...

    @abc.abstractmethod
    def get_user_by_email(self, email: str) -> User | None: ...

    @abc.abstractmethod
    def add_user(self, user: User) -> User: ...

    @abc.abstractmethod
    def increment_xp(self, user_id: uuid.UUID, amount: int) -> None: ...

    @abc.abstractmethod
    def leaderboard(self, limit: int = 10) -> Sequence[User]: ...

    # catalogue
    @abc.abstractmethod
    def list_courses(self) -> Sequence[Course]: ...

    @abc.abstractmethod
    def get_course(self, course_id: uuid.UUID) -> Course | None: ...

    @abc.abstractmethod
    def add_course(self, course: Course) -> Course: ...

    @abc.abstractmethod
    def modules_by_course(self, course_id: uuid.UUID) -> Sequence[Module]: ...

    @abc.abstractmethod
    def get_module(self, module_id: uuid.UUID) -> Module | None: ...

    @abc.abstractmethod
    def add_module(self, module: Module) -> Module: ...

    @abc.abstractmethod
    def tasks_by_module(self, module_id: uuid.UUID) -> Sequence[Task]: ...

    @abc.abstractmethod
    def get_task(self, task_id: uuid.UUID) -> Task | None: ...

    @abc.abstractmethod
    def add_task(self, task: Task) -> Task: ...

    @abc.abstractmethod
    def test_cases_by_task(self, task_id: uuid.UUID, *, include_hidden: bool = True) -> Sequence[TestCase]: ...

    @abc.abstractmethod
    def add_test_case(self, test_case: TestCase) -> TestCase: ...

    # submissions
    @abc.abstractmethod
    def add_submission(self, submission: Submission) -> Submission: ...

    @abc.abstractmethod
    def get_submission(self, submission_id: uuid.UUID) -> Submission | None: ...

    @abc.abstractmethod
    def finalize_submission(self, submission_id: uuid.UUID, *, status: SubmissionStatus, **values: Any) -> bool: ...

    @abc.abstractmethod
    def submissions_by_user(self, user_id: uuid.UUID, task_id: uuid.UUID | None = None) -> Sequence[Submission]: ...

    @abc.abstractmethod
    def latest_submission(self, user_id: uuid.UUID, task_id: uuid.UUID) -> Submission | None: ...

    # progress
    @abc.abstractmethod
    def upsert_progress(
        self,
        user_id: uuid.UUID,
        course_id: uuid.UUID,
        module_id: uuid.UUID | None = None,
        task_id: uuid.UUID | None = None,
    ) -> bool: ...

    @abc.abstractmethod
    def user_progress(self, user_id: uuid.UUID, course_id: uuid.UUID | None = None) -> Sequence[UserProgress]: ...

    @abc.abstractmethod
    def completed_task_ids(self, user_id: uuid.UUID, task_ids: Sequence[uuid.UUID]) -> set[uuid.UUID]: ...

    @abc.abstractmethod
    def count_completed_tasks(self, user_id: uuid.UUID) -> int: ...

    @abc.abstractmethod
    def completed_module_ids(self, user_id: uuid.UUID, course_id: uuid.UUID) -> set[uuid.UUID]: ...

    # achievements
    @abc.abstractmethod
    def list_achievements(self) -> Sequence[Achievement]: ...

    @abc.abstractmethod
    def achievements_matching(
        self,
        condition_type: AchievementCondition,
        *,
        threshold: int | None = None,
        course_level: CourseLevel | None = None,
    ) -> Sequence[Achievement]: ...

    @abc.abstractmethod
    def add_achievement(self, achievement: Achievement) -> Achievement: ...

    @abc.abstractmethod
    def user_achievements(self, user_id: uuid.UUID) -> Sequence[tuple[UserAchievement, Achievement]]: ...

    @abc.abstractmethod
    def grant_achievement(self, user_id: uuid.UUID, achievement_id: uuid.UUID) -> bool: ...

    # certificates
    @abc.abstractmethod
    def get_certificate(self, user_id: uuid.UUID, course_id: uuid.UUID) -> Certificate | None: ...

    @abc.abstractmethod
    def get_certificate_by_number(self, certificate_number: str) -> Certificate | None: ...

    @abc.abstractmethod
    def add_certificate(self, certificate: Certificate) -> bool: ...

    @abc.abstractmethod
    def user_certificates(self, user_id: uuid.UUID) -> Sequence[Certificate]: ...

    # activity log
    @abc.abstractmethod
    def add_event(
        self,
        user_id: uuid.UUID,
        type: LearningEventType,
        ref_id: uuid.UUID | None = None,
        meta: dict | None = None,
    ) -> None: ...

    @abc.abstractmethod
    def last_event_at(self, user_id: uuid.UUID) -> datetime | None: ...

    # unit of work
    @abc.abstractmethod
    def flush(self) -> None: ...

    @abc.abstractmethod
    def commit(self) -> None: ...

    @abc.abstractmethod
    def rollback(self) -> None: ...


class SqlAlchemyStore(LearningStore):
    def __init__(self, db: Session):
        self.db = db

    def _insert_once(self, obj) -> bool:
        # SAVEPOINT so a concurrent duplicate only discards this row, not the whole unit of work.
        try:
            with self.db.begin_nested():
                self.db.add(obj)
                self.db.flush()
        except IntegrityError:
            return False
        return True

    def get_user(self, user_id):
        return self.db.scalar(select(User).where(User.id == user_id))

    def get_user_by_email(self, email):
        return self.db.scalar(select(User).where(func.lower(User.email) == str(email or "").strip().lower()))

    def add_user(self, user):
        self.db.add(user)
        self.db.flush()
        return user

    def increment_xp(self, user_id, amount):
        if not amount:
            return
        self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                xp=User.xp + int(amount),
                level=(User.xp + int(amount)) // 100 + 1,
            )
            .execution_options(synchronize_session=False)
        )
        user = self.db.get(User, user_id)
        if user is not None:
            self.db.refresh(user, attribute_names=["xp", "level"])

    def leaderboard(self, limit=10):
        return self.db.scalars(
            select(User).where(User.is_active == True).order_by(User.xp.desc(), User.created_at).limit(int(limit))  # noqa: E712
        ).all()

    def list_courses(self):
        return self.db.scalars(select(Course).where(Course.is_active == True).order_by(Course.order)).all()  # noqa: E712

    def get_course(self, course_id):
        return self.db.scalar(select(Course).where(Course.id == course_id))

    def add_course(self, course):
        self.db.add(course)
        self.db.flush()
        return course

    def modules_by_course(self, course_id):
        return self.db.scalars(
            select(Module)
            .where(Module.course_id == course_id, Module.is_active == True)  # noqa: E712
            .order_by(Module.order)
        ).all()

    def get_module(self, module_id):
        return self.db.scalar(select(Module).where(Module.id == module_id))

    def add_module(self, module):
        self.db.add(module)
        self.db.flush()
        return module

    def tasks_by_module(self, module_id):
        return self.db.scalars(
            select(Task)
            .where(Task.module_id == module_id, Task.is_active == True)  # noqa: E712
            .order_by(Task.order)
        ).all()

    def get_task(self, task_id):
        return self.db.scalar(select(Task).where(Task.id == task_id))

    def add_task(self, task):
        self.db.add(task)
        self.db.flush()
        return task

    def test_cases_by_task(self, task_id, *, include_hidden=True):
        q = select(TestCase).where(TestCase.task_id == task_id)
        if not include_hidden:
            q = q.where(TestCase.is_hidden == False)  # noqa: E712
        return self.db.scalars(q.order_by(TestCase.order)).all()

    def add_test_case(self, test_case):
        self.db.add(test_case)
        self.db.flush()
        return test_case

    def add_submission(self, submission):
        self.db.add(submission)
        self.db.flush()
        return submission

    def get_submission(self, submission_id):
        return self.db.scalar(select(Submission).where(Submission.id == submission_id))

    def finalize_submission(self, submission_id, *, status, **values):
        res = self.db.execute(
            update(Submission)
            .where(Submission.id == submission_id, Submission.status.is_(None))
            .values(status=status, finished_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        if not res.rowcount:
            return False
        sub = self.db.get(Submission, submission_id)
        if sub is not None:
            self.db.refresh(sub)
        return True

    def submissions_by_user(self, user_id, task_id=None):
        q = select(Submission).where(Submission.user_id == user_id)
        if task_id is not None:
            q = q.where(Submission.task_id == task_id)
        return self.db.scalars(q.order_by(Submission.created_at.desc())).all()

    def latest_submission(self, user_id, task_id):
        return self.db.scalar(
            select(Submission)
            .where(Submission.user_id == user_id, Submission.task_id == task_id)
            .order_by(Submission.created_at.desc())
            .limit(1)
        )

    def upsert_progress(self, user_id, course_id, module_id=None, task_id=None):
        key = progress_scope_key(course_id, module_id, task_id)
        now = datetime.now(timezone.utc)

        existing = self.db.scalar(
            select(UserProgress).where(UserProgress.user_id == user_id, UserProgress.scope_key == key)
        )
        if existing is not None:
            created = not existing.is_completed
            if created:
                existing.is_completed = True
                existing.completed_at = now
                self.db.flush()
            return created

        row = UserProgress(
            user_id=user_id,
            course_id=course_id,
            module_id=module_id,
            task_id=task_id,
            scope_key=key,
            is_completed=True,
            completed_at=now,
        )
        return self._insert_once(row)

    def user_progress(self, user_id, course_id=None):
        q = select(UserProgress).where(UserProgress.user_id == user_id)
        if course_id is not None:
            q = q.where(UserProgress.course_id == course_id)
        return self.db.scalars(q.order_by(UserProgress.completed_at)).all()

    def completed_task_ids(self, user_id, task_ids):
        if not task_ids:
            return set()
        return set(
            self.db.scalars(
                select(UserProgress.task_id).where(
                    UserProgress.user_id == user_id,
                    UserProgress.task_id.in_(list(task_ids)),
                    UserProgress.is_completed == True,  # noqa: E712
                )
            ).all()
        )

    def count_completed_tasks(self, user_id):
        n = self.db.scalar(
            select(func.count(UserProgress.id)).where(
                UserProgress.user_id == user_id,
                UserProgress.task_id.is_not(None),
                UserProgress.is_completed == True,  # noqa: E712
            )
        )
        return int(n or 0)

    def completed_module_ids(self, user_id, course_id):
        return set(
            self.db.scalars(
                select(UserProgress.module_id).where(
                    UserProgress.user_id == user_id,
                    UserProgress.course_id == course_id,
                    UserProgress.module_id.is_not(None),
                    UserProgress.task_id.is_(None),
                    UserProgress.is_completed == True,  # noqa: E712
                )
            ).all()
        )

    def list_achievements(self):
        return self.db.scalars(
            select(Achievement).where(Achievement.is_active == True).order_by(Achievement.created_at)  # noqa: E712
        ).all()

    def achievements_matching(self, condition_type, *, threshold=None, course_level=None):
        q = select(Achievement).where(
            Achievement.is_active == True,  # noqa: E712
            Achievement.condition_type == condition_type,
        )
        if threshold is not None:
            q = q.where(Achievement.threshold == int(threshold))
        if condition_type == AchievementCondition.course_completed:
            if course_level is None:
                q = q.where(Achievement.course_level.is_(None))
            else:
                q = q.where((Achievement.course_level.is_(None)) | (Achievement.course_level == course_level))
        return self.db.scalars(q.order_by(Achievement.created_at, Achievement.id)).all()

    def add_achievement(self, achievement):
        self.db.add(achievement)
        self.db.flush()
        return achievement

    def user_achievements(self, user_id):
        rows = self.db.execute(
            select(UserAchievement, Achievement)
            .join(Achievement, Achievement.id == UserAchievement.achievement_id)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.unlocked_at.desc())
        ).all()
        return [(ua, a) for ua, a in rows]

    def grant_achievement(self, user_id, achievement_id):
        already = self.db.scalar(
            select(func.count(UserAchievement.id)).where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_id == achievement_id,
            )
        )
        if already:
            return False
        return self._insert_once(UserAchievement(user_id=user_id, achievement_id=achievement_id))

    def get_certificate(self, user_id, course_id):
        return self.db.scalar(
            select(Certificate).where(Certificate.user_id == user_id, Certificate.course_id == course_id)
        )

    def get_certificate_by_number(self, certificate_number):
        return self.db.scalar(select(Certificate).where(Certificate.certificate_number == certificate_number))

    def add_certificate(self, certificate):
        return self._insert_once(certificate)

    def user_certificates(self, user_id):
        return self.db.scalars(
            select(Certificate).where(Certificate.user_id == user_id).order_by(Certificate.issued_at.desc())
        ).all()

    def add_event(self, user_id, type, ref_id=None, meta=None):
        self.db.add(
            LearningEvent(
                user_id=user_id,
                type=type,
                ref_id=ref_id,
                meta=json.dumps(meta, ensure_ascii=False) if meta is not None else None,
            )
        )

    def last_event_at(self, user_id):
        return self.db.scalar(
            select(func.max(LearningEvent.created_at)).where(LearningEvent.user_id == user_id)
        )

    def flush(self):
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()


def get_store(db: Session = Depends(get_db)) -> LearningStore:
    return SqlAlchemyStore(db)
