from __future__ import annotations

import logging
import uuid
from typing import List

from app.models.achievement import Achievement, AchievementCondition
from app.models.audit import LearningEventType
from app.models.course import CourseLevel
from app.services.store import LearningStore
from app.services.xp import award_xp

logger = logging.getLogger(__name__)

TASK_MILESTONES = (1, 5, 10, 25, 50, 100)


class AchievementEngine:
    def __init__(self, store: LearningStore):
        self.store = store

    def grant(self, user_id: uuid.UUID, achievement: Achievement) -> bool:
        """Unlock ``achievement`` for the user and credit its XP.

        Returns False without crediting anything when it is already unlocked.
        """
        if not self.store.grant_achievement(user_id, achievement.id):
            return False

        award_xp(self.store, user_id=user_id, xp=int(achievement.xp_reward or 0))
        self.store.add_event(
            user_id,
            LearningEventType.achievement_unlocked,
            achievement.id,
            meta={"name": achievement.name, "xp": int(achievement.xp_reward or 0)},
        )
        logger.info("achievement unlocked user=%s achievement=%s", user_id, achievement.name)
        return True

    def _pick_one(self, candidates, *, what: str) -> Achievement | None:
        if not candidates:
            return None
        if len(candidates) > 1:
            logger.warning(
                "%s matches %d achievements (%s); granting the oldest only",
                what,
                len(candidates),
                ", ".join(str(a.id) for a in candidates),
            )
        return candidates[0]

    def check_task_milestones(self, user_id: uuid.UUID) -> List[Achievement]:
        completed = self.store.count_completed_tasks(user_id)

        unlocked: List[Achievement] = []
        for milestone in TASK_MILESTONES:
            if completed < milestone:
                break
            candidates = self.store.achievements_matching(AchievementCondition.tasks_completed, threshold=milestone)
            achievement = self._pick_one(candidates, what=f"tasks_completed>={milestone}")
            if achievement is not None and self.grant(user_id, achievement):
                unlocked.append(achievement)
        return unlocked

    def check_course_completion(self, user_id: uuid.UUID, course_level: CourseLevel) -> List[Achievement]:
        completed_courses = len(self.store.user_certificates(user_id))

        unlocked: List[Achievement] = []
        for achievement in self.store.achievements_matching(
            AchievementCondition.course_completed, course_level=course_level
        ):
            if completed_courses < int(achievement.threshold or 1):
                continue
            if self.grant(user_id, achievement):
                unlocked.append(achievement)
        return unlocked
