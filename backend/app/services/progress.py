from __future__ import annotations

import uuid
from typing import Any, Dict, List

from app.models.audit import LearningEventType
from app.models.course import Module, Task
from app.services.store import LearningStore
from app.services.xp import award_xp


class ProgressTracker:
    def __init__(self, store: LearningStore):
        self.store = store

    def is_unlocked(self, user_id: uuid.UUID, task: Task) -> bool:
        """
        Linear access rule: the first task of a module (by order) is always open,
        every other task needs a completed progress record for the task right before it.
        """
        tasks = list(self.store.tasks_by_module(task.module_id))
        idx = next((i for i, t in enumerate(tasks) if t.id == task.id), None)
        if idx is None:
            # Inactive tasks are not part of the chain.
            return False
        if idx == 0:
            return True

        previous = tasks[idx - 1]
        return previous.id in self.store.completed_task_ids(user_id, [previous.id])

    def mark_complete(
        self,
        user_id: uuid.UUID,
        course_id: uuid.UUID,
        module_id: uuid.UUID | None = None,
        task_id: uuid.UUID | None = None,
    ) -> bool:
        return self.store.upsert_progress(user_id, course_id, module_id, task_id)

    def complete_task(self, user_id: uuid.UUID, task: Task) -> Dict[str, Any]:
        """Record a solved task and roll the module up when it was the last one open."""
        module = self.store.get_module(task.module_id)
        if module is None:
            raise LookupError(f"module {task.module_id} not found")

        task_created = self.mark_complete(user_id, module.course_id, module.id, task.id)
        if task_created:
            self.store.add_event(user_id, LearningEventType.task_completed, task.id)

        module_completed = self._roll_up_module(user_id, module)
        return {
            "course_id": module.course_id,
            "module_id": module.id,
            "task_first_completion": task_created,
            "module_completed": module_completed,
            "module_xp": int(module.xp_reward or 0) if module_completed else 0,
        }

    def _roll_up_module(self, user_id: uuid.UUID, module: Module) -> bool:
        tasks = list(self.store.tasks_by_module(module.id))
        if not tasks:
            return False

        done = self.store.completed_task_ids(user_id, [t.id for t in tasks])
        if any(t.id not in done for t in tasks):
            return False

        created = self.mark_complete(user_id, module.course_id, module.id, None)
        if created:
            self.store.add_event(user_id, LearningEventType.module_completed, module.id)
            award_xp(self.store, user_id=user_id, xp=int(module.xp_reward or 0))
        return created

    def module_tasks_status(self, user_id: uuid.UUID, module_id: uuid.UUID) -> List[Dict[str, Any]]:
        tasks = list(self.store.tasks_by_module(module_id))
        done = self.store.completed_task_ids(user_id, [t.id for t in tasks])

        items = []
        previous_done = True
        for t in tasks:
            latest = self.store.latest_submission(user_id, t.id)
            items.append(
                {
                    "task": t,
                    "is_unlocked": previous_done,
                    "is_completed": t.id in done,
                    "latest_submission": latest,
                }
            )
            previous_done = t.id in done
        return items

    def course_progress(self, user_id: uuid.UUID, course_id: uuid.UUID) -> Dict[str, Any]:
        modules = list(self.store.modules_by_course(course_id))
        completed_modules = self.store.completed_module_ids(user_id, course_id)

        items = []
        for m in modules:
            tasks = list(self.store.tasks_by_module(m.id))
            done = self.store.completed_task_ids(user_id, [t.id for t in tasks])
            items.append(
                {
                    "module_id": str(m.id),
                    "title": m.title,
                    "order": int(m.order),
                    "total_tasks": len(tasks),
                    "completed_tasks": len(done),
                    "completed": m.id in completed_modules,
                }
            )

        return {
            "course_id": str(course_id),
            "total_modules": len(modules),
            "completed_modules": sum(1 for i in items if i["completed"]),
            "completed": bool(modules) and all(i["completed"] for i in items),
            "modules": items,
        }
