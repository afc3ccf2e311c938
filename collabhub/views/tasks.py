"""Task board: the task list, its partitions and optimistic task mutations."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from collabhub.api.client import HubApiClient
from collabhub.domain.bus import EventBus
from collabhub.domain.models import (
    SELF_CALENDAR,
    Interval,
    MutationResult,
    Task,
    TaskDraft,
    TaskStatus,
    TaskUrgency,
    utcnow,
)
from collabhub.errors import RemoteError
from collabhub.services.conflicts import deadline_clashes
from collabhub.services.forms import validate_task
from collabhub.services.optimistic import OptimisticCollection, new_local_id

logger = logging.getLogger(__name__)


def _completed(task: Task, done: bool, now: datetime) -> Task:
    return task.model_copy(
        update={
            "is_completed": done,
            "status": TaskStatus.COMPLETED if done else TaskStatus.PENDING,
            "completed_at": now if done else None,
        }
    )


class TaskBoard:
    def __init__(
        self,
        client: HubApiClient,
        *,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._client = client
        self._clock = clock
        self.tasks: OptimisticCollection[Task] = OptimisticCollection("tasks", bus=bus)
        self.error: str | None = None

    async def load(self, **filters) -> list[Task]:
        """Fetch the task list; a failed fetch leaves an empty board and an error."""
        try:
            tasks = await self._client.list_tasks(**filters)
        except RemoteError as exc:
            logger.warning("Could not load tasks: %s", exc)
            self.error = str(exc)
            self.tasks.clear()
            return []
        self.error = None
        self.tasks.replace_all(tasks)
        return tasks

    def reset(self) -> None:
        self.tasks.clear()
        self.error = None

    # ------------------------------------------------------------------
    # Derived lists
    # ------------------------------------------------------------------

    def active(self) -> list[Task]:
        return [task for task in self.tasks if task.is_active]

    def completed(self) -> list[Task]:
        return [task for task in self.tasks if not task.is_active]

    def search(self, query: str) -> list[Task]:
        needle = query.strip().lower()
        if not needle:
            return self.tasks.values()
        return [
            task
            for task in self.tasks
            if needle in task.title.lower() or needle in (task.description or "").lower()
        ]

    def clashes_with(self, draft: TaskDraft) -> list[Task]:
        """Active tasks due the same day on the same assignee's calendar."""
        candidate = Interval.point(draft.assignee_id or SELF_CALENDAR, draft.deadline)
        return deadline_clashes(candidate, self.tasks)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_task(
        self,
        *,
        title: str,
        deadline: str | datetime | None,
        description: str | None = None,
        urgency: TaskUrgency = TaskUrgency.MEDIUM,
        department: str = "IT",
        project_id: str | None = None,
        assignee_id: str | None = None,
    ) -> MutationResult:
        """Validate, show the task at once under a temporary id, then confirm it."""
        now = self._clock()
        draft = validate_task(
            title=title,
            deadline=deadline,
            now=now,
            description=description,
            urgency=urgency,
            department=department,
            project_id=project_id,
            assignee_id=assignee_id,
        )
        local_id = new_local_id("task")
        provisional = Task(
            id=local_id,
            title=draft.title,
            description=draft.description,
            urgency=draft.urgency,
            department=draft.department,
            project_id=draft.project_id,
            assignee_id=draft.assignee_id,
            deadline=draft.deadline,
            created_at=now,
        )
        return await self.tasks.create(
            local_id, provisional, lambda: self._client.create_task(draft)
        )

    async def toggle_complete(self, key: str) -> MutationResult:
        async def _push(task: Task) -> Task:
            status = await self._client.set_task_status(task.id, task.status)
            return task.model_copy(update={"status": status})

        now = self._clock()
        return await self.tasks.update(key, lambda t: _completed(t, t.is_active, now), _push)

    async def set_status(self, key: str, status: TaskStatus) -> MutationResult:
        async def _push(task: Task) -> Task:
            confirmed = await self._client.set_task_status(task.id, status)
            return task.model_copy(update={"status": confirmed})

        now = self._clock()
        return await self.tasks.update(
            key,
            lambda t: _completed(t, status == TaskStatus.COMPLETED, now).model_copy(
                update={"status": status}
            ),
            _push,
        )

    async def delete_task(self, key: str) -> MutationResult:
        return await self.tasks.delete(key, lambda: self._client.delete_task(key))
