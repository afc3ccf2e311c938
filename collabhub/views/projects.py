"""Projects: project list, the open project's members and tasks."""

from __future__ import annotations

import asyncio
import logging

from collabhub.api.client import HubApiClient
from collabhub.domain.bus import EventBus
from collabhub.domain.models import (
    MemberRole,
    MutationResult,
    Project,
    ProjectMember,
    ProjectStatus,
    Task,
    utcnow,
)
from collabhub.errors import RemoteError
from collabhub.services.forms import validate_project
from collabhub.services.optimistic import OptimisticCollection, new_local_id

logger = logging.getLogger(__name__)


class ProjectsView:
    def __init__(self, client: HubApiClient, *, bus: EventBus | None = None) -> None:
        self._client = client
        self.projects: OptimisticCollection[Project] = OptimisticCollection("projects", bus=bus)
        self.members: OptimisticCollection[ProjectMember] = OptimisticCollection(
            "project-members", id_of=lambda member: member.user_id, bus=bus
        )
        self.selected_id: str | None = None
        self.tasks: list[Task] = []
        self.error: str | None = None

    async def load(self, *, status: ProjectStatus | None = None) -> list[Project]:
        try:
            projects = await self._client.list_projects(status=status)
        except RemoteError as exc:
            logger.warning("Could not load projects: %s", exc)
            self.error = str(exc)
            self.projects.clear()
            return []
        self.error = None
        self.projects.replace_all(projects)
        return projects

    def reset(self) -> None:
        self.projects.clear()
        self.close()
        self.error = None

    @property
    def selected(self) -> Project | None:
        return None if self.selected_id is None else self.projects.get(self.selected_id)

    async def open(self, project_id: str) -> None:
        """Select a project and load its members and tasks."""
        self.selected_id = project_id
        members, tasks = await asyncio.gather(
            self._client.project_members(project_id),
            self._client.project_tasks(project_id),
            return_exceptions=True,
        )
        for label, result in (("members", members), ("tasks", tasks)):
            if isinstance(result, RemoteError):
                logger.warning("Could not load project %s %s: %s", project_id, label, result)
            elif isinstance(result, BaseException):
                raise result
        self.members.replace_all([] if isinstance(members, BaseException) else members)
        self.tasks = [] if isinstance(tasks, BaseException) else tasks

    def close(self) -> None:
        self.selected_id = None
        self.members.clear()
        self.tasks = []

    async def create_project(
        self,
        *,
        name: str,
        description: str | None = None,
        status: ProjectStatus = ProjectStatus.ACTIVE,
        member_ids: list[str] | None = None,
    ) -> MutationResult:
        draft = validate_project(
            name=name, description=description, status=status, member_ids=member_ids
        )
        local_id = new_local_id("project")
        me = self._client.session.user
        provisional = Project(
            id=local_id,
            name=draft.name,
            description=draft.description,
            status=draft.status,
            created_by=me.id if me else None,
            created_at=utcnow(),
            member_count=1 + len(member_ids or []),
        )
        return await self.projects.create(
            local_id, provisional, lambda: self._client.create_project(draft)
        )

    async def update_project(
        self,
        key: str,
        *,
        name: str | None = None,
        description: str | None = None,
        status: ProjectStatus | None = None,
    ) -> MutationResult:
        current = self.projects.get(key)
        if current is None:
            raise KeyError(key)
        draft = validate_project(
            name=current.name if name is None else name,
            description=current.description if description is None else description,
            status=current.status if status is None else status,
        )
        return await self.projects.update(
            key,
            lambda project: project.model_copy(
                update={
                    "name": draft.name,
                    "description": draft.description,
                    "status": draft.status,
                }
            ),
            lambda _: self._client.update_project(key, draft),
        )

    async def delete_project(self, key: str) -> MutationResult:
        result = await self.projects.delete(key, lambda: self._client.delete_project(key))
        if result.ok and self.selected_id == key:
            self.close()
        return result

    async def add_member(
        self, user_id: str, role: MemberRole = MemberRole.MEMBER, *, name: str = ""
    ) -> MutationResult:
        project_id = self._require_selected()
        provisional = ProjectMember(
            id=new_local_id("member"), user_id=user_id, name=name, role=role, added_at=utcnow()
        )
        return await self.members.create(
            user_id,
            provisional,
            lambda: self._client.add_project_member(project_id, user_id, role),
        )

    async def remove_member(self, user_id: str) -> MutationResult:
        project_id = self._require_selected()
        return await self.members.delete(
            user_id, lambda: self._client.remove_project_member(project_id, user_id)
        )

    def _require_selected(self) -> str:
        if self.selected_id is None:
            raise LookupError("No project is open")
        return self.selected_id
