"""
Store facade for TaskBox.

Wraps the services so that every call runs in its own session, commits, and
then notifies realtime listeners of the topics it touched. This is the
entry point used by the command line and by ProjectBoard's background
writes.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, List, Optional

from taskbox.database import DatabaseManager
from taskbox.logging_config import get_logger
from taskbox.models import SHARD_COUNT, Project, RecordChange, Section, Task
from taskbox.services.counter_service import CounterService
from taskbox.services.project_service import ProjectService
from taskbox.services.section_service import SectionService
from taskbox.services.subscriptions import (
    ChangeNotifier,
    SnapshotCallback,
    Subscription,
    projects_topic,
    sections_topic,
    tasks_topic,
)
from taskbox.services.task_service import TaskService

logger = get_logger(__name__)


class _Services:
    """Services bound to one session."""

    def __init__(self, session, shard_count: int) -> None:
        self.counter = CounterService(session, shard_count=shard_count)
        self.projects = ProjectService(session)
        self.sections = SectionService(session, counter=self.counter)
        self.tasks = TaskService(session, counter=self.counter)


class TaskStore:
    """
    Session-per-call access to projects, sections and tasks.

    Writes are committed before listeners are notified, so every snapshot a
    listener receives reflects committed state.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        shard_count: int = SHARD_COUNT,
        notifier: Optional[ChangeNotifier] = None
    ) -> None:
        """
        Initialize the store.

        Args:
            db_manager: Initialized database manager
            shard_count: Number of counter shards per project
            notifier: Change notifier shared by listeners (created if omitted)
        """
        self.db_manager = db_manager
        self.shard_count = shard_count
        self.notifier = notifier or ChangeNotifier()

    @asynccontextmanager
    async def _services(self) -> AsyncGenerator[_Services, None]:
        async with self.db_manager.get_session() as session:
            yield _Services(session, self.shard_count)

    # ==============================================================================
    # PROJECTS
    # ==============================================================================

    async def create_project(self, name: str, user_id: str = "local") -> Project:
        async with self._services() as services:
            project = await services.projects.create_project(name, user_id=user_id)
        await self.notifier.publish(projects_topic(user_id))
        return project

    async def get_projects(self, user_id: str = "local") -> List[Project]:
        async with self._services() as services:
            return await services.projects.get_projects(user_id)

    async def get_project(self, project_id: str) -> Optional[Project]:
        async with self._services() as services:
            return await services.projects.get_project(project_id)

    async def rename_project(self, project_id: str, name: str) -> Project:
        async with self._services() as services:
            project = await services.projects.rename_project(project_id, name)
        await self.notifier.publish(projects_topic(project.user_id))
        return project

    async def delete_project(self, project_id: str) -> None:
        async with self._services() as services:
            project = await services.projects.get_project(project_id)
            await services.projects.delete_project(project_id)
        await self.notifier.publish(
            projects_topic(project.user_id), sections_topic(project_id), tasks_topic(project_id)
        )

    # ==============================================================================
    # SECTIONS
    # ==============================================================================

    async def get_sections(self, project_id: str) -> List[Section]:
        async with self._services() as services:
            return await services.sections.get_sections(project_id)

    async def create_section(self, project_id: str, name: str, index: Optional[int] = None) -> Section:
        async with self._services() as services:
            section = await services.sections.create_section(project_id, name, index=index)
        await self.notifier.publish(sections_topic(project_id))
        return section

    async def rename_section(self, section_id: str, name: str) -> Section:
        async with self._services() as services:
            section = await services.sections.rename_section(section_id, name)
        await self.notifier.publish(sections_topic(section.project_id))
        return section

    async def delete_section(self, section_id: str) -> int:
        async with self._services() as services:
            section = await services.sections.get_section(section_id)
            removed = await services.sections.delete_section(section_id)
        await self.notifier.publish(sections_topic(section.project_id), tasks_topic(section.project_id))
        return removed

    async def move_section(self, project_id: str, section_id: str, destination_index: int) -> List[Section]:
        async with self._services() as services:
            sections = await services.sections.move_section(project_id, section_id, destination_index)
        await self.notifier.publish(sections_topic(project_id))
        return sections

    async def apply_section_changes(self, project_id: str, changes: List[RecordChange]) -> int:
        async with self._services() as services:
            updated = await services.sections.apply_changes(changes)
        await self.notifier.publish(sections_topic(project_id))
        return updated

    # ==============================================================================
    # TASKS
    # ==============================================================================

    async def get_tasks(self, project_id: str, include_completed: bool = True) -> List[Task]:
        async with self._services() as services:
            return await services.tasks.get_tasks(project_id, include_completed=include_completed)

    async def get_task(self, task_id: str) -> Optional[Task]:
        async with self._services() as services:
            return await services.tasks.get_task_by_id(task_id)

    async def get_task_count(self, project_id: str) -> int:
        async with self._services() as services:
            return await services.tasks.get_task_count(project_id)

    async def create_task(
        self,
        project_id: str,
        title: str,
        section_id: Optional[str] = None,
        description: str = "",
    ) -> Task:
        async with self._services() as services:
            task = await services.tasks.create_task(
                project_id, title, section_id=section_id, description=description
            )
        await self.notifier.publish(tasks_topic(project_id))
        return task

    async def update_task(
        self,
        task_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Task:
        async with self._services() as services:
            task = await services.tasks.update_task(task_id, title=title, description=description)
        await self.notifier.publish(tasks_topic(task.project_id))
        return task

    async def complete_task(self, task_id: str) -> Task:
        async with self._services() as services:
            task = await services.tasks.complete_task(task_id)
        await self.notifier.publish(tasks_topic(task.project_id))
        return task

    async def incomplete_task(self, task_id: str) -> Task:
        async with self._services() as services:
            task = await services.tasks.incomplete_task(task_id)
        await self.notifier.publish(tasks_topic(task.project_id))
        return task

    async def delete_task(self, task_id: str) -> None:
        async with self._services() as services:
            task = await services.tasks.get_task_by_id(task_id)
            await services.tasks.delete_task(task_id)
        await self.notifier.publish(tasks_topic(task.project_id))

    async def move_task(
        self,
        task_id: str,
        destination_section_id: Optional[str],
        destination_index: int,
    ) -> List[Task]:
        async with self._services() as services:
            tasks = await services.tasks.move_task(task_id, destination_section_id, destination_index)
        if tasks:
            await self.notifier.publish(tasks_topic(tasks[0].project_id))
        return tasks

    async def move_tasks(
        self,
        primary_id: str,
        other_ids: Iterable[str],
        destination_section_id: Optional[str],
        destination_index: int,
    ) -> List[Task]:
        async with self._services() as services:
            tasks = await services.tasks.move_tasks(
                primary_id, other_ids, destination_section_id, destination_index
            )
        if tasks:
            await self.notifier.publish(tasks_topic(tasks[0].project_id))
        return tasks

    async def apply_task_changes(self, project_id: str, changes: List[RecordChange]) -> int:
        async with self._services() as services:
            updated = await services.tasks.apply_changes(changes)
        await self.notifier.publish(tasks_topic(project_id))
        return updated

    # ==============================================================================
    # LISTENERS
    # ==============================================================================

    async def listen_projects(self, callback: SnapshotCallback, user_id: str = "local") -> Subscription:
        """Follow the project list of a user."""
        return await self.notifier.listen(
            projects_topic(user_id), lambda: self.get_projects(user_id), callback
        )

    async def listen_sections(self, project_id: str, callback: SnapshotCallback) -> Subscription:
        """Follow the ordered sections of a project."""
        return await self.notifier.listen(
            sections_topic(project_id), lambda: self.get_sections(project_id), callback
        )

    async def listen_tasks(
        self,
        project_id: str,
        callback: SnapshotCallback,
        with_completed: bool = True
    ) -> Subscription:
        """Follow the tasks of a project, optionally without completed ones."""
        return await self.notifier.listen(
            tasks_topic(project_id),
            lambda: self.get_tasks(project_id, include_completed=with_completed),
            callback,
        )
