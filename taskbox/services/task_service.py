"""
Task service for TaskBox.

Implements task CRUD, completion, and drag-and-drop reordering with database
persistence. New orderings are computed by the pure reorder engine on a
snapshot of the project's tasks; only the changed ``index``/``section_id``
fields are written back, and the sharded counter tracks the task total.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskbox.database import ProjectORM, SectionORM, TaskORM
from taskbox.logging_config import get_logger
from taskbox.models import RecordChange, Task
from taskbox.services import reorder
from taskbox.services.counter_service import CounterService
from taskbox.services.errors import (
    ProjectNotFoundError,
    SectionNotFoundError,
    TaskNotFoundError,
)

logger = get_logger(__name__)


class TaskService:
    """
    Service layer for task operations.

    Handles CRUD operations for tasks with database persistence and keeps
    task indices dense within every container.
    """

    def __init__(
        self,
        session: AsyncSession,
        counter: Optional[CounterService] = None
    ) -> None:
        """
        Initialize task service with database session.

        Args:
            session: Active async database session
            counter: Sharded task counter (created on the same session if omitted)
        """
        self.session = session
        self.counter = counter or CounterService(session)

    # ==============================================================================
    # CONVERSION HELPERS
    # ==============================================================================

    @staticmethod
    def _orm_to_pydantic(task_orm: TaskORM) -> Task:
        """
        Convert TaskORM to Pydantic Task model.

        Args:
            task_orm: SQLAlchemy ORM task instance

        Returns:
            Pydantic Task instance
        """
        return Task(
            id=task_orm.id,
            project_id=task_orm.project_id,
            section_id=task_orm.section_id,
            index=task_orm.index,
            title=task_orm.title,
            description=task_orm.description,
            completed_at=task_orm.completed_at,
            created_at=task_orm.created_at,
        )

    @staticmethod
    def _pydantic_to_orm(task: Task) -> TaskORM:
        """
        Convert Pydantic Task to TaskORM model.

        Args:
            task: Pydantic Task instance

        Returns:
            SQLAlchemy ORM task instance
        """
        return TaskORM(
            id=task.id,
            project_id=task.project_id,
            section_id=task.section_id,
            index=task.index,
            title=task.title,
            description=task.description,
            completed_at=task.completed_at,
            created_at=task.created_at,
        )

    # ==============================================================================
    # VALIDATION HELPERS
    # ==============================================================================

    async def _verify_project_exists(self, project_id: str) -> None:
        """
        Verify that a project exists.

        Raises:
            ProjectNotFoundError: If project does not exist
        """
        result = await self.session.execute(
            select(ProjectORM.id).where(ProjectORM.id == project_id)
        )
        if result.scalar_one_or_none() is None:
            raise ProjectNotFoundError(f"Project with id {project_id} not found")

    async def _verify_section_in_project(self, section_id: Optional[str], project_id: str) -> None:
        """
        Verify that a section exists and belongs to the project.

        A None section stands for the unsectioned list and always passes.

        Raises:
            SectionNotFoundError: If the section is missing or foreign
        """
        if section_id is None:
            return
        result = await self.session.execute(
            select(SectionORM.project_id).where(SectionORM.id == section_id)
        )
        owner = result.scalar_one_or_none()
        if owner != project_id:
            raise SectionNotFoundError(
                f"Section with id {section_id} not found in project {project_id}"
            )

    async def _get_task_or_raise(self, task_id: str) -> TaskORM:
        """
        Get a task by ID or raise an exception.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        result = await self.session.execute(
            select(TaskORM).where(TaskORM.id == task_id)
        )
        task_orm = result.scalar_one_or_none()
        if not task_orm:
            raise TaskNotFoundError(f"Task with id {task_id} not found")
        return task_orm

    # ==============================================================================
    # READ OPERATIONS
    # ==============================================================================

    async def get_tasks(self, project_id: str, include_completed: bool = True) -> List[Task]:
        """
        Get the tasks of a project ordered by container and index.

        Args:
            project_id: Project to query
            include_completed: Whether completed tasks are returned

        Returns:
            Tasks of the project
        """
        query = (
            select(TaskORM)
            .where(TaskORM.project_id == project_id)
            .order_by(TaskORM.section_id, TaskORM.index)
        )
        if not include_completed:
            query = query.where(TaskORM.completed_at.is_(None))

        result = await self.session.execute(query)
        return [self._orm_to_pydantic(row) for row in result.scalars().all()]

    async def get_completed_tasks(self, project_id: str) -> List[Task]:
        """Get only the completed tasks of a project."""
        result = await self.session.execute(
            select(TaskORM)
            .where(TaskORM.project_id == project_id, TaskORM.completed_at.is_not(None))
            .order_by(TaskORM.section_id, TaskORM.index)
        )
        return [self._orm_to_pydantic(row) for row in result.scalars().all()]

    async def get_task_by_id(self, task_id: str) -> Optional[Task]:
        """
        Get a task by ID.

        Returns:
            Task if found, None otherwise
        """
        result = await self.session.execute(
            select(TaskORM).where(TaskORM.id == task_id)
        )
        task_orm = result.scalar_one_or_none()
        return self._orm_to_pydantic(task_orm) if task_orm else None

    async def get_task_count(self, project_id: str) -> int:
        """Total number of tasks in a project, read from the sharded counter."""
        return await self.counter.get_count(project_id)

    # ==============================================================================
    # CREATE OPERATIONS
    # ==============================================================================

    async def create_task(
        self,
        project_id: str,
        title: str,
        section_id: Optional[str] = None,
        description: str = "",
        task_id: Optional[str] = None,
    ) -> Task:
        """
        Create a task in the unsectioned list or in a section.

        The task is placed right after the last incomplete task of its
        container, ahead of any completed tasks, and the following tasks are
        shifted down by one. One random counter shard is incremented.

        Args:
            project_id: Owning project
            title: Task title (newlines are removed)
            section_id: Target section, or None for the unsectioned list
            description: Optional description
            task_id: Optional id (generated when omitted)

        Returns:
            Created Task

        Raises:
            ProjectNotFoundError: If the project does not exist
            SectionNotFoundError: If the section is not part of the project
        """
        try:
            logger.debug(f"Creating task: title='{title}', project_id={project_id}, section_id={section_id}")

            await self._verify_project_exists(project_id)
            await self._verify_section_in_project(section_id, project_id)

            container = reorder.group_by_container(
                await self.get_tasks(project_id)
            ).get(section_id, [])
            _, incomplete = reorder.separate_completed(container)
            position = incomplete[-1].index + 1 if incomplete else 0

            fields = {
                "project_id": project_id,
                "section_id": section_id,
                "title": title,
                "description": description,
                "index": position,
            }
            if task_id is not None:
                fields["id"] = task_id
            task = Task(**fields)

            reordered = reorder.assign_indices(container[:position] + [task] + container[position:])
            await self.apply_changes(reorder.diff_records(container, reordered))

            self.session.add(self._pydantic_to_orm(task))
            await self.session.flush()
            await self.counter.increment(project_id, 1)

            logger.info(f"Created task: id={task.id}, title='{task.title}', index={task.index}")
            return task
        except (ProjectNotFoundError, SectionNotFoundError) as e:
            logger.error(f"Failed to create task - invalid container: {e}", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Failed to create task: {e}", exc_info=True)
            raise

    # ==============================================================================
    # UPDATE OPERATIONS
    # ==============================================================================

    async def update_task(
        self,
        task_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Task:
        """
        Update a task's title and/or description.

        Args:
            task_id: ID of the task to update
            title: New title (optional)
            description: New description (optional)

        Returns:
            Updated Task

        Raises:
            TaskNotFoundError: If task does not exist
        """
        try:
            task_orm = await self._get_task_or_raise(task_id)

            changes = {}
            if title is not None:
                changes["title"] = title
            if description is not None:
                changes["description"] = description
            task = Task(**{**self._orm_to_pydantic(task_orm).model_dump(), **changes})

            task_orm.title = task.title
            task_orm.description = task.description
            await self.session.flush()

            logger.info(f"Updated task: id={task_id}, fields={sorted(changes)}")
            return task
        except TaskNotFoundError as e:
            logger.error(f"Failed to update task - not found: {e}", exc_info=True)
            raise

    async def complete_task(self, task_id: str) -> Task:
        """
        Mark a task as completed. Its index is kept.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task_orm = await self._get_task_or_raise(task_id)
        if task_orm.completed_at is None:
            task_orm.completed_at = datetime.utcnow()
            await self.session.flush()
            logger.info(f"Task completed: task_id={task_id}, timestamp={task_orm.completed_at.isoformat()}")
        return self._orm_to_pydantic(task_orm)

    async def incomplete_task(self, task_id: str) -> Task:
        """
        Mark a task as incomplete again.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task_orm = await self._get_task_or_raise(task_id)
        if task_orm.completed_at is not None:
            task_orm.completed_at = None
            await self.session.flush()
            logger.info(f"Task reopened: task_id={task_id}")
        return self._orm_to_pydantic(task_orm)

    async def toggle_completion(self, task_id: str) -> Task:
        """Flip a task between completed and incomplete."""
        task_orm = await self._get_task_or_raise(task_id)
        if task_orm.completed_at is None:
            return await self.complete_task(task_id)
        return await self.incomplete_task(task_id)

    # ==============================================================================
    # DELETE OPERATIONS
    # ==============================================================================

    async def delete_task(self, task_id: str) -> None:
        """
        Delete a task, close the gap in its container and decrement the counter.

        Raises:
            TaskNotFoundError: If task does not exist
        """
        await self.delete_tasks([task_id])

    async def delete_tasks(self, task_ids: Iterable[str]) -> int:
        """
        Delete several tasks of one project in one batch.

        Affected containers are re-indexed and the counter is decremented
        once by the number of deleted tasks.

        Args:
            task_ids: Tasks to delete

        Returns:
            Number of tasks deleted

        Raises:
            TaskNotFoundError: If any task does not exist
        """
        try:
            rows = [await self._get_task_or_raise(task_id) for task_id in dict.fromkeys(task_ids)]
            if not rows:
                return 0

            removed_ids = {row.id for row in rows}
            project_ids = {row.project_id for row in rows}

            for row in rows:
                await self.session.delete(row)
            await self.session.flush()

            for project_id in project_ids:
                remaining = await self.get_tasks(project_id)
                regrouped = reorder.group_by_container(remaining)
                reindexed = reorder.flatten_containers(
                    {key: reorder.assign_indices(members) for key, members in regrouped.items()}
                )
                await self.apply_changes(reorder.diff_records(remaining, reindexed))

                deleted_here = sum(1 for row in rows if row.project_id == project_id)
                await self.counter.decrement(project_id, deleted_here)

            logger.info(f"Deleted {len(removed_ids)} tasks: ids={sorted(removed_ids)}")
            return len(removed_ids)
        except TaskNotFoundError as e:
            logger.error(f"Failed to delete task - not found: {e}", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Failed to delete tasks: {e}", exc_info=True)
            raise

    # ==============================================================================
    # REORDER OPERATIONS
    # ==============================================================================

    async def move_task(
        self,
        task_id: str,
        destination_section_id: Optional[str],
        destination_index: int,
    ) -> List[Task]:
        """
        Move one task within its container or into another container.

        Args:
            task_id: Task to move
            destination_section_id: Target section, or None for unsectioned
            destination_index: Drop position in the target container

        Returns:
            The project's tasks after the move

        Raises:
            TaskNotFoundError: If task does not exist
            SectionNotFoundError: If the destination is not part of the project
        """
        task_orm = await self._get_task_or_raise(task_id)
        project_id = task_orm.project_id
        await self._verify_section_in_project(destination_section_id, project_id)

        before = await self.get_tasks(project_id)
        after = reorder.move_task(before, task_id, destination_section_id, destination_index)
        changes = reorder.diff_records(before, after)
        await self.apply_changes(changes)

        logger.info(
            f"Moved task: id={task_id}, section_id={destination_section_id}, "
            f"index={destination_index}, updated={len(changes)}"
        )
        return after

    async def move_tasks(
        self,
        primary_id: str,
        other_ids: Iterable[str],
        destination_section_id: Optional[str],
        destination_index: int,
    ) -> List[Task]:
        """
        Move a dragged task together with other selected tasks.

        Args:
            primary_id: The dragged task
            other_ids: Co-selected tasks; ids no longer present are skipped
            destination_section_id: Target section, or None for unsectioned
            destination_index: Insertion position after the block is removed

        Returns:
            The project's tasks after the move

        Raises:
            TaskNotFoundError: If the dragged task does not exist
            SectionNotFoundError: If the destination is not part of the project
        """
        task_orm = await self._get_task_or_raise(primary_id)
        project_id = task_orm.project_id
        await self._verify_section_in_project(destination_section_id, project_id)

        other_ids = list(other_ids)
        before = await self.get_tasks(project_id)
        after = reorder.move_many(
            before, primary_id, other_ids, destination_section_id, destination_index
        )
        changes = reorder.diff_records(before, after)
        await self.apply_changes(changes)

        logger.info(
            f"Moved {1 + len(other_ids)} tasks: primary={primary_id}, "
            f"section_id={destination_section_id}, index={destination_index}, "
            f"updated={len(changes)}"
        )
        return after

    async def apply_changes(self, changes: List[RecordChange]) -> int:
        """
        Persist reorder diffs for tasks.

        Only ``index`` and ``section_id`` are written. Tasks deleted in the
        meantime are skipped.

        Args:
            changes: Field updates produced by reorder.diff_records

        Returns:
            Number of tasks updated
        """
        if not changes:
            return 0

        result = await self.session.execute(
            select(TaskORM).where(TaskORM.id.in_([c.id for c in changes]))
        )
        rows = {row.id: row for row in result.scalars().all()}

        updated = 0
        for change in changes:
            row = rows.get(change.id)
            if row is None:
                logger.debug(f"Skipping update of stale task {change.id}")
                continue
            for field in reorder.REORDER_FIELDS:
                if field in change.changes:
                    setattr(row, field, change.changes[field])
            updated += 1

        await self.session.flush()
        logger.debug(f"Applied {updated} task changes")
        return updated
