"""
Project service for TaskBox.

Provides CRUD operations for projects. Deleting a project tears down its
sections, tasks and counter shards in the same transaction.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskbox.database import ProjectORM, SectionORM, TaskORM
from taskbox.logging_config import get_logger
from taskbox.models import Project
from taskbox.services.counter_service import CounterService
from taskbox.services.errors import ProjectNotFoundError

logger = get_logger(__name__)


class ProjectService:
    """
    Service layer for project management.

    Handles creation, retrieval, renaming and deletion of projects.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize the project service.

        Args:
            session: Active database session for operations
        """
        self.session = session

    @staticmethod
    def _orm_to_pydantic(project_orm: ProjectORM) -> Project:
        return Project(
            id=project_orm.id,
            user_id=project_orm.user_id,
            name=project_orm.name,
            created_at=project_orm.created_at,
        )

    async def _get_project_or_raise(self, project_id: str) -> ProjectORM:
        result = await self.session.execute(
            select(ProjectORM).where(ProjectORM.id == project_id)
        )
        project_orm = result.scalar_one_or_none()
        if not project_orm:
            raise ProjectNotFoundError(f"Project with id {project_id} not found")
        return project_orm

    async def create_project(
        self,
        name: str,
        user_id: str = "local",
        project_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Project:
        """
        Create a new project.

        Args:
            name: Project name (1-30 characters, not blank)
            user_id: Owning user
            project_id: Optional id (generated when omitted)
            created_at: Optional creation timestamp

        Returns:
            Created Project model

        Raises:
            pydantic.ValidationError: If the name is blank or too long
        """
        fields = {"name": name, "user_id": user_id}
        if project_id is not None:
            fields["id"] = project_id
        if created_at is not None:
            fields["created_at"] = created_at
        project = Project(**fields)

        try:
            self.session.add(ProjectORM(
                id=project.id,
                user_id=project.user_id,
                name=project.name,
                created_at=project.created_at,
            ))
            await self.session.flush()
        except Exception as e:
            logger.error(f"Failed to create project: {e}", exc_info=True)
            raise

        logger.info(f"Created project: id={project.id}, name='{project.name}'")
        return project

    async def get_projects(self, user_id: str = "local") -> List[Project]:
        """
        Retrieve all projects of a user ordered by creation date.

        Returns:
            List of Project models
        """
        result = await self.session.execute(
            select(ProjectORM)
            .where(ProjectORM.user_id == user_id)
            .order_by(ProjectORM.created_at, ProjectORM.id)
        )
        return [self._orm_to_pydantic(row) for row in result.scalars().all()]

    async def get_project(self, project_id: str) -> Optional[Project]:
        """
        Retrieve a project by ID.

        Returns:
            Project model if found, None otherwise
        """
        result = await self.session.execute(
            select(ProjectORM).where(ProjectORM.id == project_id)
        )
        project_orm = result.scalar_one_or_none()
        return self._orm_to_pydantic(project_orm) if project_orm else None

    async def rename_project(self, project_id: str, name: str) -> Project:
        """
        Rename a project.

        Raises:
            ProjectNotFoundError: If the project does not exist
            pydantic.ValidationError: If the name is blank or too long
        """
        project_orm = await self._get_project_or_raise(project_id)
        project = Project(**{**self._orm_to_pydantic(project_orm).model_dump(), "name": name})

        project_orm.name = project.name
        await self.session.flush()

        logger.info(f"Renamed project: id={project_id}, name='{project.name}'")
        return project

    async def delete_project(self, project_id: str) -> None:
        """
        Delete a project with all of its sections, tasks and counter shards.

        Raises:
            ProjectNotFoundError: If the project does not exist
        """
        try:
            project_orm = await self._get_project_or_raise(project_id)

            task_result = await self.session.execute(
                delete(TaskORM).where(TaskORM.project_id == project_id)
            )
            section_result = await self.session.execute(
                delete(SectionORM).where(SectionORM.project_id == project_id)
            )
            await CounterService(self.session).delete_shards(project_id)

            await self.session.delete(project_orm)
            await self.session.flush()

            logger.info(
                f"Deleted project: id={project_id}, sections={section_result.rowcount}, "
                f"tasks={task_result.rowcount}"
            )
        except ProjectNotFoundError as e:
            logger.error(f"Failed to delete project - not found: {e}", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Failed to delete project {project_id}: {e}", exc_info=True)
            raise
