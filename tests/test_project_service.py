"""
Tests for ProjectService.

Covers project creation with name validation, listing, renaming and
project teardown.
"""

from datetime import datetime

import pytest
from pydantic import ValidationError
from sqlalchemy import func, select

from taskbox.database import CounterShardORM, SectionORM, TaskORM
from taskbox.services.errors import ProjectNotFoundError
from taskbox.services.project_service import ProjectService
from taskbox.services.section_service import SectionService
from taskbox.services.task_service import TaskService


class TestCreateProject:
    """Tests for project creation."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, db_session):
        service = ProjectService(db_session)

        project = await service.create_project("Home")

        assert project.user_id == "local"
        assert await service.get_project(project.id) == project

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "  ", "x" * 31])
    async def test_invalid_name_rejected(self, db_session, name):
        service = ProjectService(db_session)

        with pytest.raises(ValidationError):
            await service.create_project(name)

    @pytest.mark.asyncio
    async def test_name_at_limit_accepted(self, db_session):
        service = ProjectService(db_session)

        project = await service.create_project("x" * 30)

        assert len(project.name) == 30


class TestListProjects:
    """Tests for project queries."""

    @pytest.mark.asyncio
    async def test_projects_ordered_by_creation(self, db_session):
        service = ProjectService(db_session)
        await service.create_project("Second", project_id="p2", created_at=datetime(2025, 2, 1))
        await service.create_project("First", project_id="p1", created_at=datetime(2025, 1, 1))
        await service.create_project("Theirs", user_id="someone", project_id="p3")

        projects = await service.get_projects()

        assert [p.id for p in projects] == ["p1", "p2"]

    @pytest.mark.asyncio
    async def test_get_missing_project_returns_none(self, db_session):
        service = ProjectService(db_session)

        assert await service.get_project("missing") is None


class TestRenameProject:
    """Tests for renaming projects."""

    @pytest.mark.asyncio
    async def test_rename(self, db_session, sample_project):
        service = ProjectService(db_session)

        project = await service.rename_project(sample_project.id, "Work")

        assert project.name == "Work"
        assert (await service.get_project(sample_project.id)).name == "Work"

    @pytest.mark.asyncio
    async def test_rename_to_blank_rejected(self, db_session, sample_project):
        service = ProjectService(db_session)

        with pytest.raises(ValidationError):
            await service.rename_project(sample_project.id, " ")

    @pytest.mark.asyncio
    async def test_rename_missing_raises(self, db_session):
        service = ProjectService(db_session)

        with pytest.raises(ProjectNotFoundError):
            await service.rename_project("missing", "Work")


class TestDeleteProject:
    """Tests for project teardown."""

    @pytest.mark.asyncio
    async def test_delete_removes_everything(self, db_session, sample_project):
        sections = SectionService(db_session)
        tasks = TaskService(db_session)
        section = await sections.create_section(sample_project.id, "Today")
        await tasks.create_task(sample_project.id, "a")
        await tasks.create_task(sample_project.id, "b", section_id=section.id)

        await ProjectService(db_session).delete_project(sample_project.id)

        for model in (TaskORM, SectionORM, CounterShardORM):
            result = await db_session.execute(select(func.count()).select_from(model))
            assert result.scalar_one() == 0
        assert await ProjectService(db_session).get_project(sample_project.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, db_session):
        service = ProjectService(db_session)

        with pytest.raises(ProjectNotFoundError):
            await service.delete_project("missing")
