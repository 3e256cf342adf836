"""
Pytest configuration and fixtures for TaskBox tests.

Provides database fixtures, test data factories, and common test utilities.
"""

import pytest
import pytest_asyncio
from datetime import datetime

from taskbox.database import DatabaseManager, ProjectORM, SectionORM, TaskORM
from taskbox.models import Section, Task
from taskbox.store import TaskStore

SAMPLE_PROJECT_ID = "0000000000000000000000proj"


@pytest_asyncio.fixture
async def db_manager():
    """
    Create an in-memory SQLite database for testing.

    Yields:
        DatabaseManager instance with in-memory database
    """
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.initialize()

    yield manager

    await manager.close()


@pytest_asyncio.fixture
async def db_session(db_manager):
    """
    Provide a database session for tests.

    Example:
        async def test_something(db_session):
            result = await db_session.execute(select(TaskORM))
    """
    async with db_manager.get_session() as session:
        yield session


@pytest_asyncio.fixture
async def store(db_manager):
    """TaskStore bound to the in-memory database."""
    return TaskStore(db_manager)


@pytest.fixture
def sample_project_id():
    """Consistent project id for tests."""
    return SAMPLE_PROJECT_ID


@pytest_asyncio.fixture
async def sample_project(db_session, sample_project_id):
    """
    Create a sample project in the database.

    Returns:
        ProjectORM instance
    """
    project = ProjectORM(
        id=sample_project_id,
        user_id="local",
        name="Home",
        created_at=datetime.utcnow()
    )
    db_session.add(project)
    await db_session.commit()
    return project


@pytest_asyncio.fixture
async def sample_sections(db_session, sample_project):
    """
    Create two sections, "Today" (index 0) and "Later" (index 1).

    Returns:
        Dictionary mapping section names to ids
    """
    today = SectionORM(id="sec-today", project_id=sample_project.id, name="Today", index=0)
    later = SectionORM(id="sec-later", project_id=sample_project.id, name="Later", index=1)
    db_session.add_all([today, later])
    await db_session.commit()
    return {"Today": today.id, "Later": later.id}


@pytest_asyncio.fixture
async def seeded_tasks(db_session, sample_project, sample_sections):
    """
    Create tasks across three containers.

    Layout:
        unsectioned: T1, T2
        Today:       A, B
        Later:       C

    Returns:
        Dictionary mapping titles to ids
    """
    layout = [
        ("T1", None, 0),
        ("T2", None, 1),
        ("A", sample_sections["Today"], 0),
        ("B", sample_sections["Today"], 1),
        ("C", sample_sections["Later"], 0),
    ]
    ids = {}
    for title, section_id, index in layout:
        task_id = f"task-{title}"
        db_session.add(TaskORM(
            id=task_id,
            project_id=sample_project.id,
            section_id=section_id,
            index=index,
            title=title,
            description="",
            created_at=datetime.utcnow(),
        ))
        ids[title] = task_id
    await db_session.commit()
    return ids


@pytest.fixture
def make_task():
    """
    Factory fixture for creating Task Pydantic models.

    Example:
        def test_something(make_task):
            task = make_task("T1", index=0)
    """
    def _make_task(
        id: str,
        index: int = 0,
        section_id: str = None,
        project_id: str = SAMPLE_PROJECT_ID,
        completed: bool = False,
        title: str = None,
    ) -> Task:
        return Task(
            id=id,
            project_id=project_id,
            section_id=section_id,
            index=index,
            title=title if title is not None else id,
            completed_at=datetime(2025, 1, 1) if completed else None,
        )
    return _make_task


@pytest.fixture
def make_container(make_task):
    """
    Factory fixture building one container of tasks from ids.

    Example:
        def test_something(make_container):
            tasks = make_container(["A", "B"], section_id="S1")
    """
    def _make_container(ids, section_id: str = None):
        return [make_task(task_id, index=i, section_id=section_id) for i, task_id in enumerate(ids)]
    return _make_container


@pytest.fixture
def make_section():
    """Factory fixture for creating Section Pydantic models."""
    def _make_section(id: str, index: int = 0, name: str = None) -> Section:
        return Section(id=id, project_id=SAMPLE_PROJECT_ID, name=name or id, index=index)
    return _make_section

