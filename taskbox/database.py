"""
Database layer for TaskBox.

Provides SQLAlchemy ORM models, async engine/session management, and database
initialization for SQLite persistence.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from taskbox.config import DEFAULT_DATABASE_URL, DEFAULT_DATA_DIR
from taskbox.logging_config import get_logger
from taskbox.utils.id_utils import ID_LENGTH

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class ProjectORM(Base):
    """
    SQLAlchemy ORM model for projects.

    Deleting a project removes its sections, tasks and counter shards.
    """
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(30), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    sections: Mapped[list["SectionORM"]] = relationship(
        "SectionORM",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    tasks: Mapped[list["TaskORM"]] = relationship(
        "TaskORM",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    shards: Mapped[list["CounterShardORM"]] = relationship(
        "CounterShardORM",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<ProjectORM(id={self.id}, name={self.name})>"


class SectionORM(Base):
    """SQLAlchemy ORM model for sections, ordered by ``index`` within a project."""
    __tablename__ = "sections"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    project: Mapped["ProjectORM"] = relationship("ProjectORM", back_populates="sections")

    def __repr__(self) -> str:
        return f"<SectionORM(id={self.id}, name={self.name}, index={self.index})>"


class TaskORM(Base):
    """
    SQLAlchemy ORM model for tasks.

    ``section_id`` is NULL for unsectioned tasks. ``index`` is dense within
    each (project_id, section_id) pair, completed tasks included.
    """
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    section_id: Mapped[Optional[str]] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("sections.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)

    project: Mapped["ProjectORM"] = relationship("ProjectORM", back_populates="tasks")

    def __repr__(self) -> str:
        return f"<TaskORM(id={self.id}, title={self.title}, index={self.index})>"


class CounterShardORM(Base):
    """
    SQLAlchemy ORM model for one shard of a project's task counter.

    The task count of a project is the sum of ``count`` over its shards.
    """
    __tablename__ = "counter_shards"

    project_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True
    )
    shard_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    project: Mapped["ProjectORM"] = relationship("ProjectORM", back_populates="shards")

    def __repr__(self) -> str:
        return (
            f"<CounterShardORM(project_id={self.project_id}, "
            f"shard_id={self.shard_id}, count={self.count})>"
        )


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """SQLite leaves foreign key enforcement off unless asked per connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """
    Manages database connections and session lifecycle.

    Handles async engine creation, session management, and database
    initialization for both production and testing scenarios.
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL):
        """
        Initialize database manager with connection URL.

        Args:
            database_url: SQLAlchemy database URL (default: local SQLite file)
        """
        self.database_url = database_url
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    async def initialize(self) -> None:
        """
        Initialize the database engine and create tables.

        Creates the async engine, session maker, and all tables defined
        in the Base metadata.
        """
        try:
            logger.info(f"Initializing database: {self.database_url}")
            if self.database_url == DEFAULT_DATABASE_URL:
                DEFAULT_DATA_DIR.mkdir(parents=True, exist_ok=True)

            self.engine = create_async_engine(
                self.database_url,
                echo=False,  # Set to True for SQL query logging
            )
            if self.engine.dialect.name == "sqlite":
                event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

            self.session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise

    async def close(self) -> None:
        """
        Close the database engine and cleanup resources.
        """
        if self.engine:
            logger.info("Closing database connection")
            try:
                await self.engine.dispose()
                self.engine = None
                self.session_maker = None
                logger.info("Database connection closed successfully")
            except Exception as e:
                logger.error(f"Error closing database connection: {e}", exc_info=True)
                raise

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async database session with automatic transaction management.

        Yields:
            AsyncSession for database operations

        Example:
            async with db_manager.get_session() as session:
                result = await session.execute(select(TaskORM))
                tasks = result.scalars().all()
        """
        if not self.session_maker:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")

        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                logger.error(f"Database session error, rolling back: {e}", exc_info=True)
                await session.rollback()
                raise


async def init_database(database_url: str = DEFAULT_DATABASE_URL) -> DatabaseManager:
    """
    Initialize the database and return the manager instance.

    Convenience function for application startup.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Initialized DatabaseManager instance
    """
    db_manager = DatabaseManager(database_url)
    await db_manager.initialize()
    return db_manager
