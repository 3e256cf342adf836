"""
Section service for TaskBox.

Implements section CRUD and section reordering. Reorders are computed by the
pure reorder engine; only the ``index`` values that actually changed are
written back.
"""

from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskbox.database import ProjectORM, SectionORM, TaskORM
from taskbox.logging_config import get_logger
from taskbox.models import RecordChange, Section
from taskbox.services import reorder
from taskbox.services.counter_service import CounterService
from taskbox.services.errors import ProjectNotFoundError, SectionNotFoundError

logger = get_logger(__name__)


class SectionService:
    """
    Service layer for section operations.

    Keeps section indices dense within each project.
    """

    def __init__(
        self,
        session: AsyncSession,
        counter: Optional[CounterService] = None
    ) -> None:
        """
        Initialize section service with database session.

        Args:
            session: Active async database session
            counter: Task counter to adjust when a section's tasks are removed
        """
        self.session = session
        self.counter = counter or CounterService(session)

    # ==============================================================================
    # CONVERSION HELPERS
    # ==============================================================================

    @staticmethod
    def _orm_to_pydantic(section_orm: SectionORM) -> Section:
        return Section(
            id=section_orm.id,
            project_id=section_orm.project_id,
            name=section_orm.name,
            index=section_orm.index,
        )

    # ==============================================================================
    # VALIDATION HELPERS
    # ==============================================================================

    async def _verify_project_exists(self, project_id: str) -> None:
        result = await self.session.execute(
            select(ProjectORM.id).where(ProjectORM.id == project_id)
        )
        if result.scalar_one_or_none() is None:
            raise ProjectNotFoundError(f"Project with id {project_id} not found")

    async def _get_section_or_raise(self, section_id: str) -> SectionORM:
        result = await self.session.execute(
            select(SectionORM).where(SectionORM.id == section_id)
        )
        section_orm = result.scalar_one_or_none()
        if not section_orm:
            raise SectionNotFoundError(f"Section with id {section_id} not found")
        return section_orm

    # ==============================================================================
    # READ OPERATIONS
    # ==============================================================================

    async def get_sections(self, project_id: str) -> List[Section]:
        """
        Get all sections of a project ordered by index.

        Args:
            project_id: Project to query

        Returns:
            Sections ordered by index
        """
        result = await self.session.execute(
            select(SectionORM)
            .where(SectionORM.project_id == project_id)
            .order_by(SectionORM.index, SectionORM.id)
        )
        return [self._orm_to_pydantic(row) for row in result.scalars().all()]

    async def get_section(self, section_id: str) -> Optional[Section]:
        """Get a section by ID, or None if it does not exist."""
        result = await self.session.execute(
            select(SectionORM).where(SectionORM.id == section_id)
        )
        section_orm = result.scalar_one_or_none()
        return self._orm_to_pydantic(section_orm) if section_orm else None

    # ==============================================================================
    # WRITE OPERATIONS
    # ==============================================================================

    async def create_section(
        self,
        project_id: str,
        name: str,
        index: Optional[int] = None,
        section_id: Optional[str] = None,
    ) -> Section:
        """
        Create a section, appended at the end unless ``index`` is given.

        Args:
            project_id: Owning project
            name: Section name (1-255 characters, not blank)
            index: Optional insertion position; later sections shift down
            section_id: Optional id (generated when omitted)

        Returns:
            Created Section

        Raises:
            ProjectNotFoundError: If the project does not exist
            pydantic.ValidationError: If the name is blank or too long
        """
        await self._verify_project_exists(project_id)

        existing = await self.get_sections(project_id)
        position = len(existing) if index is None else min(max(0, index), len(existing))

        fields = {"project_id": project_id, "name": name, "index": position}
        if section_id is not None:
            fields["id"] = section_id
        section = Section(**fields)

        reordered = reorder.assign_indices(existing[:position] + [section] + existing[position:])
        await self.apply_changes(reorder.diff_records(existing, reordered))

        self.session.add(SectionORM(
            id=section.id,
            project_id=project_id,
            name=section.name,
            index=section.index,
        ))
        await self.session.flush()

        logger.info(f"Created section: id={section.id}, name='{section.name}', index={position}")
        return section

    async def rename_section(self, section_id: str, name: str) -> Section:
        """
        Rename a section.

        Raises:
            SectionNotFoundError: If the section does not exist
            pydantic.ValidationError: If the name is blank or too long
        """
        section_orm = await self._get_section_or_raise(section_id)
        section = Section(**{**self._orm_to_pydantic(section_orm).model_dump(), "name": name})

        section_orm.name = section.name
        await self.session.flush()

        logger.info(f"Renamed section: id={section_id}, name='{section.name}'")
        return section

    async def delete_section(self, section_id: str) -> int:
        """
        Delete a section together with its tasks.

        Remaining sections are re-indexed and the project's task counter is
        decremented by the number of removed tasks.

        Args:
            section_id: Section to delete

        Returns:
            Number of tasks removed with the section

        Raises:
            SectionNotFoundError: If the section does not exist
        """
        try:
            section_orm = await self._get_section_or_raise(section_id)
            project_id = section_orm.project_id

            result = await self.session.execute(
                delete(TaskORM).where(TaskORM.section_id == section_id)
            )
            removed_tasks = result.rowcount or 0

            await self.session.delete(section_orm)
            await self.session.flush()

            if removed_tasks:
                await self.counter.decrement(project_id, removed_tasks)

            remaining = await self.get_sections(project_id)
            await self.apply_changes(
                reorder.diff_records(remaining, reorder.assign_indices(remaining))
            )

            logger.info(f"Deleted section: id={section_id}, tasks={removed_tasks}")
            return removed_tasks
        except SectionNotFoundError as e:
            logger.error(f"Failed to delete section - not found: {e}", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Failed to delete section {section_id}: {e}", exc_info=True)
            raise

    # ==============================================================================
    # REORDER OPERATIONS
    # ==============================================================================

    async def move_section(
        self,
        project_id: str,
        section_id: str,
        destination_index: int,
    ) -> List[Section]:
        """
        Move a section to a new position within its project.

        A missing section or an out-of-range destination leaves the order
        untouched.

        Args:
            project_id: Project owning the section
            section_id: Section to move
            destination_index: Position after removal

        Returns:
            The project's sections in their new order
        """
        before = await self.get_sections(project_id)
        after = reorder.move_section_to(before, section_id, destination_index)
        changes = reorder.diff_records(before, after)
        await self.apply_changes(changes)

        logger.info(
            f"Moved section: id={section_id}, destination_index={destination_index}, "
            f"updated={len(changes)}"
        )
        return after

    async def apply_changes(self, changes: List[RecordChange]) -> int:
        """
        Persist reorder diffs for sections.

        Sections that no longer exist are skipped.

        Args:
            changes: Field updates produced by reorder.diff_records

        Returns:
            Number of sections updated
        """
        if not changes:
            return 0

        result = await self.session.execute(
            select(SectionORM).where(SectionORM.id.in_([c.id for c in changes]))
        )
        rows = {row.id: row for row in result.scalars().all()}

        updated = 0
        for change in changes:
            row = rows.get(change.id)
            if row is None:
                logger.debug(f"Skipping update of stale section {change.id}")
                continue
            if "index" in change.changes:
                row.index = change.changes["index"]
                updated += 1

        await self.session.flush()
        return updated
