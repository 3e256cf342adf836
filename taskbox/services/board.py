"""
Local project board state for TaskBox.

ProjectBoard holds one project's sections, tasks and task selection the way
a client view does. Drag-end events are turned into new orderings by the
pure reorder engine and applied locally at once; the changed fields are then
written to the store in the background. Snapshots arriving from the store's
listeners replace local state wholesale, which also reconciles any write
that failed.
"""

import asyncio
from typing import TYPE_CHECKING, List, Optional, Set

from taskbox.logging_config import get_logger
from taskbox.models import DragEndEvent, Section, Task
from taskbox.services import reorder
from taskbox.services.selection import TaskSelection
from taskbox.services.subscriptions import Subscription

if TYPE_CHECKING:
    from taskbox.store import TaskStore

logger = get_logger(__name__)


class ProjectBoard:
    """
    Optimistic client-side state of one project.

    The board always keeps the full task pool, completed tasks included,
    because completed and incomplete tasks share each container's index
    space; ``show_completed`` only affects what ``visible_tasks`` returns.
    """

    def __init__(
        self,
        project_id: str,
        store: Optional["TaskStore"] = None,
        show_completed: bool = False
    ) -> None:
        """
        Initialize an empty board.

        Args:
            project_id: Project shown on the board
            store: Store receiving background writes and feeding snapshots
            show_completed: Whether completed tasks are visible
        """
        self.project_id = project_id
        self.store = store
        self.show_completed = show_completed
        self.sections: List[Section] = []
        self.tasks: List[Task] = []
        self.selection = TaskSelection()
        self._subscriptions: List[Subscription] = []
        self._pending: Set[asyncio.Task] = set()
        self.write_errors: List[BaseException] = []

    # ==============================================================================
    # LIFECYCLE
    # ==============================================================================

    async def start(self) -> None:
        """Subscribe to the project's sections and tasks."""
        if self.store is None:
            raise RuntimeError("ProjectBoard has no store to listen to")
        self._subscriptions = [
            await self.store.listen_sections(self.project_id, self.replace_sections),
            await self.store.listen_tasks(self.project_id, self.replace_tasks),
        ]

    def stop(self) -> None:
        """Stop listening for snapshots."""
        for subscription in self._subscriptions:
            subscription.stop()
        self._subscriptions = []

    async def flush(self) -> None:
        """Wait for background writes that are still running."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ==============================================================================
    # SNAPSHOTS
    # ==============================================================================

    def replace_sections(self, sections: List[Section]) -> None:
        """Replace local sections with an authoritative snapshot."""
        self.sections = sorted(sections, key=lambda s: s.index)

    def replace_tasks(self, tasks: List[Task]) -> None:
        """Replace local tasks with an authoritative snapshot."""
        self.tasks = list(tasks)
        self.selection.prune(self.tasks)

    @property
    def completed_tasks(self) -> List[Task]:
        return reorder.separate_completed(self.tasks)[0]

    @property
    def incomplete_tasks(self) -> List[Task]:
        return reorder.separate_completed(self.tasks)[1]

    @property
    def visible_tasks(self) -> List[Task]:
        return self.tasks if self.show_completed else self.incomplete_tasks

    def container(self, section_id: Optional[str]) -> List[Task]:
        """Tasks of one container ordered by index."""
        return reorder.group_by_container(self.tasks).get(section_id, [])

    def display_order(self) -> List[Task]:
        """Flattened display order: unsectioned tasks, then each section."""
        return reorder.flatten_display_order(self.tasks, self.sections)

    # ==============================================================================
    # SELECTION
    # ==============================================================================

    def select_task(self, task: Task) -> List[Task]:
        """Plain click: toggle the task in the selection."""
        return self.selection.toggle(task)

    def multi_select_task(self, task: Task) -> List[Task]:
        """Shift-click: extend the selection with a range."""
        return self.selection.extend_to(task, self.display_order())

    # ==============================================================================
    # DRAG AND DROP
    # ==============================================================================

    def handle_task_drag_end(self, event: DragEndEvent) -> List[Task]:
        """
        Apply a task drop to local state and persist it in the background.

        The dragged task moves alone when nothing is selected, when it is
        the only selected task, or when it is not part of the selection.
        Otherwise the whole selection moves as a block led by it.

        Args:
            event: Drag-end event from the UI

        Returns:
            The board's tasks after the drop
        """
        if event.is_cancelled or event.is_noop:
            return self.tasks

        dragged_id = event.dragged_item_id
        selected_ids = self.selection.ids
        if not selected_ids or selected_ids == [dragged_id] or dragged_id not in selected_ids:
            after = reorder.move_task(
                self.tasks, dragged_id, event.destination_container_id, event.destination_index
            )
        else:
            other_ids = [task_id for task_id in selected_ids if task_id != dragged_id]
            after = reorder.move_many(
                self.tasks,
                dragged_id,
                other_ids,
                event.destination_container_id,
                event.destination_index,
            )

        changes = reorder.diff_records(self.tasks, after)
        self.tasks = after
        if changes and self.store is not None:
            self._schedule(self.store.apply_task_changes(self.project_id, changes))
        logger.debug(f"Task drop applied locally: dragged={dragged_id}, changed={len(changes)}")
        return self.tasks

    def handle_section_drag_end(self, event: DragEndEvent) -> List[Section]:
        """
        Apply a section drop to local state and persist it in the background.

        Returns:
            The board's sections after the drop
        """
        if event.is_cancelled or event.source_index == event.destination_index:
            return self.sections

        after = reorder.move_section_to(self.sections, event.dragged_item_id, event.destination_index)
        changes = reorder.diff_records(self.sections, after)
        self.sections = after
        if changes and self.store is not None:
            self._schedule(self.store.apply_section_changes(self.project_id, changes))
        return self.sections

    def _schedule(self, write) -> None:
        try:
            task = asyncio.get_running_loop().create_task(write)
        except RuntimeError:
            write.close()
            logger.warning("No running event loop; local reorder was not persisted")
            return
        self._pending.add(task)
        task.add_done_callback(self._on_write_done)

    def _on_write_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.write_errors.append(error)
            logger.error(
                f"Background write for project {self.project_id} failed: {error}",
                exc_info=error
            )
