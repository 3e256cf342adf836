"""
Task selection state for TaskBox.

Tracks which tasks are selected for multi-task drags. Plain clicks toggle a
task in or out of the selection; shift-clicks extend it with the range
between the clicked task and the most recently selected one. Completed tasks
can never be selected.
"""

from typing import Iterable, List, Sequence

from taskbox.logging_config import get_logger
from taskbox.models import Task
from taskbox.services.reorder import select_range

logger = get_logger(__name__)


class TaskSelection:
    """Ordered set of selected tasks, oldest selection first."""

    def __init__(self) -> None:
        self._tasks: List[Task] = []

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    @property
    def ids(self) -> List[str]:
        return [task.id for task in self._tasks]

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return any(task.id == task_id for task in self._tasks)

    def clear(self) -> None:
        self._tasks = []

    def toggle(self, task: Task) -> List[Task]:
        """
        Add the task to the selection, or remove it if already selected.

        Args:
            task: Clicked task

        Returns:
            The selection after the click
        """
        if task.is_completed:
            return self.tasks
        if task.id in self:
            self._tasks = [t for t in self._tasks if t.id != task.id]
        else:
            self._tasks.append(task)
        return self.tasks

    def extend_to(self, task: Task, display_order: Sequence[Task]) -> List[Task]:
        """
        Extend the selection with a shift-click on ``task``.

        The range runs from ``task`` to the most recently selected task in
        the flattened display order. Completed tasks inside the range are
        skipped. Range members move to the end of the selection.

        Args:
            task: Shift-clicked task
            display_order: Flattened display order of the project's tasks

        Returns:
            The selection after the click
        """
        if task.is_completed:
            return self.tasks
        if not self._tasks:
            self._tasks = [task]
            return self.tasks

        anchor = self._tasks[-1]
        picked = [t for t in select_range(display_order, task.id, anchor.id) if not t.is_completed]
        picked_ids = {t.id for t in picked}
        self._tasks = [t for t in self._tasks if t.id not in picked_ids] + picked
        logger.debug(f"Range selection from {task.id} to {anchor.id}: {len(picked)} tasks")
        return self.tasks

    def prune(self, tasks: Iterable[Task]) -> List[Task]:
        """
        Drop selected tasks that are now completed or no longer exist and
        refresh the remaining ones from the snapshot.

        Args:
            tasks: Latest snapshot of the project's tasks

        Returns:
            The selection after pruning
        """
        open_tasks = {task.id: task for task in tasks if not task.is_completed}
        self._tasks = [open_tasks[t.id] for t in self._tasks if t.id in open_tasks]
        return self.tasks
