"""Entry point for TaskBox.

This module allows running TaskBox as a module:
    python -m taskbox show PROJECT_ID

Or as an installed command:
    taskbox show PROJECT_ID
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from taskbox.config import Config
from taskbox.database import init_database
from taskbox.logging_config import get_logger, setup_logging
from taskbox.models import DragEndEvent, Section, Task
from taskbox.services import reorder
from taskbox.services.board import ProjectBoard
from taskbox.services.errors import SectionNotFoundError, TaskBoxError, TaskNotFoundError
from taskbox.store import TaskStore

logger = get_logger(__name__)

NO_SECTION = "none"

# Default for --section: stay in the current section
KEEP_SECTION = object()


def _section_arg(value: str) -> Optional[str]:
    return None if value == NO_SECTION else value


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(prog="taskbox", description="Personal task manager")
    parser.add_argument("--log-level", default=None, help="Override TASKBOX_LOG_LEVEL")
    parser.add_argument("--verbose", action="store_true", help="Also log to the terminal")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("projects", help="List projects")

    add_project = commands.add_parser("add-project", help="Create a project")
    add_project.add_argument("name")

    show = commands.add_parser("show", help="Show a project's sections and tasks")
    show.add_argument("project_id")
    show.add_argument("--all", action="store_true", help="Include completed tasks")

    add_section = commands.add_parser("add-section", help="Create a section")
    add_section.add_argument("project_id")
    add_section.add_argument("name")

    add_task = commands.add_parser("add-task", help="Create a task")
    add_task.add_argument("project_id")
    add_task.add_argument("title")
    add_task.add_argument("--section", type=_section_arg, default=None)
    add_task.add_argument("--description", default="")

    move_task = commands.add_parser("move-task", help="Drag a task (and optionally a selection)")
    move_task.add_argument("task_id")
    move_task.add_argument("index", type=int)
    move_task.add_argument("--section", type=_section_arg, default=KEEP_SECTION,
                           help=f"Destination section id, '{NO_SECTION}' for unsectioned "
                                "(defaults to the task's current section)")
    selection = move_task.add_mutually_exclusive_group()
    selection.add_argument("--with", dest="others", nargs="*", default=[],
                           help="Other selected task ids moving as one block")
    selection.add_argument("--range", dest="range_ids", nargs=2, metavar=("FROM_ID", "TO_ID"),
                           help="Select the tasks between two ids in display order")

    move_section = commands.add_parser("move-section", help="Move a section")
    move_section.add_argument("project_id")
    move_section.add_argument("section_id")
    move_section.add_argument("index", type=int)

    complete = commands.add_parser("complete", help="Mark a task as completed")
    complete.add_argument("task_id")
    complete.add_argument("--undo", action="store_true", help="Mark as incomplete instead")

    delete_task = commands.add_parser("delete-task", help="Delete a task")
    delete_task.add_argument("task_id")

    count = commands.add_parser("count", help="Show a project's task count")
    count.add_argument("project_id")

    return parser


def render_project(
    console: Console,
    name: str,
    sections: List[Section],
    tasks: List[Task],
    show_completed: bool
) -> None:
    """Print a project as a tree of containers and tasks."""
    groups = reorder.group_by_container(tasks)
    tree = Tree(f"[bold]{escape(name)}[/bold]")

    def add_container(branch: Tree, members: List[Task]) -> None:
        for task in members:
            if task.is_completed and not show_completed:
                continue
            mark = "[green]✓[/green]" if task.is_completed else "[ ]"
            branch.add(f"{mark} {escape(task.title)} [dim]{task.id}[/dim]")

    add_container(tree, groups.get(None, []))
    for section in sections:
        branch = tree.add(f"[cyan]{escape(section.name)}[/cyan] [dim]{section.id}[/dim]")
        add_container(branch, groups.get(section.id, []))
    console.print(tree)


async def drag_task(store: TaskStore, args: argparse.Namespace) -> int:
    """
    Replay a move-task command as a drag on the project's board.

    The selection is built the way clicks build it: ``--with`` toggles each
    listed task, ``--range`` shift-clicks from one task to another. The drop
    then moves the dragged task alone or together with the selection.

    Returns:
        Number of tasks in the moved block

    Raises:
        TaskNotFoundError: If the dragged task does not exist
        SectionNotFoundError: If the destination is not part of the project
    """
    task = await store.get_task(args.task_id)
    if task is None:
        raise TaskNotFoundError(f"Task with id {args.task_id} not found")
    destination = task.section_id if args.section is KEEP_SECTION else args.section

    board = ProjectBoard(task.project_id, store=store)
    await board.start()
    try:
        if destination is not None and destination not in {s.id for s in board.sections}:
            raise SectionNotFoundError(
                f"Section with id {destination} not found in project {task.project_id}"
            )

        by_id = {t.id: t for t in board.tasks}
        if args.range_ids:
            start_id, end_id = args.range_ids
            for range_id in (start_id, end_id):
                if range_id not in by_id:
                    raise TaskNotFoundError(f"Task with id {range_id} not found")
            board.select_task(by_id[start_id])
            board.multi_select_task(by_id[end_id])
        elif args.others:
            for selected_id in dict.fromkeys([task.id, *args.others]):
                if selected_id in by_id:
                    board.select_task(by_id[selected_id])
                else:
                    logger.debug(f"Ignoring unknown selected task {selected_id}")

        selected = board.selection.ids
        block = len(selected) if task.id in selected else 1
        board.handle_task_drag_end(DragEndEvent(
            source_container_id=task.section_id,
            source_index=task.index,
            destination_container_id=destination,
            destination_index=args.index,
            dragged_item_id=task.id,
        ))
        await board.flush()
    finally:
        board.stop()

    if board.write_errors:
        raise TaskBoxError(f"Move of task {task.id} was not saved: {board.write_errors[0]}")
    return block


async def run_command(args: argparse.Namespace, store: TaskStore, console: Console, config: Config) -> None:
    """Execute one parsed subcommand against the store."""
    if args.command == "projects":
        table = Table("id", "name", "tasks")
        for project in await store.get_projects():
            table.add_row(project.id, project.name, str(await store.get_task_count(project.id)))
        console.print(table)

    elif args.command == "add-project":
        project = await store.create_project(args.name)
        console.print(f"Created project [bold]{project.name}[/bold] {project.id}")

    elif args.command == "show":
        project = await store.get_project(args.project_id)
        if project is None:
            raise TaskBoxError(f"Project {args.project_id} not found")
        show_completed = args.all or config.get_display_config()["show_completed"]
        render_project(
            console,
            project.name,
            await store.get_sections(project.id),
            await store.get_tasks(project.id),
            show_completed,
        )

    elif args.command == "add-section":
        section = await store.create_section(args.project_id, args.name)
        console.print(f"Created section [cyan]{section.name}[/cyan] {section.id}")

    elif args.command == "add-task":
        task = await store.create_task(
            args.project_id, args.title, section_id=args.section, description=args.description
        )
        console.print(f"Created task {task.title} {task.id}")

    elif args.command == "move-task":
        moved = await drag_task(store, args)
        console.print(f"Moved {moved} task{'s' if moved != 1 else ''}")

    elif args.command == "move-section":
        await store.move_section(args.project_id, args.section_id, args.index)
        console.print("Moved")

    elif args.command == "complete":
        if args.undo:
            task = await store.incomplete_task(args.task_id)
        else:
            task = await store.complete_task(args.task_id)
        state = "completed" if task.is_completed else "incomplete"
        console.print(f"{task.title} is {state}")

    elif args.command == "delete-task":
        await store.delete_task(args.task_id)
        console.print("Deleted")

    elif args.command == "count":
        console.print(str(await store.get_task_count(args.project_id)))


async def _main_async(args: argparse.Namespace, console: Console) -> None:
    config = Config()
    db_manager = await init_database(config.get_database_config()["url"])
    try:
        store = TaskStore(db_manager, shard_count=config.get_counter_config()["shard_count"])
        await run_command(args, store, console, config)
    finally:
        await db_manager.close()


def main(args: Optional[list[str]] = None) -> int:
    """Main entry point for TaskBox.

    Args:
        args: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if args is None:
        args = sys.argv[1:]

    parsed = build_parser().parse_args(args)
    setup_logging(log_level=parsed.log_level, console=parsed.verbose)
    console = Console()

    try:
        asyncio.run(_main_async(parsed, console))
        return 0
    except KeyboardInterrupt:
        logger.info("TaskBox interrupted by user (Ctrl+C)")
        return 0
    except TaskBoxError as e:
        console.print(f"[red]{e}[/red]")
        return 1
    except Exception as e:
        logger.error("Error running TaskBox", exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
