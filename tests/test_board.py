"""
Tests for ProjectBoard.

The board applies drops locally at once, writes the diff in the
background, and replaces its state wholesale with every snapshot.
"""

import asyncio

import pytest

from taskbox.models import DragEndEvent
from taskbox.services import reorder
from taskbox.services.board import ProjectBoard
from tests.helpers import assert_dense, ids_of


def drop(task_id, source, source_index, destination, destination_index):
    return DragEndEvent(
        source_container_id=source,
        source_index=source_index,
        destination_container_id=destination,
        destination_index=destination_index,
        dragged_item_id=task_id,
    )


@pytest.fixture
def board(make_container, make_section):
    """Offline board: T1..T3 unsectioned, A and B in S1, C in S2."""
    board = ProjectBoard("p1")
    board.replace_sections([make_section("S2", 1), make_section("S1", 0)])
    board.replace_tasks(
        make_container(["T1", "T2", "T3"])
        + make_container(["A", "B"], section_id="S1")
        + make_container(["C"], section_id="S2")
    )
    return board


class TestLocalState:
    """Tests for views over local state."""

    def test_sections_sorted_on_replace(self, board):
        assert ids_of(board.sections) == ["S1", "S2"]

    def test_display_order(self, board):
        assert ids_of(board.display_order()) == ["T1", "T2", "T3", "A", "B", "C"]

    def test_visible_tasks_hide_completed(self, board, make_task):
        board.replace_tasks([make_task("A", index=0), make_task("B", index=1, completed=True)])

        assert ids_of(board.visible_tasks) == ["A"]
        assert ids_of(board.completed_tasks) == ["B"]
        board.show_completed = True
        assert ids_of(board.visible_tasks) == ["A", "B"]

    def test_replace_prunes_selection(self, board, make_container):
        board.select_task(board.tasks[0])
        board.select_task(board.tasks[1])

        board.replace_tasks(make_container(["T2"]))

        assert board.selection.ids == ["T2"]


class TestTaskDrops:
    """Tests for task drag-end handling without a store."""

    def test_single_drop_within_container(self, board):
        tasks = board.handle_task_drag_end(drop("T1", None, 0, None, 2))

        assert ids_of(board.container(None)) == ["T2", "T3", "T1"]
        assert tasks is board.tasks
        assert_dense(tasks)

    def test_single_drop_across_containers(self, board):
        board.handle_task_drag_end(drop("A", "S1", 0, "S2", 1))

        assert ids_of(board.container("S1")) == ["B"]
        assert ids_of(board.container("S2")) == ["C", "A"]
        assert board.container("S2")[1].section_id == "S2"

    def test_cancelled_drop_changes_nothing(self, board):
        before = board.tasks

        board.handle_task_drag_end(drop("T1", None, 0, None, None))

        assert board.tasks is before

    def test_drop_in_place_changes_nothing(self, board):
        before = board.tasks

        board.handle_task_drag_end(drop("T2", None, 1, None, 1))

        assert board.tasks is before

    def test_selected_block_moves_together(self, board):
        """Dragging a selected task takes the rest of the selection along."""
        tasks = {t.id: t for t in board.tasks}
        board.select_task(tasks["B"])
        board.select_task(tasks["T2"])

        board.handle_task_drag_end(drop("B", "S1", 1, "S2", 0))

        assert ids_of(board.container("S2")) == ["T2", "B", "C"]
        assert ids_of(board.container(None)) == ["T1", "T3"]
        assert_dense(board.tasks)

    def test_unselected_drag_moves_alone(self, board):
        """Dragging a task outside the selection ignores the selection."""
        tasks = {t.id: t for t in board.tasks}
        board.select_task(tasks["T2"])

        board.handle_task_drag_end(drop("A", "S1", 0, None, 0))

        assert ids_of(board.container(None)) == ["A", "T1", "T2", "T3"]

    def test_only_selected_task_moves_alone(self, board):
        tasks = {t.id: t for t in board.tasks}
        board.select_task(tasks["T1"])

        board.handle_task_drag_end(drop("T1", None, 0, None, 1))

        assert ids_of(board.container(None)) == ["T2", "T1", "T3"]

    def test_multi_select_range(self, board):
        tasks = {t.id: t for t in board.tasks}
        board.select_task(tasks["T3"])

        board.multi_select_task(tasks["B"])

        assert board.selection.ids == ["T3", "A", "B"]


class TestSectionDrops:
    """Tests for section drag-end handling."""

    def test_section_drop(self, board):
        sections = board.handle_section_drag_end(drop("S1", None, 0, None, 1))

        assert ids_of(sections) == ["S2", "S1"]
        assert [s.index for s in sections] == [0, 1]

    def test_cancelled_section_drop(self, board):
        before = board.sections

        board.handle_section_drag_end(drop("S1", None, 0, None, None))

        assert board.sections is before


class TestBoardWithStore:
    """Tests for background persistence and snapshot reconciliation."""

    @pytest.mark.asyncio
    async def test_start_loads_snapshots(self, store):
        project = await store.create_project("Home")
        section = await store.create_section(project.id, "Today")
        await store.create_task(project.id, "a", section_id=section.id)
        board = ProjectBoard(project.id, store=store)

        await board.start()

        assert ids_of(board.sections) == [section.id]
        assert [t.title for t in board.tasks] == ["a"]
        board.stop()

    @pytest.mark.asyncio
    async def test_drop_is_persisted(self, store):
        project = await store.create_project("Home")
        a = await store.create_task(project.id, "a")
        b = await store.create_task(project.id, "b")
        board = ProjectBoard(project.id, store=store)
        await board.start()

        board.handle_task_drag_end(drop(a.id, None, 0, None, 1))
        assert ids_of(board.tasks) == [b.id, a.id]
        await board.flush()

        assert ids_of(await store.get_tasks(project.id)) == [b.id, a.id]
        assert ids_of(board.tasks) == [b.id, a.id]
        board.stop()

    @pytest.mark.asyncio
    async def test_section_drop_is_persisted(self, store):
        project = await store.create_project("Home")
        first = await store.create_section(project.id, "A")
        second = await store.create_section(project.id, "B")
        board = ProjectBoard(project.id, store=store)
        await board.start()

        board.handle_section_drag_end(drop(first.id, None, 0, None, 1))
        await board.flush()

        assert ids_of(await store.get_sections(project.id)) == [second.id, first.id]
        board.stop()

    @pytest.mark.asyncio
    async def test_snapshot_overrides_local_state(self, store):
        """Writes from elsewhere replace the board's tasks."""
        project = await store.create_project("Home")
        board = ProjectBoard(project.id, store=store)
        await board.start()

        await store.create_task(project.id, "from elsewhere")

        assert [t.title for t in board.tasks] == ["from elsewhere"]
        board.stop()

    @pytest.mark.asyncio
    async def test_failed_write_is_logged(self, store, caplog, monkeypatch):
        project = await store.create_project("Home")
        a = await store.create_task(project.id, "a")
        await store.create_task(project.id, "b")
        board = ProjectBoard(project.id, store=store)
        await board.start()

        async def failing(project_id, changes):
            raise RuntimeError("write refused")

        monkeypatch.setattr(store, "apply_task_changes", failing)
        board.handle_task_drag_end(drop(a.id, None, 0, None, 1))
        await board.flush()
        await asyncio.sleep(0)

        assert "write refused" in caplog.text
        assert [str(e) for e in board.write_errors] == ["write refused"]
        board.stop()

    @pytest.mark.asyncio
    async def test_stopped_board_ignores_snapshots(self, store):
        project = await store.create_project("Home")
        board = ProjectBoard(project.id, store=store)
        await board.start()
        board.stop()

        await store.create_task(project.id, "late")

        assert board.tasks == []

    @pytest.mark.asyncio
    async def test_start_without_store_raises(self):
        board = ProjectBoard("p1")

        with pytest.raises(RuntimeError):
            await board.start()


def test_drop_without_event_loop_is_not_persisted(make_container):
    """Outside a running loop the drop applies locally only."""

    class RecordingStore:
        def __init__(self):
            self.calls = 0

        async def apply_task_changes(self, project_id, changes):
            self.calls += 1

    store = RecordingStore()
    board = ProjectBoard("p1", store=store)
    board.replace_tasks(make_container(["A", "B"]))

    board.handle_task_drag_end(drop("A", None, 0, None, 1))

    assert ids_of(board.tasks) == ["B", "A"]
    assert ids_of(reorder.group_by_container(board.tasks)[None]) == ["B", "A"]
    assert store.calls == 0
