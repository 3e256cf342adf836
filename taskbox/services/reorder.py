"""
Ordered-list reconciliation engine for TaskBox.

Pure functions that compute new orderings for tasks and sections when items
are dragged within a container, across containers, or several at once.
Every function returns fresh lists; records whose fields change are copied
with ``model_copy`` and caller-provided records are never mutated.

A container is the scope in which ``index`` is dense and zero-based: the
unsectioned task list of a project (container id None), one section's task
list, or the project's section list.
"""

from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from pydantic import BaseModel

from taskbox.logging_config import get_logger
from taskbox.models import RecordChange, Section, Task

logger = get_logger(__name__)

ItemT = TypeVar("ItemT", bound=BaseModel)

# Field on a task naming the container it lives in
CONTAINER_FIELD = "section_id"

# Fields that a reorder can change and that callers persist
REORDER_FIELDS = ("index", CONTAINER_FIELD)

_MISSING = object()


def _with_fields(item: ItemT, **fields: Any) -> ItemT:
    """Return ``item`` itself when nothing differs, otherwise an updated copy."""
    if all(getattr(item, name) == value for name, value in fields.items()):
        return item
    return item.model_copy(update=fields)


# ==============================================================================
# INDEX ASSIGNER
# ==============================================================================

def assign_indices(items: Iterable[ItemT]) -> List[ItemT]:
    """
    Renumber items so each ``index`` equals its position in the sequence.

    Args:
        items: Items already in the desired order

    Returns:
        New list with indices 0..n-1
    """
    return [_with_fields(item, index=position) for position, item in enumerate(items)]


# ==============================================================================
# CONTAINER VIEWS
# ==============================================================================

def group_by_container(
    items: Iterable[ItemT],
    container_field: str = CONTAINER_FIELD,
) -> Dict[Optional[str], List[ItemT]]:
    """
    Partition a pool of items into containers.

    Containers appear in the order their first member appears in ``items``.
    Inside each container items are sorted by their current ``index``, which
    tolerates pools built by concatenating completed and incomplete views.

    Args:
        items: Full pool of items across containers
        container_field: Attribute naming each item's container

    Returns:
        Mapping of container id to its ordered items
    """
    groups: Dict[Optional[str], List[ItemT]] = {}
    for item in items:
        groups.setdefault(getattr(item, container_field), []).append(item)
    return {
        container_id: sorted(members, key=lambda member: member.index)
        for container_id, members in groups.items()
    }


def flatten_containers(groups: Dict[Optional[str], List[ItemT]]) -> List[ItemT]:
    """Concatenate grouped containers back into one pool."""
    return [item for members in groups.values() for item in members]


def flatten_display_order(
    tasks: Iterable[Task],
    sections: Iterable[Section],
) -> List[Task]:
    """
    Build the flattened display order used for range selection.

    The unsectioned tasks come first, followed by each section's tasks in
    section-index order. Tasks pointing at a section missing from
    ``sections`` are left out.

    Args:
        tasks: All tasks of a project
        sections: All sections of the same project

    Returns:
        Tasks in display order
    """
    groups = group_by_container(tasks)
    ordered = list(groups.get(None, []))
    for section in sorted(sections, key=lambda s: s.index):
        ordered.extend(groups.get(section.id, []))
    return ordered


def separate_completed(tasks: Iterable[Task]) -> Tuple[List[Task], List[Task]]:
    """
    Split tasks into display views.

    Returns:
        Tuple of (completed, incomplete), each keeping the input order
    """
    completed: List[Task] = []
    incomplete: List[Task] = []
    for task in tasks:
        (completed if task.completed_at is not None else incomplete).append(task)
    return completed, incomplete


# ==============================================================================
# SINGLE-CONTAINER MOVER
# ==============================================================================

def move_within_container(
    items: Sequence[ItemT],
    from_index: int,
    to_index: int,
) -> List[ItemT]:
    """
    Move one item to a new position inside the same container.

    The item is removed first and then inserted at ``to_index`` of the
    remaining sequence, which is where a drag-and-drop list reports the drop.

    Args:
        items: Container members ordered by index
        from_index: Current position of the item
        to_index: Position the item should land at after removal

    Returns:
        New re-indexed list, or the input order unchanged when the move is
        a no-op or out of bounds
    """
    result = list(items)
    if from_index == to_index:
        return result

    size = len(result)
    if not (0 <= from_index < size and 0 <= to_index < size):
        logger.debug(
            f"Ignoring move within container: from={from_index}, to={to_index}, size={size}"
        )
        return result

    moved = result.pop(from_index)
    result.insert(to_index, moved)
    return assign_indices(result)


# ==============================================================================
# CROSS-CONTAINER MOVER
# ==============================================================================

def move_between_containers(
    source: Sequence[ItemT],
    destination: Sequence[ItemT],
    from_index: int,
    to_index: int,
    destination_id: Optional[str],
    container_field: str = CONTAINER_FIELD,
) -> Tuple[List[ItemT], List[ItemT]]:
    """
    Move one item from the source container into the destination container.

    Args:
        source: Source container members ordered by index
        destination: Destination container members ordered by index
        from_index: Position of the item in ``source``
        to_index: Insertion position in ``destination`` (may equal its length)
        destination_id: Identifier of the destination container
        container_field: Attribute recording an item's container

    Returns:
        Tuple of (new_source, new_destination). Both are returned unchanged
        when an index is out of bounds.
    """
    new_source = list(source)
    new_destination = list(destination)

    if not (0 <= from_index < len(new_source) and 0 <= to_index <= len(new_destination)):
        logger.debug(
            f"Ignoring move between containers: from={from_index}, to={to_index}, "
            f"source_size={len(new_source)}, destination_size={len(new_destination)}"
        )
        return new_source, new_destination

    moved = new_source.pop(from_index)
    new_destination.insert(to_index, _with_fields(moved, **{container_field: destination_id}))
    return assign_indices(new_source), assign_indices(new_destination)


# ==============================================================================
# MULTI-SELECT MOVER
# ==============================================================================

def move_many(
    all_items: Sequence[ItemT],
    primary_id: str,
    other_ids: Iterable[str],
    destination_id: Optional[str],
    destination_index: int,
    container_field: str = CONTAINER_FIELD,
) -> List[ItemT]:
    """
    Move a primary item and its co-selected items as one contiguous block.

    The block keeps the relative order the items have in ``all_items``, not
    the order they were selected in. Every moving item is removed from its
    container before ``destination_index`` is interpreted, so the index
    refers to the destination container after removal; it is clamped to
    that container's length. Ids missing from the pool are skipped.

    Args:
        all_items: Full pool of items across all containers
        primary_id: Item the user dragged
        other_ids: Other selected items
        destination_id: Container receiving the block
        destination_index: Insertion position in the post-removal destination
        container_field: Attribute recording an item's container

    Returns:
        New pool grouped by container, every container re-indexed
    """
    pool = list(all_items)
    moving_ids = {primary_id, *other_ids}
    block = [item for item in pool if item.id in moving_ids]

    if not block:
        logger.debug(f"Ignoring multi-move: none of {len(moving_ids)} ids present")
        return pool
    if destination_index < 0:
        logger.debug(f"Ignoring multi-move: destination_index={destination_index}")
        return pool
    if len(block) < len(moving_ids):
        logger.debug(f"Multi-move skipping {len(moving_ids) - len(block)} stale ids")

    groups = group_by_container(pool, container_field)
    for container_id, members in groups.items():
        remaining = [item for item in members if item.id not in moving_ids]
        if len(remaining) != len(members):
            groups[container_id] = assign_indices(remaining)

    target = groups.get(destination_id, [])
    insert_at = min(destination_index, len(target))
    moved = [_with_fields(item, **{container_field: destination_id}) for item in block]
    groups[destination_id] = assign_indices(target[:insert_at] + moved + target[insert_at:])

    return flatten_containers(groups)


# ==============================================================================
# DRAG-END DISPATCH
# ==============================================================================

def move_task(
    all_tasks: Sequence[Task],
    task_id: str,
    destination_section_id: Optional[str],
    destination_index: int,
) -> List[Task]:
    """
    Apply a single-task drag to the project's full task pool.

    Uses the single-container mover when the task stays in its container
    and the cross-container mover otherwise.

    Args:
        all_tasks: Every task of the project
        task_id: Dragged task
        destination_section_id: Container the task was dropped in
        destination_index: Drop position in that container

    Returns:
        New pool grouped by container; unchanged when the task is gone
    """
    groups = group_by_container(all_tasks)
    task = next((t for t in all_tasks if t.id == task_id), None)
    if task is None:
        logger.debug(f"Ignoring move of stale task {task_id}")
        return flatten_containers(groups)

    source = groups[task.section_id]
    from_index = next(i for i, t in enumerate(source) if t.id == task_id)

    if task.section_id == destination_section_id:
        groups[task.section_id] = move_within_container(source, from_index, destination_index)
    else:
        new_source, new_destination = move_between_containers(
            source,
            groups.get(destination_section_id, []),
            from_index,
            destination_index,
            destination_section_id,
        )
        groups[task.section_id] = new_source
        if new_destination:
            groups[destination_section_id] = new_destination

    return flatten_containers(groups)


# ==============================================================================
# RANGE SELECTOR
# ==============================================================================

def select_range(
    items_in_display_order: Sequence[ItemT],
    from_id: str,
    to_id: str,
) -> List[ItemT]:
    """
    Return the inclusive run of items between two ids.

    Direction does not matter; the result always follows display order.

    Args:
        items_in_display_order: Flattened display order
        from_id: One end of the range
        to_id: The other end of the range

    Returns:
        Items between the two ids, or an empty list if either is absent
    """
    positions = {item.id: position for position, item in enumerate(items_in_display_order)}
    if from_id not in positions or to_id not in positions:
        logger.debug(f"Range selection target missing: from={from_id}, to={to_id}")
        return []
    start, end = sorted((positions[from_id], positions[to_id]))
    return list(items_in_display_order[start:end + 1])


# ==============================================================================
# SECTION RECONCILER
# ==============================================================================

def move_section(
    sections: Sequence[Section],
    from_index: int,
    to_index: int,
) -> List[Section]:
    """Reorder a project's sections; same semantics as move_within_container."""
    return move_within_container(sections, from_index, to_index)


def move_section_to(
    sections: Sequence[Section],
    section_id: str,
    destination_index: int,
) -> List[Section]:
    """
    Move the section with ``section_id`` to ``destination_index``.

    Returns:
        New re-indexed section list, unchanged if the section is gone
    """
    ordered = sorted(sections, key=lambda s: s.index)
    from_index = next((i for i, s in enumerate(ordered) if s.id == section_id), None)
    if from_index is None:
        logger.debug(f"Ignoring move of stale section {section_id}")
        return ordered
    return move_section(ordered, from_index, destination_index)


# ==============================================================================
# SNAPSHOT DIFF
# ==============================================================================

def diff_records(
    before: Iterable[BaseModel],
    after: Iterable[BaseModel],
    fields: Sequence[str] = REORDER_FIELDS,
) -> List[RecordChange]:
    """
    Compute the minimal field updates between two snapshots.

    Records only present in ``after`` are ignored; a reorder never creates
    records. Fields the record type lacks are skipped, so the same call
    serves tasks and sections.

    Args:
        before: Snapshot prior to the reorder
        after: Snapshot produced by the reorder
        fields: Field names to compare

    Returns:
        One RecordChange per record with at least one differing field
    """
    previous = {record.id: record for record in before}
    changes: List[RecordChange] = []
    for record in after:
        old = previous.get(record.id)
        if old is None:
            continue
        diff = {}
        for name in fields:
            value = getattr(record, name, _MISSING)
            if value is _MISSING:
                continue
            if getattr(old, name) != value:
                diff[name] = value
        if diff:
            changes.append(RecordChange(id=record.id, changes=diff))
    return changes
