"""Ordering helpers for TaskBox tests."""

from typing import List

from taskbox.services import reorder


def ids_of(items) -> List[str]:
    """Ids of records in order."""
    return [item.id for item in items]


def indices_of(items) -> List[int]:
    """Index values of records in order."""
    return [item.index for item in items]


def assert_dense(tasks) -> None:
    """Assert every container of the pool has indices 0..n-1."""
    for container_id, members in reorder.group_by_container(tasks).items():
        assert indices_of(members) == list(range(len(members))), (
            f"Container {container_id} is not densely indexed: {indices_of(members)}"
        )
