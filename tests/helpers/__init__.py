"""Test helper utilities for TaskBox tests.

Small assertions and accessors shared by the reorder, board and service
tests.
"""

from tests.helpers.ordering import (
    assert_dense,
    ids_of,
    indices_of,
)

__all__ = [
    "assert_dense",
    "ids_of",
    "indices_of",
]
