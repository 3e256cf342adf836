"""Exceptions raised by the TaskBox service layer."""


class TaskBoxError(Exception):
    """Base exception for TaskBox service errors."""
    pass


class ProjectNotFoundError(TaskBoxError):
    """Raised when a project is not found."""
    pass


class SectionNotFoundError(TaskBoxError):
    """Raised when a section is not found or belongs to another project."""
    pass


class TaskNotFoundError(TaskBoxError):
    """Raised when a task is not found."""
    pass


class InvalidShardError(TaskBoxError):
    """Raised when a counter shard id is outside the configured range."""
    pass
