"""
Pydantic models for TaskBox.

Defines projects, sections, tasks and counter shards, plus the small value
objects exchanged with the reorder engine (drag-end events and record
changes).
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from taskbox.utils.id_utils import generate_id

PROJECT_NAME_MAX_LENGTH = 30
SECTION_NAME_MAX_LENGTH = 255
TASK_TITLE_MAX_LENGTH = 500
SHARD_COUNT = 10


def _require_text(value: str, label: str) -> str:
    if not value.strip():
        raise ValueError(f"{label} must not be blank")
    return value


class Project(BaseModel):
    """
    Represents a project owned by a single user.

    A project is the root container for sections and tasks.
    """

    id: str = Field(default_factory=generate_id, description="Unique identifier for the project")
    user_id: str = Field(default="local", min_length=1, description="Owning user identifier")
    name: str = Field(..., max_length=PROJECT_NAME_MAX_LENGTH, description="Project name")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "018f3a2b4c5d9e8f7a6b5c4d3e",
                "user_id": "local",
                "name": "Home",
                "created_at": "2025-01-14T10:00:00",
            }
        }
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject blank project names."""
        return _require_text(v, "Project name")


class Section(BaseModel):
    """
    Represents a named section inside a project.

    Sections form one flat ordered list per project; ``index`` is dense
    and zero-based within the project.
    """

    id: str = Field(default_factory=generate_id, description="Unique identifier for the section")
    project_id: str = Field(..., description="ID of the owning project")
    name: str = Field(..., max_length=SECTION_NAME_MAX_LENGTH, description="Section name")
    index: int = Field(default=0, ge=0, description="Position within the project")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject blank section names."""
        return _require_text(v, "Section name")


class Task(BaseModel):
    """
    Represents a single task.

    A task lives in exactly one container: the unsectioned list of its
    project (``section_id`` is None) or one section. Completed and
    incomplete tasks share the same index space inside a container.
    """

    id: str = Field(default_factory=generate_id, description="Unique identifier for the task")
    project_id: str = Field(..., description="ID of the owning project")
    section_id: Optional[str] = Field(default=None, description="Section ID, None when unsectioned")
    index: int = Field(default=0, ge=0, description="Position within the container")
    title: str = Field(default="", max_length=TASK_TITLE_MAX_LENGTH, description="Task title")
    description: str = Field(default="", description="Free-form task description")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "018f3a2b4c5e1a2b3c4d5e6f7a",
                "project_id": "018f3a2b4c5d9e8f7a6b5c4d3e",
                "section_id": None,
                "index": 0,
                "title": "Buy groceries",
                "description": "",
                "completed_at": None,
                "created_at": "2025-01-14T10:00:00",
            }
        }
    )

    @field_validator("title")
    @classmethod
    def strip_newlines(cls, v: str) -> str:
        """Titles are single-line."""
        return v.replace("\r\n", "").replace("\n", "")

    @computed_field
    @property
    def is_completed(self) -> bool:
        """
        Check whether the task has been completed.

        Returns:
            True if ``completed_at`` is set
        """
        return self.completed_at is not None


class CounterShard(BaseModel):
    """One partial count of a project's sharded task counter."""

    project_id: str = Field(..., description="ID of the owning project")
    shard_id: int = Field(..., ge=0, description="Shard number, below the shard count")
    count: int = Field(default=0, description="This shard's contribution to the total")


class DragEndEvent(BaseModel):
    """
    Pointer-release event abstracted from the UI's drag-and-drop layer.

    Container ids are section ids, with None standing for the unsectioned
    list. ``destination_index`` is None when the item was dropped outside
    any container.
    """

    source_container_id: Optional[str] = None
    source_index: int
    destination_container_id: Optional[str] = None
    destination_index: Optional[int] = None
    dragged_item_id: str

    @property
    def is_cancelled(self) -> bool:
        return self.destination_index is None

    @property
    def is_noop(self) -> bool:
        return (
            self.source_container_id == self.destination_container_id
            and self.source_index == self.destination_index
        )


class RecordChange(BaseModel):
    """Minimal field update for one persisted record."""

    id: str
    changes: Dict[str, Any] = Field(default_factory=dict)
