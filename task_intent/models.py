"""
Pydantic models for the task intent pipeline.

Defines the closed action enumeration, the record-shaped task/note items,
the Intent produced for every message, and the Chunk slices fed to the
oracle.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Action(str, Enum):
    """Every action an Intent can name."""

    # Task operations
    CREATE_TASK = "create_task"
    LIST_TASKS = "list_tasks"
    COMPLETE_TASK = "complete_task"
    DELETE_TASK = "delete_task"
    UPDATE_PRIORITY = "update_priority"
    SHOW_URGENT = "show_urgent"
    FOCUS = "focus"

    # Note operations
    CREATE_NOTE = "create_note"
    LIST_NOTES = "list_notes"
    SEARCH_NOTES = "search_notes"
    UPDATE_NOTE = "update_note"

    # Conversational
    MATH = "math"
    SMALL_TALK = "small_talk"
    HELP = "help"
    UNKNOWN = "unknown"


# Fusion rank, highest first. Destructive and high-commitment actions
# outrank general and conversational ones.
ACTION_PRIORITY: List[Action] = [
    Action.DELETE_TASK,
    Action.COMPLETE_TASK,
    Action.UPDATE_PRIORITY,
    Action.CREATE_TASK,
    Action.CREATE_NOTE,
    Action.UPDATE_NOTE,
    Action.SHOW_URGENT,
    Action.FOCUS,
    Action.LIST_TASKS,
    Action.LIST_NOTES,
    Action.SEARCH_NOTES,
    Action.MATH,
    Action.HELP,
    Action.SMALL_TALK,
    Action.UNKNOWN,
]


def action_rank(action: Action) -> int:
    """Rank of an action; larger means higher priority."""
    return len(ACTION_PRIORITY) - ACTION_PRIORITY.index(action)


# Common oracle mistakes -> correct enum value
ACTION_ALIASES: Dict[str, Action] = {
    "other": Action.UNKNOWN,
    "unclear": Action.UNKNOWN,
    "none": Action.UNKNOWN,
    "search": Action.SEARCH_NOTES,
    "update_task": Action.UPDATE_PRIORITY,
    "set_priority": Action.UPDATE_PRIORITY,
    "change_priority": Action.UPDATE_PRIORITY,
    "add_task": Action.CREATE_TASK,
    "create_tasks": Action.CREATE_TASK,
    "new_task": Action.CREATE_TASK,
    "show_tasks": Action.LIST_TASKS,
    "get_tasks": Action.LIST_TASKS,
    "done": Action.COMPLETE_TASK,
    "finish_task": Action.COMPLETE_TASK,
    "remove_task": Action.DELETE_TASK,
    "add_note": Action.CREATE_NOTE,
    "note": Action.CREATE_NOTE,
    "show_notes": Action.LIST_NOTES,
    "urgent": Action.SHOW_URGENT,
    "focus_mode": Action.FOCUS,
    "calculate": Action.MATH,
    "chat": Action.SMALL_TALK,
    "greeting": Action.SMALL_TALK,
    "smalltalk": Action.SMALL_TALK,
    "conversation": Action.SMALL_TALK,
}


def normalize_action(value: Any) -> Action:
    """Map a raw action value onto the enumeration; unrecognized -> UNKNOWN."""
    if isinstance(value, Action):
        return value
    if not isinstance(value, str):
        return Action.UNKNOWN
    key = re.sub(r"[\s-]+", "_", value.strip().lower())
    try:
        return Action(key)
    except ValueError:
        return ACTION_ALIASES.get(key, Action.UNKNOWN)


class IntentSource(str, Enum):
    """Where an Intent came from."""

    ORACLE = "oracle"
    FALLBACK = "fallback"
    FUSED = "fused"


PRIORITY_LEVELS = ("high", "medium", "low")

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


class TaskItem(BaseModel):
    """A task to be created."""

    title: str = Field(min_length=1)
    description: str = ""
    priority: str = "medium"
    assignee: Optional[str] = None
    due_date: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, v: Any) -> str:
        if isinstance(v, str) and v.strip().lower() in PRIORITY_LEVELS:
            return v.strip().lower()
        return "medium"


class NoteItem(BaseModel):
    """A note to be created."""

    title: str
    body: str = ""


class Intent(BaseModel):
    """A single structured user action."""

    action: Action
    entities: Dict[str, Any] = Field(default_factory=dict)
    tasks: List[TaskItem] = Field(default_factory=list)
    notes: List[NoteItem] = Field(default_factory=list)
    raw_text: str = ""
    query: Optional[str] = None
    queries: List[str] = Field(default_factory=list)
    overflow: List[TaskItem] = Field(default_factory=list)
    warning: Optional[str] = None
    notice: Optional[str] = None
    source: IntentSource = IntentSource.ORACLE
    chunk_count: int = 1
    fallback_chunks: int = 0

    @field_validator("action", mode="before")
    @classmethod
    def _normalize_action(cls, v: Any) -> Action:
        return normalize_action(v)

    @field_validator("entities", mode="before")
    @classmethod
    def _normalize_entities(cls, v: Any) -> Dict[str, Any]:
        if not isinstance(v, dict):
            return {}
        return {_snake_case(str(k)): val for k, val in v.items()}

    @field_validator("tasks", "overflow", mode="before")
    @classmethod
    def _coerce_tasks(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        items = []
        for item in v:
            if isinstance(item, str):
                if item.strip():
                    items.append({"title": item})
            elif isinstance(item, dict):
                title = item.get("title")
                if not isinstance(title, str) or not title.strip():
                    continue  # untitled items carry nothing to create
                items.append({_snake_case(str(k)): val for k, val in item.items()})
            else:
                items.append(item)
        return items

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        return [{"title": item} if isinstance(item, str) else item for item in v]

    @field_validator("query", mode="before")
    @classmethod
    def _coerce_query(cls, v: Any) -> Optional[str]:
        if v is None or isinstance(v, str):
            return v or None
        return str(v)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], raw_text: str) -> "Intent":
        """Build an oracle-sourced Intent from a decoded response object.

        Raises pydantic.ValidationError when the payload has no usable action.
        """
        data = {k: v for k, v in payload.items() if k in ("action", "entities", "tasks", "notes", "query")}
        if data.get("action") is None:
            data.pop("action", None)
        return cls(**data, raw_text=raw_text, source=IntentSource.ORACLE)


class Chunk(BaseModel):
    """An ordered, bounded-size slice of the original message."""

    text: str
    index: int = Field(default=1, ge=1)  # 1-based
    total: int = Field(default=1, ge=1)

    @property
    def label(self) -> str:
        return f"part {self.index} of {self.total}"
