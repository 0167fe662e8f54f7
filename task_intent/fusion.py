"""
Fusion of per-chunk intents into one.

Action selection is by fixed priority rank (see models.ACTION_PRIORITY),
applied uniformly: the first chunk never pins the action. Tasks and notes
are concatenated in chunk order, entities are last-writer-wins except for
sticky directives, and tasks beyond the cap are queued as overflow.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .errors import FusionInputEmpty
from .models import Action, Intent, IntentSource, NoteItem, TaskItem, action_rank

DEFAULT_TASK_CAP = 20

# Once set, never cleared by a later chunk that does not mention it
STICKY_ENTITIES = frozenset({"sort_by"})


def _is_absent(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


@dataclass
class MergeState:
    action: Action = Action.UNKNOWN
    rank: int = 0
    tasks: List[TaskItem] = field(default_factory=list)
    notes: List[NoteItem] = field(default_factory=list)
    entities: Dict[str, Any] = field(default_factory=dict)
    queries: List[str] = field(default_factory=list)
    raw_texts: List[str] = field(default_factory=list)
    overflow: List[TaskItem] = field(default_factory=list)
    chunk_count: int = 0
    fallback_chunks: int = 0

    def absorb(self, intent: Intent) -> None:
        rank = action_rank(intent.action)
        if rank > self.rank:
            self.action = intent.action
            self.rank = rank

        self.tasks.extend(intent.tasks)
        self.tasks.extend(intent.overflow)
        self.notes.extend(intent.notes)

        for key, value in intent.entities.items():
            if key in STICKY_ENTITIES and _is_absent(value):
                continue
            self.entities[key] = value

        if intent.queries:
            self.queries.extend(intent.queries)
        elif intent.query:
            self.queries.append(intent.query)

        if intent.raw_text:
            self.raw_texts.append(intent.raw_text)

        self.chunk_count += intent.chunk_count
        if intent.source == IntentSource.FALLBACK:
            self.fallback_chunks += 1
        else:
            self.fallback_chunks += intent.fallback_chunks

    def apply_cap(self, task_cap: int) -> Optional[str]:
        """Move tasks beyond the cap to the overflow queue; return a warning."""
        if len(self.tasks) <= task_cap:
            return None
        total = len(self.tasks)
        self.overflow = self.tasks[task_cap:]
        self.tasks = self.tasks[:task_cap]
        return (
            f"This is a long request with {total} tasks. "
            f"Processing the first {task_cap} now; {len(self.overflow)} queued."
        )

    def result(self, task_cap: int) -> Intent:
        warning = self.apply_cap(task_cap)
        return Intent(
            action=self.action,
            entities=self.entities,
            tasks=self.tasks,
            notes=self.notes,
            raw_text="\n".join(self.raw_texts),
            query=self.queries[0] if self.queries else None,
            queries=self.queries,
            overflow=self.overflow,
            warning=warning,
            source=IntentSource.FUSED,
            chunk_count=self.chunk_count,
            fallback_chunks=self.fallback_chunks,
        )


def fuse(intents: Sequence[Intent], task_cap: int = DEFAULT_TASK_CAP) -> Intent:
    """Merge ordered per-chunk intents into one Intent."""
    if not intents:
        raise FusionInputEmpty("no intent produced")
    if len(intents) == 1:
        return intents[0]

    state = MergeState()
    for intent in intents:
        state.absorb(intent)
    return state.result(task_cap)
