"""
Task Intent Parser.

Turns an arbitrary-length natural-language message into one structured
Intent by delegating classification to a language-model oracle, within a
hard per-call token budget, and falling back to deterministic rules when
the oracle cannot be trusted.

Usage:
    from task_intent import IntentPipeline

    pipeline = IntentPipeline()
    intent = await pipeline.parse("add tasks: 1) review PRs 2) update docs")
    print(intent.action, intent.tasks)
"""

from typing import Optional, Sequence

from .models import Action, Chunk, Intent, IntentSource, NoteItem, TaskItem
from .classifier import classify
from .config import BudgetSettings, OracleSettings
from .errors import (
    BudgetExceeded,
    EmptyInput,
    FusionInputEmpty,
    IntentPipelineError,
    ParseError,
    TransportError,
)
from .fusion import fuse
from .gateway import OracleGateway
from .orchestrator import ChunkOrchestrator
from .splitter import split
from .strategies import ClassificationStrategy, OracleStrategy, RuleStrategy
from .tokens import estimate


class IntentPipeline:
    """High-level interface for intent parsing."""

    def __init__(
        self,
        budget: Optional[BudgetSettings] = None,
        oracle: Optional[OracleSettings] = None,
        strategies: Optional[Sequence[ClassificationStrategy]] = None,
    ) -> None:
        self.budget = budget or BudgetSettings.from_env()
        self.oracle = oracle or OracleSettings.from_env()
        if strategies is None:
            strategies = [OracleStrategy(OracleGateway(self.oracle, self.budget))]
        self.orchestrator = ChunkOrchestrator(self.budget, strategies)

    async def parse(self, text: str) -> Intent:
        """Parse a message into one Intent (oracle first, rules on failure)."""
        return await self.orchestrator.parse(text)

    def classify(self, text: str) -> Intent:
        """Classify text with the rules only (no oracle call)."""
        return classify(text, task_cap=self.budget.fallback_task_cap)


__all__ = [
    "IntentPipeline",
    "Action",
    "Chunk",
    "Intent",
    "IntentSource",
    "NoteItem",
    "TaskItem",
    "BudgetSettings",
    "OracleSettings",
    "IntentPipelineError",
    "EmptyInput",
    "BudgetExceeded",
    "TransportError",
    "ParseError",
    "FusionInputEmpty",
    "ChunkOrchestrator",
    "ClassificationStrategy",
    "OracleStrategy",
    "RuleStrategy",
    "OracleGateway",
    "classify",
    "estimate",
    "fuse",
    "split",
]
