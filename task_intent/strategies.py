"""
Classification strategies.

The orchestrator tries strategies in order for each chunk. A strategy
returns None when it could not produce a trustworthy Intent; the
rule-based strategy never does, so it always terminates the chain.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from .classifier import FALLBACK_TASK_CAP, classify
from .errors import ParseError, TransportError
from .gateway import OracleGateway
from .models import Action, Chunk, Intent
from .sanitizer import decode

logger = logging.getLogger("task-intent.strategies")

_ACTION_CHOICES = " | ".join(f'"{a.value}"' for a in Action)

INSTRUCTION_PREAMBLE = f"""You are a task management assistant. Parse user requests into structured intents.
Return ONLY valid JSON, no markdown, no code blocks, no explanations.
Format:
{{
  "action": {_ACTION_CHOICES},
  "tasks": [{{ "title": "...", "description": "...", "priority": "high|medium|low", "assignee": "...", "dueDate": "..." }}],
  "notes": [{{ "title": "...", "body": "..." }}],
  "query": "...",
  "entities": {{...}}
}}

If the user requests multiple tasks, include all of them in the "tasks" array.
Entities may include: taskIndex, taskRef, priority, sortBy (priority|due_date|created), duration (minutes), numbers, operation."""


def build_prompt(chunk: Chunk) -> str:
    """Annotate a chunk with its position when the message was split."""
    if chunk.total > 1:
        return f"Part {chunk.index} of {chunk.total} of user request:\n\n{chunk.text}"
    return chunk.text


class ClassificationStrategy(ABC):
    """Turns one chunk into an Intent, or None if it cannot."""

    name = "strategy"

    @abstractmethod
    async def classify(self, chunk: Chunk) -> Optional[Intent]:
        ...


class OracleStrategy(ClassificationStrategy):
    """Classify via the oracle: call, sanitize, parse, repair once.

    BudgetExceeded is not handled here; the orchestrator owns re-splitting.
    """

    name = "oracle"

    def __init__(self, gateway: OracleGateway, preamble: str = INSTRUCTION_PREAMBLE) -> None:
        self.gateway = gateway
        self.preamble = preamble

    async def classify(self, chunk: Chunk) -> Optional[Intent]:
        ceiling = self.gateway.budget.max_input_tokens
        try:
            raw = await self.gateway.call(ceiling, self.preamble, build_prompt(chunk))
        except TransportError as exc:
            logger.warning(f"Oracle unavailable for {chunk.label}: {exc}")
            return None

        result = decode(raw)
        try:
            payload = result.unwrap()
        except ParseError as exc:
            logger.warning(f"Unusable oracle output for {chunk.label}: {exc}")
            return None

        try:
            intent = Intent.from_payload(payload, raw_text=chunk.text)
        except ValidationError as exc:
            logger.warning(f"Oracle output for {chunk.label} is not an intent: {exc.error_count()} error(s)")
            return None

        logger.debug(f"Oracle classified {chunk.label} as {intent.action.value} ({result.stage})")
        return intent


class RuleStrategy(ClassificationStrategy):
    """Deterministic keyword/regex classification; always answers."""

    name = "rules"

    def __init__(self, task_cap: int = FALLBACK_TASK_CAP) -> None:
        self.task_cap = task_cap

    async def classify(self, chunk: Chunk) -> Intent:
        return classify(chunk.text, task_cap=self.task_cap)
