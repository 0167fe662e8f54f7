"""
Chunk orchestrator: the pipeline entry point.

Decides between a single oracle call and a chunked, sequential multi-call
path; walks the strategy chain for every chunk; recovers from budget
rejections by re-splitting once at half the chunk budget; and fuses the
per-chunk intents. Chunks are processed one at a time, in order.
"""

import logging
from typing import List, Sequence

from .config import BudgetSettings
from .errors import BudgetExceeded, EmptyInput
from .fusion import fuse
from .models import Chunk, Intent
from .splitter import split
from .strategies import INSTRUCTION_PREAMBLE, ClassificationStrategy, RuleStrategy
from .tokens import estimate

logger = logging.getLogger("task-intent.orchestrator")

PARTIAL_NOTICE = (
    "Your message is very long, so I processed it in parts. "
    "Some parts were understood with basic matching only."
)


class ChunkOrchestrator:
    """Turns one user message into one Intent."""

    def __init__(
        self,
        budget: BudgetSettings,
        strategies: Sequence[ClassificationStrategy],
        preamble: str = INSTRUCTION_PREAMBLE,
    ) -> None:
        self.budget = budget
        self.strategies = list(strategies)
        self.fallback = RuleStrategy(budget.fallback_task_cap)
        self.preamble = preamble

    @property
    def chunk_budget(self) -> int:
        """Tokens left for user text after the preamble and annotation margin."""
        remaining = self.budget.max_input_tokens - estimate(self.preamble) - self.budget.prompt_margin
        return max(1, remaining)

    async def parse(self, user_text: str) -> Intent:
        """Classify a message of any length into one Intent.

        Raises EmptyInput for blank text. Every other failure degrades to
        the rule-based classifier.
        """
        if not user_text or not user_text.strip():
            raise EmptyInput("no text given")

        input_tokens = estimate(self.preamble + user_text)

        if input_tokens <= self.budget.max_input_tokens:
            logger.info(f"Input within limits ({input_tokens} tokens), single call")
            intents = await self._classify_chunk(Chunk(text=user_text))
        else:
            chunks = split(user_text, self.chunk_budget)
            logger.info(f"Input too large ({input_tokens} tokens), split into {len(chunks)} chunks")
            intents = []
            for chunk in chunks:
                logger.info(f"Processing chunk {chunk.index}/{chunk.total}")
                intents.extend(await self._classify_chunk(chunk))

        if len(intents) == 1:
            return intents[0]
        return self._finish(fuse(intents, task_cap=self.budget.task_cap), user_text)

    def _finish(self, fused: Intent, user_text: str) -> Intent:
        update = {"raw_text": user_text}
        if fused.fallback_chunks:
            update["notice"] = PARTIAL_NOTICE
        return fused.model_copy(update=update)

    async def _classify_chunk(self, chunk: Chunk, allow_resplit: bool = True) -> List[Intent]:
        try:
            return [await self._run_strategies(chunk)]
        except BudgetExceeded as exc:
            if not allow_resplit:
                logger.warning(f"Retry for {chunk.label} still over budget ({exc}), using rules")
                return [await self.fallback.classify(chunk)]

            half = max(1, self.chunk_budget // 2)
            pieces = split(chunk.text, half)
            logger.warning(f"Budget exceeded for {chunk.label} ({exc}), retrying as {len(pieces)} pieces at {half} tokens")

            intents: List[Intent] = []
            for piece in pieces:
                retry = Chunk(text=piece.text, index=chunk.index, total=chunk.total)
                intents.extend(await self._classify_chunk(retry, allow_resplit=False))
            return intents or [await self.fallback.classify(chunk)]

    async def _run_strategies(self, chunk: Chunk) -> Intent:
        for strategy in self.strategies:
            intent = await strategy.classify(chunk)
            if intent is not None:
                return intent
            logger.info(f"Strategy '{strategy.name}' could not classify {chunk.label}, trying next")
        return await self.fallback.classify(chunk)
