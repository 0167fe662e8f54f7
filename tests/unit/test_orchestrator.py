"""
Tests for the chunk orchestrator and the oracle strategy.

A scripted strategy stands in for the oracle so single-call, chunked,
fallback and re-split paths can be driven with small budgets.
"""

from typing import Callable, List, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from task_intent.config import BudgetSettings, OracleSettings
from task_intent.errors import BudgetExceeded, EmptyInput
from task_intent.gateway import OracleGateway
from task_intent.models import Action, Chunk, Intent, IntentSource, TaskItem
from task_intent.orchestrator import PARTIAL_NOTICE, ChunkOrchestrator
from task_intent.splitter import split
from task_intent.strategies import ClassificationStrategy, OracleStrategy, build_prompt
from task_intent.tokens import estimate


# Preamble of 10 tokens and a 60-token ceiling leave 40 tokens per chunk
PREAMBLE = "P" * 40
SMALL_BUDGET = BudgetSettings(max_input_tokens=60, prompt_margin=10)
CHUNK_BUDGET = 40

LONG_TEXT = " ".join(f"Sentence number {i} is right here." for i in range(1, 13))


class ScriptedStrategy(ClassificationStrategy):
    """Records every chunk it sees and answers via a callback."""

    name = "scripted"

    def __init__(self, respond: Callable[[Chunk], Optional[Intent]]):
        self.respond = respond
        self.seen: List[Chunk] = []

    async def classify(self, chunk: Chunk) -> Optional[Intent]:
        self.seen.append(chunk)
        return self.respond(chunk)


def _task_intent(chunk: Chunk) -> Intent:
    return Intent(
        action=Action.CREATE_TASK,
        tasks=[TaskItem(title=f"t{chunk.index}")],
        raw_text=chunk.text,
    )


def _over_budget(limit: int):
    def respond(chunk: Chunk) -> Intent:
        if estimate(chunk.text) > limit:
            raise BudgetExceeded(estimate(chunk.text), limit, oracle_reported=True)
        return Intent(action=Action.CREATE_TASK, tasks=[TaskItem(title=chunk.text)], raw_text=chunk.text)
    return respond


def _orchestrator(strategy, budget=SMALL_BUDGET, preamble=PREAMBLE):
    return ChunkOrchestrator(budget, [strategy], preamble=preamble)


def _task_list(count: int) -> str:
    return "\n".join(
        f"{i}) Task {i}: This is a detailed description of task number {i}. "
        f"It includes multiple steps and requirements that need to be completed. "
        f"The task has dependencies on other tasks and requires coordination with team members."
        for i in range(1, count + 1)
    )


# ---------------------------------------------------------------------------
# Single call path
# ---------------------------------------------------------------------------

class TestSinglePath:
    def test_chunk_budget(self):
        assert _orchestrator(ScriptedStrategy(_task_intent)).chunk_budget == CHUNK_BUDGET

    @pytest.mark.asyncio
    async def test_returns_strategy_intent_unchanged(self):
        expected = Intent(action=Action.LIST_TASKS, raw_text="show my tasks")
        strategy = ScriptedStrategy(lambda chunk: expected)

        result = await _orchestrator(strategy).parse("show my tasks")

        assert result is expected
        assert len(strategy.seen) == 1
        assert strategy.seen[0].text == "show my tasks"
        assert strategy.seen[0].total == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_input_rejected(self, text):
        strategy = ScriptedStrategy(_task_intent)
        with pytest.raises(EmptyInput):
            await _orchestrator(strategy).parse(text)
        assert strategy.seen == []

    @pytest.mark.asyncio
    async def test_fallback_is_not_capped_at_twenty(self):
        text = "\n".join(f"{i}) item {i}" for i in range(1, 61))
        strategy = ScriptedStrategy(lambda chunk: None)

        result = await _orchestrator(strategy, budget=BudgetSettings()).parse(text)

        assert result.source == IntentSource.FALLBACK
        assert result.action == Action.CREATE_TASK
        assert len(result.tasks) == 50
        assert result.overflow == []


# ---------------------------------------------------------------------------
# Chunked path
# ---------------------------------------------------------------------------

class TestChunkedPath:
    @pytest.mark.asyncio
    async def test_chunks_processed_in_order(self):
        expected_chunks = split(LONG_TEXT, CHUNK_BUDGET)
        assert len(expected_chunks) > 1
        strategy = ScriptedStrategy(_task_intent)

        result = await _orchestrator(strategy).parse(LONG_TEXT)

        assert [c.text for c in strategy.seen] == [c.text for c in expected_chunks]
        assert [c.index for c in strategy.seen] == list(range(1, len(expected_chunks) + 1))
        assert all(c.total == len(expected_chunks) for c in strategy.seen)
        assert [t.title for t in result.tasks] == [f"t{i}" for i in range(1, len(expected_chunks) + 1)]
        assert result.source == IntentSource.FUSED
        assert result.chunk_count == len(expected_chunks)
        assert result.raw_text == LONG_TEXT
        assert result.notice is None

    @pytest.mark.asyncio
    async def test_priority_action_and_sticky_sort(self):
        def respond(chunk: Chunk) -> Intent:
            if chunk.index == 1:
                return Intent(action=Action.LIST_TASKS, entities={"sort_by": "priority"}, raw_text=chunk.text)
            return Intent(action=Action.CREATE_TASK, entities={"sort_by": None}, raw_text=chunk.text)

        result = await _orchestrator(ScriptedStrategy(respond)).parse(LONG_TEXT)

        assert result.action == Action.CREATE_TASK
        assert result.entities["sort_by"] == "priority"

    @pytest.mark.asyncio
    async def test_failed_chunk_uses_rules_and_sets_notice(self):
        def respond(chunk: Chunk) -> Optional[Intent]:
            return None if chunk.index == 2 else _task_intent(chunk)

        result = await _orchestrator(ScriptedStrategy(respond)).parse(LONG_TEXT)

        assert result.fallback_chunks == 1
        assert result.notice == PARTIAL_NOTICE

    @pytest.mark.asyncio
    async def test_unreachable_oracle_degrades_every_chunk(self):
        budget = BudgetSettings()
        gateway = OracleGateway(OracleSettings(api_key=None), budget)
        orchestrator = ChunkOrchestrator(budget, [OracleStrategy(gateway)])
        text = _task_list(150)

        result = await orchestrator.parse(text)

        assert result.source == IntentSource.FUSED
        assert result.action == Action.CREATE_TASK
        assert result.fallback_chunks == result.chunk_count
        assert result.chunk_count > 1
        assert len(result.tasks) == 20
        assert result.overflow
        assert result.warning
        assert result.notice == PARTIAL_NOTICE
        assert result.tasks[0].title.startswith("Task 1:")


# ---------------------------------------------------------------------------
# Budget recovery
# ---------------------------------------------------------------------------

class TestResplit:
    TEXT = (
        "First sentence about alpha items here. "
        "Second sentence about beta items here. "
        "Third sentence about gamma here."
    )

    @pytest.mark.asyncio
    async def test_retries_at_half_budget(self):
        half = CHUNK_BUDGET // 2
        strategy = ScriptedStrategy(_over_budget(half))

        result = await _orchestrator(strategy).parse(self.TEXT)

        pieces = split(self.TEXT, half)
        assert len(pieces) > 1
        assert [c.text for c in strategy.seen] == [self.TEXT] + [p.text for p in pieces]
        assert [t.title for t in result.tasks] == [p.text for p in pieces]
        assert result.fallback_chunks == 0

    @pytest.mark.asyncio
    async def test_still_over_budget_falls_back(self):
        strategy = ScriptedStrategy(_over_budget(0))

        result = await _orchestrator(strategy).parse(self.TEXT)

        pieces = split(self.TEXT, CHUNK_BUDGET // 2)
        assert len(strategy.seen) == 1 + len(pieces)
        assert result.fallback_chunks == len(pieces)
        assert result.notice == PARTIAL_NOTICE

    @pytest.mark.asyncio
    async def test_oracle_size_rejection_single_message(self):
        resp = MagicMock()
        resp.status_code = 413
        resp.text = "Request too large"
        client = AsyncMock()
        client.post = AsyncMock(return_value=resp)
        ctx = AsyncMock()
        ctx.__aenter__ = AsyncMock(return_value=client)
        ctx.__aexit__ = AsyncMock(return_value=False)

        budget = BudgetSettings()
        gateway = OracleGateway(OracleSettings(api_key="secret"), budget)
        orchestrator = ChunkOrchestrator(budget, [OracleStrategy(gateway)])

        with patch("task_intent.gateway.httpx.AsyncClient", return_value=ctx):
            result = await orchestrator.parse("show my tasks")

        assert client.post.call_count == 2
        assert result.source == IntentSource.FALLBACK
        assert result.action == Action.LIST_TASKS


# ---------------------------------------------------------------------------
# Oracle strategy
# ---------------------------------------------------------------------------

def _mock_gateway(reply: str):
    gateway = MagicMock()
    gateway.budget = BudgetSettings()
    gateway.call = AsyncMock(return_value=reply)
    return gateway


class TestOracleStrategy:
    def test_prompt_annotation(self):
        assert build_prompt(Chunk(text="hello")) == "hello"
        assert build_prompt(Chunk(text="hello", index=2, total=3)) == (
            "Part 2 of 3 of user request:\n\nhello"
        )

    @pytest.mark.asyncio
    async def test_truncated_reply_is_repaired(self):
        gateway = _mock_gateway('```json\n{"action": "create_task", "tasks": [{"title": "Review PRs"}')
        intent = await OracleStrategy(gateway).classify(Chunk(text="add review PRs"))

        assert intent.action == Action.CREATE_TASK
        assert [t.title for t in intent.tasks] == ["Review PRs"]
        assert intent.source == IntentSource.ORACLE
        assert intent.raw_text == "add review PRs"

    @pytest.mark.asyncio
    async def test_prose_reply_is_rejected(self):
        gateway = _mock_gateway("I'm sorry, I can't help with that.")
        assert await OracleStrategy(gateway).classify(Chunk(text="x")) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["", "[1, 2]", "{\"action\": ]]"])
    async def test_undecodable_reply_is_rejected(self, reply):
        assert await OracleStrategy(_mock_gateway(reply)).classify(Chunk(text="x")) is None

    @pytest.mark.asyncio
    async def test_alias_action(self):
        gateway = _mock_gateway('{"action": "other"}')
        intent = await OracleStrategy(gateway).classify(Chunk(text="hmm"))
        assert intent.action == Action.UNKNOWN

    @pytest.mark.asyncio
    async def test_missing_action_is_rejected(self):
        gateway = _mock_gateway('{"tasks": [{"title": "a"}]}')
        assert await OracleStrategy(gateway).classify(Chunk(text="a")) is None

    @pytest.mark.asyncio
    async def test_budget_error_propagates(self):
        gateway = _mock_gateway("")
        gateway.call = AsyncMock(side_effect=BudgetExceeded(7000, 6000))
        with pytest.raises(BudgetExceeded):
            await OracleStrategy(gateway).classify(Chunk(text="a"))

    @pytest.mark.asyncio
    async def test_missing_action_falls_back_in_pipeline(self):
        gateway = _mock_gateway('{"tasks": []}')
        orchestrator = ChunkOrchestrator(BudgetSettings(), [OracleStrategy(gateway)])

        result = await orchestrator.parse("what's on my list")

        assert result.source == IntentSource.FALLBACK
        assert result.action == Action.LIST_TASKS


class TestOracleReplyShapes:
    @staticmethod
    def _patched_reply(content):
        resp = MagicMock()
        resp.status_code = 200
        resp.json.return_value = {"choices": [{"message": {"content": content}}]}
        client = AsyncMock()
        client.post = AsyncMock(return_value=resp)
        ctx = AsyncMock()
        ctx.__aenter__ = AsyncMock(return_value=client)
        ctx.__aexit__ = AsyncMock(return_value=False)
        return patch("task_intent.gateway.httpx.AsyncClient", return_value=ctx)

    def _orchestrator(self):
        budget = BudgetSettings()
        gateway = OracleGateway(OracleSettings(api_key="secret"), budget)
        return ChunkOrchestrator(budget, [OracleStrategy(gateway)])

    @pytest.mark.asyncio
    async def test_content_parts_reply(self):
        with self._patched_reply([{"type": "text", "text": '{"action": "help"}'}]):
            result = await self._orchestrator().parse("help me")

        assert result.action == Action.HELP
        assert result.source == IntentSource.ORACLE

    @pytest.mark.asyncio
    async def test_object_reply_falls_back(self):
        with self._patched_reply({"action": "help"}):
            result = await self._orchestrator().parse("show my tasks")

        assert result.source == IntentSource.FALLBACK
        assert result.action == Action.LIST_TASKS
