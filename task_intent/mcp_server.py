#!/usr/bin/env python3
"""
Task Intent Parser MCP Server.

Exposes a single `parse_message(message="...")` tool that accepts natural
language of any length and returns the structured intent as JSON.

Port: 8891 (configurable via TASK_INTENT_MCP_PORT)
Transport: SSE
"""

import json
import logging
import os
import sys

from fastmcp import FastMCP

from task_intent import EmptyInput, IntentPipeline

logger = logging.getLogger("fastmcp-task-intent")

# Configuration
MCP_ENABLED = os.getenv("TASK_INTENT_MCP_ENABLED", "false").lower() == "true"
MCP_PORT = int(os.getenv("TASK_INTENT_MCP_PORT", "8891"))
MCP_HOST = os.getenv("TASK_INTENT_MCP_HOST", "0.0.0.0")

mcp = FastMCP(name="task-intent-parser")

pipeline = IntentPipeline()


async def parse_message(message: str) -> str:
    """
    Parse a natural-language message into one structured intent.

    Long messages are split into parts, each classified separately, and
    merged back into a single intent.

    Args:
        message: What the user said, e.g. "add tasks: 1) review PRs 2) update docs".

    Returns:
        The intent as JSON (action, entities, tasks, notes, query, warnings).
    """
    logger.info(f"Tool called: parse_message(message='{message[:80]}...')")

    try:
        intent = await pipeline.parse(message)
    except EmptyInput:
        return json.dumps({"action": "error", "message": "Empty input"})

    return intent.model_dump_json(exclude_none=True)


mcp.tool()(parse_message)


def main():
    """Main entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not MCP_ENABLED:
        logger.warning("=" * 60)
        logger.warning("Task Intent MCP Server is DISABLED")
        logger.warning("To enable: export TASK_INTENT_MCP_ENABLED=true")
        logger.warning("=" * 60)
        sys.exit(0)

    logger.info("=" * 60)
    logger.info("Starting FastMCP Task Intent Server")
    logger.info(f"Host: {MCP_HOST}")
    logger.info(f"Port: {MCP_PORT}")
    logger.info(f"Input ceiling: {pipeline.budget.max_input_tokens} tokens per call")
    logger.info("Tool: parse_message(message='...')")
    logger.info("=" * 60)

    mcp.run(transport="sse", host=MCP_HOST, port=MCP_PORT)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
