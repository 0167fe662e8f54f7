"""
Call gateway for the language-model oracle.

Issues one chat-completion request per call against an OpenAI-compatible
endpoint (Groq by default). The token budget is checked locally before
anything is sent; an oracle that still rejects the request for size is
reported as BudgetExceeded, every other failure as TransportError.
"""

import logging
import re
from typing import Any, Dict, List

import httpx

from .config import BudgetSettings, OracleSettings
from .errors import BudgetExceeded, TransportError
from .tokens import estimate

logger = logging.getLogger("task-intent.gateway")

# Oracle error bodies that mean the request was too large
_SIZE_ERROR_RE = re.compile(
    r"token|context[\s_]length|too\s+large|too\s+long|maximum\s+context",
    re.I,
)


class OracleGateway:
    """Bounded, single-shot calls to the oracle."""

    def __init__(self, oracle: OracleSettings, budget: BudgetSettings) -> None:
        self.oracle = oracle
        self.budget = budget

    def check_budget(self, ceiling: int, system_prompt: str, user_prompt: str) -> int:
        """Raise BudgetExceeded if the prompt is over either ceiling.

        Returns the estimated input size.
        """
        estimated = estimate(system_prompt + user_prompt)
        if estimated > ceiling:
            raise BudgetExceeded(estimated, ceiling)

        total = estimated + self.budget.max_output_tokens
        if total > self.budget.max_total_tokens:
            raise BudgetExceeded(total, self.budget.max_total_tokens, detail="input + output")

        return estimated

    async def call(self, ceiling: int, system_prompt: str, user_prompt: str) -> str:
        """Send one prompt and return the raw response text."""
        estimated = self.check_budget(ceiling, system_prompt, user_prompt)
        logger.info(f"Estimated input tokens: {estimated} (ceiling {ceiling})")

        if not self.oracle.api_key:
            raise TransportError("oracle API key is not configured")

        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        payload = {
            "model": self.oracle.model,
            "messages": messages,
            "max_tokens": self.budget.max_output_tokens,
            "temperature": self.oracle.temperature,
        }
        headers = {"Authorization": f"Bearer {self.oracle.api_key}"}
        url = f"{self.oracle.base_url.rstrip('/')}/chat/completions"

        try:
            async with httpx.AsyncClient(timeout=self.oracle.timeout) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"oracle request failed: {exc}") from exc

        if resp.status_code == 413 or (
            resp.status_code in (400, 422) and _SIZE_ERROR_RE.search(resp.text or "")
        ):
            logger.error(f"Token limit exceeded despite pre-flight checks: HTTP {resp.status_code}")
            raise BudgetExceeded(estimated, ceiling, oracle_reported=True, detail=f"HTTP {resp.status_code}")

        if resp.status_code != 200:
            raise TransportError(f"oracle returned HTTP {resp.status_code}: {(resp.text or '')[:200]}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportError("oracle returned a non-JSON envelope") from exc

        return _message_content(data)


def _message_content(data: Any) -> str:
    """Pull choices[0].message.content out of a completion envelope."""
    if not isinstance(data, dict):
        raise TransportError("oracle returned an unexpected envelope")
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        raise TransportError("oracle response has no choices")
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if content is None or isinstance(content, str):
        return content or ""
    if isinstance(content, list):
        # Content parts: [{"type": "text", "text": "..."}]
        texts = [part.get("text") for part in content if isinstance(part, dict)]
        if texts and all(isinstance(t, str) for t in texts):
            return "".join(texts)
    raise TransportError("oracle returned non-text content")
