"""
Budget and oracle settings.

Settings are built once at process start and passed explicitly into each
component, so any component can be exercised with arbitrary budgets.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BudgetSettings:
    max_input_tokens: int = 6000
    max_output_tokens: int = 2000
    max_total_tokens: int = 8000
    prompt_margin: int = 100  # room for the "Part i of n" annotation
    task_cap: int = 20
    fallback_task_cap: int = 50

    @classmethod
    def from_env(cls) -> "BudgetSettings":
        return cls(
            max_input_tokens=int(os.getenv("TASK_INTENT_MAX_INPUT_TOKENS", "6000")),
            max_output_tokens=int(os.getenv("TASK_INTENT_MAX_OUTPUT_TOKENS", "2000")),
            max_total_tokens=int(os.getenv("TASK_INTENT_MAX_TOTAL_TOKENS", "8000")),
            prompt_margin=int(os.getenv("TASK_INTENT_PROMPT_MARGIN", "100")),
            task_cap=int(os.getenv("TASK_INTENT_TASK_CAP", "20")),
            fallback_task_cap=int(os.getenv("TASK_INTENT_FALLBACK_TASK_CAP", "50")),
        )


@dataclass(frozen=True)
class OracleSettings:
    base_url: str = "https://api.groq.com/openai/v1"
    model: str = "llama-3.3-70b-versatile"
    api_key: Optional[str] = None
    temperature: float = 0.7
    timeout: float = 15.0

    @classmethod
    def from_env(cls) -> "OracleSettings":
        return cls(
            base_url=os.getenv("TASK_INTENT_ORACLE_URL", "https://api.groq.com/openai/v1"),
            model=os.getenv("TASK_INTENT_ORACLE_MODEL", "llama-3.3-70b-versatile"),
            api_key=os.getenv("TASK_INTENT_ORACLE_API_KEY") or os.getenv("GROQ_API_KEY") or None,
            temperature=float(os.getenv("TASK_INTENT_ORACLE_TEMPERATURE", "0.7")),
            timeout=float(os.getenv("TASK_INTENT_ORACLE_TIMEOUT", "15.0")),
        )
