"""
Token estimation used for every budget decision.

Rough rule: one token per four characters, rounded up.
"""

import math
from typing import Any

CHARS_PER_TOKEN = 4


def estimate(text: Any) -> int:
    """Estimate the token count of text. Non-string or empty input is 0."""
    if not text or not isinstance(text, str):
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
