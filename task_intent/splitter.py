"""
Budget-aware text segmentation.

Splits oversized messages into chunks whose estimated size never exceeds
the ceiling. Boundaries are tried in strict tiers:

1. sentences (``.``, ``!``, ``?``), greedily accumulated
2. lines, only for a single sentence too large on its own
3. fixed character width (``ceiling * 4``), only for a single line too large on its own

A tier never mixes its pieces with another tier's accumulation, so every
input terminates with a hard bound on chunk size.
"""

import logging
import re
from typing import Iterator, List

from .models import Chunk
from .tokens import CHARS_PER_TOKEN, estimate

logger = logging.getLogger("task-intent.splitter")

# A run of non-terminators closed by terminators, or an unterminated tail.
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+\Z")


def split(text: str, ceiling: int) -> List[Chunk]:
    """Split text into ordered chunks of at most `ceiling` estimated tokens.

    Text that already fits is returned unchanged as a single chunk.
    """
    if ceiling <= 0:
        raise ValueError(f"ceiling must be positive, got {ceiling}")

    if estimate(text) <= ceiling:
        return [Chunk(text=text, index=1, total=1)]

    pieces = list(_by_sentence(text, ceiling))
    logger.debug(f"Split {estimate(text)} tokens into {len(pieces)} chunks (ceiling {ceiling})")
    return [Chunk(text=piece, index=i, total=len(pieces)) for i, piece in enumerate(pieces, start=1)]


def _by_sentence(text: str, ceiling: int) -> Iterator[str]:
    current = ""
    for sentence in _SENTENCE_RE.findall(text):
        candidate = current + sentence
        # Boundary is inclusive: an exact fit stays in the current chunk
        if estimate(candidate) <= ceiling:
            current = candidate
            continue

        if current.strip():
            yield current.strip()
        current = ""

        if estimate(sentence) > ceiling:
            yield from _by_line(sentence, ceiling)
        else:
            current = sentence

    if current.strip():
        yield current.strip()


def _by_line(sentence: str, ceiling: int) -> Iterator[str]:
    current = ""
    for line in sentence.split("\n"):
        candidate = f"{current}\n{line}" if current else line
        if estimate(candidate) <= ceiling:
            current = candidate
            continue

        if current.strip():
            yield current.strip()
        current = ""

        if estimate(line) > ceiling:
            yield from _by_width(line, ceiling)
        else:
            current = line

    if current.strip():
        yield current.strip()


def _by_width(line: str, ceiling: int) -> Iterator[str]:
    width = ceiling * CHARS_PER_TOKEN
    for start in range(0, len(line), width):
        piece = line[start:start + width].strip()
        if piece:
            yield piece
