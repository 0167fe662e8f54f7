"""
Error taxonomy for the intent pipeline.

Only EmptyInput and FusionInputEmpty ever escape IntentPipeline.parse();
the rest are recovered inside the orchestrator.
"""

from typing import Optional


class IntentPipelineError(Exception):
    """Base exception for pipeline errors."""


class EmptyInput(IntentPipelineError):
    """No text was given."""


class BudgetExceeded(IntentPipelineError):
    """A prompt is larger than the allowed token ceiling."""

    def __init__(
        self,
        estimated: int,
        ceiling: int,
        oracle_reported: bool = False,
        detail: Optional[str] = None,
    ) -> None:
        self.estimated = estimated
        self.ceiling = ceiling
        self.oracle_reported = oracle_reported
        source = "oracle" if oracle_reported else "pre-flight"
        message = f"{source}: estimated {estimated} tokens exceeds ceiling {ceiling}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class TransportError(IntentPipelineError):
    """The oracle was unreachable or returned an error."""


class ParseError(IntentPipelineError):
    """Oracle output could not be decoded into a structured object."""


class FusionInputEmpty(IntentPipelineError):
    """Fusion was called with zero intents."""
