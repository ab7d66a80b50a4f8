"""Token budget for one generation request."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ContextBudget:
    """Token ceiling and its per-layer allocations.

    Layers 1-3 treat their allocation as a soft cap. Layer 4 gets whatever
    the earlier layers left unused, but never less than its own allocation.

    Attributes:
        total: Total tokens the model accepts per request (input + output).
        output_reserve: Tokens held back for the model's reply.
        session_metadata: Allocation for the session info layer.
        facts: Allocation for the user memory layer.
        summaries: Allocation for the recent conversations layer.
        current_messages: Nominal allocation for the current conversation.
    """

    total: int = 4096
    output_reserve: int = 1000
    session_metadata: int = 100
    facts: int = 400
    summaries: int = 400
    current_messages: int = 2000

    def __post_init__(self) -> None:
        allocations = {
            "total": self.total,
            "output_reserve": self.output_reserve,
            "session_metadata": self.session_metadata,
            "facts": self.facts,
            "summaries": self.summaries,
            "current_messages": self.current_messages,
        }
        for name, value in allocations.items():
            if value < 0:
                raise ValueError(f"{name} must not be negative")

        if self.allocated > self.total:
            raise ValueError(
                f"Allocations ({self.allocated}) exceed total budget ({self.total})"
            )

    @property
    def allocated(self) -> int:
        """Sum of all sub-allocations plus the output reserve."""
        return (
            self.session_metadata
            + self.facts
            + self.summaries
            + self.current_messages
            + self.output_reserve
        )

    @property
    def input_tokens(self) -> int:
        """Tokens available to the prompt."""
        return self.total - self.output_reserve

    def remaining_for_messages(self, used: int) -> int:
        """Hard ceiling for the current conversation layer.

        Args:
            used: Tokens actually spent by layers 1-3.
        """
        return max(self.input_tokens - used, self.current_messages)
