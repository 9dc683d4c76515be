"""Per-run retry budget."""

from dataclasses import dataclass

DEFAULT_MAX_RETRIES = 10


@dataclass
class RetryBudget:
    """Caps cumulative retries across every provider call of one agent run.

    Independent of the per-call attempt limit. ``consumed`` only ever grows;
    a fresh budget is created for each run.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    consumed: int = 0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    def can_retry(self) -> bool:
        return self.consumed < self.max_retries

    def consume(self) -> None:
        """Spend one retry. Past the max this is a no-op."""
        if self.consumed < self.max_retries:
            self.consumed += 1

    @property
    def remaining(self) -> int:
        return self.max_retries - self.consumed

    @property
    def exhausted(self) -> bool:
        return not self.can_retry()
