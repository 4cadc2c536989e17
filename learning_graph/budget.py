"""
Operation budgets for potentially expensive calls.

Layout simulation and prerequisite traversal check a budget once per
iteration (or level) so callers on a request path can bound them by
wall-clock time or cancel them from outside.
"""

import logging
import time
from typing import Callable

from .errors import OperationCancelledError


logger = logging.getLogger(__name__)


class OperationBudget:
    """
    A deadline and/or cancellation predicate.

    Usage:
        budget = OperationBudget(seconds=0.25)
        layout.generate_layout(graph, budget=budget)

    Args:
        seconds: Wall-clock allowance measured from construction (None = unlimited)
        should_cancel: Predicate polled on every check; True cancels
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        seconds: float | None = None,
        should_cancel: Callable[[], bool] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if seconds is not None and seconds < 0:
            raise ValueError("Budget seconds must be non-negative")
        self._clock = clock
        self._should_cancel = should_cancel
        self._deadline = None if seconds is None else clock() + seconds

    @property
    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when unlimited."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def exhausted(self) -> bool:
        if self._should_cancel is not None and self._should_cancel():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def check(self, operation: str, completed_steps: int = 0) -> None:
        """Raise OperationCancelledError if the budget is spent."""
        if self.exhausted():
            logger.warning(f"{operation} stopped by budget after {completed_steps} steps")
            raise OperationCancelledError(operation, completed_steps)
