"""
Per-session spend tracking.

One BudgetMonitor per grouping session; it is the single gate every paid
call passes before being issued. Reaching the limit is a state transition,
not an error: once EXCEEDED no further cost is accepted.

Pre-flight checks use the tier estimate; the post-flight cost of an admitted
call is always recorded, so a reported actual cost above the estimate can
carry ``spent`` past ``limit`` on the call that crosses it. That overshoot
is exposed through ``overshoot()`` rather than rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from src.tools.config_loader import ConfigurationError

logger = logging.getLogger(__name__)

WARNING_THRESHOLD = 0.8
_EPSILON = 1e-9


class BudgetStatus(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    EXCEEDED = "EXCEEDED"


@dataclass(frozen=True)
class CostUpdate:
    """Outcome of add_cost."""
    status: BudgetStatus
    can_continue: bool
    spent: float
    percentage: float
    accepted: bool = True


@dataclass(frozen=True)
class CostRecord:
    amount: float
    description: str


class BudgetMonitor:
    """Tracks cumulative spend against a session cap."""

    def __init__(
        self,
        limit: float,
        warning_threshold: float = WARNING_THRESHOLD,
        max_calls: Optional[int] = None,
    ):
        """
        Args:
            limit: Dollar cap; 0 allows only free work
            warning_threshold: Fraction of the limit that flips status to WARNING
            max_calls: Optional cap on paid calls, enforced by can_afford

        Raises:
            ConfigurationError: If limit is negative
        """
        if limit is None or limit < 0:
            raise ConfigurationError(f"Budget limit must be >= 0, got {limit!r}")
        if not 0 < warning_threshold <= 1:
            raise ConfigurationError("warning_threshold must be in (0, 1]")
        self.limit = float(limit)
        self.warning_threshold = warning_threshold
        self.max_calls = max_calls
        self.spent = 0.0
        self.calls = 0
        self.history: List[CostRecord] = []

    def percentage(self) -> float:
        if self.limit <= 0:
            return 1.0
        return self.spent / self.limit

    @property
    def status(self) -> BudgetStatus:
        ratio = self.percentage()
        if ratio >= 1.0 - _EPSILON:
            return BudgetStatus.EXCEEDED
        if ratio >= self.warning_threshold - _EPSILON:
            return BudgetStatus.WARNING
        return BudgetStatus.OK

    def remaining(self) -> float:
        return max(0.0, self.limit - self.spent)

    def overshoot(self) -> float:
        """Spend recorded past the limit by the call that crossed it."""
        return max(0.0, self.spent - self.limit)

    def can_afford(self, estimated_cost: float) -> bool:
        """True iff the call fits under the limit (and the call cap, if set)."""
        if self.status == BudgetStatus.EXCEEDED:
            return False
        if self.max_calls is not None and self.calls >= self.max_calls:
            return False
        return self.spent + estimated_cost <= self.limit + _EPSILON

    def add_cost(self, amount: float, description: str = "") -> CostUpdate:
        """
        Record spend for an issued call.

        Refused once the session is already EXCEEDED, so ``spent`` never
        grows past that point.
        """
        if amount < 0:
            raise ValueError(f"Cost must be non-negative, got {amount}")

        if self.status == BudgetStatus.EXCEEDED:
            logger.warning("Budget exceeded; refusing further cost %.4f (%s)", amount, description)
            return CostUpdate(BudgetStatus.EXCEEDED, False, self.spent, self.percentage(), accepted=False)

        previous = self.status
        self.spent += amount
        self.calls += 1
        self.history.append(CostRecord(amount, description))
        status = self.status
        logger.debug("Cost +$%.4f (%s): $%.4f / $%.4f", amount, description, self.spent, self.limit)

        if status != previous and status == BudgetStatus.WARNING:
            logger.warning("Budget warning: $%.4f of $%.4f spent (%.0f%%)",
                           self.spent, self.limit, self.percentage() * 100)
        elif status == BudgetStatus.EXCEEDED:
            logger.warning("Budget exceeded: $%.4f of $%.4f; switching to free grouping",
                           self.spent, self.limit)
            if self.overshoot() > _EPSILON:
                logger.warning("Reconciled cost overshot the limit by $%.4f (%s)", self.overshoot(), description)

        return CostUpdate(
            status=status,
            can_continue=status != BudgetStatus.EXCEEDED,
            spent=self.spent,
            percentage=self.percentage(),
        )

    def stats(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "spent": round(self.spent, 4),
            "remaining": round(self.remaining(), 4),
            "overshoot": round(self.overshoot(), 4),
            "percentage": round(self.percentage() * 100, 1),
            "status": self.status.value,
            "calls": self.calls,
            "max_calls": self.max_calls,
        }
