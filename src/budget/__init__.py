"""Session budget gate and upfront cost estimates."""

from .estimates import estimate_session_cost, recommend_performance_mode
from .monitor import BudgetMonitor, BudgetStatus, CostRecord, CostUpdate

__all__ = [
    "BudgetMonitor",
    "BudgetStatus",
    "CostRecord",
    "CostUpdate",
    "estimate_session_cost",
    "recommend_performance_mode",
]
