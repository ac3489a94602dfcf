"""
Post-submission order lifecycle management.
"""

from .lifecycle import MonitorReport, OrderLifecycleMonitor, closing_credit
from .models import MonitoredOrder
from .policy import Action, LifecycleState, OrderKind, decide_action, price_drift, target_price

__all__ = [
    "MonitorReport",
    "OrderLifecycleMonitor",
    "closing_credit",
    "MonitoredOrder",
    "Action",
    "LifecycleState",
    "OrderKind",
    "decide_action",
    "price_drift",
    "target_price",
]
