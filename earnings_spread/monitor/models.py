"""Data model for orders under lifecycle monitoring."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from earnings_spread.orders.legs import CalendarSpreadLeg, PositionIntent, Side

from .policy import MONITORING_WINDOW, LifecycleState, OrderKind


@dataclass
class MonitoredOrder:
    """
    An open multi-leg order being tracked by the monitor.

    Attributes:
        order_id: Brokerage order id
        ticker: Underlying symbol
        trade_type: Entry or exit
        legs: Order legs
        qty: Parent order quantity
        submission_time: When the first order in this chain was submitted (UTC)
        limit_price: Current limit price (None for market orders)
        monitoring_end_time: submission_time + monitoring window
        state: Lifecycle state
        replaced_by: Id of the order that replaced this one, if re-submitted
    """

    order_id: str
    ticker: str
    trade_type: OrderKind
    legs: List[CalendarSpreadLeg]
    qty: int
    submission_time: datetime
    limit_price: Optional[float] = None
    monitoring_end_time: Optional[datetime] = None
    state: LifecycleState = LifecycleState.MONITORING
    replaced_by: Optional[str] = None

    def __post_init__(self) -> None:
        if self.monitoring_end_time is None:
            self.monitoring_end_time = self.submission_time + MONITORING_WINDOW

    def elapsed(self, now: datetime) -> timedelta:
        return now - self.submission_time

    def replacement(self, order_id: str, limit_price: Optional[float]) -> "MonitoredOrder":
        """Tracking record for the order that replaces this one."""
        return MonitoredOrder(
            order_id=order_id,
            ticker=self.ticker,
            trade_type=self.trade_type,
            legs=list(self.legs),
            qty=self.qty,
            submission_time=self.submission_time,
            limit_price=limit_price,
            monitoring_end_time=self.monitoring_end_time,
        )

    def legs_to_list(self) -> List[Dict[str, str]]:
        return [leg.to_dict() for leg in self.legs]

    @staticmethod
    def legs_from_list(raw: List[Dict[str, Any]]) -> List[CalendarSpreadLeg]:
        return [
            CalendarSpreadLeg(
                symbol=leg["symbol"],
                side=Side(leg["side"]),
                ratio_qty=int(leg["ratio_qty"]),
                position_intent=PositionIntent(leg["position_intent"]),
            )
            for leg in raw
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "order_id": self.order_id,
            "ticker": self.ticker,
            "trade_type": self.trade_type.value,
            "legs": self.legs_to_list(),
            "qty": self.qty,
            "submission_time": self.submission_time.isoformat(),
            "limit_price": self.limit_price,
            "monitoring_end_time": self.monitoring_end_time.isoformat(),
            "state": self.state.value,
            "replaced_by": self.replaced_by,
        }
