"""
Gatekeeper filter pipeline.

Turns an earnings ticker into a sized (or rejected) Candidate:

1. Mandatory filters run in order; the first failure rejects the ticker
   and no later filter runs (so no further market data is fetched).
2. Optional filters run only when every mandatory filter passed; each pass
   adds OPTIONAL_FILTER_BONUS to the position size.
3. Position size = BASE_POSITION_SIZE + bonus * optional_passed, capped at
   MAX_POSITION_SIZE.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import requests

from earnings_spread import constants
from earnings_spread.exceptions import EarningsSpreadError

from .base import FilterResult, GatekeeperFilter, TickerData
from .mandatory import (
    ExecutionSpreadFilter,
    IVRatioFilter,
    LiquidityFilter,
    TermStructureFilter,
)
from .optional import EarningsStabilityFilter, VolatilityCrushFilter

logger = logging.getLogger(__name__)

# Missing or malformed market data rejects the ticker instead of failing the batch
FILTER_DATA_ERRORS = (
    EarningsSpreadError,
    requests.exceptions.RequestException,
    KeyError,
    ValueError,
)


@dataclass
class Candidate:
    """
    Result of running one ticker through the pipeline.

    Attributes:
        ticker: Underlying symbol
        scan_date: Scan date the candidate belongs to
        filter_results: Pass/fail per evaluated filter
        approved: True iff every mandatory filter passed
        position_size_pct: Fraction of equity to allocate (0 when rejected)
        reason: Rejection reason ("<filter>:<reason>")
    """

    ticker: str
    scan_date: date
    filter_results: Dict[str, bool] = field(default_factory=dict)
    approved: bool = False
    position_size_pct: float = 0.0
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "ticker": self.ticker,
            "scan_date": self.scan_date.isoformat(),
            "filter_results": dict(self.filter_results),
            "approved": self.approved,
            "position_size_pct": self.position_size_pct,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candidate":
        return cls(
            ticker=data["ticker"],
            scan_date=date.fromisoformat(data["scan_date"]),
            filter_results=dict(data.get("filter_results") or {}),
            approved=bool(data.get("approved", False)),
            position_size_pct=float(data.get("position_size_pct", 0.0)),
            reason=data.get("reason"),
        )


def default_mandatory_filters() -> List[GatekeeperFilter]:
    return [LiquidityFilter(), IVRatioFilter(), TermStructureFilter(), ExecutionSpreadFilter()]


def default_optional_filters() -> List[GatekeeperFilter]:
    return [EarningsStabilityFilter(), VolatilityCrushFilter()]


def position_size(optional_passed: int) -> float:
    """Position size for a candidate that passed `optional_passed` optional filters."""
    size = constants.BASE_POSITION_SIZE + constants.OPTIONAL_FILTER_BONUS * optional_passed
    return min(size, constants.MAX_POSITION_SIZE)


class GatekeeperFilterPipeline:
    """
    Evaluate earnings tickers against the gatekeeper filters.

    Example:
        pipeline = GatekeeperFilterPipeline(alpaca_client, finnhub_client)
        candidate = pipeline.evaluate("AAPL", date(2025, 1, 30))
    """

    def __init__(
        self,
        client,
        earnings_client=None,
        mandatory: Optional[Sequence[GatekeeperFilter]] = None,
        optional: Optional[Sequence[GatekeeperFilter]] = None,
    ):
        self.client = client
        self.earnings_client = earnings_client
        self.mandatory = list(mandatory) if mandatory is not None else default_mandatory_filters()
        self.optional = list(optional) if optional is not None else default_optional_filters()

    def _run(self, flt: GatekeeperFilter, data: TickerData) -> FilterResult:
        try:
            return flt(data)
        except FILTER_DATA_ERRORS as e:
            logger.warning(
                f"{data.ticker}: {flt.name} could not be evaluated: {e}", exc_info=True
            )
            return FilterResult.fail(flt.name, "data_unavailable", error=str(e))

    def evaluate(
        self,
        ticker: str,
        scan_date: date,
        earnings_date: Optional[date] = None,
    ) -> Candidate:
        """
        Run one ticker through the pipeline.

        Args:
            ticker: Underlying symbol
            scan_date: Scan date
            earnings_date: Announcement date (defaults to scan_date)

        Returns:
            Candidate, approved and sized or rejected with a reason
        """
        data = TickerData(
            ticker,
            scan_date,
            self.client,
            earnings_client=self.earnings_client,
            earnings_date=earnings_date,
        )
        candidate = Candidate(ticker=ticker, scan_date=scan_date)

        for flt in self.mandatory:
            result = self._run(flt, data)
            candidate.filter_results[flt.name] = result.passed
            if not result.passed:
                candidate.reason = f"{flt.name}:{result.reason}"
                logger.info(f"{ticker}: rejected ({candidate.reason})")
                return candidate

        passed = 0
        for flt in self.optional:
            result = self._run(flt, data)
            candidate.filter_results[flt.name] = result.passed
            if result.passed:
                passed += 1

        candidate.approved = True
        candidate.position_size_pct = position_size(passed)
        logger.info(
            f"{ticker}: approved with {passed} optional filters, "
            f"size {candidate.position_size_pct:.2%}"
        )
        return candidate
