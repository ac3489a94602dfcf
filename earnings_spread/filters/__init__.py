"""
Gatekeeper filters and the pipeline that applies them.
"""

from .base import FilterResult, GatekeeperFilter, TickerData
from .mandatory import ExecutionSpreadFilter, IVRatioFilter, LiquidityFilter, TermStructureFilter
from .optional import EarningsStabilityFilter, VolatilityCrushFilter
from .pipeline import Candidate, GatekeeperFilterPipeline, position_size

__all__ = [
    "FilterResult",
    "GatekeeperFilter",
    "TickerData",
    "ExecutionSpreadFilter",
    "IVRatioFilter",
    "LiquidityFilter",
    "TermStructureFilter",
    "EarningsStabilityFilter",
    "VolatilityCrushFilter",
    "Candidate",
    "GatekeeperFilterPipeline",
    "position_size",
]
