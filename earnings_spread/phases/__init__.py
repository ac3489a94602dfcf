"""
Strategy phases.

Each phase is `run_<phase>(payload, context) -> result`, where payload is
`{scanDate?: "YYYY-MM-DD"}` and result is a flat mapping with a `status` of
success, skipped or error plus the phase's counts.
"""

from .context import PhaseContext, market_gate, phase, resolve_scan_date
from .entries import run_initiate_trades
from .exits import run_initiate_exit_trades
from .filtering import run_filter_candidates
from .monitoring import run_monitor_trades
from .scan import run_scan_earnings
from .schedule import (
    PhaseJob,
    daily_plan,
    run_cleanup_tables,
    run_create_tables,
    run_market_schedule,
)

# Phase name -> callable, shared by the CLI and the scheduler
PHASES = {
    "create-tables": run_create_tables,
    "scan-earnings": run_scan_earnings,
    "filter": run_filter_candidates,
    "initiate-trades": run_initiate_trades,
    "initiate-exits": run_initiate_exit_trades,
    "monitor": run_monitor_trades,
    "cleanup-tables": run_cleanup_tables,
}

__all__ = [
    "PHASES",
    "PhaseContext",
    "PhaseJob",
    "daily_plan",
    "market_gate",
    "phase",
    "resolve_scan_date",
    "run_cleanup_tables",
    "run_create_tables",
    "run_filter_candidates",
    "run_initiate_exit_trades",
    "run_initiate_trades",
    "run_market_schedule",
    "run_monitor_trades",
    "run_scan_earnings",
]
