"""Candidate filtering: run the gatekeeper pipeline over the scanned tickers."""

import logging
from typing import Any, Dict, List

from earnings_spread.allocation import PortfolioAllocator
from earnings_spread.filters.pipeline import Candidate, GatekeeperFilterPipeline
from earnings_spread.results import success_result
from earnings_spread.workers import run_bounded

from .context import PhaseContext, phase, resolve_scan_date

logger = logging.getLogger(__name__)


@phase("filter_candidates")
def run_filter_candidates(payload: Dict[str, Any], context: PhaseContext) -> Dict[str, Any]:
    """
    Evaluate every stored earnings ticker in the worker pool, then apply the
    daily allocation cap to the approved ones and store all candidates.
    """
    scan_date = resolve_scan_date(payload, context.today())
    events = context.repository.get_earnings(scan_date)
    if not events:
        return success_result(
            "No earnings events to evaluate",
            scan_date=scan_date.isoformat(),
            tickers_evaluated=0,
            candidates_approved=0,
        )

    pipeline = GatekeeperFilterPipeline(context.client, context.earnings_client)
    results = run_bounded(
        lambda event: pipeline.evaluate(event.symbol, scan_date, event.date),
        events,
        context.settings.max_workers,
    )

    candidates: List[Candidate] = []
    for result in results:
        if result.ok:
            candidates.append(result.value)
        else:
            candidates.append(
                Candidate(
                    ticker=result.item.symbol,
                    scan_date=scan_date,
                    reason=f"error:{result.error}",
                )
            )

    PortfolioAllocator().allocate(candidates)
    context.repository.save_candidates(candidates)

    approved = [c for c in candidates if c.approved]
    return success_result(
        f"Approved {len(approved)} of {len(candidates)} tickers",
        scan_date=scan_date.isoformat(),
        tickers_evaluated=len(candidates),
        candidates_approved=len(approved),
        total_allocation=round(sum(c.position_size_pct for c in approved), 6),
    )
