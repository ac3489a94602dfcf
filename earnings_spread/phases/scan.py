"""Earnings scan: find announcements that straddle tonight's close."""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List

from earnings_spread.exceptions import ConfigurationError
from earnings_spread.finnhub_client import EarningsEvent
from earnings_spread.results import success_result

from .context import PhaseContext, market_gate, phase, resolve_scan_date

logger = logging.getLogger(__name__)


def select_earnings(
    events: Iterable[EarningsEvent], scan_date: date, next_trading_day: date
) -> List[EarningsEvent]:
    """
    Keep announcements after today's close or before the next open.

    One event per symbol; the first occurrence wins.
    """
    selected: Dict[str, EarningsEvent] = {}
    for event in events:
        tonight = event.date == scan_date and event.is_after_close
        tomorrow_morning = event.date == next_trading_day and event.is_before_open
        if (tonight or tomorrow_morning) and event.symbol not in selected:
            selected[event.symbol] = event
    return list(selected.values())


@phase("scan_earnings")
def run_scan_earnings(payload: Dict[str, Any], context: PhaseContext) -> Dict[str, Any]:
    """Fetch the earnings calendar and store today's qualifying events."""
    scan_date = resolve_scan_date(payload, context.today())

    gate = market_gate(context)
    if gate is not None:
        return gate

    if context.earnings_client is None:
        raise ConfigurationError("FINNHUB_API_KEY is required for the earnings scan")

    next_day = context.calendar.next_trading_day(scan_date)
    events = context.earnings_client.get_earnings_calendar(scan_date, next_day)
    selected = select_earnings(events, scan_date, next_day)
    context.repository.save_earnings(scan_date, selected)

    logger.info(
        f"Earnings scan {scan_date}: {len(selected)} of {len(events)} events "
        f"(amc {scan_date}, bmo {next_day})"
    )
    return success_result(
        f"Stored {len(selected)} earnings events",
        scan_date=scan_date.isoformat(),
        next_trading_day=next_day.isoformat(),
        earnings_found=len(events),
        earnings_processed=len(selected),
    )
