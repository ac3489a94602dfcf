"""Market schedule phase: decide what runs today and manage the daily tables.

Events (payload `source`):
- daily-schedule: classify today and (re)register the day's jobs
- create-tables: create the ephemeral tables
- cleanup-tables: drop them (cleanup-tables-early / -normal are accepted too)
"""

import logging
from dataclasses import dataclass
from datetime import time
from typing import Any, Dict, List, Optional

from earnings_spread.market_calendar import DayType
from earnings_spread.results import error_result, skipped_result, success_result

from .context import PhaseContext, phase, resolve_scan_date

logger = logging.getLogger(__name__)

DAILY_SCHEDULE = "daily-schedule"
CREATE_TABLES = "create-tables"
CLEANUP_TABLES = "cleanup-tables"
CLEANUP_ALIASES = (CLEANUP_TABLES, "cleanup-tables-early", "cleanup-tables-normal")

MONITOR_INTERVAL_SECONDS = 30


@dataclass(frozen=True)
class PhaseJob:
    """
    One scheduled phase run (Eastern times).

    Interval jobs repeat every `interval_seconds` from `start` until `end`.
    """

    job_id: str
    phase: str
    start: time
    end: Optional[time] = None
    interval_seconds: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "phase": self.phase,
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M") if self.end else None,
            "interval_seconds": self.interval_seconds,
        }


def _plan(close_hour: int) -> List[PhaseJob]:
    """Jobs for a session closing at `close_hour`:00; exits are always at the open."""
    h = close_hour - 1
    return [
        PhaseJob("morning-create-tables", CREATE_TABLES, time(9, 40)),
        PhaseJob("initiate-exits", "initiate-exits", time(9, 45)),
        PhaseJob(
            "monitor-exits", "monitor", time(9, 45), time(10, 0), MONITOR_INTERVAL_SECONDS
        ),
        PhaseJob("create-tables", CREATE_TABLES, time(h, 20)),
        PhaseJob("scan-earnings", "scan-earnings", time(h, 25)),
        PhaseJob("filter", "filter", time(h, 35)),
        PhaseJob("initiate-trades", "initiate-trades", time(h, 45)),
        PhaseJob(
            "monitor-entries", "monitor", time(h, 45), time(close_hour, 0), MONITOR_INTERVAL_SECONDS
        ),
        PhaseJob("cleanup-tables", CLEANUP_TABLES, time(close_hour, 0)),
    ]


NORMAL_DAY_PLAN = _plan(16)
EARLY_CLOSE_PLAN = _plan(13)


def daily_plan(day_type: DayType) -> List[PhaseJob]:
    """Jobs to register for a day; empty when the market is closed."""
    if day_type is DayType.NORMAL:
        return list(NORMAL_DAY_PLAN)
    if day_type is DayType.EARLY_CLOSURE:
        return list(EARLY_CLOSE_PLAN)
    return []


@phase("market_schedule")
def run_market_schedule(
    payload: Dict[str, Any], context: PhaseContext, scheduler=None
) -> Dict[str, Any]:
    """
    Handle a market schedule event.

    Args:
        payload: `{source?, scanDate?}`; source defaults to daily-schedule
        context: Phase context
        scheduler: StrategyScheduler to (re)register jobs on (optional)
    """
    day = resolve_scan_date(payload, context.today())
    source = payload.get("source") or DAILY_SCHEDULE
    day_type = context.calendar.day_type(day)

    if source == DAILY_SCHEDULE:
        plan = daily_plan(day_type)
        if scheduler is not None:
            if plan:
                scheduler.schedule_day(day, plan)
            else:
                scheduler.clear_day_jobs()
        message = (
            f"Scheduled {len(plan)} jobs for {day_type.value} day"
            if plan
            else f"Trading disabled: {day_type.value}"
        )
        return success_result(
            message,
            date=day.isoformat(),
            day_type=day_type.value,
            jobs_scheduled=len(plan),
            jobs=[job.to_dict() for job in plan],
        )

    if source == CREATE_TABLES:
        if not context.calendar.is_trading_day(day):
            return skipped_result("market_closed_today", day_type=day_type.value)
        context.repository.create_tables()
        return success_result("Daily tables created", date=day.isoformat())

    if source in CLEANUP_ALIASES:
        context.repository.drop_tables()
        return success_result("Daily tables dropped", date=day.isoformat())

    logger.error(f"Unknown event source: {source}")
    return error_result(f"Unknown event source: {source}", status_code=400)


def run_create_tables(payload: Dict[str, Any], context: PhaseContext) -> Dict[str, Any]:
    return run_market_schedule({**(payload or {}), "source": CREATE_TABLES}, context)


def run_cleanup_tables(payload: Dict[str, Any], context: PhaseContext) -> Dict[str, Any]:
    return run_market_schedule({**(payload or {}), "source": CLEANUP_TABLES}, context)
