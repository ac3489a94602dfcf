"""Background scheduler for the daily strategy phases.

A cron job runs the daily-schedule event every weekday morning. That event
classifies the day and registers the day's phase jobs (normal or early-close
times); holidays and weekends register nothing.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .market_calendar import EASTERN
from .phases import PHASES, PhaseContext, PhaseJob, run_market_schedule

logger = logging.getLogger(__name__)

DAILY_SCHEDULE_JOB_ID = "daily-schedule"
DAY_JOB_PREFIX = "day:"


def _isoformat(moment: Optional[datetime]) -> Optional[str]:
    # jobs added before start() have no next_run_time yet
    return moment.isoformat() if moment else None


class StrategyScheduler:
    """Wraps an APScheduler scheduler and owns the day's phase jobs.

    Attributes:
        scheduler: APScheduler scheduler instance
        is_running: Whether scheduler is currently running
    """

    def __init__(self, context: PhaseContext, blocking: bool = False, max_workers: int = 5):
        """
        Args:
            context: Phase context passed to every job
            blocking: Use a BlockingScheduler (for a foreground process)
            max_workers: Thread pool size for job execution
        """
        self.context = context
        self.blocking = blocking
        self.max_workers = max_workers
        self.scheduler = None
        self.is_running = False

    def initialize(self) -> None:
        """Create the scheduler with its executor and job defaults."""
        if self.scheduler is not None:
            logger.warning("Scheduler already initialized")
            return

        executors = {"default": ThreadPoolExecutor(max_workers=self.max_workers)}
        job_defaults = {
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,  # Only one instance per job at a time
            "misfire_grace_time": 60,  # Allow 60s grace period for missed jobs
        }
        scheduler_cls = BlockingScheduler if self.blocking else BackgroundScheduler
        self.scheduler = scheduler_cls(
            executors=executors,
            job_defaults=job_defaults,
            timezone=EASTERN,
        )
        self.scheduler.add_job(
            self.run_daily_schedule,
            CronTrigger(day_of_week="mon-fri", hour=6, minute=0, timezone=EASTERN),
            id=DAILY_SCHEDULE_JOB_ID,
            name="Daily market schedule",
            replace_existing=True,
        )
        logger.info("Scheduler initialized successfully")

    def start(self) -> None:
        """Register today's jobs and start the scheduler.

        A BlockingScheduler does not return until shut down.

        Raises:
            RuntimeError: If scheduler fails to start
        """
        if self.is_running:
            logger.warning("Scheduler already running")
            return

        if self.scheduler is None:
            self.initialize()

        self.run_daily_schedule()
        try:
            self.is_running = True
            logger.info("Scheduler starting")
            self.scheduler.start()
        except Exception as e:
            self.is_running = False
            logger.error(f"Failed to start scheduler: {e}")
            raise RuntimeError(f"Failed to start scheduler: {e}")

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the scheduler.

        Args:
            wait: Whether to wait for running jobs to complete
        """
        if not self.is_running or self.scheduler is None:
            logger.warning("Scheduler not running")
            return

        self.scheduler.shutdown(wait=wait)
        self.is_running = False
        logger.info("Scheduler shutdown successfully")

    def run_daily_schedule(self) -> Dict[str, Any]:
        result = run_market_schedule({"source": "daily-schedule"}, self.context, scheduler=self)
        logger.info(f"Daily schedule: {result.get('message')}")
        return result

    def run_phase(self, phase_name: str, scan_date: date) -> Dict[str, Any]:
        """Job target: run one phase for a scan date and log its result."""
        result = PHASES[phase_name]({"scanDate": scan_date.isoformat()}, self.context)
        log = logger.error if result.get("status") == "error" else logger.info
        log(f"Phase {phase_name} finished: {result}")
        return result

    def day_jobs(self) -> List:
        if self.scheduler is None:
            return []
        return [job for job in self.scheduler.get_jobs() if job.id.startswith(DAY_JOB_PREFIX)]

    def clear_day_jobs(self) -> None:
        """Remove every job registered for a previous day."""
        for job in self.day_jobs():
            self.scheduler.remove_job(job.id)
        logger.info("Cleared day jobs")

    def schedule_day(
        self, day: date, plan: List[PhaseJob], now: Optional[datetime] = None
    ) -> int:
        """
        Register a day's phase jobs, replacing any previous day's jobs.

        Jobs whose time has already passed are not registered; an interval job
        already in its window starts now.

        Returns:
            Number of jobs registered
        """
        if self.scheduler is None:
            self.initialize()
        self.clear_day_jobs()
        now = now or datetime.now(EASTERN)
        registered = 0

        for job in plan:
            start = EASTERN.localize(datetime.combine(day, job.start))
            end = EASTERN.localize(datetime.combine(day, job.end)) if job.end else None
            if (end or start) <= now:
                logger.debug(f"Skipping past job {job.job_id}")
                continue

            if job.interval_seconds:
                trigger = IntervalTrigger(
                    seconds=job.interval_seconds,
                    start_date=max(start, now),
                    end_date=end,
                    timezone=EASTERN,
                )
            else:
                trigger = DateTrigger(run_date=start, timezone=EASTERN)

            self.scheduler.add_job(
                self.run_phase,
                trigger,
                args=[job.phase, day],
                id=f"{DAY_JOB_PREFIX}{job.job_id}",
                name=f"{job.phase} ({job.job_id})",
                replace_existing=True,
            )
            registered += 1

        logger.info(f"Registered {registered} of {len(plan)} jobs for {day}")
        return registered

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler status information."""
        if self.scheduler is None:
            return {"initialized": False, "running": False, "jobs_count": 0}

        jobs = self.scheduler.get_jobs()
        return {
            "initialized": True,
            "running": self.is_running,
            "jobs_count": len(jobs),
            "jobs": [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": _isoformat(getattr(job, "next_run_time", None)),
                }
                for job in jobs
            ],
        }
