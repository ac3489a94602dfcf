"""Tests for the APScheduler wrapper."""

from datetime import datetime
from unittest.mock import Mock, patch

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler

from earnings_spread.market_calendar import EASTERN, DayType
from earnings_spread.phases import PhaseContext, daily_plan
from earnings_spread.scheduler import DAILY_SCHEDULE_JOB_ID, StrategyScheduler

from conftest import SCAN_DATE


def make_context(now):
    return PhaseContext(client=Mock(), repository=Mock(), now=lambda: now)


@pytest.fixture
def scheduler():
    sched = StrategyScheduler(make_context(EASTERN.localize(datetime(2025, 1, 15, 6, 0))))
    sched.initialize()
    return sched


class TestInitialize:
    def test_status_before_initialize(self):
        sched = StrategyScheduler(make_context(datetime.now(EASTERN)))

        assert sched.get_status() == {"initialized": False, "running": False, "jobs_count": 0}
        assert sched.day_jobs() == []

    def test_registers_daily_schedule_job(self, scheduler):
        status = scheduler.get_status()

        assert isinstance(scheduler.scheduler, BackgroundScheduler)
        assert status["initialized"]
        assert not status["running"]
        assert [job["id"] for job in status["jobs"]] == [DAILY_SCHEDULE_JOB_ID]

    def test_blocking(self):
        sched = StrategyScheduler(make_context(datetime.now(EASTERN)), blocking=True)
        sched.initialize()

        assert isinstance(sched.scheduler, BlockingScheduler)

    def test_initialize_twice_keeps_scheduler(self, scheduler):
        first = scheduler.scheduler
        scheduler.initialize()

        assert scheduler.scheduler is first

    def test_shutdown_when_not_running(self, scheduler):
        scheduler.shutdown()

        assert not scheduler.is_running


class TestScheduleDay:
    def test_registers_future_jobs_only(self, scheduler):
        noon = EASTERN.localize(datetime(2025, 1, 15, 12, 0))

        registered = scheduler.schedule_day(SCAN_DATE, daily_plan(DayType.NORMAL), now=noon)

        assert registered == 6
        assert sorted(job.id for job in scheduler.day_jobs()) == [
            "day:cleanup-tables",
            "day:create-tables",
            "day:filter",
            "day:initiate-trades",
            "day:monitor-entries",
            "day:scan-earnings",
        ]

    def test_interval_job_inside_window_kept(self, scheduler):
        during_exits = EASTERN.localize(datetime(2025, 1, 15, 9, 50))

        scheduler.schedule_day(SCAN_DATE, daily_plan(DayType.NORMAL), now=during_exits)

        ids = {job.id for job in scheduler.day_jobs()}
        assert "day:monitor-exits" in ids
        assert "day:initiate-exits" not in ids

    def test_job_arguments(self, scheduler):
        before_open = EASTERN.localize(datetime(2025, 1, 15, 8, 0))

        scheduler.schedule_day(SCAN_DATE, daily_plan(DayType.NORMAL), now=before_open)

        job = scheduler.scheduler.get_job("day:initiate-trades")
        assert tuple(job.args) == ("initiate-trades", SCAN_DATE)

    def test_replaces_previous_day(self, scheduler):
        before_open = EASTERN.localize(datetime(2025, 1, 15, 8, 0))
        scheduler.schedule_day(SCAN_DATE, daily_plan(DayType.NORMAL), now=before_open)

        scheduler.schedule_day(
            SCAN_DATE, daily_plan(DayType.NORMAL), now=EASTERN.localize(datetime(2025, 1, 15, 15, 50))
        )

        assert sorted(job.id for job in scheduler.day_jobs()) == [
            "day:cleanup-tables",
            "day:monitor-entries",
        ]

    def test_clear_day_jobs_keeps_daily_job(self, scheduler):
        before_open = EASTERN.localize(datetime(2025, 1, 15, 8, 0))
        scheduler.schedule_day(SCAN_DATE, daily_plan(DayType.NORMAL), now=before_open)

        scheduler.clear_day_jobs()

        assert scheduler.day_jobs() == []
        assert scheduler.get_status()["jobs_count"] == 1


class TestRunners:
    def test_run_phase(self, scheduler):
        phase = Mock(return_value={"status": "success"})

        with patch.dict("earnings_spread.scheduler.PHASES", {"filter": phase}):
            result = scheduler.run_phase("filter", SCAN_DATE)

        assert result == {"status": "success"}
        phase.assert_called_once_with({"scanDate": "2025-01-15"}, scheduler.context)

    def test_run_daily_schedule_registers_day(self, scheduler):
        with patch.object(scheduler, "schedule_day") as schedule_day:
            result = scheduler.run_daily_schedule()

        assert result["jobs_scheduled"] == 9
        schedule_day.assert_called_once()
        assert schedule_day.call_args[0][0] == SCAN_DATE

    def test_run_daily_schedule_on_holiday(self):
        christmas = EASTERN.localize(datetime(2025, 12, 25, 6, 0))
        sched = StrategyScheduler(make_context(christmas))
        sched.initialize()

        with patch.object(sched, "clear_day_jobs") as clear:
            result = sched.run_daily_schedule()

        assert result["jobs_scheduled"] == 0
        clear.assert_called_once()
