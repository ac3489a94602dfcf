"""Tests for the bounded worker pool and structured results."""

import threading
import time

import requests

from earnings_spread.exceptions import DataUnavailableError
from earnings_spread.results import error_result, skipped_result, success_result
from earnings_spread.workers import run_bounded


class TestRunBounded:
    def test_results_in_input_order(self):
        def slow_square(n):
            time.sleep(0.01 * (5 - n))
            return n * n

        results = run_bounded(slow_square, [1, 2, 3, 4], max_workers=4)

        assert [r.item for r in results] == [1, 2, 3, 4]
        assert [r.value for r in results] == [1, 4, 9, 16]

    def test_concurrency_is_bounded(self):
        lock = threading.Lock()
        active = [0]
        peak = [0]

        def work(_):
            with lock:
                active[0] += 1
                peak[0] = max(peak[0], active[0])
            time.sleep(0.02)
            with lock:
                active[0] -= 1

        run_bounded(work, list(range(12)), max_workers=3)

        assert peak[0] <= 3

    def test_item_failure_does_not_stop_batch(self):
        def work(n):
            if n == 2:
                raise DataUnavailableError("no chain")
            if n == 3:
                raise requests.exceptions.ConnectionError("down")
            return n

        results = run_bounded(work, [1, 2, 3, 4])

        assert [r.ok for r in results] == [True, False, False, True]
        assert isinstance(results[1].error, DataUnavailableError)

    def test_unexpected_error_is_captured(self):
        def work(n):
            if n == 2:
                raise ValueError("bad payload")
            return n

        results = run_bounded(work, [1, 2, 3], max_workers=2)

        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, ValueError)
        assert [results[0].value, results[2].value] == [1, 3]

    def test_empty(self):
        assert run_bounded(lambda n: n, []) == []


class TestResults:
    def test_success(self):
        result = success_result("done", orders_submitted=2)

        assert result["status"] == "success"
        assert result["message"] == "done"
        assert result["orders_submitted"] == 2
        assert "timestamp" in result

    def test_success_default_message(self):
        assert success_result()["message"] == "Operation completed"

    def test_skipped(self):
        result = skipped_result("market_closed")

        assert result["status"] == "skipped"
        assert result["reason"] == "market_closed"

    def test_error(self):
        result = error_result("boom", status_code=400)

        assert result["status"] == "error"
        assert result["status_code"] == 400
        assert error_result("")["message"] == "Unknown error occurred"
