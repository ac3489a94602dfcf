"""SQLite persistence for the ephemeral daily tables.

Three tables live for one trading day and are dropped at cleanup:
- earnings: earnings events found by the scan, keyed by (scan_date, ticker)
- candidates: filter pipeline output, keyed by (scan_date, ticker)
- order_tracking: orders under lifecycle monitoring, keyed by (ticker, order_id)

Writes are upserts, so re-running a phase for the same key overwrites.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, List, Optional

from .filters.pipeline import Candidate
from .finnhub_client import EarningsEvent
from .monitor.models import MonitoredOrder
from .monitor.policy import LifecycleState, OrderKind

logger = logging.getLogger(__name__)

TABLES = ("earnings", "candidates", "order_tracking")


class DailyRepository:
    """SQLite persistence for earnings, candidates and tracked orders."""

    def __init__(self, db_path: str = "~/.earnings_spread/daily.db", create: bool = True):
        """
        Initialize the repository.

        Args:
            db_path: Path to SQLite database file. Supports ~ expansion.
            create: Create the tables if they don't exist
        """
        self.db_path = os.path.expanduser(db_path)
        self._ensure_directory()
        if create:
            self.create_tables()

    def _ensure_directory(self) -> None:
        """Create database directory if it doesn't exist."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)
            logger.info(f"Created database directory: {db_dir}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def create_tables(self) -> None:
        """Create the daily tables if they don't exist."""
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS earnings (
                    scan_date TEXT NOT NULL,
                    ticker TEXT NOT NULL,
                    earnings_date TEXT NOT NULL,
                    hour TEXT NOT NULL DEFAULT '',
                    PRIMARY KEY (scan_date, ticker)
                );

                CREATE TABLE IF NOT EXISTS candidates (
                    scan_date TEXT NOT NULL,
                    ticker TEXT NOT NULL,
                    approved INTEGER NOT NULL DEFAULT 0,
                    position_size_pct REAL NOT NULL DEFAULT 0,
                    filter_results TEXT NOT NULL DEFAULT '{}',
                    reason TEXT,
                    PRIMARY KEY (scan_date, ticker)
                );

                CREATE TABLE IF NOT EXISTS order_tracking (
                    ticker TEXT NOT NULL,
                    order_id TEXT NOT NULL,
                    trade_type TEXT NOT NULL,
                    legs TEXT NOT NULL,
                    qty INTEGER NOT NULL,
                    submission_time TEXT NOT NULL,
                    limit_price REAL,
                    monitoring_end_time TEXT NOT NULL,
                    state TEXT NOT NULL DEFAULT 'monitoring',
                    replaced_by TEXT,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (ticker, order_id)
                );

                CREATE INDEX IF NOT EXISTS idx_order_tracking_order
                    ON order_tracking(order_id);
            """
            )
        logger.debug(f"Daily tables ready at {self.db_path}")

    def drop_tables(self) -> None:
        """Drop the daily tables."""
        with self._connect() as conn:
            for table in TABLES:
                conn.execute(f"DROP TABLE IF EXISTS {table}")
        logger.info(f"Dropped daily tables at {self.db_path}")

    # Earnings

    def save_earnings(self, scan_date: date, events: List[EarningsEvent]) -> int:
        """Upsert earnings events for a scan date. Returns the number written."""
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT OR REPLACE INTO earnings (scan_date, ticker, earnings_date, hour)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (scan_date.isoformat(), e.symbol, e.date.isoformat(), e.hour)
                    for e in events
                ],
            )
        return len(events)

    def get_earnings(self, scan_date: date) -> List[EarningsEvent]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM earnings WHERE scan_date = ? ORDER BY ticker",
                (scan_date.isoformat(),),
            ).fetchall()
        return [
            EarningsEvent(
                symbol=row["ticker"],
                date=date.fromisoformat(row["earnings_date"]),
                hour=row["hour"],
            )
            for row in rows
        ]

    # Candidates

    def save_candidates(self, candidates: List[Candidate]) -> int:
        """Upsert candidates. Returns the number written."""
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT OR REPLACE INTO candidates
                (scan_date, ticker, approved, position_size_pct, filter_results, reason)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        c.scan_date.isoformat(),
                        c.ticker,
                        1 if c.approved else 0,
                        c.position_size_pct,
                        json.dumps(c.filter_results),
                        c.reason,
                    )
                    for c in candidates
                ],
            )
        return len(candidates)

    def get_candidates(self, scan_date: date, approved_only: bool = False) -> List[Candidate]:
        query = "SELECT * FROM candidates WHERE scan_date = ?"
        if approved_only:
            query += " AND approved = 1"
        query += " ORDER BY position_size_pct DESC, ticker"
        with self._connect() as conn:
            rows = conn.execute(query, (scan_date.isoformat(),)).fetchall()
        return [self._row_to_candidate(row) for row in rows]

    def _row_to_candidate(self, row: sqlite3.Row) -> Candidate:
        return Candidate(
            ticker=row["ticker"],
            scan_date=date.fromisoformat(row["scan_date"]),
            filter_results=json.loads(row["filter_results"]),
            approved=bool(row["approved"]),
            position_size_pct=row["position_size_pct"],
            reason=row["reason"],
        )

    # Order tracking

    def track_order(self, order: MonitoredOrder) -> None:
        """Insert or overwrite a tracking record."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO order_tracking
                (ticker, order_id, trade_type, legs, qty, submission_time, limit_price,
                 monitoring_end_time, state, replaced_by, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    order.ticker,
                    order.order_id,
                    order.trade_type.value,
                    json.dumps(order.legs_to_list()),
                    order.qty,
                    order.submission_time.isoformat(),
                    order.limit_price,
                    order.monitoring_end_time.isoformat(),
                    order.state.value,
                    order.replaced_by,
                    datetime.now().isoformat(),
                ),
            )

    def get_tracked_order(self, order_id: str) -> Optional[MonitoredOrder]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM order_tracking WHERE order_id = ?", (order_id,)
            ).fetchone()
        return self._row_to_order(row) if row else None

    def list_tracked_orders(self, active_only: bool = False) -> List[MonitoredOrder]:
        query = "SELECT * FROM order_tracking"
        params: tuple = ()
        if active_only:
            query += " WHERE state = ?"
            params = (LifecycleState.MONITORING.value,)
        query += " ORDER BY submission_time"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_order(row) for row in rows]

    def _row_to_order(self, row: sqlite3.Row) -> MonitoredOrder:
        return MonitoredOrder(
            order_id=row["order_id"],
            ticker=row["ticker"],
            trade_type=OrderKind(row["trade_type"]),
            legs=MonitoredOrder.legs_from_list(json.loads(row["legs"])),
            qty=row["qty"],
            submission_time=datetime.fromisoformat(row["submission_time"]),
            limit_price=row["limit_price"],
            monitoring_end_time=datetime.fromisoformat(row["monitoring_end_time"]),
            state=LifecycleState(row["state"]),
            replaced_by=row["replaced_by"],
        )
