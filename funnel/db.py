"""SQLite-backed bookkeeping for product views and the order revenue log."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable


class FunnelEventStore:
    """Append-only event tables; the revenue governor never reloads from here."""

    def __init__(self, path: Path | str) -> None:
        self.path = str(path)
        self._initialize_db()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_db(self) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS product_views (
                    product_id INTEGER PRIMARY KEY,
                    view_count INTEGER NOT NULL DEFAULT 0,
                    last_viewed_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS revenue_events (
                    id INTEGER PRIMARY KEY,
                    order_id TEXT NOT NULL,
                    amount REAL NOT NULL,
                    within_limits BOOLEAN NOT NULL,
                    revenue_status TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_revenue_events_created_at
                ON revenue_events (created_at DESC)
                """
            )

    def record_product_views(self, product_ids: Iterable[int]) -> int:
        """Increment persisted view counters; return how many rows were touched."""
        now = datetime.now(timezone.utc).isoformat()
        rows = [(product_id, now) for product_id in product_ids]
        if not rows:
            return 0
        with self._get_connection() as conn:
            conn.executemany(
                """
                INSERT INTO product_views (product_id, view_count, last_viewed_at)
                VALUES (?, 1, ?)
                ON CONFLICT(product_id) DO UPDATE SET
                    view_count = view_count + 1,
                    last_viewed_at = excluded.last_viewed_at
                """,
                rows,
            )
        return len(rows)

    def get_product_view_counts(self) -> dict[int, int]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT product_id, view_count FROM product_views").fetchall()
        return {int(row["product_id"]): int(row["view_count"]) for row in rows}

    def save_revenue_event(
        self,
        *,
        order_id: str,
        amount: float,
        within_limits: bool,
        revenue_status: str,
    ) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO revenue_events (order_id, amount, within_limits, revenue_status, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (order_id, amount, int(within_limits), revenue_status, datetime.now(timezone.utc).isoformat()),
            )

    def list_revenue_events(self, limit: int = 50) -> list[dict[str, Any]]:
        """Most recent revenue events first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT order_id, amount, within_limits, revenue_status, created_at
                FROM revenue_events
                ORDER BY id DESC
                LIMIT ?
                """,
                (max(0, limit),),
            ).fetchall()
        return [
            {
                "order_id": row["order_id"],
                "amount": float(row["amount"]),
                "within_limits": bool(row["within_limits"]),
                "revenue_status": row["revenue_status"],
                "created_at": row["created_at"],
            }
            for row in rows
        ]
