"""Revenue governor: tracks daily/monthly revenue against caps.

Totals live in process memory only and start from zero after a restart.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Literal, TypedDict

RevenueStatusName = Literal["under_target", "on_target", "near_limit", "at_limit"]


class RevenueStatus(TypedDict):
    status: RevenueStatusName
    ad_spend_multiplier: float
    should_offer_promotions: bool


class RevenueSnapshot(RevenueStatus):
    daily_percentage: float
    monthly_percentage: float
    can_accept_more_orders: bool


class RevenueGovernor:
    """Cap tracker whose status throttles promotional aggressiveness."""

    def __init__(
        self,
        max_monthly_revenue: float = 500_000.0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        if max_monthly_revenue <= 0:
            raise ValueError("max_monthly_revenue must be positive")
        self.max_monthly_revenue = max_monthly_revenue
        self.max_daily_revenue = max_monthly_revenue / 30
        self._clock = clock
        self._lock = threading.Lock()
        self.daily_revenue = 0.0
        self.monthly_revenue = 0.0
        self.last_reset_date = clock()

    def _roll_over(self, now: datetime) -> None:
        if now.date() != self.last_reset_date.date():
            self.daily_revenue = 0.0
            if (now.year, now.month) != (self.last_reset_date.year, self.last_reset_date.month):
                self.monthly_revenue = 0.0
            self.last_reset_date = now

    def add_revenue(self, amount: float) -> bool:
        """Record an order amount; return whether both counters stay within caps.

        Raises:
            ValueError: If ``amount`` is negative.
        """
        within_limits, _ = self.record_revenue(amount)
        return within_limits

    def record_revenue(self, amount: float) -> tuple[bool, RevenueSnapshot]:
        """Record an order amount and return the cap check with the resulting snapshot.

        Both come from the same lock acquisition, so they describe one state.

        Raises:
            ValueError: If ``amount`` is negative.
        """
        if amount < 0:
            raise ValueError("revenue amount must be non-negative")
        with self._lock:
            self._roll_over(self._clock())
            self.daily_revenue += amount
            self.monthly_revenue += amount
            within_limits = (
                self.daily_revenue <= self.max_daily_revenue and self.monthly_revenue <= self.max_monthly_revenue
            )
            return within_limits, self._snapshot()

    def snapshot(self) -> RevenueSnapshot:
        """Status, percentages and order acceptance read together."""
        with self._lock:
            return self._snapshot()

    def daily_percentage(self) -> float:
        with self._lock:
            return self._daily_percentage()

    def monthly_percentage(self) -> float:
        with self._lock:
            return self._monthly_percentage()

    def can_accept_more_orders(self) -> bool:
        """True while both counters sit below 95% of their caps."""
        with self._lock:
            return self._can_accept_more_orders()

    def status(self) -> RevenueStatus:
        snapshot = self.snapshot()
        return {
            "status": snapshot["status"],
            "ad_spend_multiplier": snapshot["ad_spend_multiplier"],
            "should_offer_promotions": snapshot["should_offer_promotions"],
        }

    # The helpers below expect the caller to hold ``self._lock``.

    def _daily_percentage(self) -> float:
        return (self.daily_revenue / self.max_daily_revenue) * 100

    def _monthly_percentage(self) -> float:
        return (self.monthly_revenue / self.max_monthly_revenue) * 100

    def _can_accept_more_orders(self) -> bool:
        return (
            self.daily_revenue < self.max_daily_revenue * 0.95
            and self.monthly_revenue < self.max_monthly_revenue * 0.95
        )

    def _snapshot(self) -> RevenueSnapshot:
        daily = self._daily_percentage()
        monthly = self._monthly_percentage()
        return {
            **_status_for(max(daily, monthly)),
            "daily_percentage": daily,
            "monthly_percentage": monthly,
            "can_accept_more_orders": self._can_accept_more_orders(),
        }


def _status_for(peak: float) -> RevenueStatus:
    if peak > 95:
        return {"status": "at_limit", "ad_spend_multiplier": 0.0, "should_offer_promotions": False}
    if peak > 80:
        return {"status": "near_limit", "ad_spend_multiplier": 0.3, "should_offer_promotions": False}
    if peak > 50:
        return {"status": "on_target", "ad_spend_multiplier": 0.8, "should_offer_promotions": True}
    return {"status": "under_target", "ad_spend_multiplier": 1.0, "should_offer_promotions": True}
