"""
Cost Controller

Daily spend budget for the metered analysis API.

Estimation and recording are decoupled on purpose:
- `check_cost(estimated_tokens)` gates a call with a pre-call estimate
- `record_usage(actual_tokens)` updates the ledger with the provider-reported
  token count after a successful call

A call that uses fewer tokens than estimated therefore never over-charges
the budget. The daily ledger resets lazily on the first check or record of a
new (UTC) calendar day.

Amounts are kept as Decimal so repeated small charges do not drift.
"""

import math
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from jd_analyzer.core.config.constants import CHARS_PER_TOKEN, Stage
from jd_analyzer.core.exceptions import QuotaExceededError
from jd_analyzer.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def estimate_tokens(content: str, max_tokens: int) -> int:
    """Pre-call estimate: prompt tokens (about 4 chars each) plus the completion ceiling."""
    return math.ceil(len(content) / CHARS_PER_TOKEN) + max_tokens


@dataclass
class CostLedger:
    total_spend: Decimal = Decimal("0")
    daily_spend: Decimal = Decimal("0")
    last_reset_date: date = field(default_factory=utc_today)


class CostController:
    """
    Usage:
        controller = CostController(daily_limit=10.0, cost_per_token=0.00003)
        controller.check_cost(estimate_tokens(content, 2000))
        ...
        controller.record_usage(response.usage.total_tokens)
    """

    def __init__(
        self,
        daily_limit: float = 10.0,
        cost_per_token: float = 0.00003,
        today: Callable[[], date] = utc_today,
    ):
        # str() keeps 0.001 exact instead of its binary approximation
        self._daily_limit = Decimal(str(daily_limit))
        self._cost_per_token = Decimal(str(cost_per_token))
        self._today = today
        self._ledger = CostLedger(last_reset_date=today())
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, today: Callable[[], date] = utc_today) -> "CostController":
        cost = settings.cost
        return cls(daily_limit=cost.DAILY_COST_LIMIT, cost_per_token=cost.COST_PER_TOKEN, today=today)

    def _roll_day(self) -> None:
        today = self._today()
        if today != self._ledger.last_reset_date:
            logger.info(
                "Daily cost ledger reset",
                previous_date=self._ledger.last_reset_date.isoformat(),
                previous_daily_spend=float(self._ledger.daily_spend),
            )
            self._ledger.daily_spend = Decimal("0")
            self._ledger.last_reset_date = today

    def check_cost(self, estimated_tokens: int) -> None:
        with self._lock:
            self._roll_day()
            estimated_cost = Decimal(max(0, estimated_tokens)) * self._cost_per_token

            if self._ledger.daily_spend + estimated_cost > self._daily_limit:
                log_stage(
                    logger,
                    Stage.COST_CHECK,
                    "Daily cost limit would be exceeded",
                    level="warning",
                    estimated_tokens=estimated_tokens,
                    estimated_cost=float(estimated_cost),
                    daily_spend=float(self._ledger.daily_spend),
                    daily_limit=float(self._daily_limit),
                )
                raise QuotaExceededError(
                    f"Daily cost limit of ${self._daily_limit:.2f} would be exceeded",
                    details={
                        "estimated_cost": float(estimated_cost),
                        "daily_spend": float(self._ledger.daily_spend),
                        "daily_limit": float(self._daily_limit),
                    },
                ).with_suggestion("Wait until tomorrow or raise DAILY_COST_LIMIT")

    def record_usage(self, actual_tokens: int) -> float:
        """Charge the provider-reported token count. Returns the charged amount."""
        with self._lock:
            self._roll_day()
            cost = Decimal(max(0, actual_tokens)) * self._cost_per_token
            self._ledger.total_spend += cost
            self._ledger.daily_spend += cost
            return float(cost)

    def remaining_daily_budget(self) -> float:
        with self._lock:
            self._roll_day()
            return float(max(Decimal("0"), self._daily_limit - self._ledger.daily_spend))

    def get_usage_stats(self) -> dict[str, Any]:
        with self._lock:
            self._roll_day()
            return {
                "total_cost": float(self._ledger.total_spend),
                "daily_cost": float(self._ledger.daily_spend),
                "remaining_daily_budget": float(
                    max(Decimal("0"), self._daily_limit - self._ledger.daily_spend)
                ),
                "daily_limit": float(self._daily_limit),
                "last_reset_date": self._ledger.last_reset_date.isoformat(),
            }

    def reset(self) -> None:
        with self._lock:
            self._ledger = CostLedger(last_reset_date=self._today())
