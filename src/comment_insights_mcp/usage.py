"""Per-user daily analysis quota."""

from __future__ import annotations

import logging

from .errors import ErrorKind, InsightsError
from .models.usage import UsageCounter
from .store import InsightsStore

logger = logging.getLogger(__name__)


class UsageLimiter:
    """Gate new analysis work on ``analyses_this_day`` and record what was done.

    The limiter never increments on a check. Charges are applied once per
    batch, per comment actually analysed, so a partial batch still pays for
    the comments it finished. Resetting the daily counter belongs to an
    external rollover job (``InsightsStore.reset_daily_usage``).
    """

    def __init__(self, store: InsightsStore, max_per_day: int = 100) -> None:
        self._store = store
        self.max_per_day = max_per_day

    def usage(self, user_id: str) -> UsageCounter:
        return self._store.get_usage(user_id)

    def remaining(self, user_id: str) -> int:
        return max(0, self.max_per_day - self.usage(user_id).analyses_this_day)

    def check_quota(self, user_id: str) -> bool:
        """Return False once the user has used up today's allowance."""
        return self.usage(user_id).analyses_this_day < self.max_per_day

    def ensure_quota(self, user_id: str) -> int:
        """Return today's remaining allowance.

        Raises:
            InsightsError: QUOTA_EXCEEDED when nothing is left.
        """
        remaining = self.remaining(user_id)
        if remaining <= 0:
            logger.info("Daily analysis limit reached for user %s", user_id)
            raise InsightsError(
                ErrorKind.QUOTA_EXCEEDED,
                "Daily analysis limit reached",
                {"user_id": user_id, "max_per_day": self.max_per_day},
            )
        return remaining

    def charge(
        self,
        user_id: str,
        *,
        analyzed: int,
        fetched: int = 0,
        cost_usd: float = 0.0,
    ) -> UsageCounter:
        """Record finished work against the user's counters."""
        counter = self._store.increment_usage(
            user_id,
            analyses=analyzed,
            comments_fetched=fetched,
            cost_usd=cost_usd,
        )
        logger.info(
            "Charged user %s: %d analysed, %d fetched, $%.4f (today %d/%d)",
            user_id, analyzed, fetched, cost_usd, counter.analyses_this_day, self.max_per_day,
        )
        return counter
