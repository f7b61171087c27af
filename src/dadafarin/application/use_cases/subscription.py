"""Subscription entitlement check.

A user may chat while ``now`` (in the service timezone) is strictly before
their ``valid_until``. The check runs before anything is persisted or any
model is called.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from loguru import logger

from dadafarin.application.exceptions import (
    NoSubscriptionError,
    SubscriptionExpiredError,
    UserNotFoundError,
)
from dadafarin.domain.models import User
from dadafarin.domain.protocols import IAccountStore


class SubscriptionChecker:
    def __init__(
        self,
        accounts: IAccountStore,
        tz: str = "Asia/Tehran",
        now: Callable[[ZoneInfo], datetime] = datetime.now,
    ) -> None:
        self.accounts = accounts
        self.tz = ZoneInfo(tz)
        self._now = now

    def now(self) -> datetime:
        return self._now(self.tz)

    def ensure_active(self, user_id: int) -> User:
        """Return the user when their subscription is active.

        Raises:
            UserNotFoundError: no user with *user_id*.
            NoSubscriptionError: the user never had a subscription.
            SubscriptionExpiredError: ``now >= valid_until``.
        """
        user = self.accounts.get_user(user_id)
        if user is None:
            raise UserNotFoundError()
        if user.valid_until is None:
            raise NoSubscriptionError()

        valid_until = user.valid_until
        if valid_until.tzinfo is None:
            valid_until = valid_until.replace(tzinfo=self.tz)

        now = self.now()
        if now >= valid_until:
            logger.info(
                "Subscription expired | user={} valid_until={} now={}",
                user_id,
                valid_until.isoformat(),
                now.isoformat(),
            )
            raise SubscriptionExpiredError()
        return user
