"""Tests for the subscription entitlement check."""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from dadafarin.application.exceptions import (
    NoSubscriptionError,
    SubscriptionExpiredError,
    UserNotFoundError,
)
from dadafarin.application.use_cases.subscription import SubscriptionChecker
from dadafarin.infrastructure.account_store import AccountStore

TEHRAN = ZoneInfo("Asia/Tehran")
NOW = datetime(2025, 3, 20, 12, 0, tzinfo=TEHRAN)


@pytest.fixture()
def checker(account_store: AccountStore) -> SubscriptionChecker:
    return SubscriptionChecker(account_store, now=lambda tz: NOW.astimezone(tz))


class TestEnsureActive:
    def test_active_subscription(self, account_store: AccountStore, checker):
        user = account_store.create_user("a@x.com", "h", None, None, NOW + timedelta(minutes=1))

        assert checker.ensure_active(user.id).id == user.id

    def test_expired_subscription(self, account_store: AccountStore, checker):
        user = account_store.create_user("a@x.com", "h", None, None, NOW - timedelta(days=1))

        with pytest.raises(SubscriptionExpiredError) as exc_info:
            checker.ensure_active(user.id)

        payload = exc_info.value.to_payload()
        assert payload["code"] == "SUBSCRIPTION_EXPIRED"
        assert payload["message"]["en"].startswith("Your subscription has expired")
        assert payload["message"]["fa"].startswith("اشتراک شما منقضی شده است")

    def test_expires_at_exactly_valid_until(self, account_store: AccountStore, checker):
        user = account_store.create_user("a@x.com", "h", None, None, NOW)

        with pytest.raises(SubscriptionExpiredError):
            checker.ensure_active(user.id)

    def test_compares_across_timezones(self, account_store: AccountStore, checker):
        # 08:31 UTC is 12:01 in Tehran, one minute after NOW.
        until = datetime(2025, 3, 20, 8, 31, tzinfo=ZoneInfo("UTC"))
        user = account_store.create_user("a@x.com", "h", None, None, until)

        assert checker.ensure_active(user.id)

    def test_no_subscription(self, account_store: AccountStore, checker):
        user = account_store.create_user("a@x.com", "h", None, None, None)

        with pytest.raises(NoSubscriptionError) as exc_info:
            checker.ensure_active(user.id)
        assert exc_info.value.status_code == 403

    def test_unknown_user(self, checker):
        with pytest.raises(UserNotFoundError):
            checker.ensure_active(12345)

    def test_default_clock_uses_service_timezone(self, account_store: AccountStore):
        checker = SubscriptionChecker(account_store, tz="Asia/Tehran")
        assert checker.now().utcoffset() == timedelta(hours=3, minutes=30)
