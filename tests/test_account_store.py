"""Tests for AccountStore: users, prices and payment transactions."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from dadafarin.domain.models import PaymentStatus
from dadafarin.infrastructure.account_store import AccountStore

TEHRAN = ZoneInfo("Asia/Tehran")


def _user(store: AccountStore, email: str = "a@example.com", valid_until=None):
    return store.create_user(email, "hash", "Ali", "Rezaei", valid_until)


class TestUsers:
    def test_create_and_get(self, account_store: AccountStore):
        until = datetime(2030, 1, 1, 12, 0, tzinfo=TEHRAN)
        user = _user(account_store, valid_until=until)

        fetched = account_store.get_user(user.id)

        assert fetched is not None
        assert fetched.email == "a@example.com"
        assert fetched.first_name == "Ali"
        assert fetched.valid_until == until

    def test_get_by_email(self, account_store: AccountStore):
        user = _user(account_store)
        assert account_store.get_user_by_email("a@example.com").id == user.id
        assert account_store.get_user_by_email("other@example.com") is None

    def test_duplicate_email_rejected(self, account_store: AccountStore):
        _user(account_store)
        with pytest.raises(sqlite3.IntegrityError):
            _user(account_store)

    def test_missing_user(self, account_store: AccountStore):
        assert account_store.get_user(999) is None
        assert account_store.get_valid_until(999) is None

    def test_valid_until_without_subscription(self, account_store: AccountStore):
        user = _user(account_store)
        assert account_store.get_valid_until(user.id) is None

    def test_naive_stored_value_is_read_as_tehran_time(self, account_store: AccountStore):
        user = _user(account_store)
        account_store.conn.execute(
            "UPDATE users SET valid_until = ? WHERE id = ?", ("2030-01-01T10:00:00", user.id)
        )

        valid_until = account_store.get_valid_until(user.id)

        assert valid_until == datetime(2030, 1, 1, 10, 0, tzinfo=TEHRAN)
        assert valid_until.utcoffset() == timedelta(hours=3, minutes=30)

    def test_set_valid_until(self, account_store: AccountStore):
        user = _user(account_store)
        until = datetime(2031, 5, 1, tzinfo=UTC)

        account_store.set_valid_until(user.id, until)

        assert account_store.get_valid_until(user.id) == until


class TestPrices:
    def test_seed_only_when_empty(self, account_store: AccountStore):
        account_store.seed_prices({24: 50, 1: 10})
        account_store.seed_prices({720: 500})

        assert [(p.time, p.price) for p in account_store.list_prices()] == [(1, 10.0), (24, 50.0)]

    def test_lookup_by_time_and_amount(self, account_store: AccountStore):
        account_store.seed_prices({1: 10, 24: 50})

        assert account_store.get_price_by_time(24).price == 50.0
        assert account_store.get_price_by_time(2) is None
        assert account_store.get_price_by_amount(10.0).time == 1
        assert account_store.get_price_by_amount(11.0) is None


class TestTransactions:
    def test_pending_then_completed(self, account_store: AccountStore):
        user = _user(account_store)
        until = datetime(2030, 2, 1, 8, 30, tzinfo=TEHRAN)
        pending = account_store.create_pending_transaction(user.id, until, 50.0, "777")

        fetched = account_store.get_pending_transaction("777")
        assert fetched is not None
        assert fetched.id == pending.id
        assert fetched.payment_status == PaymentStatus.PENDING
        assert fetched.valid_until == until

        account_store.complete_transaction(fetched, trans_id="T-1", external_payment_id="INV-1")

        assert account_store.get_pending_transaction("777") is None
        assert account_store.get_valid_until(user.id) == until
        row = account_store.conn.execute(
            "SELECT payment_status, trans_id, external_payment_id FROM transactions WHERE id = ?",
            (pending.id,),
        ).fetchone()
        assert tuple(row) == ("COMPLETED", "T-1", "INV-1")

    def test_completing_twice_fails_and_changes_nothing(self, account_store: AccountStore):
        user = _user(account_store)
        first = datetime(2030, 1, 1, tzinfo=TEHRAN)
        tx = account_store.create_pending_transaction(user.id, first, 10.0, "1")
        account_store.complete_transaction(tx, "T-1", None)

        replay = account_store.create_pending_transaction(user.id, first, 10.0, "2")
        replay.id = tx.id
        replay.valid_until = datetime(2040, 1, 1, tzinfo=TEHRAN)
        with pytest.raises(LookupError):
            account_store.complete_transaction(replay, "T-2", None)

        assert account_store.get_valid_until(user.id) == first

    def test_unknown_id_get(self, account_store: AccountStore):
        assert account_store.get_pending_transaction("nope") is None
