"""Tests for PaymentService: purchase start and verification."""

from __future__ import annotations

from datetime import datetime, timedelta
from urllib.parse import parse_qs
from zoneinfo import ZoneInfo

import httpx
import pytest

from dadafarin.application.exceptions import (
    InvalidPurchaseOptionError,
    PaymentGatewayError,
    PaymentVerificationError,
    ValidationFailedError,
)
from dadafarin.application.use_cases.payments import PaymentService
from dadafarin.infrastructure.account_store import AccountStore
from dadafarin.infrastructure.bitpay_client import BitpayClient

TEHRAN = ZoneInfo("Asia/Tehran")
NOW = datetime(2025, 3, 20, 12, 0, tzinfo=TEHRAN)


class MockGateway:
    """Bitpay stand-in: answers ``send`` with a payment id and ``verify`` with ``verify_reply``."""

    def __init__(self) -> None:
        self.send_reply = "777"
        self.verify_reply: dict = {"status": 1, "amount": 500000, "factorId": "INV-1"}
        self.sent: list[dict[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.sent.append(form)
        if request.url.path.endswith("/send"):
            return httpx.Response(200, text=self.send_reply)
        return httpx.Response(200, json=self.verify_reply)


@pytest.fixture()
def gateway() -> MockGateway:
    return MockGateway()


@pytest.fixture()
def service(account_store: AccountStore, gateway: MockGateway) -> PaymentService:
    account_store.seed_prices({1: 10, 24: 50})
    client = BitpayClient(
        http=httpx.AsyncClient(transport=httpx.MockTransport(gateway)),
        api_key="k",
        send_url="https://gateway.test/send",
        verify_url="https://gateway.test/verify",
        gateway_url_template="https://gateway.test/pay/{id_get}",
    )
    return PaymentService(
        account_store,
        client,
        redirect_url="https://app.test/api/account/payment-callback",
        now=lambda tz: NOW.astimezone(tz),
    )


@pytest.fixture()
def user_id(account_store: AccountStore) -> int:
    return account_store.create_user("a@x.com", "h", None, None, None).id


class TestStartPurchase:
    async def test_creates_pending_transaction(
        self, service: PaymentService, account_store: AccountStore, gateway: MockGateway, user_id
    ):
        started = await service.start_purchase(user_id, 24)

        assert started.payment_url == "https://gateway.test/pay/777"
        assert started.id_get == "777"
        assert gateway.sent[0]["amount"] == "500000"
        assert gateway.sent[0]["redirect"] == "https://app.test/api/account/payment-callback"
        assert gateway.sent[0]["description"] == "Payment for 50 Tomans"
        assert gateway.sent[0]["factorId"].startswith("INV-")

        tx = account_store.get_pending_transaction("777")
        assert tx.user_id == user_id
        assert tx.amount_paid == 50.0
        assert tx.valid_until == NOW + timedelta(hours=24)

    @pytest.mark.parametrize("hours", [None, 0])
    async def test_hours_required(self, service: PaymentService, user_id, hours):
        with pytest.raises(ValidationFailedError):
            await service.start_purchase(user_id, hours)

    async def test_unknown_option(self, service: PaymentService, gateway: MockGateway, user_id):
        with pytest.raises(InvalidPurchaseOptionError):
            await service.start_purchase(user_id, 5)
        assert gateway.sent == []

    async def test_gateway_refusal_creates_nothing(
        self, service: PaymentService, account_store: AccountStore, gateway: MockGateway, user_id
    ):
        gateway.send_reply = "-3"

        with pytest.raises(PaymentGatewayError):
            await service.start_purchase(user_id, 24)

        assert account_store.get_pending_transaction("-3") is None


class TestVerifyPayment:
    async def test_success_extends_subscription(
        self, service: PaymentService, account_store: AccountStore, user_id
    ):
        await service.start_purchase(user_id, 24)

        confirmed = await service.verify_payment(user_id, "T-1", "777")

        assert confirmed.hours == 24
        assert confirmed.valid_until == NOW + timedelta(hours=24)
        assert account_store.get_valid_until(user_id) == NOW + timedelta(hours=24)
        assert account_store.get_pending_transaction("777") is None

    async def test_replay_is_rejected(self, service: PaymentService, user_id):
        await service.start_purchase(user_id, 24)
        await service.verify_payment(user_id, "T-1", "777")

        with pytest.raises(PaymentVerificationError):
            await service.verify_payment(user_id, "T-1", "777")

    @pytest.mark.parametrize(
        "reply",
        [
            {"status": 1, "amount": 100000},
            {"status": -1, "amount": 500000},
        ],
    )
    async def test_mismatch_leaves_subscription_unchanged(
        self, service: PaymentService, account_store: AccountStore, gateway, user_id, reply
    ):
        await service.start_purchase(user_id, 24)
        gateway.verify_reply = reply

        with pytest.raises(PaymentVerificationError):
            await service.verify_payment(user_id, "T-1", "777")

        assert account_store.get_valid_until(user_id) is None
        assert account_store.get_pending_transaction("777") is not None

    async def test_other_users_transaction(
        self, service: PaymentService, account_store: AccountStore, user_id
    ):
        await service.start_purchase(user_id, 24)
        other = account_store.create_user("b@x.com", "h", None, None, None).id

        with pytest.raises(PaymentVerificationError):
            await service.verify_payment(other, "T-1", "777")

        assert account_store.get_valid_until(other) is None

    async def test_unknown_id_get(self, service: PaymentService, user_id):
        with pytest.raises(PaymentVerificationError):
            await service.verify_payment(user_id, "T-1", "999")

    @pytest.mark.parametrize("trans_id,id_get", [(None, "777"), ("T-1", ""), (None, None)])
    async def test_parameters_required(
        self, service: PaymentService, gateway: MockGateway, user_id, trans_id, id_get
    ):
        with pytest.raises(ValidationFailedError):
            await service.verify_payment(user_id, trans_id, id_get)
        assert gateway.sent == []
