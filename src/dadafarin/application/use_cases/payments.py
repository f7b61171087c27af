"""Subscription purchase through the payment gateway.

``start_purchase`` registers a PENDING transaction for a price option and
returns the gateway's payment page. ``verify_payment`` confirms the outcome
with the gateway and, only when amount and status match, completes the
transaction and extends the user's subscription in one database transaction.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from loguru import logger

from dadafarin.application.exceptions import (
    InvalidPurchaseOptionError,
    PaymentVerificationError,
    ValidationFailedError,
)
from dadafarin.domain.protocols import IAccountStore
from dadafarin.infrastructure.bitpay_client import BitpayClient


@dataclass(frozen=True)
class PurchaseStarted:
    payment_url: str
    id_get: str


@dataclass(frozen=True)
class PaymentConfirmed:
    hours: int
    valid_until: datetime


class PaymentService:
    def __init__(
        self,
        accounts: IAccountStore,
        gateway: BitpayClient,
        redirect_url: str,
        rial_multiplier: int = 10000,
        tz: str = "Asia/Tehran",
        now: Callable[[ZoneInfo], datetime] = datetime.now,
    ) -> None:
        self.accounts = accounts
        self.gateway = gateway
        self.redirect_url = redirect_url
        self.rial_multiplier = rial_multiplier
        self.tz = ZoneInfo(tz)
        self._now = now

    async def start_purchase(self, user_id: int, hours: int | None) -> PurchaseStarted:
        """Open a gateway payment for the *hours* price option.

        Raises:
            ValidationFailedError: *hours* is missing.
            InvalidPurchaseOptionError: no price option for *hours*.
            PaymentGatewayError: the gateway refused or could not be reached.
        """
        if not hours:
            raise ValidationFailedError("Hours not provided")
        price = self.accounts.get_price_by_time(hours)
        if price is None:
            raise InvalidPurchaseOptionError()

        valid_until = self._now(self.tz) + timedelta(hours=hours)
        logger.info(
            "Payment details | user={} hours={} amount={} valid_until={}",
            user_id,
            hours,
            price.price,
            valid_until.isoformat(),
        )

        initiation = await self.gateway.initiate(
            amount=int(round(price.price * self.rial_multiplier)),
            redirect=self.redirect_url,
            name="Subscription",
            description=f"Payment for {price.price:g} Tomans",
            factor_id=f"INV-{int(time.time() * 1000)}",
        )
        transaction = self.accounts.create_pending_transaction(
            user_id=user_id,
            valid_until=valid_until,
            amount_paid=price.price,
            id_get=initiation.id_get,
        )
        logger.info("Created pending transaction {} | id_get={}", transaction.id, initiation.id_get)
        return PurchaseStarted(payment_url=initiation.payment_url, id_get=initiation.id_get)

    async def verify_payment(
        self, user_id: int, trans_id: str | None, id_get: str | None
    ) -> PaymentConfirmed:
        """Confirm a returned payment and extend the subscription.

        Raises:
            ValidationFailedError: *trans_id* or *id_get* is missing.
            PaymentVerificationError: no pending transaction of *user_id*, unknown amount,
                gateway status not approved or amount mismatch.
            PaymentGatewayError: the gateway could not be reached.
        """
        if not trans_id or not id_get:
            raise ValidationFailedError("Invalid parameters")

        result = await self.gateway.verify(trans_id, id_get)

        transaction = self.accounts.get_pending_transaction(id_get)
        if transaction is None or transaction.user_id != user_id:
            raise PaymentVerificationError("Transaction record not found or already processed")

        price = self.accounts.get_price_by_amount(transaction.amount_paid)
        if price is None:
            raise PaymentVerificationError(
                "Transaction amount does not match allowed price options"
            )

        expected_amount = transaction.amount_paid * self.rial_multiplier
        if result.status != 1 or result.amount != expected_amount:
            logger.warning(
                "Verification failed | id_get={} status={} amount={} expected={}",
                id_get,
                result.status,
                result.amount,
                expected_amount,
            )
            raise PaymentVerificationError(
                "Verification failed: amount mismatch or status not approved"
            )

        try:
            self.accounts.complete_transaction(transaction, trans_id, result.factor_id)
        except LookupError as exc:
            raise PaymentVerificationError(
                "Transaction record not found or already processed"
            ) from exc

        return PaymentConfirmed(hours=price.time, valid_until=transaction.valid_until)
