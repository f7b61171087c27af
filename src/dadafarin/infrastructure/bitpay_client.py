"""HTTP client for the Bitpay payment gateway."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from loguru import logger

from dadafarin.application.exceptions import PaymentGatewayError, PaymentVerificationError

# Negative replies of the send endpoint.
SEND_ERRORS: dict[int, str] = {
    -1: "API کد ارسالی صحیح نیست",
    -2: "مبلغ وارد شده صحیح نیست یا کمتر از 1000 ریال است",
    -3: "آدرس بازگشت مشخص نشده است",
    -4: "درگاه معتبر نیست یا در حالت انتظار است",
    -5: "خطا در اتصال به درگاه",
}


@dataclass(frozen=True)
class PaymentInitiation:
    payment_url: str
    id_get: str


@dataclass(frozen=True)
class PaymentVerification:
    status: int
    amount: float
    card_num: str | None
    factor_id: str | None


class BitpayClient:
    """Initiates and verifies gateway payments.

    Parameters
    ----------
    http:
        Shared ``httpx.AsyncClient``; tests inject one with a ``MockTransport``.
    api_key:
        Merchant API key sent with every request.
    send_url / verify_url:
        Gateway endpoints.
    gateway_url_template:
        Payment page URL with an ``{id_get}`` placeholder.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        send_url: str,
        verify_url: str,
        gateway_url_template: str,
    ) -> None:
        self.http = http
        self.api_key = api_key
        self.send_url = send_url
        self.verify_url = verify_url
        self.gateway_url_template = gateway_url_template

    async def initiate(
        self, amount: int, redirect: str, name: str, description: str, factor_id: str
    ) -> PaymentInitiation:
        """Register a payment of *amount* rials and return the payment page URL.

        Raises:
            PaymentGatewayError: the gateway is unreachable or answers with an error code.
        """
        form = {
            "api": self.api_key,
            "amount": str(amount),
            "redirect": redirect,
            "name": name,
            "description": description,
            "factorId": factor_id,
        }
        try:
            response = await self.http.post(self.send_url, data=form)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Bitpay send request failed")
            raise PaymentGatewayError() from exc

        body = response.text.strip()
        logger.info("Bitpay response: {}", body)
        try:
            code = int(body)
        except ValueError:
            raise PaymentGatewayError(
                message_fa=f"خطای ناشناخته از سمت درگاه: {body}"
            ) from None

        if code <= 0:
            raise PaymentGatewayError(
                message_fa=SEND_ERRORS.get(code, f"خطای ناشناخته از سمت درگاه: {code}")
            )

        return PaymentInitiation(
            payment_url=self.gateway_url_template.format(id_get=code),
            id_get=str(code),
        )

    async def verify(self, trans_id: str, id_get: str) -> PaymentVerification:
        """Ask the gateway for the outcome of a payment.

        Raises:
            PaymentGatewayError: the gateway is unreachable.
            PaymentVerificationError: the reply is not a verification result.
        """
        form = {"api": self.api_key, "trans_id": trans_id, "id_get": id_get, "json": "1"}
        logger.info("Verifying payment with Bitpay | trans_id={} id_get={}", trans_id, id_get)
        try:
            response = await self.http.post(self.verify_url, data=form)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Bitpay verify request failed")
            raise PaymentGatewayError() from exc

        try:
            result = response.json()
            verification = PaymentVerification(
                status=int(result["status"]),
                amount=float(result["amount"]),
                card_num=result.get("cardNum"),
                factor_id=None if result.get("factorId") is None else str(result["factorId"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Unexpected Bitpay verification reply: {}", response.text[:200])
            raise PaymentVerificationError() from exc

        logger.info("Bitpay verification | status={} amount={}", verification.status, verification.amount)
        return verification
