"""Subscription price list and payment routes."""

from __future__ import annotations

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from loguru import logger

from dadafarin.application.use_cases.payments import PaymentService
from dadafarin.infrastructure.account_store import AccountStore
from dadafarin.presentation.auth import AuthenticatedUser, get_current_user
from dadafarin.presentation.schemas import (
    PaymentRequest,
    PaymentResponse,
    PriceResponse,
    PricesResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)

router = APIRouter(prefix="/api", tags=["payments"])


@router.get("/prices", response_model=PricesResponse)
async def list_prices(raw_request: Request):
    accounts: AccountStore = raw_request.app.state.accounts
    return PricesResponse(
        prices=[PriceResponse(time=p.time, price=p.price) for p in accounts.list_prices()]
    )


@router.post("/payments", response_model=PaymentResponse)
async def start_payment(
    request: PaymentRequest,
    raw_request: Request,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Start a gateway payment for one of the price options."""
    payments: PaymentService = raw_request.app.state.payments
    started = await payments.start_purchase(current_user.user_id, request.hours)
    return PaymentResponse(payment_url=started.payment_url, id_get=started.id_get)


@router.api_route("/account/payment-callback", methods=["GET", "POST"])
async def payment_callback(raw_request: Request):
    """Gateway return URL: hand the payment ids to the account page for verification."""
    trans_id = raw_request.query_params.get("trans_id", "")
    id_get = raw_request.query_params.get("id_get", "")
    logger.info(
        "Payment callback received | method={} trans_id={} id_get={}",
        raw_request.method,
        trans_id,
        id_get,
    )
    query = urlencode({"verify": "true", "trans_id": trans_id, "id_get": id_get})
    return RedirectResponse(f"/account?{query}", status_code=303)


@router.post("/payments/verify-bitpay", response_model=VerifyPaymentResponse)
async def verify_payment(
    request: VerifyPaymentRequest,
    raw_request: Request,
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Confirm a payment with the gateway and extend the subscription."""
    payments: PaymentService = raw_request.app.state.payments
    confirmed = await payments.verify_payment(
        current_user.user_id, request.trans_id, request.id_get
    )
    logger.info(
        "Payment verified | user={} hours={} valid_until={}",
        current_user.user_id,
        confirmed.hours,
        confirmed.valid_until.isoformat(),
    )
    return VerifyPaymentResponse(hours=confirmed.hours, valid_until=confirmed.valid_until)
