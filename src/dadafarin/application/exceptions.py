"""Application-level exceptions.

These are business-logic errors, not HTTP errors. The presentation layer
(FastAPI exception handler) translates them into a structured response:
``{"error": ..., "code": ..., "message": {"en": ..., "fa": ...}}``.
"""

from __future__ import annotations


class AssistantError(Exception):
    """Base class for every error that is reported to the client before streaming starts."""

    code = "INTERNAL_ERROR"
    status_code = 500
    error = "Internal server error"
    message_en = "Something went wrong. Please try again later."
    message_fa = "خطایی رخ داد. لطفاً بعداً دوباره تلاش کنید."

    def __init__(self, error: str | None = None, *, message_fa: str | None = None) -> None:
        if error is not None:
            self.error = error
        if message_fa is not None:
            self.message_fa = message_fa
        super().__init__(self.error)

    def to_payload(self) -> dict:
        return {
            "error": self.error,
            "code": self.code,
            "message": {"en": self.message_en, "fa": self.message_fa},
        }


# ---------------------------------------------------------------------------
# Authorization / entitlement
# ---------------------------------------------------------------------------


class UnauthorizedError(AssistantError):
    code = "UNAUTHORIZED"
    status_code = 401
    error = "Unauthorized"
    message_en = "You need to sign in again."
    message_fa = "لطفاً دوباره وارد حساب کاربری خود شوید."


class UserNotFoundError(AssistantError):
    code = "USER_NOT_FOUND"
    status_code = 404
    error = "User not found"
    message_en = "No account was found for this user."
    message_fa = "حساب کاربری یافت نشد."


class NoSubscriptionError(AssistantError):
    code = "NO_SUBSCRIPTION"
    status_code = 403
    error = "Subscription required"
    message_en = "You need an active subscription to use the AI assistant."
    message_fa = "برای استفاده از دستیار هوش مصنوعی نیاز به اشتراک فعال دارید."


class SubscriptionExpiredError(AssistantError):
    code = "SUBSCRIPTION_EXPIRED"
    status_code = 403
    error = "Subscription expired"
    message_en = (
        "Your subscription has expired. Please renew your subscription "
        "to continue using the AI assistant."
    )
    message_fa = (
        "اشتراک شما منقضی شده است. لطفاً برای ادامه استفاده از دستیار هوش مصنوعی، "
        "اشتراک خود را تمدید کنید."
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationFailedError(AssistantError, ValueError):
    code = "VALIDATION_ERROR"
    status_code = 400
    error = "Invalid request"
    message_en = "Some required fields are missing."
    message_fa = "برخی از فیلدهای ضروری وارد نشده‌اند."


class UserExistsError(AssistantError):
    code = "USER_EXISTS"
    status_code = 400
    error = "User already exists"
    message_en = "An account with this email already exists."
    message_fa = "حسابی با این ایمیل از قبل وجود دارد."


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class InvalidPurchaseOptionError(AssistantError):
    code = "INVALID_PURCHASE_OPTION"
    status_code = 400
    error = "Invalid purchase option"
    message_en = "The selected subscription option does not exist."
    message_fa = "گزینه خرید انتخاب‌شده معتبر نیست."


class PaymentGatewayError(AssistantError):
    code = "PAYMENT_GATEWAY_ERROR"
    status_code = 502
    error = "Payment processing failed"
    message_en = "The payment gateway rejected the request."
    message_fa = "خطا در اتصال به درگاه"


class PaymentVerificationError(AssistantError):
    code = "PAYMENT_VERIFICATION_FAILED"
    status_code = 400
    error = "Payment verification failed"
    message_en = "The payment could not be verified."
    message_fa = "پرداخت تأیید نشد."


# ---------------------------------------------------------------------------
# Upstream
# ---------------------------------------------------------------------------


class UpstreamServiceError(AssistantError):
    """An embedding or completion model call failed before the stream opened."""
