"""HTTP request/response schemas (Pydantic models) for the REST API.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dadafarin.domain.personas import Persona


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class SignupRequest(ApiModel):
    """Request body for POST /api/auth/signup."""

    email: str = ""
    password: str = ""
    first_name: str | None = None
    last_name: str | None = None


class SignupResponse(ApiModel):
    message: str = "User created successfully"
    user_id: int


class LoginRequest(ApiModel):
    """Request body for POST /api/auth/login."""

    email: str = ""
    password: str = ""


class LoginResponse(ApiModel):
    token: str


class UserResponse(ApiModel):
    id: int
    email: str
    first_name: str | None
    last_name: str | None
    valid_until: datetime | None


class MeResponse(ApiModel):
    user: UserResponse


# ---------------------------------------------------------------------------
# Assistant
# ---------------------------------------------------------------------------


class AssistantRequest(ApiModel):
    """Request body for POST /api/assistant.

    ``user_id`` is extracted from the JWT, not sent in the body.
    """

    message: str = Field(default="", description="The new user message")
    conversation_id: str = Field(default="", description="Client-chosen conversation id")
    persona: Persona = Field(
        default=Persona.MULTI,
        description="System prompt variant; only used when the conversation is first loaded",
    )


class InitConversationRequest(ApiModel):
    conversation_id: str | None = Field(
        default=None, description="Existing conversation id. None starts a new conversation."
    )
    persona: Persona = Persona.MULTI


class InitConversationResponse(ApiModel):
    conversation_id: str
    message: str = "Conversation initialized."


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class ConversationSummaryResponse(ApiModel):
    """A single conversation in the listing."""

    conversation_id: str
    name: str
    created_at: str


class TurnResponse(ApiModel):
    """A single persisted turn."""

    id: int
    conversation_id: str
    sender: str
    message: str
    name: str
    created_at: str


class SuccessResponse(ApiModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class PriceResponse(ApiModel):
    time: int
    price: float


class PricesResponse(ApiModel):
    success: bool = True
    prices: list[PriceResponse]


class PaymentRequest(ApiModel):
    hours: int | None = None


class PaymentResponse(ApiModel):
    success: bool = True
    payment_url: str
    id_get: str = Field(alias="id_get")


class VerifyPaymentRequest(ApiModel):
    trans_id: str | None = None
    id_get: str | None = None


class VerifyPaymentResponse(ApiModel):
    success: bool = True
    hours: int
    valid_until: datetime
